import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import api_key
from .errors import LoaMarketError
from .log import configure_logging, uvicorn_log_level
from .routes import admin, market, packages, refining
from .storage.db import close_datastore
from .version import __version__

configure_logging()

log = logging.getLogger("loamarket.server")

RELATED_ENV_MARKERS = ("LOSTARK", "SUPABASE", "CRON", "LOAMARKET", "DATABASE")

app = FastAPI(title="loamarket", version=__version__)
app.include_router(market.router)
app.include_router(admin.router)
app.include_router(packages.router)
app.include_router(refining.router)


@app.exception_handler(LoaMarketError)
async def handle_loamarket_error(request: Request, exc: LoaMarketError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        log.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error."}, status_code=500)


@app.on_event("startup")
async def on_startup():
    log.info("loamarket server started, version %s", __version__)
    if not api_key():
        log.warning("LOSTARK_API_KEY is not set; game API endpoints will return errors")


@app.on_event("shutdown")
async def on_shutdown():
    close_datastore()


@app.get("/")
def root():
    return {"service": "loamarket", "version": __version__}


@app.get("/health/ready")
def ready():
    return {
        "status": "ready",
        "service": "loamarket",
        "version": __version__,
    }


@app.get("/env/check")
def env_check():
    key = api_key()
    related = sorted(
        name for name in os.environ if any(marker in name for marker in RELATED_ENV_MARKERS)
    )
    return {
        "hasKey": bool(key),
        # only the length is exposed, never the key
        "length": len(key),
        "isSet": "LOSTARK_API_KEY" in os.environ,
        "relatedEnvKeys": related,
        "totalEnvCount": len(os.environ),
    }


def main() -> int:
    import uvicorn

    uvicorn.run(
        "loamarket.server:app",
        host=os.getenv("LOAMARKET_HOST", "0.0.0.0"),
        port=int(os.getenv("LOAMARKET_PORT", "8000")),
        log_level=uvicorn_log_level(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
