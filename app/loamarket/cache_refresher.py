"""Keep the market cache warm: refresh now, then every ten minutes."""
import argparse
import logging
import time

import requests

from .config import server_url
from .log import configure_logging
from .services.scheduler import post_endpoint, wait_for_server

configure_logging()

log = logging.getLogger("loamarket.cache_refresher")

CACHE_UPDATE_PATH = "/market/cache/update"
INTERVAL_SECONDS = 10 * 60
REQUEST_TIMEOUT = 300
NOT_READY_BACKOFF = 10


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="loamarket market cache refresher.")
    parser.add_argument("--server-url", default=None, help="Base URL of the loamarket server.")
    parser.add_argument(
        "--interval",
        type=int,
        default=INTERVAL_SECONDS,
        help="Seconds between refreshes.",
    )
    parser.add_argument("--once", action="store_true", help="Refresh once and exit.")
    return parser.parse_args(argv)


def refresh_once(base_url: str) -> bool:
    try:
        body = post_endpoint(base_url, CACHE_UPDATE_PATH, timeout=REQUEST_TIMEOUT)
    except (requests.RequestException, RuntimeError) as exc:
        log.error("Cache update failed: %s", exc)
        return False
    log.info("Cache updated, lastUpdated=%s", (body or {}).get("lastUpdated"))
    return True


def main(argv=None, sleep=time.sleep) -> int:
    args = _parse_args(argv)
    base_url = (args.server_url or server_url()).rstrip("/")
    log.info("Market cache refresher starting: %s every %ss", base_url, args.interval)

    if not wait_for_server(base_url, sleep=sleep):
        log.warning("Server not ready; retrying in %ss", NOT_READY_BACKOFF)
        sleep(NOT_READY_BACKOFF)

    ok = refresh_once(base_url)
    if args.once:
        return 0 if ok else 1

    while True:
        sleep(args.interval)
        refresh_once(base_url)


if __name__ == "__main__":
    raise SystemExit(main())
