import logging
import os
from typing import Optional

from .config import load_config

log = logging.getLogger("loamarket")

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
UVICORN_LEVELS = ("critical", "error", "warning", "info", "debug")


def level_from_name(name, default: int = logging.INFO) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown names give ``default``."""
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default


def _resolve_log_level() -> int:
    env_level = os.getenv("LOAMARKET_LOG_LEVEL")
    if env_level:
        return level_from_name(env_level)

    cfg = load_config()
    logging_cfg = cfg.get("logging") if isinstance(cfg, dict) else None
    return level_from_name((logging_cfg or {}).get("level", "INFO"))


def uvicorn_log_level() -> str:
    """The resolved level as the lowercase name uvicorn expects."""
    name = logging.getLevelName(_resolve_log_level()).lower()
    return name if name in UVICORN_LEVELS else "info"


def configure_logging(level: Optional[int] = None) -> None:
    resolved = level if level is not None else _resolve_log_level()
    logging.basicConfig(level=resolved, format=DEFAULT_LOG_FORMAT)
