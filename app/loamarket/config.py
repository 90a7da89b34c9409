"""
Runtime configuration for loamarket.

Credentials and base URLs come from the environment (a local ``.env`` is
honoured); optional tuning lives in a JSON config file.
"""

import json
import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.getenv("LOAMARKET_CONFIG", "/data/loamarket.config")

LOSTARK_API_BASE = os.getenv(
    "LOSTARK_API_BASE",
    "https://developer-lostark.game.onstove.com",
)
CRYSTAL_HISTORY_URL = os.getenv(
    "CRYSTAL_HISTORY_URL",
    "https://loatool.taeu.kr/api/crystal-history/ohlc/1h",
)
DEFAULT_SERVER_URL = "http://localhost:8000"


def load_config() -> dict:
    """
    Load the optional JSON configuration from disk.

    A missing or broken file is logged and treated as empty.
    """
    try:
        with open(DEFAULT_CONFIG_PATH, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        log.debug("Config file not found: %s", DEFAULT_CONFIG_PATH)
        return {}
    except Exception:
        log.exception("Failed to load config")
        return {}


def normalize_key(raw: Optional[str]) -> str:
    if not raw:
        return ""
    return str(raw).replace("\ufeff", "").strip()


def api_key() -> str:
    return normalize_key(os.getenv("LOSTARK_API_KEY"))


def database_url() -> str:
    return (os.getenv("DATABASE_URL") or "").strip()


def server_url() -> str:
    return os.getenv("LOAMARKET_SERVER_URL", DEFAULT_SERVER_URL).rstrip("/")


def data_root() -> Path:
    return Path(os.getenv("LOAMARKET_DATA_ROOT", "./data"))


def item_sample_path() -> Path:
    override = os.getenv("LOAMARKET_ITEM_SAMPLE")
    if override:
        return Path(override)
    return data_root() / "item sample.csv"
