from typing import Optional

from ..utils import MARKET_CACHE_FILE, data_path, load_json, save_json


def read_cache() -> Optional[dict]:
    cache = load_json(data_path(MARKET_CACHE_FILE), None)
    if not isinstance(cache, dict) or "data" not in cache:
        return None
    return cache


def write_cache(cache: dict) -> None:
    save_json(data_path(MARKET_CACHE_FILE), cache)
