"""Market cache refresh.

Collects cheapest-per-grade listings for every configured item plus the
relic engraving board, and keeps the last good snapshot when a refresh
comes back empty or fails.
"""
import csv
import logging
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from ..config import item_sample_path
from ..errors import LoaMarketError, UpstreamError
from ..storage.market_cache import read_cache, write_cache
from ..utils import MARKET_ITEMS_FILE, data_path, load_json, parse_iso, to_iso, utcnow
from .lostark import ENGRAVING_CATEGORY, LostArkClient
from .market import SOURCE_MARKET, fetch_all_grades

log = logging.getLogger("loamarket.market_cache")

FRESH_FOR = timedelta(minutes=10)
TIER4_LABEL = "티어4"
RELIC_GRADE = "유물"
RELIC_TIER = "유물 각인서"
MAX_ENGRAVING_PAGES = 100
ENGRAVING_PAGE_SIZE = 10

MARKET_DELAY_SECONDS = 1
AUCTION_DELAY_SECONDS = 2
PAGE_DELAY_SECONDS = 1

SECTIONS = {
    "tier4": "tier4Results",
    "tier3": "tier3Results",
    "gem": "gemResults",
    "other": "otherResults",
}


def load_tier4_items(path=None) -> List[dict]:
    """Read ``name,tier`` rows from the item sample CSV, keeping tier-4 rows."""
    path = path or item_sample_path()
    items: List[dict] = []
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            for columns in csv.reader(f):
                columns = [c.strip() for c in columns]
                if len(columns) < 2 or columns[1] != TIER4_LABEL:
                    continue
                items.append(
                    {"id": len(items) + 1, "name": columns[0], "tier": TIER4_LABEL, "type": "market"}
                )
    except OSError:
        log.exception("Failed to read item sample %s", path)
    return items


def load_item_config() -> Dict[str, List[dict]]:
    config = load_json(data_path(MARKET_ITEMS_FILE), {})
    if not isinstance(config, dict):
        config = {}
    return {
        "tier4": load_tier4_items(),
        "tier3": config.get("tier3") or [],
        "gem": config.get("gem") or [],
        "other": config.get("other") or [],
    }


def _price(result: dict) -> float:
    return result.get("CurrentMinPrice") or 0


def fetch_section(
    client: LostArkClient,
    items: List[dict],
    sleep: Callable[[float], None],
) -> List[dict]:
    """
    Fetch every configured item in order and merge duplicates by
    display name and grade, keeping the lower positive price.
    """
    unique: Dict[str, dict] = {}
    for item in items:
        item_type = item.get("type", "market")
        try:
            results = fetch_all_grades(client, item["name"], item_type, item.get("tier"))
        except LoaMarketError:
            log.exception("Fetching %s failed", item.get("name"))
            results = []

        for result in results:
            key = f"{result.get('displayName') or result.get('Name')}::{result.get('grade') or result.get('Grade')}"
            existing = unique.get(key)
            if existing is None:
                unique[key] = result
            elif _price(result) > 0 and (_price(existing) == 0 or _price(result) < _price(existing)):
                unique[key] = result

        sleep(AUCTION_DELAY_SECONDS if item_type == "auction" else MARKET_DELAY_SECONDS)
    return list(unique.values())


def fetch_relic_engravings(
    client: LostArkClient,
    sleep: Callable[[float], None],
) -> List[dict]:
    engravings: List[dict] = []
    for page in range(1, MAX_ENGRAVING_PAGES + 1):
        try:
            data = client.search_market(
                "",
                ENGRAVING_CATEGORY,
                grade=RELIC_GRADE,
                page=page,
                sort="PRICE",
                sort_condition="DESC",
            )
        except UpstreamError as exc:
            log.error("Relic engraving page %d failed: %s", page, exc)
            break

        if page < MAX_ENGRAVING_PAGES:
            sleep(PAGE_DELAY_SECONDS)

        items = data.get("Items") if isinstance(data, dict) else None
        if not items:
            break

        for item in items:
            if item.get("Grade") != RELIC_GRADE:
                continue
            engravings.append(
                {
                    "Id": item.get("Id"),
                    "Name": item.get("Name"),
                    "Grade": item.get("Grade"),
                    "Icon": item.get("Icon"),
                    "BundleCount": item.get("BundleCount") or 1,
                    "TradeRemainCount": item.get("TradeRemainCount"),
                    "YDayAvgPrice": item.get("YDayAvgPrice") or 0,
                    "RecentPrice": item.get("RecentPrice") or 0,
                    "CurrentMinPrice": item.get("CurrentMinPrice") or 0,
                    "displayName": item.get("Name"),
                    "source": SOURCE_MARKET,
                    "tier": RELIC_TIER,
                    "grade": item.get("Grade"),
                }
            )

        if len(items) < ENGRAVING_PAGE_SIZE:
            break

    by_id: Dict[str, dict] = {}
    for item in engravings:
        if item.get("Id") and str(item["Id"]) not in by_id:
            by_id[str(item["Id"])] = item
    return sorted(by_id.values(), key=_price, reverse=True)


def _response(message: str, cache: dict, cached: bool) -> dict:
    return {
        "message": message,
        "cached": cached,
        "lastUpdated": cache.get("lastUpdated"),
        "data": cache.get("data"),
    }


def _build(client: LostArkClient, existing: Optional[dict], sleep) -> Optional[dict]:
    config = load_item_config()
    previous = (existing or {}).get("data") or {}

    data = {}
    for section, key in SECTIONS.items():
        data[key] = fetch_section(client, config[section], sleep)
    data["relicEngravingResults"] = fetch_relic_engravings(client, sleep)

    has_valid_data = any(
        data[key]
        for key in ("tier4Results", "tier3Results", "gemResults", "relicEngravingResults")
    )
    if existing and not has_valid_data:
        return None

    for key in list(data):
        if not data[key]:
            data[key] = previous.get(key) or []
    data["wishEngraving"] = None
    return {"lastUpdated": to_iso(utcnow()), "data": data}


def refresh_market_cache(
    client: LostArkClient,
    force: bool = False,
    sleep: Optional[Callable[[float], None]] = None,
) -> dict:
    """
    Refresh the market cache and return the response payload.

    Without ``force`` a snapshot younger than ten minutes is served as is.
    Raises only when there is no previous snapshot to fall back on.
    """
    sleep = sleep or client.sleep
    existing = read_cache()

    if not client.configured:
        if existing:
            return _response("API key missing, serving cached data", existing, True)
        client.require_key()

    if not force and existing:
        last = parse_iso(existing.get("lastUpdated"))
        if last and utcnow() - last < FRESH_FOR:
            return _response("Cache is fresh", existing, True)

    log.info("Market cache refresh started (force=%s)", force)
    try:
        cache = _build(client, existing, sleep)
    except Exception:
        log.exception("Market cache refresh failed")
        if existing:
            return _response("Refresh failed, serving cached data", existing, True)
        raise

    if cache is None:
        log.warning("Refresh returned no data; keeping previous cache")
        return _response("No new data, keeping cached data", existing, True)

    write_cache(cache)
    log.info("Market cache refresh complete")
    return _response("Cache updated", cache, False)
