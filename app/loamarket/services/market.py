"""Marketplace and auction lookups built on the game API client."""
import logging
import re
from typing import Dict, List, Optional

from ..errors import UpstreamError
from .lostark import (
    GEM_CATEGORY,
    MARKET_ALL_CATEGORIES,
    MARKET_DEFAULT_CATEGORY,
    LostArkClient,
)

log = logging.getLogger("loamarket.market")

AUTOCOMPLETE_LIMIT = 10
AUTOCOMPLETE_MIN_CHARS = 2

GRADE_KEYWORDS = ("유물", "고대", "전설", "영웅", "희귀", "일반", "고급")
GEM_KEYWORDS = ("보석", "젬")
UNKNOWN_GRADE = "기타"
SOURCE_MARKET = "거래소"
SOURCE_AUCTION = "경매장"
CATEGORY_PROBE_CODES = (70000, 0, 50000)

_BRACKET_RE = re.compile(r"\(([^)]+)\)")
_ANY_BRACKET_RE = re.compile(r"\([^)]*\)")


def _items(data) -> list:
    if isinstance(data, dict) and isinstance(data.get("Items"), list):
        return data["Items"]
    return []


def search_market_item(client: LostArkClient, item_name: str) -> dict:
    """
    Search the default market category, retrying across all categories
    when the first request fails. The second failure propagates.
    """
    name = item_name.strip()
    try:
        return client.search_market(name, MARKET_DEFAULT_CATEGORY)
    except UpstreamError as exc:
        log.warning("Market search for %s failed (%s); retrying all categories", name, exc)
    return client.search_market(name, MARKET_ALL_CATEGORIES)


def autocomplete(client: LostArkClient, query: str) -> List[dict]:
    """
    Suggest up to ten market items by name.

    The narrow category is asked first; the unfiltered category tops it up
    when it returns fewer than ten hits. Names are unique in the result.
    """
    term = (query or "").strip()
    if len(term) < AUTOCOMPLETE_MIN_CHARS:
        return []

    client.require_key()

    items: list = []
    try:
        items = list(_items(client.search_market(term, MARKET_DEFAULT_CATEGORY)))
    except UpstreamError:
        log.warning("Autocomplete narrow search failed for %s", term)

    if len(items) < AUTOCOMPLETE_LIMIT:
        try:
            items.extend(_items(client.search_market(term, MARKET_ALL_CATEGORIES)))
        except UpstreamError:
            log.warning("Autocomplete wide search failed for %s", term)

    unique: Dict[str, dict] = {}
    for item in items:
        name = item.get("Name") if isinstance(item, dict) else None
        if name and name not in unique:
            unique[name] = item
    return list(unique.values())[:AUTOCOMPLETE_LIMIT]


def search_gem_auction(client: LostArkClient, item_name: str) -> dict:
    return client.search_auction(item_name, GEM_CATEGORY, tier=4)


def split_grade(item_name: str):
    """
    Return ``(query_name, grade)``. A bracketed grade keyword such as
    ``"(유물)"`` becomes the grade filter and is removed from the query.
    """
    match = _BRACKET_RE.search(item_name)
    bracket = match.group(1) if match else None
    if bracket in GRADE_KEYWORDS:
        return _ANY_BRACKET_RE.sub("", item_name).strip(), bracket
    return item_name, None


def is_gem(item_name: str) -> bool:
    return any(keyword in item_name for keyword in GEM_KEYWORDS)


def _cheapest_per_grade(items: List[dict], price) -> List[dict]:
    groups: Dict[str, dict] = {}
    for item in items:
        grade = item.get("Grade") or UNKNOWN_GRADE
        if grade not in groups or price(item) < price(groups[grade]):
            groups[grade] = item
    return list(groups.values())


def _market_lookup(client: LostArkClient, name: str) -> list:
    try:
        items = _items(client.search_market(name, MARKET_DEFAULT_CATEGORY))
    except UpstreamError:
        items = []
    if items:
        return items
    try:
        return _items(client.search_market(name, MARKET_ALL_CATEGORIES))
    except UpstreamError as exc:
        log.error("Market lookup failed for %s: %s", name, exc)
        return []


def _auction_lookup(client: LostArkClient, name: str) -> list:
    if is_gem(name):
        try:
            return _items(client.search_auction(name, GEM_CATEGORY, tier=4))
        except UpstreamError as exc:
            log.error("Gem auction lookup failed for %s: %s", name, exc)
            return []

    try:
        items = _items(client.search_auction(name, MARKET_ALL_CATEGORIES, tier=4))
    except UpstreamError as exc:
        log.error("Auction lookup failed for %s: %s", name, exc)
        return []
    if items:
        return items
    try:
        return _items(client.search_auction(name, GEM_CATEGORY, tier=4))
    except UpstreamError:
        return []


def _buy_price(item: dict) -> float:
    return (item.get("AuctionInfo") or {}).get("BuyPrice") or 0


def fetch_all_grades(
    client: LostArkClient,
    item_name: str,
    item_type: str = "market",
    tier: Optional[str] = None,
) -> List[dict]:
    """Cheapest listing per grade for one configured item."""
    if item_type == "auction":
        listed = [item for item in _auction_lookup(client, item_name) if _buy_price(item) > 0]
        results = [
            {
                "Id": item.get("Id"),
                "Name": item.get("Name"),
                "Grade": item.get("Grade"),
                "Icon": item.get("Icon"),
                "BundleCount": item.get("BundleCount") or 1,
                "TradeRemainCount": item.get("TradeRemainCount"),
                "YDayAvgPrice": 0,
                "RecentPrice": _buy_price(item),
                "CurrentMinPrice": _buy_price(item),
            }
            for item in _cheapest_per_grade(listed, _buy_price)
        ]
        source = SOURCE_AUCTION
    else:
        query, target_grade = split_grade(item_name)
        items = _market_lookup(client, query)
        if target_grade:
            items = [item for item in items if item.get("Grade") == target_grade]
            if not items:
                log.warning("No %s grade listing for %s", target_grade, item_name)
        results = [
            dict(item)
            for item in _cheapest_per_grade(items, lambda i: i.get("CurrentMinPrice") or 0)
        ]
        source = SOURCE_MARKET

    if not results:
        log.warning("No results for %s (%s)", item_name, item_type)
        return []

    log.info("Found %d grade(s) for %s (%s)", len(results), item_name, item_type)
    for result in results:
        result["displayName"] = result.get("Name") or item_name
        result["source"] = source
        result["tier"] = tier
        result["grade"] = result.get("Grade")
    return results


def probe_item_category(client: LostArkClient, item_name: str) -> dict:
    """Report which market categories list ``item_name``."""
    client.require_key()

    results = []
    for code in CATEGORY_PROBE_CODES:
        try:
            items = _items(client.search_market(item_name, code))
        except UpstreamError as exc:
            results.append({"searchedCategoryCode": code, "found": False, "error": exc.message})
            continue
        match = next(
            (i for i in items if i.get("Name") == item_name or item_name in (i.get("Name") or "")),
            None,
        )
        if match:
            results.append(
                {
                    "searchedCategoryCode": code,
                    "found": True,
                    "item": {
                        "Name": match.get("Name"),
                        "CategoryCode": match.get("CategoryCode") or "N/A",
                        "Category": match.get("Category") or "N/A",
                        "Grade": match.get("Grade"),
                        "fullItem": match,
                    },
                }
            )

    first = next((r for r in results if r.get("found")), None)
    summary = None
    if first:
        item = first["item"]
        summary = {
            "categoryCode": item["CategoryCode"],
            "category": item["Category"],
            "grade": item["Grade"],
            "fullItemKeys": list(item["fullItem"].keys()),
        }
    return {"itemName": item_name, "results": results, "summary": summary}
