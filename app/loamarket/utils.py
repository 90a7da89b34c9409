import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

from .config import data_root

FEATURED_ITEMS_FILE = "featured-items.json"
CRYSTAL_RATES_FILE = "crystal-gold-rates.json"
MARKET_CACHE_FILE = "cached-market-data.json"
MARKET_ITEMS_FILE = "market-items.json"
CONTENT_REWARDS_FILE = "content-rewards.json"
CSV_REWARDS_FILE = "csv-rewards.json"


def data_path(name: str) -> Path:
    return data_root() / name


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Render an aware datetime as ISO-8601 with a trailing Z."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(ts: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-like timestamp. Naive values are taken as UTC.
    Returns None for anything unparseable.
    """
    if not ts or not isinstance(ts, str):
        return None
    try:
        parsed = datetime.fromisoformat(ts.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def top_of_hour(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def load_json(path, default):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return default


def save_json(path, data):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    tmp.replace(path)
