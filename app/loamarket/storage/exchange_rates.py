"""Admin-entered discord exchange rates, one entry per day."""
import logging
import threading
from typing import List, Optional

from ..models.rates import ExchangeRateEntry
from ..utils import CRYSTAL_RATES_FILE, data_path, load_json, save_json

log = logging.getLogger("loamarket.exchange_rates")

# held across a load and save of the rates file
LOCK = threading.Lock()


def load_rates() -> dict:
    data = load_json(data_path(CRYSTAL_RATES_FILE), None)
    if not isinstance(data, dict) or not isinstance(data.get("exchangeRates"), list):
        return {"exchangeRates": []}
    data["exchangeRates"] = [
        ExchangeRateEntry.from_json(e).to_json() for e in data["exchangeRates"] if isinstance(e, dict)
    ]
    return data


def save_rates(data: dict) -> None:
    save_json(data_path(CRYSTAL_RATES_FILE), data)


def latest_discord_rate(data: dict) -> Optional[int]:
    entries = data.get("exchangeRates") or []
    if not entries:
        return None
    return entries[-1].get("discord")


def upsert_discord_rate(data: dict, date: str, discord: int) -> List[dict]:
    """
    Insert or replace the entry for ``date`` and keep the list date-sorted.

    Returns the updated entry list; ``data`` is modified in place.
    """
    entry = ExchangeRateEntry(date=date, discord=discord).to_json()
    entries = [e for e in data.get("exchangeRates", []) if e.get("date") != date]
    if len(entries) != len(data.get("exchangeRates", [])):
        log.info("Replacing discord rate for %s with %s", date, discord)
    entries.append(entry)
    entries.sort(key=lambda e: str(e.get("date", "")))
    data["exchangeRates"] = entries
    return entries
