"""Circular breakthrough stone value, averaged from stored refining values."""
import logging
import time
from typing import List, Optional

from ..errors import BadRequest
from ..storage.db import Datastore

log = logging.getLogger("loamarket.breakthrough")

TABLE = "circular_breakthrough_values"
TOP_N = 5
CACHE_TTL_SECONDS = 6 * 60 * 60

_CACHE = {"value": None, "ts": 0.0}


def _now() -> float:
    return time.time()


def clear_cache() -> None:
    _CACHE["value"] = None
    _CACHE["ts"] = 0.0


def top_average(rows: List[dict], n: int = TOP_N) -> float:
    """Mean of the ``n`` highest positive weapon/armor values across rows."""
    values = []
    for column in ("weapon_value", "armor_value"):
        for row in rows:
            value = row.get(column)
            if value is not None and value > 0:
                values.append(float(value))
    top = sorted(values, reverse=True)[:n]
    return sum(top) / len(top) if top else 0.0


def breakthrough_value(store: Optional[Datastore]) -> float:
    if _CACHE["value"] is not None and _now() - _CACHE["ts"] < CACHE_TTL_SECONDS:
        return _CACHE["value"]

    if store is None:
        log.warning("No datastore; circular breakthrough value defaults to 0")
        return 0.0

    rows = store.select(TABLE)
    if not rows:
        log.warning("No circular breakthrough values stored")
        return 0.0

    value = top_average(rows)
    _CACHE["value"] = value
    _CACHE["ts"] = _now()
    return value


def replace_values(store: Datastore, values) -> int:
    if not isinstance(values, list):
        raise BadRequest("values must be a list.")
    rows = [
        {
            "level": v.get("level"),
            "weapon_value": v.get("weaponValue"),
            "armor_value": v.get("armorValue"),
        }
        for v in values
        if isinstance(v, dict)
    ]
    count = store.replace_all(TABLE, rows)
    clear_cache()
    log.info("Stored %d circular breakthrough value row(s)", count)
    return count
