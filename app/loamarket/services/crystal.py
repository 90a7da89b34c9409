"""Crystal to gold exchange rate: polling, persistence and lookups."""
import logging
import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

import requests

from ..config import CRYSTAL_HISTORY_URL
from ..errors import BadRequest, MissingColumnError, NotFound, StorageError, UpstreamError
from ..models.rates import CrystalRate
from ..storage import exchange_rates
from ..storage.db import Datastore
from ..utils import parse_iso, to_iso, top_of_hour, utcnow
from .lostark import CURRENCY_CATEGORY, LostArkClient

log = logging.getLogger("loamarket.crystal")

TABLE = "crystal_exchange_rates"
OPTIONAL_COLUMNS = ("updated_at", "source_timestamp")
RETENTION = timedelta(days=30)
HISTORY_TIMEOUT = 30
CRYSTAL_NAME = "크리스탈"
CRYSTAL_BUNDLE = 100


def fetch_latest_exchange(url: str = CRYSTAL_HISTORY_URL) -> Optional[Tuple[float, str]]:
    """
    Return ``(close, timestamp)`` for the newest hourly candle, or None
    when the history API is unreachable or answers with junk.
    """
    try:
        resp = requests.get(url, timeout=HISTORY_TIMEOUT)
    except requests.RequestException:
        log.exception("Crystal history request failed")
        return None

    if resp.status_code >= 400:
        log.error("Crystal history HTTP %s: %s", resp.status_code, resp.reason)
        return None

    try:
        candles = resp.json()
    except ValueError:
        log.error("Crystal history returned non-JSON body")
        return None

    if not isinstance(candles, list) or not candles:
        return None

    last = candles[-1] if isinstance(candles[-1], dict) else {}
    try:
        close = float(last.get("close"))
    except (TypeError, ValueError):
        return None
    if math.isnan(close) or close <= 0:
        return None

    timestamp = last.get("dt") if isinstance(last.get("dt"), str) else to_iso(utcnow())
    return close, timestamp


def _missing_optional_columns(exc: MissingColumnError) -> list:
    if exc.column:
        return [exc.column] if exc.column in OPTIONAL_COLUMNS else []
    # later lines of a server error quote the whole statement
    lines = str(exc).splitlines()
    first_line = lines[0] if lines else ""
    return [c for c in OPTIONAL_COLUMNS if c in first_line] or list(OPTIONAL_COLUMNS)


def upsert_with_fallback(store: Datastore, row: dict) -> dict:
    """
    Upsert a crystal row on ``timestamp``. If the table lacks one of the
    optional columns, drop it and retry once. Returns the row as written.

    A missing required column is raised as is.
    """
    row = dict(row)
    try:
        store.upsert(TABLE, row, conflict="timestamp")
        return row
    except MissingColumnError as exc:
        missing = _missing_optional_columns(exc)
        if not missing:
            raise
        for column in missing:
            log.warning("Column %s missing on %s; saving without it. Add the column.", column, TABLE)
            row.pop(column, None)

    store.upsert(TABLE, row, conflict="timestamp")
    return row


def save_exchange(
    store: Datastore,
    exchange: float,
    timestamp: str,
    now: Optional[datetime] = None,
) -> CrystalRate:
    """Store one rate at the top of its hour and prune rows past retention."""
    now = now or utcnow()
    source = parse_iso(timestamp)
    if source is None:
        log.warning("Unparseable crystal timestamp %r; using now", timestamp)
        source = now

    rate = CrystalRate(
        timestamp=to_iso(top_of_hour(source)),
        exchange=exchange,
        updated_at=to_iso(now),
        source_timestamp=to_iso(source),
    )
    upsert_with_fallback(store, rate.to_row())

    removed = store.delete_before(TABLE, "timestamp", to_iso(now - RETENTION))
    if removed:
        log.info("Pruned %s crystal rate row(s) older than %s days", removed, RETENTION.days)
    return rate


def latest_exchange(store: Datastore) -> Optional[CrystalRate]:
    rows = store.select(TABLE, order_by="timestamp", descending=True, limit=1)
    if not rows:
        return None
    return CrystalRate.from_row(rows[0])


def refresh_exchange(store: Datastore, url: str = CRYSTAL_HISTORY_URL) -> CrystalRate:
    fetched = fetch_latest_exchange(url)
    if fetched is None:
        raise UpstreamError("Could not fetch the crystal exchange rate.")
    exchange, timestamp = fetched
    try:
        rate = save_exchange(store, exchange, timestamp)
    except StorageError as exc:
        log.error("Saving crystal rate failed: %s", exc)
        raise StorageError("Could not save the crystal exchange rate.") from exc
    log.info("Crystal rate %s stored for %s", exchange, rate.timestamp)
    return rate


def admin_summary(store: Optional[Datastore]) -> dict:
    latest = None
    if store is not None:
        try:
            latest = latest_exchange(store)
        except StorageError:
            log.exception("Reading latest crystal rate failed")

    data = exchange_rates.load_rates()
    return {
        "exchange": latest.exchange if latest else None,
        "exchangeTimestamp": (latest.source_timestamp or latest.timestamp) if latest else None,
        "updatedAt": latest.updated_at if latest else None,
        "discord": exchange_rates.latest_discord_rate(data),
        "exchangeRates": data["exchangeRates"],
    }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def record_discord_rate(value, today: Optional[str] = None) -> dict:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise BadRequest("discord must be a number.")
    if value <= 0:
        raise BadRequest("discord must be greater than 0.")

    today = today or utcnow().date().isoformat()
    with exchange_rates.LOCK:
        data = exchange_rates.load_rates()
        entries = exchange_rates.upsert_discord_rate(data, today, round_half_up(value))
        exchange_rates.save_rates(data)
    return entries[-1]


def probe_crystal_price(client: LostArkClient) -> dict:
    """
    Ask the game API for the crystal price, trying the exchange endpoints
    first and a currency-market search for the 100 bundle last.
    """
    client.require_key()

    for probe in (client.exchange_best, client.exchange):
        try:
            return probe()
        except UpstreamError:
            log.debug("Crystal probe %s failed", probe.__name__)

    try:
        data = client.search_market(CRYSTAL_NAME, CURRENCY_CATEGORY)
    except UpstreamError:
        data = None

    if isinstance(data, dict) and data.get("Items"):
        bundle = next(
            (
                item
                for item in data["Items"]
                if CRYSTAL_NAME in (item.get("Name") or "") and item.get("BundleCount") == CRYSTAL_BUNDLE
            ),
            None,
        )
        if bundle:
            rate = bundle.get("RecentPrice") or bundle.get("CurrentMinPrice")
            return {
                "crystal100Bundle": bundle,
                "exchangeRate": rate,
                "unitPrice": (rate or 0) / CRYSTAL_BUNDLE,
            }
        return data

    raise NotFound("Crystal exchange rate is not available from the game API.")
