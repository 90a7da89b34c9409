"""Helpers shared by the polling workers."""
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

log = logging.getLogger("loamarket.scheduler")

PROBE_TIMEOUT = 3


def wait_for_server(
    server_url: str,
    max_retries: int = 60,
    delay: float = 1.0,
    grace: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``GET /`` until the server answers with anything at all."""
    for attempt in range(max_retries):
        try:
            requests.get(f"{server_url}/", timeout=PROBE_TIMEOUT)
        except requests.RequestException:
            if attempt == 0 or attempt % 5 == 0:
                log.info("Waiting for server at %s (%d/%d)", server_url, attempt + 1, max_retries)
        else:
            sleep(grace)
            return True

        if attempt < max_retries - 1:
            sleep(delay)
    return False


def post_endpoint(server_url: str, path: str, timeout: float) -> Optional[dict]:
    """
    POST to one of our own endpoints and return its JSON body.

    Raises requests.RequestException on transport errors and
    RuntimeError on non-2xx answers.
    """
    resp = requests.post(f"{server_url}{path}", json={}, timeout=timeout)
    if resp.status_code not in (200, 201):
        raise RuntimeError(f"HTTP {resp.status_code}: {resp.text[:200]}")
    try:
        return resp.json()
    except ValueError:
        return None


def seconds_until_next_half_day(now: Optional[datetime] = None) -> float:
    """Seconds until the next 12:00 (mornings) or next 00:00 (afternoons)."""
    now = now or datetime.now()
    if now.hour < 12:
        target = now.replace(hour=12, minute=0, second=0, microsecond=0)
    else:
        target = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (target - now).total_seconds()
