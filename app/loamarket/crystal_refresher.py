"""Refresh the crystal exchange rate now, then at 00:00 and 12:00 local time."""
import argparse
import logging
import time
from datetime import datetime, timedelta

import requests

from .config import server_url
from .log import configure_logging
from .services.scheduler import post_endpoint, seconds_until_next_half_day, wait_for_server

configure_logging()

log = logging.getLogger("loamarket.crystal_refresher")

UPDATE_PATH = "/admin/crystal-gold/update-exchange"
REQUEST_TIMEOUT = 30


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="loamarket crystal exchange refresher.")
    parser.add_argument("--server-url", default=None, help="Base URL of the loamarket server.")
    parser.add_argument("--once", action="store_true", help="Refresh once and exit.")
    return parser.parse_args(argv)


def refresh_once(base_url: str) -> bool:
    try:
        body = post_endpoint(base_url, UPDATE_PATH, timeout=REQUEST_TIMEOUT)
    except (requests.RequestException, RuntimeError) as exc:
        log.error("Crystal exchange refresh failed: %s", exc)
        return False
    log.info("Crystal exchange refreshed: %s", body)
    return True


def main(argv=None, sleep=time.sleep) -> int:
    args = _parse_args(argv)
    base_url = (args.server_url or server_url()).rstrip("/")
    log.info("Crystal exchange refresher starting against %s", base_url)

    if not wait_for_server(base_url, sleep=sleep):
        log.error("Server never became ready; exiting.")
        return 1

    ok = refresh_once(base_url)
    if args.once:
        return 0 if ok else 1

    while True:
        delay = seconds_until_next_half_day()
        log.info("Next crystal refresh at %s", datetime.now() + timedelta(seconds=delay))
        sleep(delay)
        refresh_once(base_url)


if __name__ == "__main__":
    raise SystemExit(main())
