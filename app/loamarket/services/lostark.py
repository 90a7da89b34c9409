"""Client for the Lost Ark developer API (markets, auctions, armories)."""
import logging
import time
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests

from ..config import LOSTARK_API_BASE, api_key as configured_api_key
from ..errors import ApiKeyMissing, UpstreamError

log = logging.getLogger("loamarket.lostark")

DEFAULT_TIMEOUT = 30
MAX_RATE_LIMIT_RETRIES = 5

MARKET_DEFAULT_CATEGORY = 50000
MARKET_ALL_CATEGORIES = 0
ENGRAVING_CATEGORY = 40000
CURRENCY_CATEGORY = 60000
GEM_CATEGORY = 210000


def rate_limit_wait(attempt: int) -> float:
    """Seconds to wait before retry ``attempt`` (0-based): 2, 4, 8, then 10."""
    return min(2 * (2 ** attempt), 10)


class LostArkClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = LOSTARK_API_BASE,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.api_key = configured_api_key() if api_key is None else api_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.sleep = sleep
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def require_key(self) -> None:
        if not self.api_key:
            raise ApiKeyMissing()

    def _headers(self, with_body: bool) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "accept": "application/json",
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, method: str, path: str, body: Any = None) -> requests.Response:
        self.require_key()
        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            try:
                resp = self.session.request(
                    method,
                    url,
                    headers=self._headers(body is not None),
                    json=body,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                log.error("[lostark] %s %s failed: %s", method, path, exc)
                raise UpstreamError(f"API request failed: {exc}") from exc

            if resp.status_code != 429 or attempt >= MAX_RATE_LIMIT_RETRIES:
                break
            wait = rate_limit_wait(attempt)
            attempt += 1
            log.warning(
                "[lostark] Rate limited on %s, retrying in %ss (%d/%d)",
                path,
                wait,
                attempt,
                MAX_RATE_LIMIT_RETRIES,
            )
            self.sleep(wait)

        if resp.status_code >= 400:
            text = resp.text[:200] if resp.text else ""
            log.error("[lostark] HTTP %s from %s: %s", resp.status_code, path, text)
            raise UpstreamError(
                f"API request failed: {resp.status_code} {text}".strip(),
                upstream_status=resp.status_code,
            )
        return resp

    def _json(self, method: str, path: str, body: Any = None) -> Any:
        resp = self._request(method, path, body)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Unexpected response from {path}") from exc

    def search_market(
        self,
        item_name: str,
        category_code: int = MARKET_DEFAULT_CATEGORY,
        *,
        grade: str = "",
        page: int = 1,
        sort: str = "GRADE",
        sort_condition: str = "ASC",
    ) -> dict:
        return self._json(
            "POST",
            "/markets/items",
            {
                "Sort": sort,
                "CategoryCode": category_code,
                "CharacterClass": "",
                "ItemTier": 0,
                "ItemGrade": grade,
                "ItemName": item_name,
                "PageNo": page,
                "SortCondition": sort_condition,
            },
        )

    def search_auction(
        self,
        item_name: str,
        category_code: int = GEM_CATEGORY,
        *,
        tier: int = 4,
    ) -> dict:
        # auction pages start at 0
        return self._json(
            "POST",
            "/auctions/items",
            {
                "Sort": "BUY_PRICE",
                "CategoryCode": category_code,
                "CharacterClass": "",
                "ItemLevelMin": 0,
                "ItemLevelMax": 0,
                "ItemGradeQuality": 0,
                "ItemTier": tier,
                "ItemGrade": "",
                "ItemName": item_name,
                "PageNo": 0,
                "SortCondition": "ASC",
            },
        )

    def armory(self, character_name: str) -> Any:
        return self._json("GET", f"/armories/characters/{quote(character_name, safe='')}")

    def siblings(self, character_name: str) -> Any:
        return self._json("GET", f"/characters/{quote(character_name, safe='')}/siblings")

    def exchange_best(self) -> Any:
        return self._json("GET", "/exchange/best")

    def exchange(self) -> Any:
        return self._json("POST", "/exchange", {})


def get_lostark_client() -> LostArkClient:
    return LostArkClient()
