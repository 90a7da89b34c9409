"""Read-only lookups against the game API and the market cache."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..errors import ApiKeyMissing, BadRequest, LoaMarketError, NotFound, UpstreamError
from ..services import crystal, market
from ..services.lostark import LostArkClient, get_lostark_client
from ..services.market_cache import refresh_market_cache
from .common import read_json

log = logging.getLogger("loamarket.routes.market")

router = APIRouter()


def _required_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"{key} is required.")
    return value.strip()


def _character_lookup(fn, name: str):
    try:
        return fn(name)
    except UpstreamError as exc:
        if exc.upstream_status == 404:
            raise NotFound("Character not found.")
        raise LoaMarketError(exc.message, exc.upstream_status or 500)


@router.post("/market/search")
async def market_search(request: Request, client: LostArkClient = Depends(get_lostark_client)):
    payload = await read_json(request)
    item_name = _required_text(payload, "itemName")
    client.require_key()
    return await run_in_threadpool(market.search_market_item, client, item_name)


@router.post("/market/autocomplete")
async def market_autocomplete(request: Request, client: LostArkClient = Depends(get_lostark_client)):
    payload = await read_json(request)
    query = payload.get("query")
    if not isinstance(query, str):
        return {"Items": []}
    try:
        items = await run_in_threadpool(market.autocomplete, client, query)
    except ApiKeyMissing:
        raise
    except Exception:
        log.exception("Autocomplete failed for %s", query)
        items = []
    return {"Items": items}


@router.post("/auction/search")
async def auction_search(request: Request, client: LostArkClient = Depends(get_lostark_client)):
    payload = await read_json(request)
    item_name = _required_text(payload, "itemName")
    client.require_key()
    return await run_in_threadpool(market.search_gem_auction, client, item_name)


@router.post("/character/search")
async def character_search(request: Request, client: LostArkClient = Depends(get_lostark_client)):
    payload = await read_json(request)
    name = _required_text(payload, "characterName")
    client.require_key()
    return await run_in_threadpool(_character_lookup, client.armory, name)


@router.get("/character/roster")
async def character_roster(characterName: str = "", client: LostArkClient = Depends(get_lostark_client)):
    if not characterName.strip():
        raise BadRequest("characterName is required.")
    client.require_key()
    return await run_in_threadpool(_character_lookup, client.siblings, characterName.strip())


@router.get("/crystal-gold")
async def crystal_gold(client: LostArkClient = Depends(get_lostark_client)):
    return await run_in_threadpool(crystal.probe_crystal_price, client)


@router.post("/test/item-category")
async def item_category(request: Request, client: LostArkClient = Depends(get_lostark_client)):
    payload = await read_json(request)
    item_name = _required_text(payload, "itemName")
    return await run_in_threadpool(market.probe_item_category, client, item_name)


@router.get("/market/cache")
async def market_cache(client: LostArkClient = Depends(get_lostark_client)):
    return await run_in_threadpool(refresh_market_cache, client, False)


@router.post("/market/cache/update")
async def market_cache_update(client: LostArkClient = Depends(get_lostark_client)):
    return await run_in_threadpool(refresh_market_cache, client, True)
