"""Admin maintenance: featured items and exchange rates."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..errors import BadRequest, NotFound
from ..services import crystal
from ..storage import featured
from ..storage.db import Datastore, get_datastore
from .common import optional_datastore, read_json

log = logging.getLogger("loamarket.routes.admin")

router = APIRouter(prefix="/admin")


def _numeric_id(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BadRequest("id must be numeric.")


def add_featured_item(item_id, name, item_type=None) -> list:
    with featured.LOCK:
        try:
            items = featured.add_item(featured.load_items(), item_id, name, item_type)
        except ValueError as exc:
            raise BadRequest(str(exc))
        featured.save_items(items)
    log.info("Featured item added: %s", name)
    return items


def remove_featured_item(item_id: int) -> list:
    with featured.LOCK:
        try:
            items = featured.remove_item(featured.load_items(), item_id)
        except KeyError:
            raise NotFound(f"Item {item_id} not found.")
        featured.save_items(items)
    log.info("Featured item removed: %s", item_id)
    return items


def move_featured_item(item_id: int, direction: str) -> list:
    with featured.LOCK:
        try:
            items = featured.move_item(featured.load_items(), item_id, direction)
        except KeyError:
            raise NotFound(f"Item {item_id} not found.")
        except IndexError:
            raise BadRequest("Item cannot be moved further in that direction.")
        featured.save_items(items)
    return items


@router.get("/items")
async def list_items():
    return {"items": await run_in_threadpool(featured.load_items)}


@router.post("/items")
async def add_item(request: Request):
    payload = await read_json(request)
    name = payload.get("name")
    if not name or not str(name).strip():
        raise BadRequest("name is required.")

    item_id = payload.get("id")
    if item_id:
        item_id = _numeric_id(item_id)

    items = await run_in_threadpool(add_featured_item, item_id, name, payload.get("type"))
    return {"success": True, "items": items}


@router.delete("/items")
async def delete_item(id: Optional[str] = None):
    if not id:
        raise BadRequest("id query parameter is required.")
    items = await run_in_threadpool(remove_featured_item, _numeric_id(id))
    return {"success": True, "items": items}


@router.patch("/items/reorder")
async def reorder_items(request: Request):
    payload = await read_json(request)
    direction = payload.get("direction")
    if not payload.get("id") or direction not in featured.DIRECTIONS:
        raise BadRequest("id and direction (up/down) are required.")
    item_id = _numeric_id(payload["id"])

    items = await run_in_threadpool(move_featured_item, item_id, direction)
    return {"success": True, "items": items}


@router.get("/crystal-gold")
async def crystal_gold_summary(store: Optional[Datastore] = Depends(optional_datastore)):
    return await run_in_threadpool(crystal.admin_summary, store)


@router.post("/crystal-gold")
async def record_discord_rate(request: Request):
    payload = await read_json(request)
    entry = await run_in_threadpool(crystal.record_discord_rate, payload.get("discord"))
    log.info("Discord rate recorded: %s", entry)
    return {"success": True, "data": entry}


@router.post("/crystal-gold/update-exchange")
async def update_exchange(store: Datastore = Depends(get_datastore)):
    rate = await run_in_threadpool(crystal.refresh_exchange, store)
    return {"success": True, "exchange": rate.exchange, "timestamp": rate.source_timestamp}
