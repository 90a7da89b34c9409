from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..services import breakthrough
from ..storage.db import Datastore, get_datastore
from .common import optional_datastore, read_json

router = APIRouter(prefix="/refining/circular-breakthrough")


@router.get("")
async def circular_breakthrough_value(store=Depends(optional_datastore)):
    value = await run_in_threadpool(breakthrough.breakthrough_value, store)
    return {"value": value}


@router.post("/update")
async def update_values(request: Request, store: Datastore = Depends(get_datastore)):
    payload = await read_json(request)
    count = await run_in_threadpool(breakthrough.replace_values, store, payload.get("values"))
    return {"success": True, "count": count}
