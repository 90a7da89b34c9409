from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..services import packages
from ..storage.db import Datastore, get_datastore
from .common import optional_datastore, read_json

router = APIRouter(prefix="/packages")


@router.get("")
async def list_packages(store: Datastore = Depends(get_datastore)):
    rows = await run_in_threadpool(packages.list_packages, store)
    return {"packages": rows}


@router.post("")
async def create_package(request: Request, store: Datastore = Depends(get_datastore)):
    payload = await read_json(request)
    row = await run_in_threadpool(packages.create_package, store, payload)
    return {"package": row}


@router.get("/test")
async def test_connection(store=Depends(optional_datastore)):
    if store is None:
        return {"success": False, "message": "Datastore is not configured.", "error": "DATABASE_URL is not set"}
    return await run_in_threadpool(packages.check_connection, store)


@router.put("/{package_id}")
async def update_package(package_id: str, request: Request, store: Datastore = Depends(get_datastore)):
    payload = await read_json(request)
    row = await run_in_threadpool(packages.update_package, store, package_id, payload)
    return {"package": row}


@router.delete("/{package_id}")
async def delete_package(package_id: str, store: Datastore = Depends(get_datastore)):
    await run_in_threadpool(packages.delete_package, store, package_id)
    return {"success": True}
