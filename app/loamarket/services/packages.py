"""Saved package presets stored in the ``saved_packages`` table."""
import logging
from typing import List

from ..errors import BadRequest, NotFound, StorageError
from ..storage.db import Datastore
from ..utils import to_iso, utcnow

log = logging.getLogger("loamarket.packages")

TABLE = "saved_packages"


def _validate(payload: dict) -> tuple:
    name = payload.get("package_name")
    data = payload.get("package_data")
    if not name or not data:
        raise BadRequest("package_name and package_data are required.")
    return name, data


def list_packages(store: Datastore) -> List[dict]:
    return store.select(TABLE, order_by="created_at", descending=True)


def create_package(store: Datastore, payload: dict) -> dict:
    name, data = _validate(payload)
    row = store.insert(TABLE, {"package_name": name, "package_data": data})
    log.info("Saved package %s", name)
    return row


def update_package(store: Datastore, package_id: str, payload: dict) -> dict:
    name, data = _validate(payload)
    row = store.update(
        TABLE,
        "id",
        package_id,
        {"package_name": name, "package_data": data, "updated_at": to_iso(utcnow())},
    )
    if not row:
        raise NotFound(f"Package {package_id} not found.")
    return row


def delete_package(store: Datastore, package_id: str) -> None:
    store.delete_where(TABLE, "id", package_id)


def check_connection(store: Datastore) -> dict:
    try:
        store.ping(TABLE)
    except StorageError as exc:
        log.warning("Package table check failed: %s", exc)
        return {"success": False, "message": "Datastore connection failed", "error": exc.message}
    return {"success": True, "message": "Datastore connection OK"}
