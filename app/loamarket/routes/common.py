import json
from typing import Optional

from fastapi import Request

from ..errors import BadRequest, DatastoreUnavailable
from ..storage.db import Datastore, get_datastore


async def read_json(request: Request) -> dict:
    """Parse the request body as a JSON object or raise BadRequest."""
    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        raise BadRequest("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object.")
    return payload


def optional_datastore() -> Optional[Datastore]:
    try:
        return get_datastore()
    except DatastoreUnavailable:
        return None
