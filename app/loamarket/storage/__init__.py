from .db import Datastore, get_datastore

__all__ = ["Datastore", "get_datastore"]
