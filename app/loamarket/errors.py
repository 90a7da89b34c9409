"""Exceptions raised by services and mapped to JSON error bodies by the server."""

from typing import Optional


class LoaMarketError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(LoaMarketError):
    status_code = 400


class NotFound(LoaMarketError):
    status_code = 404


class ApiKeyMissing(LoaMarketError):
    def __init__(self, message: str = "LOSTARK_API_KEY is not configured."):
        super().__init__(message, 500)


class UpstreamError(LoaMarketError):
    """A call to an external API failed or answered with a non-2xx status."""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message, 500)
        self.upstream_status = upstream_status


class StorageError(LoaMarketError):
    status_code = 500


class MissingColumnError(StorageError):
    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column


class DatastoreUnavailable(StorageError):
    def __init__(self, message: str = "Datastore is not configured."):
        super().__init__(message, 503)
