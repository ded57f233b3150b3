"""Shared request dependencies and error mapping for the API routers."""

from fastapi import HTTPException, Request

from furlong.horses.history import HistoryError
from furlong.horses.registry import RegistryError
from furlong.store import KeyValueStore, VersionConflict


def get_store(request: Request) -> KeyValueStore:
    """The store the app was started with."""
    return request.app.state.store


def http_error(e: Exception) -> HTTPException:
    """Translate a domain failure into the matching HTTP error."""
    if isinstance(e, (RegistryError, HistoryError)):
        status = 404 if e.code == "not_found" else 400
        return HTTPException(status_code=status, detail=e.to_dict())
    if isinstance(e, VersionConflict):
        return HTTPException(
            status_code=409,
            detail={"code": "version_conflict", "message": str(e), "key": e.key},
        )
    raise e
