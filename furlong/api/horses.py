"""API endpoints for the horse registry."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from furlong.api.deps import get_store, http_error
from furlong.horses import service
from furlong.horses.registry import RegistryError
from furlong.store import KeyValueStore, VersionConflict

router = APIRouter()


class HorseUpdate(BaseModel):
    name: str
    owner: Optional[str] = None
    country: Optional[str] = None
    is_historic: Optional[bool] = None


class MergeRequest(BaseModel):
    primary: str
    names: list[str]


class UnmergeRequest(BaseModel):
    primary: str
    alias: str


class RenameRequest(BaseModel):
    old_name: str
    new_name: str


class ImportEntry(BaseModel):
    name: str
    owner: Optional[str] = None
    country: Optional[str] = None
    is_historic: Optional[bool] = None
    aliases: list[str] = Field(default_factory=list)


class ImportRequest(BaseModel):
    entries: list[ImportEntry]


@router.get("")
async def list_horses(store: KeyValueStore = Depends(get_store)):
    """Registry listing with display names."""
    return await service.list_horses(store)


@router.post("")
async def add_or_update_horse(body: HorseUpdate, store: KeyValueStore = Depends(get_store)):
    try:
        return await service.add_or_update_horse(store, body.name, body.owner, body.country, body.is_historic)
    except (RegistryError, VersionConflict) as e:
        raise http_error(e)


@router.post("/merge")
async def merge_horses(body: MergeRequest, store: KeyValueStore = Depends(get_store)):
    """Fold the given names into the primary horse."""
    try:
        return await service.merge_horses(store, body.primary, body.names)
    except (RegistryError, VersionConflict) as e:
        raise http_error(e)


@router.post("/unmerge")
async def unmerge_horse(body: UnmergeRequest, store: KeyValueStore = Depends(get_store)):
    try:
        return await service.unmerge_horse(store, body.primary, body.alias)
    except (RegistryError, VersionConflict) as e:
        raise http_error(e)


@router.post("/rename")
async def rename_horse(body: RenameRequest, store: KeyValueStore = Depends(get_store)):
    try:
        return await service.rename_horse(store, body.old_name, body.new_name)
    except (RegistryError, VersionConflict) as e:
        raise http_error(e)


@router.post("/import")
async def import_horses(body: ImportRequest, store: KeyValueStore = Depends(get_store)):
    """Bulk add/update registry entries with their aliases."""
    try:
        return await service.import_horses(store, [e.model_dump() for e in body.entries])
    except (RegistryError, VersionConflict) as e:
        raise http_error(e)
