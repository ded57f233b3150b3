"""API endpoints for horse history, training entries and notes."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from furlong.api.deps import get_store, http_error
from furlong.horses import service
from furlong.horses.history import HistoryError
from furlong.horses.registry import RegistryError
from furlong.store import KeyValueStore, VersionConflict

router = APIRouter()

_FAILURES = (RegistryError, HistoryError, VersionConflict)


class NoteRequest(BaseModel):
    horse: str
    date: str
    note: str = ""


class NoteDelete(BaseModel):
    horse: str
    date: str


class EntryRequest(BaseModel):
    type: str = "training"
    date: str
    track: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)


class EntryUpdate(BaseModel):
    date: str
    track: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)


class EntryDelete(BaseModel):
    date: str
    track: str = ""


@router.get("/history/{horse}")
async def get_history(horse: str, store: KeyValueStore = Depends(get_store)):
    """History and summary of whichever horse the name resolves to."""
    try:
        return await service.get_history(store, horse)
    except _FAILURES as e:
        raise http_error(e)


@router.post("/history/{horse}/entries")
async def add_entry(horse: str, body: EntryRequest, store: KeyValueStore = Depends(get_store)):
    entry = dict(body.fields, type=body.type, date=body.date, track=body.track)
    try:
        canonical = await service.add_entry(store, horse, entry)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "added", "horse": canonical}


@router.put("/history/{horse}/entries")
async def update_entry(horse: str, body: EntryUpdate, store: KeyValueStore = Depends(get_store)):
    try:
        canonical = await service.update_entry(store, horse, body.date, body.track, body.fields)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "updated", "horse": canonical}


@router.delete("/history/{horse}/entries")
async def delete_entry(horse: str, body: EntryDelete, store: KeyValueStore = Depends(get_store)):
    try:
        canonical = await service.delete_entry(store, horse, body.date, body.track)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "deleted", "horse": canonical}


@router.post("/notes")
async def add_note(body: NoteRequest, store: KeyValueStore = Depends(get_store)):
    try:
        canonical = await service.add_note(store, body.horse, body.date, body.note)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "added", "horse": canonical}


@router.put("/notes")
async def update_note(body: NoteRequest, store: KeyValueStore = Depends(get_store)):
    try:
        canonical = await service.update_note(store, body.horse, body.date, body.note)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "updated", "horse": canonical}


@router.delete("/notes")
async def delete_note(body: NoteDelete, store: KeyValueStore = Depends(get_store)):
    try:
        canonical = await service.delete_note(store, body.horse, body.date)
    except _FAILURES as e:
        raise http_error(e)
    return {"status": "deleted", "horse": canonical}
