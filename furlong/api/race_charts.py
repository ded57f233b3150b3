"""API endpoints for race chart parsing and confirmed saves."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from furlong.api.deps import get_store, http_error
from furlong.ingest.errors import BatchTooLarge
from furlong.ingest.orchestrator import Document, commit_batch, parse_batch
from furlong.store import KeyValueStore, VersionConflict

logger = logging.getLogger(__name__)

router = APIRouter()


class ChartDocument(BaseModel):
    file_name: str = ""
    text: str = ""


class ParseRequest(BaseModel):
    documents: list[ChartDocument]


class SaveRecord(BaseModel):
    horse: str
    metadata: dict = Field(default_factory=dict)
    record: dict = Field(default_factory=dict)
    override: bool = False
    file_name: str = ""


class SaveRequest(BaseModel):
    records: list[SaveRecord]


@router.post("/parse")
async def parse_charts(body: ParseRequest, store: KeyValueStore = Depends(get_store)):
    """Parse chart texts into a review batch. Nothing is saved."""
    documents = [Document(file_name=d.file_name, text=d.text) for d in body.documents]
    try:
        review = await parse_batch(store, documents)
    except BatchTooLarge as e:
        raise HTTPException(status_code=413, detail=e.message)
    return review.to_dict()


@router.post("/save")
async def save_charts(body: SaveRequest, store: KeyValueStore = Depends(get_store)):
    """Commit reviewer-confirmed records."""
    records = [r.model_dump() for r in body.records]
    try:
        result = await commit_batch(store, records)
    except VersionConflict as e:
        raise http_error(e)
    return result.to_dict()
