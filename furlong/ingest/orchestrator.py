"""Chart ingestion: parse batches into a review queue, commit confirmed records.

Parsing is a pure function of the document text and a registry/history
snapshot, so documents in a batch run concurrently in worker threads. Nothing
is written until the reviewer confirms; the commit is a single versioned
read-modify-write against the store.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from furlong.activity_log import log_commit, log_commit_error, log_parse_batch
from furlong.charts.metadata import UNKNOWN_DATE, RaceMetadata, extract_metadata
from furlong.charts.record import CandidateRecord, build_candidate
from furlong.charts.rows import ResultsSection
from furlong.charts.tracks import UNKNOWN_TRACK
from furlong.config import settings
from furlong.horses.history import merge_entries, recompute_summaries
from furlong.horses.identity import MatchResult, match_chart_name, resolve, strip_name
from furlong.horses.registry import RegistryError, ensure_registered, selector_options
from furlong.ingest.duplicates import find_duplicate
from furlong.ingest.errors import (
    AmbiguousIdentity,
    BatchTooLarge,
    DuplicateEntry,
    HorseNotFound,
    IngestionError,
    MetadataIncomplete,
    ParseFailure,
    PositionsUnresolved,
)
from furlong.store import HISTORY_KEY, REGISTRY_KEY, SUMMARIES_KEY, KeyValueStore, VersionConflict

logger = logging.getLogger(__name__)

STATUS_READY = "ready"
STATUS_NEEDS_VERIFICATION = "needs_verification"
STATUS_DUPLICATE = "duplicate"
STATUS_ERROR = "error"
STATUSES = (STATUS_READY, STATUS_NEEDS_VERIFICATION, STATUS_DUPLICATE, STATUS_ERROR)


@dataclass
class Document:
    file_name: str
    text: str


@dataclass
class CandidateReview:
    """A parsed candidate with its identity match and duplicate flag."""

    record: CandidateRecord
    match: MatchResult
    duplicate: bool = False
    issues: list[IngestionError] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data.update({
            "match": self.match.to_dict(),
            "duplicate": self.duplicate,
            "issues": [i.to_dict() for i in self.issues],
        })
        return data


@dataclass
class ReviewItem:
    """Everything the reviewer needs to confirm or correct one document."""

    index: int
    file_name: str
    status: str
    metadata: Optional[RaceMetadata] = None
    candidates: list[CandidateReview] = field(default_factory=list)
    selected: Optional[int] = None
    error: Optional[str] = None
    issues: list[IngestionError] = field(default_factory=list)
    options: list[dict] = field(default_factory=list)

    @property
    def best(self) -> Optional[CandidateReview]:
        return self.candidates[self.selected] if self.selected is not None else None

    @property
    def horse(self) -> Optional[str]:
        return self.best.match.horse if self.best else None

    @property
    def confidence(self) -> float:
        return self.best.match.confidence if self.best else 0.0

    @property
    def duplicate(self) -> bool:
        return bool(self.best and self.best.duplicate)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "file_name": self.file_name,
            "status": self.status,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "candidates": [c.to_dict() for c in self.candidates],
            "selected": self.selected,
            "horse": self.horse,
            "confidence": self.confidence,
            "duplicate": self.duplicate,
            "error": self.error,
            "issues": [i.to_dict() for i in self.issues],
            "options": self.options,
        }


@dataclass
class BatchReview:
    items: list[ReviewItem] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        for item in self.items:
            counts[item.status] += 1
        counts["total"] = len(self.items)
        return counts

    def to_dict(self) -> dict:
        return {"items": [i.to_dict() for i in self.items], "counts": self.counts}


def _mentioned_in(name: str, file_name: str) -> bool:
    key = strip_name(name)
    return bool(key) and key in strip_name(file_name)


def _pick_best(candidates: list[CandidateReview], file_name: str) -> Optional[int]:
    """Highest confidence; ties go to the horse named in the file, then chart order."""
    if not candidates:
        return None
    return max(
        range(len(candidates)),
        key=lambda i: (
            candidates[i].record.found,
            candidates[i].match.confidence,
            _mentioned_in(candidates[i].record.observed_name, file_name),
            -i,
        ),
    )


def _review_candidate(record: CandidateRecord, registry: dict, history: dict) -> CandidateReview:
    match = match_chart_name(record.observed_name, registry)
    review = CandidateReview(record=record, match=match)
    if not record.found:
        review.issues.append(HorseNotFound(f"No result row for {record.observed_name}", record.observed_name))
    if not record.positions_resolved:
        review.issues.append(PositionsUnresolved(
            f"Calls '{record.raw_calls}' decoded to an unexpected number of positions",
            record.observed_name,
        ))
    if not match.verified:
        review.issues.append(AmbiguousIdentity(
            f"Best match for {record.observed_name} has confidence {match.confidence:.2f}",
            match.horse, match.confidence,
        ))
    # Duplicates are checked against the resolved identity whatever the confidence
    if match.canonical and find_duplicate(history, match.canonical, record.metadata.date, record.metadata.track):
        review.duplicate = True
        review.issues.append(DuplicateEntry(
            f"{match.canonical} already has a race on {record.metadata.date} at {record.metadata.track}",
            match.canonical,
        ))
    return review


def parse_document(file_name: str, text: str, registry: dict, history: dict, index: int = 0) -> ReviewItem:
    """Parse one chart into a review item. Never raises for bad input."""
    options = selector_options(registry)
    if not text or not text.strip():
        failure = ParseFailure("Document contains no text")
        return ReviewItem(index=index, file_name=file_name, status=STATUS_ERROR,
                          error=failure.message, issues=[failure], options=options)

    metadata = extract_metadata(text)
    section = ResultsSection(text)
    names = section.candidates()
    if not names:
        failure = ParseFailure("No horse result rows recognised in document")
        logger.info(f"{file_name}: {failure.message}")
        return ReviewItem(index=index, file_name=file_name, status=STATUS_ERROR, metadata=metadata,
                          error=failure.message, issues=[failure], options=options)

    candidates = [
        _review_candidate(build_candidate(section, name, metadata), registry, history)
        for name in names
    ]
    selected = _pick_best(candidates, file_name)
    item = ReviewItem(index=index, file_name=file_name, status=STATUS_READY, metadata=metadata,
                      candidates=candidates, selected=selected, options=options)

    if metadata.unresolved:
        item.issues.append(MetadataIncomplete(metadata.unresolved_fields()))
    best = item.best
    if best.duplicate:
        item.status = STATUS_DUPLICATE
    elif item.issues or best.issues or not best.record.times.final:
        item.status = STATUS_NEEDS_VERIFICATION
    return item


async def parse_batch(store: KeyValueStore, documents: list[Document]) -> BatchReview:
    """Parse a batch concurrently; items come back in submission order."""
    limit = settings.max_batch_documents
    if len(documents) > limit:
        raise BatchTooLarge(len(documents), limit)

    snapshot = await store.get_many(REGISTRY_KEY, HISTORY_KEY)
    registry = snapshot[REGISTRY_KEY].value or {}
    history = snapshot[HISTORY_KEY].value or {}
    semaphore = asyncio.Semaphore(settings.parse_concurrency)

    async def _parse(index: int, doc: Document) -> ReviewItem:
        async with semaphore:
            try:
                return await asyncio.to_thread(parse_document, doc.file_name, doc.text, registry, history, index)
            except Exception as e:
                logger.exception(f"Unexpected failure parsing {doc.file_name}")
                failure = ParseFailure(f"Unexpected parser failure: {e}")
                return ReviewItem(index=index, file_name=doc.file_name, status=STATUS_ERROR,
                                  error=failure.message, issues=[failure],
                                  options=selector_options(registry))

    items = await asyncio.gather(*(_parse(i, doc) for i, doc in enumerate(documents)))
    review = BatchReview(items=list(items))
    counts = review.counts
    log_parse_batch(len(items), counts[STATUS_READY], counts[STATUS_NEEDS_VERIFICATION],
                    counts[STATUS_DUPLICATE], counts[STATUS_ERROR])
    return review


@dataclass
class ConfirmedRecord:
    """A reviewer-confirmed record: chosen identity, edited metadata and fields."""

    horse: str
    record: CandidateRecord
    override: bool = False
    file_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ConfirmedRecord":
        metadata = RaceMetadata.from_dict(data.get("metadata") or {})
        record = CandidateRecord.from_dict(data.get("record") or {}, metadata)
        horse = data.get("horse") or record.observed_name
        if not record.observed_name:
            record.observed_name = horse
        return cls(horse=horse, record=record, override=bool(data.get("override")),
                   file_name=data.get("file_name") or "")


@dataclass
class CommitResult:
    saved: int = 0
    skipped: int = 0
    horses: list[str] = field(default_factory=list)
    registered: list[str] = field(default_factory=list)
    skipped_records: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "saved_count": self.saved,
            "skipped_count": self.skipped,
            "horses": self.horses,
            "registered": self.registered,
            "skipped": self.skipped_records,
        }


async def commit_batch(
    store: KeyValueStore, records: list[Union[ConfirmedRecord, dict]]
) -> CommitResult:
    """Merge confirmed records into history and refresh touched summaries.

    Unknown horses are auto-registered. A record whose (horse, date, track)
    already exists is skipped unless it carries ``override``, in which case
    it replaces the stored entry. Raises ``VersionConflict`` if another writer
    committed since the snapshot was read.

    Records may be given as raw reviewer dicts; one that cannot be read is
    skipped as a ``ParseFailure`` and the rest of the batch carries on.
    """
    result = CommitResult()
    async with store.lock:
        snapshot = await store.get_many(REGISTRY_KEY, HISTORY_KEY, SUMMARIES_KEY)
        registry = snapshot[REGISTRY_KEY].value or {}
        history = snapshot[HISTORY_KEY].value or {}
        summaries = snapshot[SUMMARIES_KEY].value or {}
        touched: set[str] = set()

        for item in records:
            confirmed = _confirm(result, item)
            if confirmed is None:
                continue
            meta = confirmed.record.metadata
            missing = [name for name, unknown in (("date", meta.date == UNKNOWN_DATE),
                                                  ("track", meta.track == UNKNOWN_TRACK)) if unknown]
            if missing:
                _skip(result, confirmed.horse, confirmed.file_name, MetadataIncomplete(missing))
                continue

            canonical = resolve(confirmed.horse, registry)
            if canonical is None:
                try:
                    canonical = ensure_registered(registry, confirmed.horse)
                except RegistryError as e:
                    _skip(result, confirmed.horse, confirmed.file_name, ParseFailure(e.message, confirmed.horse))
                    continue
                result.registered.append(canonical)

            if find_duplicate(history, canonical, meta.date, meta.track) and not confirmed.override:
                _skip(result, confirmed.horse, confirmed.file_name, DuplicateEntry(
                    f"{canonical} already has a race on {meta.date} at {meta.track}", canonical))
                continue

            entry = confirmed.record.to_history_entry(canonical)
            history[canonical], _, _ = merge_entries(
                history.get(canonical, []), [entry], replace=confirmed.override
            )
            touched.add(canonical)
            result.saved += 1

        if not touched and not result.registered:
            log_commit(0, result.skipped)
            return result

        recompute_summaries(summaries, history, touched)
        writes = {
            HISTORY_KEY: (history, snapshot[HISTORY_KEY].version),
            SUMMARIES_KEY: (summaries, snapshot[SUMMARIES_KEY].version),
        }
        if result.registered:
            writes[REGISTRY_KEY] = (registry, snapshot[REGISTRY_KEY].version)
        try:
            await store.put_many(writes)
        except VersionConflict as e:
            log_commit_error(str(e))
            raise

    result.horses = sorted(touched)
    log_commit(result.saved, result.skipped, result.horses)
    return result


def _confirm(result: CommitResult, item: Union[ConfirmedRecord, dict]) -> Optional[ConfirmedRecord]:
    if isinstance(item, ConfirmedRecord):
        return item
    try:
        return ConfirmedRecord.from_dict(item)
    except Exception as e:
        horse = item.get("horse") if isinstance(item, dict) else None
        file_name = item.get("file_name") if isinstance(item, dict) else ""
        logger.warning(f"Unreadable confirmed record for {horse}: {e}")
        _skip(result, horse, file_name or "", ParseFailure(f"Unreadable record: {e}", horse))
        return None


def _skip(result: CommitResult, horse: Optional[str], file_name: str, reason: IngestionError) -> None:
    result.skipped += 1
    result.skipped_records.append({
        **reason.to_dict(),
        "file_name": file_name,
        "horse": horse,
    })
    logger.info(f"Skipped {horse} ({file_name}): {reason.message}")
