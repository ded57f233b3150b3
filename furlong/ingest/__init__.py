"""Chart ingestion: review queue, duplicate guard and confirmed commits."""

from furlong.ingest.orchestrator import (
    BatchReview,
    ConfirmedRecord,
    Document,
    ReviewItem,
    commit_batch,
    parse_batch,
    parse_document,
)

__all__ = [
    "BatchReview",
    "ConfirmedRecord",
    "Document",
    "ReviewItem",
    "commit_batch",
    "parse_batch",
    "parse_document",
]
