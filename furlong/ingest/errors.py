"""Ingestion failure taxonomy.

None of these abort a batch: the orchestrator records them against the
document or candidate they concern and carries on.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class for per-document or per-record ingestion problems."""

    status = "error"

    def __init__(self, message: str, horse: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.horse = horse

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "horse": self.horse}


class MetadataIncomplete(IngestionError):
    """Race metadata fell back to sentinel values and must be checked."""

    status = "needs_verification"

    def __init__(self, fields: list[str]):
        super().__init__(f"Unresolved race details: {', '.join(fields)}")
        self.fields = fields


class HorseNotFound(IngestionError):
    """The horse has no row in the chart's results area."""

    status = "needs_verification"


class AmbiguousIdentity(IngestionError):
    """The best registry match is below the verified confidence."""

    status = "needs_verification"

    def __init__(self, message: str, horse: Optional[str] = None, confidence: float = 0.0):
        super().__init__(message, horse)
        self.confidence = confidence


class DuplicateEntry(IngestionError):
    """The horse already has a history entry for this date and track."""

    status = "duplicate"


class ParseFailure(IngestionError):
    """The document layout wasn't recognised at all."""

    status = "error"


class BatchTooLarge(IngestionError):
    """More documents than one batch may carry."""

    def __init__(self, count: int, limit: int):
        super().__init__(f"Batch of {count} documents exceeds the limit of {limit}")
        self.count = count
        self.limit = limit


class PositionsUnresolved(IngestionError):
    """The call digits didn't decode to the expected number of positions."""

    status = "needs_verification"
