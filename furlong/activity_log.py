"""Activity log for chart ingestion and registry changes."""

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

from furlong.config import local_now_naive

logger = logging.getLogger(__name__)


class ActivityType:
    PARSE_BATCH = "parse_batch"
    COMMIT = "commit"
    COMMIT_ERROR = "commit_error"
    REGISTRY = "registry"
    NOTE = "note"
    SYSTEM = "system"


@dataclass
class ActivityEntry:
    """Single activity log entry."""

    timestamp: datetime
    activity_type: str
    message: str
    horse: Optional[str] = None
    details: Optional[str] = None
    status: str = "info"  # info, success, warning, error

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "time_str": self.timestamp.strftime("%H:%M:%S"),
            "activity_type": self.activity_type,
            "message": self.message,
            "horse": self.horse,
            "details": self.details,
            "status": self.status,
        }


class ActivityLog:
    """In-memory activity log with fixed size."""

    def __init__(self, max_entries: int = 100):
        self._entries: deque[ActivityEntry] = deque(maxlen=max_entries)

    def log(
        self,
        activity_type: str,
        message: str,
        horse: Optional[str] = None,
        details: Optional[str] = None,
        status: str = "info",
    ) -> None:
        """Add an activity to the log."""
        entry = ActivityEntry(
            timestamp=local_now_naive(),
            activity_type=activity_type,
            message=message,
            horse=horse,
            details=details,
            status=status,
        )
        self._entries.appendleft(entry)

        log_level = logging.INFO
        if status == "error":
            log_level = logging.ERROR
        elif status == "warning":
            log_level = logging.WARNING
        logger.log(log_level, f"[Activity] {message}" + (f" ({horse})" if horse else ""))

    def get_entries(self, limit: int = 50) -> list[dict]:
        """Get recent entries as dicts."""
        entries = list(self._entries)[:limit]
        return [e.to_dict() for e in entries]

    def clear(self) -> None:
        self._entries.clear()


# Global activity log instance
activity_log = ActivityLog()


def log_parse_batch(documents: int, ready: int, needs_verification: int, duplicates: int, errors: int) -> None:
    """Log a parsed chart batch."""
    status = "warning" if errors else "info"
    activity_log.log(
        ActivityType.PARSE_BATCH,
        f"Parsed {documents} chart(s)",
        details=(f"{ready} ready, {needs_verification} to verify, "
                 f"{duplicates} duplicate, {errors} failed"),
        status=status,
    )


def log_commit(saved: int, skipped: int, horses: Optional[list[str]] = None) -> None:
    """Log a confirmed commit."""
    activity_log.log(
        ActivityType.COMMIT,
        f"Saved {saved} race record(s), skipped {skipped}",
        details=", ".join(horses) if horses else None,
        status="success" if saved else "info",
    )


def log_commit_error(error: str) -> None:
    activity_log.log(
        ActivityType.COMMIT_ERROR,
        "Commit failed",
        details=error,
        status="error",
    )


def log_registry(action: str, horse: str, details: Optional[str] = None) -> None:
    """Log a registry mutation (add, merge, rename, unmerge, import)."""
    activity_log.log(
        ActivityType.REGISTRY,
        f"Registry {action}",
        horse=horse,
        details=details,
        status="success",
    )


def log_note(action: str, horse: str, date: str) -> None:
    activity_log.log(
        ActivityType.NOTE,
        f"Note {action}",
        horse=horse,
        details=date,
    )


def log_system(message: str, status: str = "info") -> None:
    """Log system event."""
    activity_log.log(
        ActivityType.SYSTEM,
        message,
        status=status,
    )
