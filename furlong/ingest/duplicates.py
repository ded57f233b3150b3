"""Duplicate guard keyed on (canonical horse, race date, track)."""

from typing import Optional

from furlong.charts.metadata import normalize_date


def duplicate_key(horse: str, race_date: str, track: str) -> tuple[str, str, str]:
    return (horse, normalize_date(race_date) or race_date, (track or "").strip().upper())


def find_duplicate(history: dict, horse: Optional[str], race_date: str, track: str) -> Optional[dict]:
    """The stored entry matching ``(horse, date, track)``, whatever its type."""
    if not horse:
        return None
    target = duplicate_key(horse, race_date, track)
    for entry in history.get(horse, []):
        if duplicate_key(horse, entry.get("date"), entry.get("track")) == target:
            return entry
    return None


def is_duplicate(history: dict, horse: Optional[str], race_date: str, track: str) -> bool:
    return find_duplicate(history, horse, race_date, track) is not None
