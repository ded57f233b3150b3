"""Per-horse history: tagged entries, alias-aware moves, notes and summaries.

The history document maps canonical name → list of entries, newest first.
Each entry carries a ``type`` of ``race``, ``training`` or ``note``; within one
horse no two entries share ``(date, track)``. Notes have an empty track, so
a horse holds at most one note per date.
"""

import logging
from datetime import date
from typing import Optional

from furlong.charts.metadata import normalize_date
from furlong.charts.times import is_valid_training_time, time_to_seconds
from furlong.config import local_today
from furlong.horses.identity import split_year, resolve

logger = logging.getLogger(__name__)

ENTRY_RACE = "race"
ENTRY_TRAINING = "training"
ENTRY_NOTE = "note"
ENTRY_TYPES = (ENTRY_RACE, ENTRY_TRAINING, ENTRY_NOTE)


class HistoryError(Exception):
    """Structured history failure with a machine-readable ``code``."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


def entry_key(entry: dict) -> tuple[str, str]:
    """Identity of an entry within one horse's history: ``(date, track)``."""
    raw_date = entry.get("date")
    return (normalize_date(raw_date) or str(raw_date or ""), (entry.get("track") or "").strip().upper())


def sort_entries(entries: list[dict]) -> list[dict]:
    """Newest first; entries without a parseable date go last."""
    dated = [e for e in entries if normalize_date(e.get("date"))]
    undated = [e for e in entries if not normalize_date(e.get("date"))]
    dated.sort(key=lambda e: normalize_date(e.get("date")), reverse=True)
    return dated + undated


def merge_entries(
    existing: list[dict], incoming: list[dict], replace: bool = False
) -> tuple[list[dict], int, int]:
    """Merge ``incoming`` into ``existing`` deduplicated by ``(date, track)``.

    Returns ``(entries, added, skipped)``. With ``replace`` a clashing
    incoming entry overwrites the stored one instead of being skipped.
    """
    merged = list(existing)
    positions = {entry_key(e): i for i, e in enumerate(merged)}
    added = skipped = 0
    for entry in incoming:
        key = entry_key(entry)
        if key in positions:
            if replace:
                merged[positions[key]] = entry
                added += 1
            else:
                skipped += 1
            continue
        positions[key] = len(merged)
        merged.append(entry)
        added += 1
    return sort_entries(merged), added, skipped


def fold_history(history: dict, source: str, target: str) -> dict:
    """Move ``source``'s entries under ``target`` (merge/rename), deduplicating."""
    moved = history.pop(source, [])
    if not moved:
        return history
    for entry in moved:
        if "horse" in entry:
            entry["horse"] = target
    history[target], added, skipped = merge_entries(history.get(target, []), moved)
    if skipped:
        logger.info(f"Folding {source} into {target}: {skipped} clashing entries dropped")
    return history


def split_history(history: dict, registry: dict, primary: str, alias: str) -> dict:
    """After an unmerge, move race entries whose observed name now resolves to ``alias``."""
    keep, move = [], []
    for entry in history.get(primary, []):
        observed = entry.get("observed_name")
        if entry.get("type") == ENTRY_RACE and observed and resolve(observed, registry) == alias:
            move.append(dict(entry, horse=alias))
        else:
            keep.append(entry)
    if move:
        history[primary] = keep
        history[alias], _, _ = merge_entries(history.get(alias, []), move)
    return history


def _find(entries: list[dict], entry_date: str, track: str = "") -> Optional[int]:
    target = (normalize_date(entry_date) or entry_date, (track or "").strip().upper())
    for i, entry in enumerate(entries):
        if entry_key(entry) == target:
            return i
    return None


def add_entry(history: dict, horse: str, entry: dict) -> dict:
    """Add a race or training entry; ``(date, track)`` must be new for the horse."""
    if entry.get("type") not in (ENTRY_RACE, ENTRY_TRAINING):
        raise HistoryError("invalid", f"Unsupported entry type '{entry.get('type')}'")
    iso = normalize_date(entry.get("date"))
    if not iso:
        raise HistoryError("invalid", f"Invalid date '{entry.get('date')}'")
    entries = history.setdefault(horse, [])
    entry = dict(entry, date=iso, horse=horse, track=(entry.get("track") or "").strip().upper())
    if _find(entries, iso, entry["track"]) is not None:
        raise HistoryError("exists", f"{horse} already has an entry on {iso} at {entry['track'] or 'no track'}")
    history[horse] = sort_entries(entries + [entry])
    return history


def update_entry(history: dict, horse: str, entry_date: str, track: str, changes: dict) -> dict:
    """Edit fields of one entry; its date, track and type stay fixed."""
    entries = history.get(horse, [])
    index = _find(entries, entry_date, track)
    if index is None:
        raise HistoryError("not_found", f"No entry for {horse} on {entry_date} at {track or 'no track'}")
    fixed = {"date", "track", "type", "horse"}
    entries[index].update({k: v for k, v in changes.items() if k not in fixed})
    return history


def delete_entry(history: dict, horse: str, entry_date: str, track: str = "") -> dict:
    entries = history.get(horse, [])
    index = _find(entries, entry_date, track)
    if index is None:
        raise HistoryError("not_found", f"No entry for {horse} on {entry_date} at {track or 'no track'}")
    del entries[index]
    return history


def add_note(history: dict, horse: str, note_date: str, text: str) -> dict:
    iso = normalize_date(note_date)
    if not iso:
        raise HistoryError("invalid", f"Invalid date '{note_date}'")
    if not (text or "").strip():
        raise HistoryError("invalid", "Note text is required")
    entries = history.setdefault(horse, [])
    if _find(entries, iso, "") is not None:
        raise HistoryError("exists", f"{horse} already has a note on {iso}")
    entries.append({"type": ENTRY_NOTE, "date": iso, "track": "", "horse": horse, "note": text.strip()})
    history[horse] = sort_entries(entries)
    return history


def update_note(history: dict, horse: str, note_date: str, text: str) -> dict:
    entries = history.get(horse, [])
    index = _find(entries, note_date, "")
    if index is None or entries[index].get("type") != ENTRY_NOTE:
        raise HistoryError("not_found", f"No note for {horse} on {note_date}")
    if not (text or "").strip():
        raise HistoryError("invalid", "Note text is required")
    entries[index]["note"] = text.strip()
    return history


def delete_note(history: dict, horse: str, note_date: str) -> dict:
    entries = history.get(horse, [])
    index = _find(entries, note_date, "")
    if index is None or entries[index].get("type") != ENTRY_NOTE:
        raise HistoryError("not_found", f"No note for {horse} on {note_date}")
    del entries[index]
    return history


def _age(horse: str, entries: list[dict], today: Optional[date] = None) -> Optional[int]:
    """Age from the foaling year in the name, else the latest recorded training age."""
    _, year = split_year(horse)
    if year:
        today = today or local_today()
        foaled = 2000 + int(year)
        if foaled > today.year:
            foaled -= 100
        return today.year - foaled
    for entry in entries:
        if entry.get("type") == ENTRY_TRAINING and entry.get("age") not in (None, ""):
            try:
                return int(entry["age"])
            except (TypeError, ValueError):
                continue
    return None


def summarize(horse: str, entries: list[dict], today: Optional[date] = None) -> dict:
    """Derived summary: best training times, max speed and race form."""
    training = [e for e in entries if e.get("type") == ENTRY_TRAINING]
    races = [e for e in entries if e.get("type") == ENTRY_RACE]

    best_1f = min(
        (e["best_1f"] for e in training if is_valid_training_time(e.get("best_1f"))),
        key=time_to_seconds, default=None,
    )
    best_5f_entry = min(
        (e for e in training if is_valid_training_time(e.get("best_5f"))),
        key=lambda e: time_to_seconds(e["best_5f"]), default=None,
    )

    speeds = []
    for e in training:
        try:
            speeds.append(float(e.get("max_speed")))
        except (TypeError, ValueError):
            continue

    race_times = [e["five_furlong_time"] for e in races if e.get("five_furlong_time")]
    return {
        "name": horse,
        "age": _age(horse, entries, today),
        "best_1f": best_1f,
        "best_5f": best_5f_entry["best_5f"] if best_5f_entry else None,
        "date_of_best_5f": best_5f_entry.get("date") if best_5f_entry else None,
        "fast_recovery": best_5f_entry.get("fast_recovery") if best_5f_entry else None,
        "recovery_15min": best_5f_entry.get("recovery_15min") if best_5f_entry else None,
        "max_speed": max(speeds) if speeds else None,
        "race_count": len(races),
        "last_race_date": races[0].get("date") if races else None,
        "best_five_furlong_time": min(race_times) if race_times else None,
    }


def recompute_summaries(summaries: dict, history: dict, horses: set[str]) -> dict:
    """Refresh the summaries of ``horses`` only; every other summary is left as is."""
    for horse in horses:
        if horse in history and history[horse]:
            summaries[horse] = summarize(horse, history[horse])
        else:
            summaries.pop(horse, None)
    return summaries
