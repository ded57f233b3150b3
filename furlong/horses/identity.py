"""Horse name normalisation and resolution against the registry.

The registry is a mapping of canonical name → entry dict::

    {"2022 Ginger Punch": {"name": "2022 Ginger Punch", "owner": "", "country": "",
                           "is_historic": False, "aliases": ["Ginger Punch"]}}

Resolution is deterministic (case, punctuation and year placement are
ignored in that order); chart names that don't resolve are additionally
ranked by string similarity so the reviewer gets a pre-selection.
"""

import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Optional

from furlong.config import settings

_TOKEN = re.compile(r"[A-Za-z0-9]+")
_FULL_YEAR = re.compile(r"^(?:19|20)\d{2}$")
_SHORT_YEAR = re.compile(r"^\d{2}$")


def clean_name(name: Optional[str]) -> str:
    """Collapse whitespace; the form stored as a canonical key or alias."""
    return re.sub(r"\s+", " ", name or "").strip()


def strip_name(name: Optional[str]) -> str:
    """Lowercase alphanumerics only: ``"Ginger-Punch!"`` → ``"gingerpunch"``."""
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def split_year(name: str) -> tuple[list[str], Optional[str]]:
    """Separate a foaling-year token (leading 4/2-digit or trailing) from the words."""
    tokens = _TOKEN.findall(name or "")
    if len(tokens) < 2:
        return tokens, None
    first, last = tokens[0], tokens[-1]
    if _FULL_YEAR.match(first):
        return tokens[1:], first[-2:]
    if _SHORT_YEAR.match(first):
        return tokens[1:], first
    if _FULL_YEAR.match(last):
        return tokens[:-1], last[-2:]
    if _SHORT_YEAR.match(last):
        return tokens[:-1], last
    return tokens, None


def normalized_key(name: Optional[str]) -> str:
    """Letters-only name plus a 2-digit year, so year placement doesn't matter.

    ``"2022 Ginger Punch"``, ``"GINGER PUNCH 22"`` and ``"Ginger Punch (22)"``
    all give ``"gingerpunch22"``.
    """
    words, year = split_year(name or "")
    letters = re.sub(r"[^a-z]", "", "".join(words).lower())
    if not letters:
        return ""
    return letters + (year or "")


def display_name(name: str) -> str:
    """Render a year-bearing name as ``"Ginger Punch (22)"``."""
    words, year = split_year(name)
    text = clean_name(name)
    if not year:
        return text
    # Drop the year token but keep the original spelling of the words
    if _TOKEN.findall(text)[0].isdigit():
        text = re.sub(r"^\(?\d{2,4}\)?\s+", "", text)
    else:
        text = re.sub(r"\s+\(?\d{2,4}\)?$", "", text)
    return f"{text} ({year})"


def _matches(spelling: str, name: str, how: str) -> bool:
    if how == "exact":
        return clean_name(spelling).lower() == clean_name(name).lower()
    if how == "stripped":
        return bool(strip_name(name)) and strip_name(spelling) == strip_name(name)
    key = normalized_key(name)
    return bool(key) and normalized_key(spelling) == key


def resolve(name: Optional[str], registry: dict) -> Optional[str]:
    """Canonical key for ``name``, or None when no registry entry claims it.

    Order: canonical exact (case-insensitive) → canonical stripped →
    canonical normalized → alias exact → alias stripped → alias normalized.
    """
    if not name or not clean_name(name) or not registry:
        return None
    for how in ("exact", "stripped", "normalized"):
        for canonical in registry:
            if _matches(canonical, name, how):
                return canonical
    for how in ("exact", "stripped", "normalized"):
        for canonical, entry in registry.items():
            for alias in entry.get("aliases", []):
                if _matches(alias, name, how):
                    return canonical
    return None


def owner_of(spelling: str, registry: dict) -> Optional[str]:
    """Canonical key whose name or alias set holds ``spelling`` (case-insensitive)."""
    target = clean_name(spelling).lower()
    for canonical, entry in registry.items():
        if canonical.lower() == target:
            return canonical
        if any(clean_name(a).lower() == target for a in entry.get("aliases", [])):
            return canonical
    return None


def similarity(a: str, b: str) -> float:
    """Similarity ratio between two names, ignoring case and punctuation."""
    left, right = normalized_key(a) or strip_name(a), normalized_key(b) or strip_name(b)
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def rank_similar(name: str, registry: dict, limit: int = 5) -> list[tuple[str, float]]:
    """Canonical names ranked by best similarity of the canonical name or any alias."""
    best: dict[str, float] = {}
    for canonical, entry in registry.items():
        for spelling in [canonical, *entry.get("aliases", [])]:
            score = similarity(name, spelling)
            if score > best.get(canonical, 0.0):
                best[canonical] = score
    ranked = sorted(best.items(), key=lambda x: (-x[1], x[0]))
    return [(c, round(s, 3)) for c, s in ranked[:limit] if s > 0]


@dataclass
class MatchResult:
    """Outcome of matching an observed chart name to the registry."""

    observed: str
    canonical: Optional[str] = None
    confidence: float = 0.0
    method: str = "none"  # exact, fuzzy, none
    verified: bool = False
    suggestions: list[tuple[str, float]] = field(default_factory=list)

    @property
    def horse(self) -> str:
        """The identity the record would be saved under as things stand."""
        return self.canonical or clean_name(self.observed)

    def to_dict(self) -> dict:
        return {
            "observed": self.observed,
            "canonical": self.canonical,
            "horse": self.horse,
            "confidence": self.confidence,
            "method": self.method,
            "verified": self.verified,
            "suggestions": [{"name": n, "score": s} for n, s in self.suggestions],
        }


def match_chart_name(
    name: str,
    registry: dict,
    verified_confidence: Optional[float] = None,
    suggest_confidence: Optional[float] = None,
) -> MatchResult:
    """Match a possibly noisy chart name.

    Deterministic resolution scores 1.0. Otherwise the best similarity decides:
    at or above ``verified_confidence`` it is accepted, from
    ``suggest_confidence`` it is pre-selected for confirmation, below that the
    name is treated as a new horse with nothing pre-selected.
    """
    verified_at = settings.verified_confidence if verified_confidence is None else verified_confidence
    suggest_at = settings.suggest_confidence if suggest_confidence is None else suggest_confidence

    canonical = resolve(name, registry)
    if canonical:
        return MatchResult(observed=name, canonical=canonical, confidence=1.0,
                           method="exact", verified=True, suggestions=[(canonical, 1.0)])

    ranked = rank_similar(name, registry)
    if not ranked:
        return MatchResult(observed=name)

    best, score = ranked[0]
    if score >= suggest_at:
        return MatchResult(observed=name, canonical=best, confidence=score, method="fuzzy",
                           verified=score >= verified_at, suggestions=ranked)
    return MatchResult(observed=name, confidence=score, suggestions=ranked)
