"""Known North American racecourse names and their chart codes.

Consolidates track aliases and name → code resolution used by the chart
metadata extractor.
"""
import logging
import re
from typing import Callable, Optional

logger = logging.getLogger(__name__)

UNKNOWN_TRACK = "UNK"

# Sponsor / operator prefixes stripped from track names before lookup
SPONSOR_PREFIXES = [
    "horseshoe", "harrah's", "hollywood casino at", "caesars", "delta downs",
]

# Track aliases: alternative names → canonical form used in TRACK_CODES
TRACK_ALIASES = {
    "santa anita park": "santa anita",
    "belmont at the big a": "belmont park",
    "belmont at aqueduct": "belmont park",
    "indiana grand": "indianapolis",
    "the meadowlands": "meadowlands",
    "los alamitos race course": "los alamitos",
    "oaklawn": "oaklawn park",
    "gulfstream": "gulfstream park",
    "churchill": "churchill downs",
    "fair grounds race course": "fair grounds",
    "tampa bay": "tampa bay downs",
    "parx": "parx racing",
    "monmouth": "monmouth park",
    "laurel": "laurel park",
}

# Canonical lowercase name → chart code
TRACK_CODES = {
    "aqueduct": "AQU",
    "arlington park": "AP",
    "belmont park": "BEL",
    "belterra park": "BTP",
    "canterbury park": "CBY",
    "charles town": "CT",
    "churchill downs": "CD",
    "colonial downs": "CNL",
    "del mar": "DMR",
    "delaware park": "DEL",
    "ellis park": "ELP",
    "emerald downs": "EMD",
    "evangeline downs": "EVD",
    "fair grounds": "FG",
    "finger lakes": "FL",
    "golden gate fields": "GG",
    "gulfstream park": "GP",
    "gulfstream park west": "GPW",
    "hawthorne": "HAW",
    "indianapolis": "IND",
    "keeneland": "KEE",
    "kentucky downs": "KD",
    "laurel park": "LRL",
    "lone star park": "LS",
    "los alamitos": "LRC",
    "louisiana downs": "LAD",
    "mahoning valley": "MVR",
    "meadowlands": "MED",
    "monmouth park": "MTH",
    "mountaineer": "MNR",
    "oaklawn park": "OP",
    "parx racing": "PRX",
    "penn national": "PEN",
    "pimlico": "PIM",
    "prairie meadows": "PRM",
    "presque isle downs": "PID",
    "remington park": "RP",
    "sam houston": "HOU",
    "santa anita": "SA",
    "saratoga": "SAR",
    "sunland park": "SUN",
    "tampa bay downs": "TAM",
    "thistledown": "TDN",
    "turf paradise": "TUP",
    "turfway park": "TP",
    "woodbine": "WO",
}

_KNOWN_CODES = set(TRACK_CODES.values())

# Longest names first so "gulfstream park west" wins over "gulfstream park"
_NAME_PATTERN = re.compile(
    r"\b(" + "|".join(
        re.escape(name) for name in sorted(
            list(TRACK_CODES) + list(TRACK_ALIASES), key=len, reverse=True
        )
    ) + r")\b",
    re.IGNORECASE,
)

_MINOR_WORDS = {"at", "the", "of", "and", "race", "course", "racecourse"}


def normalize_track(name: str) -> str:
    """Normalize track name: strip sponsors, apply aliases, lowercase."""
    if not name:
        return ""
    t = re.sub(r"\s+", " ", name.lower().strip())

    for prefix in SPONSOR_PREFIXES:
        if t.startswith(prefix + " "):
            t = t[len(prefix) + 1:]
            break

    t = t.strip(" -,")
    return TRACK_ALIASES.get(t, t)


def _initials(name: str) -> Optional[str]:
    words = [w for w in re.findall(r"[A-Za-z]+", name) if w.lower() not in _MINOR_WORDS]
    if not words:
        return None
    if len(words) == 1:
        return words[0][:3].upper()
    return "".join(w[0] for w in words[:4]).upper()


# Ordered (predicate, resolver) rules; first non-None result wins
_CODE_RULES: list[tuple[Callable[[str], bool], Callable[[str], Optional[str]]]] = [
    (lambda n: n.upper() in _KNOWN_CODES, lambda n: n.upper()),
    (lambda n: normalize_track(n) in TRACK_CODES, lambda n: TRACK_CODES[normalize_track(n)]),
    (lambda n: bool(re.search(r"[A-Za-z]", n)), _initials),
]


def track_code(name: Optional[str]) -> str:
    """Resolve a track name (or code) to its chart code.

    Unknown names fall back to the first letters of each word
    ("Big Sky Downs" → "BSD"); empty input gives ``UNKNOWN_TRACK``.
    """
    if not name or not name.strip():
        return UNKNOWN_TRACK
    candidate = name.strip()
    for predicate, resolve in _CODE_RULES:
        if predicate(candidate):
            code = resolve(candidate)
            if code:
                return code
    return UNKNOWN_TRACK


def find_known_track(text: str) -> Optional[str]:
    """Return the first known track name mentioned in ``text``."""
    m = _NAME_PATTERN.search(text or "")
    return m.group(1) if m else None


def is_known_track(name: str) -> bool:
    """Check if track is in the known registry."""
    return normalize_track(name) in TRACK_CODES


def get_all_tracks() -> dict[str, str]:
    """Return dict of all known tracks: {track_name: code}."""
    return dict(TRACK_CODES)
