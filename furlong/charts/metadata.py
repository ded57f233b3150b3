"""Document metadata extraction: date, track, surface, distance and race class.

Every heuristic chain here is an explicit ordered list of ``(pattern, result)``
rules evaluated top to bottom; the first rule that matches wins. Fields that
cannot be resolved get sentinel values and are listed in
``RaceMetadata.unresolved`` so callers never mistake them for real data.
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Callable, Optional, Union

from furlong.charts.rows import RESULTS_ANCHOR
from furlong.charts.tracks import UNKNOWN_TRACK, find_known_track, track_code

logger = logging.getLogger(__name__)

UNKNOWN_DATE = "Unknown Date"
DEFAULT_SURFACE = "D"
UNKNOWN_CLASS = "UNK"

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_NAMES = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
_WEEKDAY = r"(?:Mon|Tue|Tues|Wed|Thu|Thur|Thurs|Fri|Sat|Sun)[a-z]*\.?"

# "GULFSTREAM PARK - Saturday, January 27, 2024"
_TRACK_DATE = re.compile(
    r"(?P<track>[A-Za-z][A-Za-z.'&]*(?:[ ][A-Za-z.'&]+){0,4})[ \t]*[-–—,][ \t]*"
    rf"{_WEEKDAY},?\s+(?P<month>{_MONTH_NAMES})\.?\s+(?P<day>\d{{1,2}}),?\s+(?P<year>\d{{4}})",
    re.IGNORECASE,
)
_DATE_LONG = re.compile(
    rf"\b(?P<month>{_MONTH_NAMES})\.?\s+(?P<day>\d{{1,2}}),?\s+(?P<year>\d{{4}})\b",
    re.IGNORECASE,
)
_DATE_SLASH = re.compile(r"\b(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4}|\d{2})\b")

_TRACK_NOISE = {"chart", "charts", "results", "result", "race", "for", "the", "official"}

# --- Surface: turf variants are checked before synthetic, dirt is the default ---
_SURFACE_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"originally scheduled for the turf|\boff the turf\b", re.IGNORECASE), "D"),
    (re.compile(r"\bon the (?:inner |outer |hurdle )?turf\b", re.IGNORECASE), "T"),
    (re.compile(r"\b(?:inner |outer )?turf\b", re.IGNORECASE), "T"),
    (re.compile(r"\b(?:all[\s-]weather|synthetic|tapeta|polytrack|cushion track)\b", re.IGNORECASE), "AWT"),
    (re.compile(r"\bdirt\b", re.IGNORECASE), "D"),
]
# Track names containing "turf" must not vote for the surface
_TURF_NAMED_TRACKS = re.compile(r"\bturf paradise\b", re.IGNORECASE)

# --- Distance ---
_WORD_NUMBERS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}
_FRACTION_WORDS = {"half": 2, "halves": 2, "quarter": 4, "quarters": 4,
                   "eighth": 8, "eighths": 8, "sixteenth": 16, "sixteenths": 16}
_YARD_WORDS = {"forty": 40, "fifty": 50, "sixty": 60, "seventy": 70, "one hundred ten": 110}

_WORD_NUM = r"(?:" + "|".join(_WORD_NUMBERS) + r")"
_FRACTION_WORD = r"(?:" + "|".join(sorted(_FRACTION_WORDS, key=len, reverse=True)) + r")"
_YARDS = r"(?:\s+and\s+(?P<yards>\d+|" + "|".join(_YARD_WORDS) + r")\s+yards)?"
_UNIT = r"(?P<unit>miles?|furlongs?)"

_DIST_MIXED = re.compile(
    rf"\b(?P<whole>\d+)\s+(?P<num>\d+)/(?P<den>\d+)\s*{_UNIT}{_YARDS}", re.IGNORECASE
)
_DIST_SPELLED = re.compile(
    rf"\b(?P<whole>{_WORD_NUM})(?:\s+and\s+(?P<num>{_WORD_NUM}|a)\s+(?P<frac>{_FRACTION_WORD}))?"
    rf"\s+{_UNIT}{_YARDS}",
    re.IGNORECASE,
)
_DIST_DECIMAL = re.compile(
    rf"\b(?P<value>\d+(?:\.\d+)?)\s*(?:{_UNIT}|(?P<short>[fm])\b){_YARDS}", re.IGNORECASE
)

# --- Race class, in contract priority order ---
_GRADE_PATTERN = re.compile(
    r"\b(?:grade|gr\.?)\s*(?P<roman>iii|ii|i|[123])\b|\bg(?P<digit>[123])\b", re.IGNORECASE
)
_ROMAN = {"i": "1", "ii": "2", "iii": "3", "1": "1", "2": "2", "3": "3"}


def _grade_class(m: re.Match) -> str:
    grade = m.group("digit") or _ROMAN[m.group("roman").lower()]
    return f"G{grade}"


_RACE_CLASS_RULES: list[tuple[re.Pattern, Union[str, Callable[[re.Match], str]]]] = [
    (re.compile(r"allowance optional claiming|\boptional claiming\b|\baoc\b", re.IGNORECASE), "AOC"),
    (re.compile(r"maiden special weight|\bmsw\b", re.IGNORECASE), "MSW"),
    (_GRADE_PATTERN, _grade_class),
    (re.compile(r"\bstakes\b|\bstk\b", re.IGNORECASE), "STK"),
    (re.compile(r"maiden claiming|\bmcl\b", re.IGNORECASE), "MCL"),
    (re.compile(r"\bstarter allowance\b", re.IGNORECASE), "STR"),
    (re.compile(r"\ballowance\b|\balw\b", re.IGNORECASE), "ALW"),
    (re.compile(r"claiming[^\n$]{0,60}\$\s?[\d,]+|\$\s?[\d,]+[^\n]{0,40}claiming|\bclm\s?\d", re.IGNORECASE), "CLM"),
    (re.compile(r"\bhandicap\b|\bhcp\b", re.IGNORECASE), "HCP"),
]

_RACE_NAME_QUOTED = re.compile(r"[\"“]([^\"”\n]{3,60})[\"”]")
_RACE_NAME_STAKES = re.compile(r"\b((?:[A-Z][A-Za-z'.]+\s+){1,5}Stakes)\b")


@dataclass
class RaceMetadata:
    """Per-document race facts. Sentinel-filled fields are listed in ``unresolved``."""

    date: str = UNKNOWN_DATE
    track: str = UNKNOWN_TRACK
    surface: str = DEFAULT_SURFACE
    distance: Optional[float] = None  # furlongs
    race_class: str = UNKNOWN_CLASS
    race_name: Optional[str] = None
    track_name: Optional[str] = None
    unresolved: list[str] = field(default_factory=list)

    def unresolved_fields(self) -> list[str]:
        return list(self.unresolved)

    @property
    def is_complete(self) -> bool:
        return not self.unresolved

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RaceMetadata":
        meta = cls(
            date=normalize_date(data.get("date")) or UNKNOWN_DATE,
            track=(data.get("track") or UNKNOWN_TRACK).strip().upper(),
            surface=(data.get("surface") or DEFAULT_SURFACE).strip().upper(),
            distance=parse_distance_value(data.get("distance")),
            race_class=(data.get("race_class") or UNKNOWN_CLASS).strip().upper(),
            race_name=data.get("race_name"),
            track_name=data.get("track_name"),
        )
        meta.unresolved = [
            name for name, missing in (
                ("date", meta.date == UNKNOWN_DATE),
                ("track", meta.track == UNKNOWN_TRACK),
                ("distance", meta.distance is None),
                ("race_class", meta.race_class == UNKNOWN_CLASS),
            ) if missing
        ]
        return meta


def _to_iso(year: str, month: str, day: str) -> Optional[str]:
    try:
        y = int(year)
        if y < 100:
            y += 2000
        m = int(month) if month.isdigit() else _MONTHS[month[:3].lower()]
        return date(y, m, int(day)).isoformat()
    except (ValueError, KeyError):
        return None


def normalize_date(value) -> Optional[str]:
    """Normalise a user- or chart-supplied date to ISO ``YYYY-MM-DD``."""
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    s = str(value).strip()
    if not s or s == UNKNOWN_DATE:
        return None
    m = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", s)
    if m:
        return _to_iso(m.group(1), m.group(2), m.group(3))
    m = _DATE_SLASH.search(s)
    if m:
        return _to_iso(m.group("year"), m.group("month"), m.group("day"))
    m = _DATE_LONG.search(s)
    if m:
        return _to_iso(m.group("year"), m.group("month"), m.group("day"))
    return None


def _clean_track_name(raw: str) -> str:
    words = raw.split()
    while words and words[0].lower().strip(".,:") in _TRACK_NOISE:
        words = words[1:]
    return " ".join(words)


def extract_track_and_date(text: str) -> tuple[Optional[str], str, Optional[str]]:
    """Return ``(track_name, track_code, iso_date)`` from the document text.

    Prefers a weekday/month/day/year date printed next to a track name; falls
    back to any known track name and the last date-like token in the text.
    """
    track_name = None
    iso_date = None

    m = _TRACK_DATE.search(text)
    if m:
        iso_date = _to_iso(m.group("year"), m.group("month"), m.group("day"))
        raw = m.group("track")
        track_name = find_known_track(raw) or _clean_track_name(raw) or None

    if not track_name:
        track_name = find_known_track(text)

    if not iso_date:
        last = None
        for pattern in (_DATE_LONG, _DATE_SLASH):
            for dm in pattern.finditer(text):
                parsed = _to_iso(dm.group("year"), dm.group("month"), dm.group("day"))
                if parsed and (last is None or dm.start() > last[0]):
                    last = (dm.start(), parsed)
        if last:
            iso_date = last[1]

    return track_name, track_code(track_name), iso_date


def detect_surface(text: str) -> Optional[str]:
    """Return surface code from the first matching rule, or None if no rule fired."""
    scrubbed = _TURF_NAMED_TRACKS.sub(" ", text)
    for pattern, code in _SURFACE_RULES:
        if pattern.search(scrubbed):
            return code
    return None


def _fraction(num: Optional[str], den_word: Optional[str]) -> float:
    if not den_word:
        return 0.0
    n = 1 if (num or "a").lower() == "a" else _WORD_NUMBERS[num.lower()]
    return n / _FRACTION_WORDS[den_word.lower()]


def _yards(value: Optional[str]) -> float:
    if not value:
        return 0.0
    yards = int(value) if value.isdigit() else _YARD_WORDS.get(value.lower(), 0)
    return yards / 220.0


def _to_furlongs(amount: float, unit: str, yards: float) -> float:
    furlongs = amount * 8.0 if unit.lower().startswith("m") else amount
    return round(furlongs + yards, 4)


_DISTANCE_RULES: list[tuple[re.Pattern, Callable[[re.Match], float]]] = [
    (_DIST_MIXED, lambda m: _to_furlongs(
        int(m.group("whole")) + int(m.group("num")) / int(m.group("den")),
        m.group("unit"), _yards(m.group("yards")))),
    (_DIST_SPELLED, lambda m: _to_furlongs(
        _WORD_NUMBERS[m.group("whole").lower()] + _fraction(m.group("num"), m.group("frac")),
        m.group("unit"), _yards(m.group("yards")))),
    (_DIST_DECIMAL, lambda m: _to_furlongs(
        float(m.group("value")), m.group("unit") or m.group("short"), _yards(m.group("yards")))),
]


def parse_distance(text: str) -> Optional[float]:
    """Find a race distance in ``text`` and return it in furlongs."""
    for pattern, convert in _DISTANCE_RULES:
        m = pattern.search(text)
        if m:
            furlongs = convert(m)
            if 2.0 <= furlongs <= 24.0:
                return furlongs
    return None


def parse_distance_value(value) -> Optional[float]:
    """Distance from an edited field: bare numbers are furlongs, text is parsed."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    s = str(value).strip()
    try:
        number = float(s)
        return number if number > 0 else None
    except ValueError:
        return parse_distance(s)


def race_conditions(text: str) -> str:
    """Header and conditions text above the results table.

    Column headings such as "Str" and running comments below the anchor
    must not vote for the race class.
    """
    anchor = RESULTS_ANCHOR.search(text)
    return text[:anchor.start()] if anchor else text


def classify_race(text: str) -> str:
    """Resolve the race-class code using the ordered rule list."""
    for pattern, result in _RACE_CLASS_RULES:
        m = pattern.search(text)
        if m:
            return result(m) if callable(result) else result
    return UNKNOWN_CLASS


def extract_race_name(text: str) -> Optional[str]:
    m = _RACE_NAME_QUOTED.search(text)
    if m:
        return m.group(1).strip()
    m = _RACE_NAME_STAKES.search(text)
    if m:
        return m.group(1).strip()
    return None


def extract_metadata(text: str) -> RaceMetadata:
    """Derive best-effort RaceMetadata from raw document text."""
    meta = RaceMetadata()
    if not text:
        meta.unresolved = ["date", "track", "surface", "distance", "race_class"]
        return meta

    track_name, code, iso_date = extract_track_and_date(text)
    meta.track_name = track_name
    meta.track = code
    if iso_date:
        meta.date = iso_date

    surface = detect_surface(text)
    if surface:
        meta.surface = surface

    meta.distance = parse_distance(text)
    meta.race_class = classify_race(race_conditions(text))
    meta.race_name = extract_race_name(text)

    meta.unresolved = [
        name for name, missing in (
            ("date", meta.date == UNKNOWN_DATE),
            ("track", meta.track == UNKNOWN_TRACK),
            ("surface", surface is None),
            ("distance", meta.distance is None),
            ("race_class", meta.race_class == UNKNOWN_CLASS),
        ) if missing
    ]
    if meta.unresolved:
        logger.debug(f"Metadata unresolved fields: {meta.unresolved}")
    return meta
