"""Locate a horse's row in chart text and split it into times, comment and calls.

Text extracted from result charts keeps each horse on one logical row:

    20Dec23 6GP2 4 Ginger Punch (Smith, M) 1.80* bid 3wide, drew clear 22.45 45.67 1:10.45 1111

but extraction frequently breaks a row across lines and can run the next
horse's row onto the end of this one. The locator therefore rejoins split
rows, never reads past the first minute-pattern time, and treats everything
as best effort.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from furlong.charts.times import SplitTimes, time_to_seconds

logger = logging.getLogger(__name__)

RESULTS_ANCHOR = re.compile(r"last\s+raced", re.IGNORECASE)
MAX_REJOIN_LINES = 5
LATE_CALL_WINDOW = 8

_NAME_WORD = r"[A-Z][A-Za-z'.\-]*"
_NAME_LINK = r"(?:the|of|a|an|in|to|on|my|and|de|la|du|del)"
_NAME = (
    rf"(?P<name>{_NAME_WORD}(?:[ \t]+(?:{_NAME_WORD}|{_NAME_LINK}))*?"
    r"(?:[ \t]*\([A-Z]{2,3}\))?)"
)
_JOCKEY = r"(?:[ \t]*\([^)\n]*\))?"
_ODDS = r"[ \t]+(?P<odds>\d{1,3}\.\d{2})(?P<fav>\*)?(?=\s|$)"
# Last-raced date/track token and program number that precede the name
_ROW_PREFIX = (
    r"^[ \t]*(?:(?:---|\d{1,2}[A-Z][a-z]{2}\d{2}(?:[ \t]+\d{1,2}[A-Z]{2,4}\d{1,2})?)[ \t]+)?"
    r"(?:\d{1,2}[A-Z]?[ \t]+)?"
)

ROW_START = re.compile(_ROW_PREFIX + _NAME + _JOCKEY + _ODDS)
_LAST_RACED = re.compile(r"^\s*(?:---|\d{1,2}[A-Z][a-z]{2}\d{2}\b)")
_MARGIN_LINE = re.compile(
    r"^\s*(?:(?:nose|head|neck|hd|nk|ns|dh|\d+[ \t]+\d/\d|\d/\d|\d+)[\s,]*)+$", re.IGNORECASE
)

_MINUTE_TIME = re.compile(r"(?<![\d:.])\d{1,2}:\d{2}\.\d{2,3}(?![\d.])")
_SECOND_TIME = re.compile(r"(?<![\d:.])\d{2}\.\d{2,3}(?![\d.:])")
# "120 4 L 1:10.45 KY": weight, post, equipment letter, time, state
_LATE_CALL = re.compile(
    r"\b\d{3}[ \t]+\d{1,2}[ \t]+[A-Z]{1,3}[ \t]+(?P<time>\d:\d{2}\.\d{2})[ \t]+[A-Z]{2}\b"
)
_DIGIT_RUN = re.compile(r"^\s*(?P<run>\d{2,})(?=\s|$)")
_POSITION_TOKEN = re.compile(
    r"^(?:\d{1,2}(?:hd|nk|no|ns|dh|[1-9]/[248]|\d*/\d+)?|\d/\d|nose|head|neck)$", re.IGNORECASE
)

FRACTIONAL_MIN_SECONDS = 20.0
FRACTIONAL_MAX_SECONDS = 95.0


@dataclass
class RowResult:
    """One horse's row and the raw fields tokenised from it."""

    name: str
    odds: str
    favorite: bool
    row_text: str
    times: SplitTimes = field(default_factory=SplitTimes)
    comment: str = ""
    digit_run: str = ""
    position_tokens: list[str] = field(default_factory=list)
    line_index: int = 0


def is_margin_line(line: str) -> bool:
    """Lines holding only margin notation ("Nose", "1/2", "hd") end a rejoin."""
    stripped = line.strip()
    if not stripped or not _MARGIN_LINE.match(stripped):
        return False
    return bool(re.search(r"[A-Za-z/]", stripped))


def starts_new_row(line: str) -> bool:
    return bool(_LAST_RACED.match(line) or ROW_START.match(line))


def _name_only(horse_name: str) -> Optional[str]:
    words = re.findall(r"[A-Za-z0-9']+", horse_name)
    if not words:
        return None
    body = r"\W*".join(re.escape(w) for w in words)
    # A country suffix "(IRE)" leaves a closing parenthesis after the last word
    return rf"(?<![A-Za-z])(?P<name>{body}\)?)(?![A-Za-z])"


def _comment_text(segment: str) -> str:
    words = [w for w in segment.split() if re.search(r"[A-Za-z]", w)]
    return " ".join(words).strip(" ,;")


def _trailing_positions(rest: str) -> tuple[str, list[str]]:
    """Digit run (or spaced call tokens) that follow the final time."""
    m = _DIGIT_RUN.match(rest)
    if m:
        return m.group("run"), []
    tokens = []
    for token in rest.split():
        if not _POSITION_TOKEN.match(token):
            break
        tokens.append(token)
    if len(tokens) == 1 and tokens[0].isdigit():
        return tokens[0], []
    return "", tokens


def tokenize_row(row_text: str, odds_end: int) -> tuple[SplitTimes, str, str, list[str]]:
    """Split a row (from the odds onward) into times, comment and raw calls.

    The first minute-pattern time is the final time; anything after it may
    belong to the next horse.
    """
    tail = row_text[odds_end:]
    final_match = _MINUTE_TIME.search(tail)
    before_final = tail[:final_match.start()] if final_match else tail

    fractions = []
    for m in _SECOND_TIME.finditer(before_final):
        seconds = time_to_seconds(m.group(0))
        if seconds is not None and FRACTIONAL_MIN_SECONDS <= seconds <= FRACTIONAL_MAX_SECONDS:
            fractions.append(m)
        if len(fractions) == 2:
            break

    times = SplitTimes(
        quarter=fractions[0].group(0) if fractions else "",
        half=fractions[1].group(0) if len(fractions) > 1 else "",
        final=final_match.group(0) if final_match else "",
    )

    comment_end = fractions[0].start() if fractions else len(before_final)
    comment = _comment_text(before_final[:comment_end])

    digit_run, tokens = ("", [])
    if final_match:
        digit_run, tokens = _trailing_positions(tail[final_match.end():])
    return times, comment, digit_run, tokens


class ResultsSection:
    """The results area of one chart, located once and searched many times."""

    def __init__(self, text: str):
        text = text or ""
        anchor = RESULTS_ANCHOR.search(text)
        self.anchored = anchor is not None
        body = text[anchor.start():] if anchor else text
        self.lines = [line.rstrip() for line in body.splitlines()]

    def _joined(self, index: int, pattern: re.Pattern) -> tuple[Optional[re.Match], str, int]:
        """Match ``pattern`` on line ``index``, rejoining up to five following lines."""
        joined = self.lines[index]
        m = pattern.search(joined)
        used = 0
        while m is None and used < MAX_REJOIN_LINES and index + used + 1 < len(self.lines):
            nxt = self.lines[index + used + 1]
            if is_margin_line(nxt) or starts_new_row(nxt):
                break
            joined = f"{joined} {nxt.strip()}"
            used += 1
            m = pattern.search(joined)
        if m is None:
            return None, joined, used

        # Keep rejoining until the row carries its final time
        while (not _MINUTE_TIME.search(joined, m.end())
               and used < MAX_REJOIN_LINES and index + used + 1 < len(self.lines)):
            nxt = self.lines[index + used + 1]
            if is_margin_line(nxt) or starts_new_row(nxt):
                break
            joined = f"{joined} {nxt.strip()}"
            used += 1
        return m, joined, used

    def candidates(self) -> list[str]:
        """Every horse name in the results area, in chart order, without repeats."""
        seen = set()
        names = []
        for i, line in enumerate(self.lines):
            if not re.match(_ROW_PREFIX + r"[A-Z]", line):
                continue
            m, _, _ = self._joined(i, ROW_START)
            if m is None:
                continue
            name = re.sub(r"\s+", " ", m.group("name")).strip()
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            names.append(name)
        return names

    def late_call_time(self, index: int) -> str:
        """A three-quarter/six-furlong time printed up to eight lines below the row."""
        for line in self.lines[index + 1:index + 1 + LATE_CALL_WINDOW]:
            m = _LATE_CALL.search(line)
            if m:
                return m.group("time")
        return ""

    def find_row(self, horse_name: str) -> Optional[RowResult]:
        """Find ``horse_name`` followed by odds and tokenise its row."""
        name_only = _name_only(horse_name or "")
        if name_only is None:
            return None
        name_re = re.compile(name_only, re.IGNORECASE)
        pattern = re.compile(name_only + _JOCKEY + _ODDS, re.IGNORECASE)
        for i, line in enumerate(self.lines):
            if not name_re.search(line):
                continue
            m, joined, _ = self._joined(i, pattern)
            if m is None:
                continue

            row_text = joined[m.start("name"):]
            odds_end = m.end() - m.start("name")
            times, comment, digit_run, tokens = tokenize_row(row_text, odds_end)
            if not times.three_quarter:
                times.three_quarter = self.late_call_time(i)
            return RowResult(
                name=re.sub(r"\s+", " ", m.group("name")).strip(),
                odds=m.group("odds"),
                favorite=bool(m.group("fav")),
                row_text=row_text,
                times=times,
                comment=comment,
                digit_run=digit_run,
                position_tokens=tokens,
                line_index=i,
            )
        logger.debug(f"No row found for '{horse_name}'")
        return None


def find_results_section(text: str) -> ResultsSection:
    return ResultsSection(text)


def find_horse_candidates(text: str) -> list[str]:
    """Horse names listed in a chart's results area, in chart order."""
    return ResultsSection(text).candidates()


def locate_row(text: str, horse_name: str) -> Optional[RowResult]:
    """Row for ``horse_name`` in ``text``, or None when it isn't in the results area."""
    return ResultsSection(text).find_row(horse_name)
