"""Decode running-position calls from chart digit runs.

Charts print the calls for each horse as one unbroken digit string
("109765") or as margin-annotated tokens ("1hd 2 1/2 3nk"). Positions never
contain a zero, so "10" is unambiguous; "11" and "12" may be one position or
two and are decided by comparing the run length to the expected call count.
"""

import re
from dataclasses import dataclass, asdict
from typing import Optional

SPRINT_CALLS = 4
ROUTE_CALLS = 5
ROUTE_MIN_FURLONGS = 8.0

# Sprint charts print quarter, half, stretch, finish; routes add three-quarter
SPRINT_CALL_NAMES = ("quarter", "half", "stretch", "finish")
ROUTE_CALL_NAMES = ("quarter", "half", "three_quarter", "stretch", "finish")

_LEADING_DIGITS = re.compile(r"^(\d+)")
_FRACTION_TOKEN = re.compile(r"^\d/\d$")


def _edited_position(raw) -> Optional[int]:
    """``"2nk"`` → 2, ``" 11 "`` → 11; blanks and text without leading digits → None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    m = _LEADING_DIGITS.match(str(raw).strip())
    if not m:
        return None
    value = int(m.group(1))
    return value if value > 0 else None


@dataclass
class FinishPositions:
    """Running position at each call; any call may be unknown."""

    quarter: Optional[int] = None
    half: Optional[int] = None
    three_quarter: Optional[int] = None
    stretch: Optional[int] = None
    finish: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "FinishPositions":
        """Rebuild from edited fields; margin text after the digits is dropped."""
        data = data or {}
        return cls(**{name: _edited_position(data.get(name)) for name in ROUTE_CALL_NAMES})

    @classmethod
    def from_calls(cls, calls: list[int], expected: int) -> "FinishPositions":
        """Map an ordered call list onto named checkpoints.

        Extra calls are dropped from the front; the last call is always the finish.
        """
        names = ROUTE_CALL_NAMES if expected >= ROUTE_CALLS else SPRINT_CALL_NAMES
        calls = calls[-len(names):]
        # Right-align so a short run still fills stretch and finish
        offset = len(names) - len(calls)
        return cls(**{name: calls[i - offset] if i >= offset else None
                      for i, name in enumerate(names)})

    def as_list(self) -> list[Optional[int]]:
        return [self.quarter, self.half, self.three_quarter, self.stretch, self.finish]


def expected_call_count(distance_furlongs: Optional[float]) -> int:
    """4 calls for sprints (under a mile, or unknown distance), 5 for routes."""
    if distance_furlongs is None or distance_furlongs < ROUTE_MIN_FURLONGS:
        return SPRINT_CALLS
    return ROUTE_CALLS


def disambiguate(run: str, expected: int) -> list[int]:
    """Split a concatenated digit run into positions.

    >>> disambiguate("109765", 5)
    [10, 9, 7, 6, 5]
    >>> disambiguate("12865", 5)
    [1, 2, 8, 6, 5]
    """
    digits = "".join(ch for ch in run if ch.isdigit())
    if not digits:
        return []
    if len(digits) == expected:
        return [int(ch) for ch in digits]

    positions = []
    longer = len(digits) > expected
    i = 0
    while i < len(digits):
        ch = digits[i]
        nxt = digits[i + 1] if i + 1 < len(digits) else ""
        if ch == "1" and nxt == "0":
            positions.append(10)
            i += 2
        elif ch == "1" and nxt in ("1", "2") and longer:
            positions.append(int(ch + nxt))
            i += 2
        else:
            positions.append(int(ch))
            i += 1
    return positions


def parse_spaced_positions(tokens: list[str]) -> list[int]:
    """Positions from margin-annotated tokens such as ``["4", "3", "1hd", "2nk"]``.

    With six or more tokens as printed, the first two are post position and
    start call and are skipped. Pure fraction tokens ("1/2") belong to the
    previous margin.
    """
    tokens = [t for t in tokens if t]
    if len(tokens) >= 6:
        tokens = tokens[2:]
    tokens = [t for t in tokens if not _FRACTION_TOKEN.match(t)]
    positions = []
    for token in tokens:
        m = _LEADING_DIGITS.match(token)
        if not m:
            continue
        # "1hd" → 1, "13/4" (1 and 3/4 lengths) → 1; positions have no zero so "10" stays whole
        lead = m.group(1)
        value = 10 if lead.startswith("10") else int(lead[0])
        if value > 0:
            positions.append(value)
    return positions


def is_fully_resolved(positions: list[int], expected: int) -> bool:
    """True when the decoded call count matches what the distance implies."""
    return len(positions) == expected and all(p > 0 for p in positions)
