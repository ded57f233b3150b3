"""Race-time arithmetic: display strings, seconds, speed and pace equivalents."""

import re
from dataclasses import dataclass, asdict
from typing import Optional

# "1:10.45", "22.81", "1:36.2"
_TIME = re.compile(r"^\s*(?:(\d{1,2}):)?(\d{1,2})\.(\d{1,3})\s*$")
# Training exports always carry MM:SS.hh
_TRAINING_TIME = re.compile(r"^\d{2}:\d{2}\.\d{2}$")

FURLONGS_PER_MILE = 8.0
YARDS_PER_FURLONG = 220.0


def time_to_seconds(display: Optional[str]) -> Optional[float]:
    """Convert a display time to seconds, or None if it isn't a time."""
    if not display:
        return None
    m = _TIME.match(str(display))
    if not m:
        return None
    minutes = int(m.group(1)) if m.group(1) else 0
    seconds = int(m.group(2))
    fraction = m.group(3)
    return round(minutes * 60 + seconds + int(fraction) / (10 ** len(fraction)), 3)


def format_time(seconds: Optional[float]) -> str:
    """Render seconds as ``m:ss.hh`` (or ``ss.hh`` under a minute)."""
    if seconds is None or seconds <= 0:
        return ""
    hundredths = int(round(seconds * 100))
    minutes, rem = divmod(hundredths, 6000)
    secs, hund = divmod(rem, 100)
    if minutes:
        return f"{minutes}:{secs:02d}.{hund:02d}"
    return f"{secs}.{hund:02d}"


def is_valid_training_time(display: Optional[str]) -> bool:
    if not display:
        return False
    s = str(display).strip()
    if s in ("-", "", "NaN"):
        return False
    return bool(_TRAINING_TIME.match(s))


def average_speed_mph(distance_furlongs: Optional[float], seconds: Optional[float]) -> Optional[float]:
    """Average speed over the race distance in miles per hour."""
    if not distance_furlongs or not seconds or seconds <= 0:
        return None
    miles = distance_furlongs / FURLONGS_PER_MILE
    return round(miles / (seconds / 3600.0), 2)


def five_furlong_equivalent(distance_furlongs: Optional[float], seconds: Optional[float]) -> Optional[float]:
    """Final time scaled linearly to five furlongs."""
    if not distance_furlongs or not seconds or seconds <= 0:
        return None
    return round(seconds * 5.0 / distance_furlongs, 2)


@dataclass
class SplitTimes:
    """Fractional and final times. Display strings are the only stored values."""

    quarter: str = ""
    half: str = ""
    three_quarter: str = ""
    final: str = ""

    @property
    def quarter_seconds(self) -> Optional[float]:
        return time_to_seconds(self.quarter)

    @property
    def half_seconds(self) -> Optional[float]:
        return time_to_seconds(self.half)

    @property
    def three_quarter_seconds(self) -> Optional[float]:
        return time_to_seconds(self.three_quarter)

    @property
    def final_seconds(self) -> Optional[float]:
        return time_to_seconds(self.final)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.update({
            "quarter_seconds": self.quarter_seconds,
            "half_seconds": self.half_seconds,
            "three_quarter_seconds": self.three_quarter_seconds,
            "final_seconds": self.final_seconds,
        })
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SplitTimes":
        # Any *_seconds keys are ignored; they are always recomputed
        data = data or {}
        return cls(
            quarter=data.get("quarter") or "",
            half=data.get("half") or "",
            three_quarter=data.get("three_quarter") or "",
            final=data.get("final") or "",
        )
