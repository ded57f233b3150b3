"""Per-horse candidate records built from a chart's metadata and one row."""

from dataclasses import asdict, dataclass, field
from typing import Optional

from furlong.charts.metadata import RaceMetadata
from furlong.charts.positions import (
    FinishPositions,
    disambiguate,
    expected_call_count,
    is_fully_resolved,
    parse_spaced_positions,
)
from furlong.charts.rows import ResultsSection
from furlong.charts.times import SplitTimes, average_speed_mph, five_furlong_equivalent


@dataclass
class CandidateRecord:
    """One horse's parsed performance, pending confirmation."""

    metadata: RaceMetadata
    observed_name: str
    times: SplitTimes = field(default_factory=SplitTimes)
    positions: FinishPositions = field(default_factory=FinishPositions)
    comment: str = ""
    found: bool = True
    positions_resolved: bool = False
    raw_calls: str = ""

    @property
    def average_speed(self) -> Optional[float]:
        return average_speed_mph(self.metadata.distance, self.times.final_seconds)

    @property
    def five_furlong_time(self) -> Optional[float]:
        return five_furlong_equivalent(self.metadata.distance, self.times.final_seconds)

    @property
    def needs_verification(self) -> bool:
        return (not self.found or not self.positions_resolved
                or not self.times.final or not self.metadata.is_complete)

    def to_dict(self) -> dict:
        return {
            "observed_name": self.observed_name,
            "times": self.times.to_dict(),
            "positions": self.positions.to_dict(),
            "comment": self.comment,
            "found": self.found,
            "positions_resolved": self.positions_resolved,
            "raw_calls": self.raw_calls,
            "average_speed": self.average_speed,
            "five_furlong_time": self.five_furlong_time,
        }

    @classmethod
    def from_dict(cls, data: dict, metadata: RaceMetadata) -> "CandidateRecord":
        """Rebuild a reviewer-edited record; derived values are recomputed."""
        return cls(
            metadata=metadata,
            observed_name=(data.get("observed_name") or "").strip(),
            times=SplitTimes.from_dict(data.get("times")),
            positions=FinishPositions.from_dict(data.get("positions")),
            comment=data.get("comment") or "",
            found=data.get("found", True),
            positions_resolved=data.get("positions_resolved", True),
            raw_calls=data.get("raw_calls") or "",
        )

    def to_history_entry(self, horse_key: str) -> dict:
        """Normalised race entry as stored in a horse's history."""
        meta = self.metadata
        return {
            "type": "race",
            "date": meta.date,
            "horse": horse_key,
            "observed_name": self.observed_name,
            "track": meta.track,
            "surface": meta.surface,
            "distance": meta.distance,
            "race_class": meta.race_class,
            "race_name": meta.race_name,
            "final_time": self.times.final,
            "average_speed": self.average_speed,
            "five_furlong_time": self.five_furlong_time,
            "positions": self.positions.to_dict(),
            "times": asdict(self.times),
            "comment": self.comment,
        }


def build_candidate(section: ResultsSection, name: str, metadata: RaceMetadata) -> CandidateRecord:
    """Locate ``name`` in the chart and decode its row into a CandidateRecord."""
    row = section.find_row(name)
    if row is None:
        return CandidateRecord(metadata=metadata, observed_name=name, found=False)

    expected = expected_call_count(metadata.distance)
    if row.digit_run:
        calls = disambiguate(row.digit_run, expected)
        raw = row.digit_run
    else:
        calls = parse_spaced_positions(row.position_tokens)
        raw = " ".join(row.position_tokens)

    return CandidateRecord(
        metadata=metadata,
        observed_name=row.name,
        times=row.times,
        positions=FinishPositions.from_calls(calls, expected),
        comment=row.comment,
        found=True,
        positions_resolved=is_fully_resolved(calls, expected),
        raw_calls=raw,
    )
