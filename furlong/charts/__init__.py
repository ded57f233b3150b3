"""Race chart text parsing: metadata, horse rows, times and running positions."""

from furlong.charts.metadata import RaceMetadata, extract_metadata
from furlong.charts.positions import FinishPositions, disambiguate, expected_call_count
from furlong.charts.record import CandidateRecord, build_candidate
from furlong.charts.rows import ResultsSection, find_horse_candidates, locate_row
from furlong.charts.times import SplitTimes

__all__ = [
    "RaceMetadata",
    "extract_metadata",
    "FinishPositions",
    "disambiguate",
    "expected_call_count",
    "CandidateRecord",
    "build_candidate",
    "ResultsSection",
    "find_horse_candidates",
    "locate_row",
    "SplitTimes",
]
