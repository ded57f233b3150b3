"""Horse identities: name resolution, registry operations and history."""

from furlong.horses.identity import MatchResult, display_name, match_chart_name, normalized_key, resolve
from furlong.horses.registry import RegistryError
from furlong.horses.history import HistoryError

__all__ = [
    "MatchResult",
    "display_name",
    "match_chart_name",
    "normalized_key",
    "resolve",
    "RegistryError",
    "HistoryError",
]
