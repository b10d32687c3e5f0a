"""
core/matching — Fuzzy assignment of source tracks to template tracks.

normalize.py: canonical comparison names.
scoring.py:   priority-tiered similarity.
aliases.py:   user alias rules.
types.py:     DestinationTrack, Alias, MatchResult and the Assignment grid.
matcher.py:   per-session matching, tie-aware ordering, folder locks.
snapshot.py:  eligible destination tracks of the template.
"""

from core.matching.aliases import find_alias_target
from core.matching.matcher import (
    compute_locks,
    match_all_sessions,
    match_session,
    rank_sources,
)
from core.matching.normalize import normalize_name, strip_extension
from core.matching.scoring import match_score, similarity
from core.matching.snapshot import snapshot_destinations
from core.matching.types import (
    Alias,
    Assignment,
    Cell,
    CellOptions,
    DestinationTrack,
    MatchPair,
    MatchResult,
)

__all__ = [
    "Alias",
    "Assignment",
    "Cell",
    "CellOptions",
    "DestinationTrack",
    "MatchPair",
    "MatchResult",
    "compute_locks",
    "find_alias_target",
    "match_all_sessions",
    "match_score",
    "match_session",
    "normalize_name",
    "rank_sources",
    "similarity",
    "snapshot_destinations",
    "strip_extension",
]
