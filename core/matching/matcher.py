"""core/matching/matcher.py — Assign source tracks to destination tracks.

Per session, independently:

1. Alias pass — for every eligible destination (in order) the first free
   source whose alias resolves to that destination's name is assigned.
2. Scoring pass — every remaining (destination, source) pair is scored with
   :func:`core.matching.scoring.match_score`; pairs under the threshold are
   dropped.
3. Pairs are sorted best-first with the tie-breaks of :func:`compare_candidates`,
   grouped by source in order of first appearance, and each source takes its
   best destination that is still free.

A destination is eligible when it is neither locked nor a folder header.
Nothing here mutates its inputs except :func:`match_all_sessions`, whose job
is to write into an :class:`Assignment`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cmp_to_key

from core.config import TRACK_MATCH_THRESHOLD
from core.matching.aliases import find_alias_target
from core.matching.normalize import normalize_name, split_numeric_suffix
from core.matching.scoring import match_score
from core.matching.types import Alias, Assignment, DestinationTrack, MatchPair, MatchResult
from core.rpp.types import Session

SCORE_DECIMALS = 3


# ---------------------------------------------------------------------------
# Candidate ordering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    destination: int
    source: int
    score: float
    destination_name: str
    source_name: str


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def _compare_suffix(a: int | None, b: int | None, numbered_first: bool) -> int:
    if a is not None and b is not None:
        return _sign(a - b)
    if a is not None:
        return -1 if numbered_first else 1
    if b is not None:
        return 1 if numbered_first else -1
    return 0


def compare_candidates(a: Candidate, b: Candidate) -> int:
    """Total order on candidates, best first.

    1. Score at 3-decimal resolution, descending.
    2. Same destination base name ("BVoc 1" / "BVoc 2"): ascending number,
       numbered before unnumbered.
    3. Shorter destination name.
    4. Source without a numeric take suffix before one with it, then
       ascending suffix ("Kick In" before "kick_02").
    5. Destination index, then source index.
    """
    sa, sb = round(a.score, SCORE_DECIMALS), round(b.score, SCORE_DECIMALS)
    if sa != sb:
        return -1 if sa > sb else 1

    a_base, a_num = split_numeric_suffix(a.destination_name)
    b_base, b_num = split_numeric_suffix(b.destination_name)
    if a_base == b_base:
        order = _compare_suffix(a_num, b_num, numbered_first=True)
        if order:
            return order

    if len(a.destination_name) != len(b.destination_name):
        return _sign(len(a.destination_name) - len(b.destination_name))

    _, a_take = split_numeric_suffix(a.source_name)
    _, b_take = split_numeric_suffix(b.source_name)
    order = _compare_suffix(a_take, b_take, numbered_first=False)
    if order:
        return order

    if a.destination != b.destination:
        return _sign(a.destination - b.destination)
    return _sign(a.source - b.source)


def rank_sources(
    destination: DestinationTrack, source_names: Sequence[str]
) -> list[tuple[int, float]]:
    """Every source scored against ``destination``, in assignment order.

    Returns:
        ``(source index, score)`` pairs, best first.
    """
    candidates = [
        Candidate(
            destination.index,
            j,
            match_score(destination.name, name),
            destination.name,
            name,
        )
        for j, name in enumerate(source_names)
    ]
    candidates.sort(key=cmp_to_key(compare_candidates))
    return [(c.source, c.score) for c in candidates]


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------


def ancestors(destinations: Sequence[DestinationTrack], index: int) -> list[int]:
    """Folder indices enclosing destination ``index``, innermost first."""
    by_index = {d.index: d for d in destinations}
    chain: list[int] = []
    parent = by_index[index].parent if index in by_index else None
    while parent is not None and parent not in chain:
        chain.append(parent)
        parent = by_index[parent].parent if parent in by_index else None
    return chain


def compute_locks(
    destinations: Sequence[DestinationTrack], assigned: Iterable[int]
) -> frozenset[int]:
    """Lock set after matching.

    Folder headers start locked and every folder above an assigned
    destination stays locked; folder headers with no assigned descendant
    are released again unless the user locked them.
    """
    locked = {d.index for d in destinations if d.locked or d.is_folder}
    holding: set[int] = set()
    for index in assigned:
        holding.update(ancestors(destinations, index))
    locked |= holding
    released = {
        d.index for d in destinations if d.is_folder and not d.locked and d.index not in holding
    }
    return frozenset(locked - released)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def _eligible(
    destinations: Sequence[DestinationTrack], reserved: frozenset[int]
) -> list[DestinationTrack]:
    return [
        d for d in destinations if not d.locked and not d.is_folder and d.index not in reserved
    ]


def match_session(
    destinations: Sequence[DestinationTrack],
    source_names: Sequence[str],
    aliases: Sequence[Alias] = (),
    threshold: float = TRACK_MATCH_THRESHOLD,
    reserved_destinations: frozenset[int] = frozenset(),
    reserved_sources: frozenset[int] = frozenset(),
) -> MatchResult:
    """Match one session's sources onto the destination snapshot.

    Args:
        destinations: Snapshot of template tracks.
        source_names: Track names of the session, in session order.
        aliases: Alias rules, checked before scoring.
        threshold: Minimum score for an automatic assignment.
        reserved_destinations: Destinations already taken (manual cells).
        reserved_sources: Sources already placed (manual cells).

    Returns:
        :class:`MatchResult` with the new pairs (reserved cells excluded)
        and the resulting lock set.
    """
    eligible = _eligible(destinations, reserved_destinations)
    names = list(source_names)
    used_sources: set[int] = set(reserved_sources)
    used_destinations: set[int] = set()
    pairs: list[MatchPair] = []

    if aliases:
        for dest in eligible:
            dest_norm = normalize_name(dest.name)
            for j, name in enumerate(names):
                if j in used_sources:
                    continue
                target = find_alias_target(name, aliases)
                if target is not None and normalize_name(target) == dest_norm:
                    pairs.append(MatchPair(dest.index, j, 1.0, via_alias=True))
                    used_sources.add(j)
                    used_destinations.add(dest.index)
                    break

    candidates: list[Candidate] = []
    for j, name in enumerate(names):
        if j in used_sources:
            continue
        for dest in eligible:
            if dest.index in used_destinations:
                continue
            score = match_score(dest.name, name)
            if score >= threshold:
                candidates.append(Candidate(dest.index, j, score, dest.name, name))
    candidates.sort(key=cmp_to_key(compare_candidates))

    by_source: dict[int, list[Candidate]] = {}
    for candidate in candidates:
        by_source.setdefault(candidate.source, []).append(candidate)

    for source, options in by_source.items():
        best = next((c for c in options if c.destination not in used_destinations), None)
        if best is None:
            continue
        pairs.append(MatchPair(best.destination, source, best.score))
        used_sources.add(source)
        used_destinations.add(best.destination)

    assigned = used_destinations | set(reserved_destinations)
    return MatchResult(pairs=tuple(pairs), locked=compute_locks(destinations, assigned))


def match_all_sessions(
    destinations: Sequence[DestinationTrack],
    sessions: Sequence[Session],
    assignment: Assignment,
    aliases: Sequence[Alias] = (),
    threshold: float = TRACK_MATCH_THRESHOLD,
) -> frozenset[int]:
    """Auto-match every session into ``assignment``.

    Previous automatic cells are replaced; manual cells are kept and their
    destination and source stay reserved for that session.

    Returns:
        The lock set over all sessions.
    """
    for k, session in enumerate(sessions):
        assignment.clear_auto(k)
        manual = assignment.manual_cells(k)
        result = match_session(
            destinations,
            [t.name for t in session.tracks],
            aliases=aliases,
            threshold=threshold,
            reserved_destinations=frozenset(manual),
            reserved_sources=frozenset(c.source for c in manual.values()),
        )
        for pair in result.pairs:
            assignment.assign(pair.destination, k, pair.source)
    return compute_locks(destinations, assignment.destinations())
