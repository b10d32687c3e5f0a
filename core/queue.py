"""core/queue.py — Ordered session queue with always-consistent offsets.

The queue owns the sessions and the :class:`Assignment` grid whose columns
follow them.  Every mutation replans ALL offsets from scratch and renumbers
the assignment columns, so a session never carries a stale offset and a
column always belongs to the session at its index.
"""

from __future__ import annotations

from core.matching.types import Assignment
from core.rpp.types import Session
from core.tempo.planner import plan_offsets
from core.tempo.timeline import Timeline, build_timeline


class SessionQueue:
    """Sessions in merge order.

    Usage:
        queue = SessionQueue(gap_measures=2)
        queue.append(session_a)
        queue.append(session_b)
        queue.sessions[1].offset.measure   # measures of A + 2
    """

    def __init__(self, gap_measures: int = 2, assignment: Assignment | None = None) -> None:
        if gap_measures < 0:
            raise ValueError(f"gap_measures must be non-negative, got {gap_measures}")
        self._gap = gap_measures
        self._sessions: list[Session] = []
        self.assignment = assignment if assignment is not None else Assignment()

    @property
    def sessions(self) -> tuple[Session, ...]:
        return tuple(self._sessions)

    @property
    def gap_measures(self) -> int:
        return self._gap

    def append(self, session: Session) -> None:
        self._sessions.append(session)
        self._replan()

    def insert(self, index: int, session: Session) -> None:
        index = max(0, min(index, len(self._sessions)))
        self.assignment.remap_sessions(
            {s: s if s < index else s + 1 for s in self.assignment.sessions()}
        )
        self._sessions.insert(index, session)
        self._replan()

    def remove(self, index: int) -> Session:
        """Remove the session at ``index`` together with its assignment column."""
        removed = self._sessions.pop(index)
        self.assignment.drop_session(index)
        self._replan()
        return removed

    def move(self, from_index: int, to_index: int) -> None:
        """Move one session; assignment columns travel with their session."""
        order = list(range(len(self._sessions)))
        moved = order.pop(from_index)
        order.insert(to_index, moved)
        self._sessions = [self._sessions[i] for i in order]
        self.assignment.remap_sessions({old: new for new, old in enumerate(order)})
        self._replan()

    def set_gap(self, gap_measures: int) -> None:
        if gap_measures < 0:
            raise ValueError(f"gap_measures must be non-negative, got {gap_measures}")
        self._gap = gap_measures
        self._replan()

    def timeline(self) -> Timeline:
        return build_timeline(self._sessions)

    def _replan(self) -> None:
        self._sessions = list(plan_offsets(self._sessions, self._gap))

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self):
        return iter(self._sessions)
