"""core/matching/types.py — Destination snapshot, aliases and the assignment table.

``DestinationTrack``, ``Alias``, ``MatchPair`` and ``MatchResult`` are frozen
value objects.  ``Assignment`` is the one mutable structure: the sparse
destination × session grid the user and the auto-matcher both write into.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class DestinationTrack:
    """Snapshot of one eligible template track."""

    index: int
    """Position in the snapshot (0-based); rows of the assignment grid."""

    handle: str
    """Stable host handle of the track."""

    name: str
    is_folder: bool = False

    parent: int | None = None
    """Snapshot index of the enclosing folder header, if any."""

    locked: bool = False
    """Locked by the user; never auto-matched, never deleted as unused."""


@dataclass(frozen=True)
class Alias:
    """User rule forcing sources whose name matches ``sources`` onto ``destination``.

    ``sources`` is a comma-separated keyword list, e.g. ``"kik, bd, kick out"``.
    """

    sources: str
    destination: str

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(k.strip().lower() for k in self.sources.split(",") if k.strip())


@dataclass(frozen=True)
class MatchPair:
    destination: int
    source: int
    score: float
    via_alias: bool = False


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one session."""

    pairs: tuple[MatchPair, ...]

    locked: frozenset[int]
    """Destination indices locked after matching (user locks and folders above assignments)."""

    def as_mapping(self) -> dict[int, int]:
        """``destination index → source index``."""
        return {p.destination: p.source for p in self.pairs}


@dataclass(frozen=True)
class CellOptions:
    """Per-cell import options."""

    keep_name: bool = False
    """Name the merged track after the source instead of the destination."""

    keep_fx: bool = False
    """Keep the source's FX chain instead of the destination's."""


@dataclass(frozen=True)
class Cell:
    source: int
    manual: bool = False
    options: CellOptions = field(default_factory=CellOptions)


class Assignment:
    """Sparse ``destination index → (session index → Cell)`` grid.

    Within one session the mapping is a partial bijection: a destination
    holds at most one source and a source sits on at most one destination.
    Every write enforces this by evicting the conflicting cell.

    Usage:
        assignment = Assignment()
        assignment.assign(destination=0, session=0, source=2, manual=True)
        assignment.source_for(0, 0)   # → 2
    """

    def __init__(self) -> None:
        self._cells: dict[int, dict[int, Cell]] = {}

    # -- writes --------------------------------------------------------------

    def assign(
        self,
        destination: int,
        session: int,
        source: int,
        manual: bool = False,
        options: CellOptions | None = None,
    ) -> None:
        previous = self.get(destination, session)
        if options is None:
            options = previous.options if previous is not None else CellOptions()
        current = self.destination_of(session, source)
        if current is not None and current != destination:
            self.clear(current, session)
        self._cells.setdefault(destination, {})[session] = Cell(source, manual, options)

    def clear(self, destination: int, session: int) -> None:
        row = self._cells.get(destination)
        if row is None:
            return
        row.pop(session, None)
        if not row:
            del self._cells[destination]

    def clear_auto(self, session: int) -> None:
        """Drop every non-manual cell of ``session``."""
        for destination in list(self._cells):
            cell = self._cells[destination].get(session)
            if cell is not None and not cell.manual:
                self.clear(destination, session)

    def set_options(self, destination: int, session: int, **changes: Any) -> None:
        """Update ``keep_name`` / ``keep_fx`` of an existing cell."""
        cell = self.get(destination, session)
        if cell is None:
            raise KeyError(f"No cell at destination {destination}, session {session}")
        self._cells[destination][session] = replace(
            cell, options=replace(cell.options, **changes)
        )

    def drop_session(self, session: int) -> None:
        """Remove a session column and shift later columns down by one."""
        self.remap_sessions(
            {s: s if s < session else s - 1 for s in self.sessions() if s != session}
        )

    def remap_sessions(self, mapping: Mapping[int, int]) -> None:
        """Renumber session columns; columns missing from ``mapping`` are dropped."""
        remapped: dict[int, dict[int, Cell]] = {}
        for destination, row in self._cells.items():
            new_row = {mapping[s]: cell for s, cell in row.items() if s in mapping}
            if new_row:
                remapped[destination] = new_row
        self._cells = remapped

    # -- reads ---------------------------------------------------------------

    def get(self, destination: int, session: int) -> Cell | None:
        return self._cells.get(destination, {}).get(session)

    def source_for(self, destination: int, session: int) -> int | None:
        cell = self.get(destination, session)
        return cell.source if cell is not None else None

    def destination_of(self, session: int, source: int) -> int | None:
        for destination, row in self._cells.items():
            cell = row.get(session)
            if cell is not None and cell.source == source:
                return destination
        return None

    def cells_for(self, destination: int) -> list[tuple[int, Cell]]:
        """``(session, cell)`` pairs of one destination, in session order."""
        return sorted(self._cells.get(destination, {}).items())

    def manual_cells(self, session: int) -> dict[int, Cell]:
        return {
            destination: row[session]
            for destination, row in self._cells.items()
            if session in row and row[session].manual
        }

    def destinations(self) -> list[int]:
        return sorted(self._cells)

    def sessions(self) -> list[int]:
        return sorted({s for row in self._cells.values() for s in row})

    def copy(self) -> Assignment:
        clone = Assignment()
        clone._cells = {d: dict(row) for d, row in self._cells.items()}
        return clone

    def __iter__(self) -> Iterator[tuple[int, int, Cell]]:
        for destination in sorted(self._cells):
            for session, cell in sorted(self._cells[destination].items()):
                yield destination, session, cell

    def __len__(self) -> int:
        return sum(len(row) for row in self._cells.values())

    def __contains__(self, destination: object) -> bool:
        return destination in self._cells
