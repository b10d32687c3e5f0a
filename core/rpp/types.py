"""core/rpp/types.py — Immutable value objects for parsed project sessions.

Hierarchy mirroring the project text format:

    Session
    ├── BaseTempo                       (TEMPO line)
    ├── TempoPoint (N breakpoints)      (<TEMPOENVEX PT lines)
    ├── Marker (markers + regions)      (MARKER lines)
    ├── SourceTrack (M tracks)          (<TRACK blocks)
    │   └── Segment (K audio items)     (<ITEM blocks)
    └── PooledEnvelope (by pool id)     (<POOLEDENV blocks)

Parsed top-level entries are represented by the ``Block`` tagged variant
before being assembled into a ``Session``.

Every type is a frozen dataclass.  No I/O, no timestamps, no env vars.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Union

from core.errors import Diagnostic

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TempoShape(str, Enum):
    """Shape of the tempo curve leaving a breakpoint."""

    SQUARE = "square"
    LINEAR = "linear"

    @classmethod
    def from_code(cls, code: int) -> TempoShape:
        """Map the envelope shape code (``0`` linear, ``1`` square) to a shape."""
        return cls.LINEAR if code == 0 else cls.SQUARE

    @property
    def code(self) -> int:
        return 0 if self is TempoShape.LINEAR else 1


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeSignature:
    """A musical time signature, e.g. 4/4 or 6/8."""

    numerator: int
    denominator: int

    @property
    def qn_per_measure(self) -> float:
        """Quarter notes in one measure (``6/8`` → 3.0)."""
        return self.numerator * 4.0 / self.denominator

    @property
    def packed(self) -> int:
        """Envelope encoding: ``denominator * 65536 + numerator``."""
        return self.denominator * 65536 + self.numerator

    @classmethod
    def unpack(cls, packed: int) -> TimeSignature:
        return cls(numerator=packed % 65536, denominator=packed // 65536)


@dataclass(frozen=True)
class BaseTempo:
    """The scalar project tempo from the ``TEMPO bpm num denom`` line."""

    bpm: float
    numerator: int = 4
    denominator: int = 4

    @property
    def time_signature(self) -> TimeSignature:
        return TimeSignature(self.numerator, self.denominator)

    @property
    def qn_per_measure(self) -> float:
        return self.time_signature.qn_per_measure

    @property
    def seconds_per_measure(self) -> float:
        """Duration of one measure at this tempo (120 BPM 4/4 → 2.0 s)."""
        return self.qn_per_measure * 60.0 / self.bpm


@dataclass(frozen=True)
class TempoPoint:
    """One breakpoint of a session's tempo map.

    Invariants:
        The first point of a session is at ``time_seconds == 0``.
        The last point of a session has ``shape == TempoShape.SQUARE``.
    """

    time_seconds: float
    bpm: float
    shape: TempoShape = TempoShape.SQUARE
    time_sig: TimeSignature | None = None
    """Signature change taking effect at this point, if any."""


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Marker:
    """A marker, or a region with both of its endpoints.

    The text format stores a region as two ``MARKER`` lines sharing an index
    (start with a name, end with an empty name); the parser folds them into
    one ``Marker`` with ``is_region=True``.
    """

    index: int
    pos: float
    name: str = ""
    is_region: bool = False
    region_end: float = 0.0
    color: int = 0

    def shifted(self, delta: float) -> Marker:
        """Return a copy moved ``delta`` seconds later."""
        return Marker(
            index=self.index,
            pos=self.pos + delta,
            name=self.name,
            is_region=self.is_region,
            region_end=self.region_end + delta if self.is_region else 0.0,
            color=self.color,
        )


# ---------------------------------------------------------------------------
# Tracks and envelopes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Segment:
    """One audio item on a track (``<ITEM`` block)."""

    position: float
    length: float
    lane: int = 0

    @property
    def end(self) -> float:
        return self.position + self.length


@dataclass(frozen=True)
class SourceTrack:
    """A track of recorded material inside a session.

    ``content_chunk`` is the full ``<TRACK … >`` text.  Pooled envelopes are
    referenced by id through ``uses_pools`` and looked up on the owning
    :class:`Session`; the track never holds a copy of them.
    """

    name: str
    content_chunk: str
    has_media: bool
    uses_pools: frozenset[int] = frozenset()
    segments: tuple[Segment, ...] = ()

    @property
    def content_end(self) -> float:
        """End of the latest segment in seconds (0.0 without segments)."""
        return max((s.end for s in self.segments), default=0.0)


@dataclass(frozen=True)
class PooledEnvelope:
    """A reusable automation payload (``<POOLEDENV`` block) keyed by ``pool_id``."""

    pool_id: int
    chunk: str


# ---------------------------------------------------------------------------
# Blocks: tagged variant of parsed top-level entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TempoLine:
    """The ``TEMPO bpm num denom`` line."""

    tempo: BaseTempo


@dataclass(frozen=True)
class MarkerLine:
    """One raw ``MARKER`` line; regions are still split in start/end lines here."""

    index: int
    pos: float
    name: str
    flags: int
    color: int = 0

    @property
    def is_region(self) -> bool:
        return bool(self.flags & 1)


@dataclass(frozen=True)
class TrackBlock:
    track: SourceTrack


@dataclass(frozen=True)
class TempoEnvelopeBlock:
    """The ``<TEMPOENVEX`` block, breakpoints exactly as written."""

    points: tuple[TempoPoint, ...]


@dataclass(frozen=True)
class PooledEnvelopeBlock:
    envelope: PooledEnvelope


Block = Union[TempoLine, MarkerLine, TrackBlock, TempoEnvelopeBlock, PooledEnvelopeBlock]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueueOffset:
    """Where a session starts on the merged timeline.

    The three fields are always computed together by
    :func:`core.tempo.planner.plan_offsets`; a session never carries a
    partially updated offset.
    """

    measure: int = 0
    time_seconds: float = 0.0
    quarter_notes: float = 0.0


@dataclass(frozen=True)
class Session:
    """One imported unit of recorded material (one source project file).

    ``tracks`` holds only the tracks that qualified for import;
    ``duration_seconds`` is measured over every track of the file.
    """

    path: str
    base_tempo: BaseTempo
    tempo_map: tuple[TempoPoint, ...]
    markers: tuple[Marker, ...] = ()
    tracks: tuple[SourceTrack, ...] = ()
    pooled_envelopes: dict[int, PooledEnvelope] = field(default_factory=dict, hash=False)
    duration_seconds: float = 0.0
    offset: QueueOffset = QueueOffset()
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def name(self) -> str:
        """File name without directory or extension."""
        return PurePath(self.path).stem

    @property
    def directory(self) -> str:
        """Directory the session file lives in (media is resolved against it)."""
        return str(PurePath(self.path).parent)

    @property
    def region_count(self) -> int:
        return sum(1 for m in self.markers if m.is_region)

    @property
    def is_empty(self) -> bool:
        return not self.tracks

    def pooled_envelope(self, pool_id: int) -> PooledEnvelope | None:
        return self.pooled_envelopes.get(pool_id)

    def envelopes_for(self, track: SourceTrack) -> tuple[PooledEnvelope, ...]:
        """Pooled payloads referenced by ``track``, ordered by pool id.

        Ids without a matching ``<POOLEDENV`` block are ignored.
        """
        return tuple(
            self.pooled_envelopes[pool_id]
            for pool_id in sorted(track.uses_pools)
            if pool_id in self.pooled_envelopes
        )
