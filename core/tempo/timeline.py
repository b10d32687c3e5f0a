"""core/tempo/timeline.py — Merged tempo map and markers for a planned queue.

Given sessions that already carry their :class:`QueueOffset`, build the
timeline the template receives on commit:

- every session's tempo points shifted by its time offset, the first point
  of each session re-asserting that session's time signature, and the last
  point of every session but the final one forced to ``SQUARE`` so a ramp
  never bleeds into the next session;
- every session's markers and regions shifted the same way and renumbered
  1..n across the whole queue.

``render_*`` turn the result into project text lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from core.rpp.chunks import format_number, quote_token
from core.rpp.types import Marker, Session, TempoPoint, TempoShape


@dataclass(frozen=True)
class Timeline:
    """The merged tempo map and marker list of a session queue."""

    tempo_points: tuple[TempoPoint, ...]
    markers: tuple[Marker, ...]


def build_timeline(sessions: Sequence[Session]) -> Timeline:
    points: list[TempoPoint] = []
    markers: list[Marker] = []

    for k, session in enumerate(sessions):
        delta = session.offset.time_seconds
        is_final = k == len(sessions) - 1
        tempo_map = session.tempo_map
        for i, point in enumerate(tempo_map):
            time_sig = point.time_sig
            if i == 0 and time_sig is None:
                time_sig = session.base_tempo.time_signature
            shape = point.shape
            if i == len(tempo_map) - 1 and not is_final:
                shape = TempoShape.SQUARE
            points.append(TempoPoint(point.time_seconds + delta, point.bpm, shape, time_sig))
        markers.extend(marker.shifted(delta) for marker in session.markers)

    renumbered = tuple(
        Marker(
            index=n,
            pos=m.pos,
            name=m.name,
            is_region=m.is_region,
            region_end=m.region_end,
            color=m.color,
        )
        for n, m in enumerate(markers, start=1)
    )
    return Timeline(tempo_points=tuple(points), markers=renumbered)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_tempo_point(point: TempoPoint) -> str:
    fields = [
        "PT",
        format_number(point.time_seconds),
        format_number(point.bpm),
        str(point.shape.code),
    ]
    if point.time_sig is not None:
        fields.append(str(point.time_sig.packed))
    return " ".join(fields)


def render_tempo_envelope(points: Sequence[TempoPoint], indent: str = "  ") -> list[str]:
    """``<TEMPOENVEX`` block lines holding ``points``."""
    lines = [f"{indent}<TEMPOENVEX", f"{indent}  ACT 1 -1", f"{indent}  VIS 1 0 1"]
    lines.extend(f"{indent}  {render_tempo_point(p)}" for p in points)
    lines.append(f"{indent}>")
    return lines


def render_marker(marker: Marker, indent: str = "  ") -> list[str]:
    """One ``MARKER`` line, or the start/end line pair of a region."""
    name = quote_token(marker.name)
    pos = format_number(marker.pos)
    if not marker.is_region:
        return [f"{indent}MARKER {marker.index} {pos} {name} 0 {marker.color}"]
    end = format_number(marker.region_end)
    return [
        f"{indent}MARKER {marker.index} {pos} {name} 1 {marker.color}",
        f'{indent}MARKER {marker.index} {end} "" 1',
    ]
