"""core/tempo/calculator.py — Session length in quarter notes and whole measures.

The tempo map is integrated piecewise between consecutive breakpoints:

    constant segment:  ΔQN = Δt · bpm / 60
    linear ramp:       ΔQN = Δt · (bpm₂ − bpm₁) / (60 · ln(bpm₂ / bpm₁))

A "linear" ramp in the project format is linear in musical time, which
makes the tempo exponential in seconds; the closed form above is the
integral of that curve.  Segments past the end of the content are clipped;
a clipped ramp uses the tempo the curve has reached at the clip point.

Pure functions — no I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from core.rpp.types import Session, TempoPoint, TempoShape, TimeSignature

ROUNDING_TOLERANCE = 1e-9


@dataclass(frozen=True)
class SessionLength:
    """Length of a session's content on its own tempo map."""

    measures: int
    """Whole measures, rounded up."""

    quarter_notes: float
    """Exact quarter-note total."""


def quarter_notes_between(
    bpm1: float, bpm2: float, dt: float, shape: TempoShape = TempoShape.SQUARE
) -> float:
    """Quarter notes elapsed over ``dt`` seconds starting at ``bpm1``.

    ``bpm2`` is the tempo reached at the end of the interval; it only matters
    for ``LINEAR`` ramps.
    """
    if dt <= 0:
        return 0.0
    if shape is TempoShape.LINEAR and bpm1 > 0 and bpm2 > 0 and not math.isclose(bpm1, bpm2):
        return dt * (bpm2 - bpm1) / (60.0 * math.log(bpm2 / bpm1))
    return dt * bpm1 / 60.0


def interpolated_bpm(start: TempoPoint, end: TempoPoint, elapsed: float) -> float:
    """Tempo ``elapsed`` seconds into the ramp from ``start`` to ``end``."""
    span = end.time_seconds - start.time_seconds
    if span <= 0 or start.bpm <= 0 or end.bpm <= 0:
        return start.bpm
    return start.bpm * (end.bpm / start.bpm) ** (elapsed / span)


def round_up_measures(measures: float) -> int:
    """Ceil with a small tolerance so 8.0000000001 stays 8."""
    return max(0, math.ceil(measures - ROUNDING_TOLERANCE))


def session_length(session: Session) -> SessionLength:
    """Measures and quarter notes covered by ``session``'s content.

    Example:
        A 16 s session at a constant 120 BPM in 4/4 is 32 quarter notes
        and 8 measures.
    """
    base = session.base_tempo
    duration = session.duration_seconds
    points = session.tempo_map

    if len(points) < 2:
        qn = duration * base.bpm / 60.0
        return SessionLength(round_up_measures(qn / base.qn_per_measure), qn)

    total_qn = 0.0
    total_measures = 0.0
    signature: TimeSignature = base.time_signature

    for i, point in enumerate(points):
        if point.time_sig is not None:
            signature = point.time_sig
        if point.time_seconds >= duration:
            break

        is_last = i == len(points) - 1
        seg_end = duration if is_last else min(points[i + 1].time_seconds, duration)
        dt = seg_end - point.time_seconds

        if is_last or point.shape is not TempoShape.LINEAR:
            dqn = quarter_notes_between(point.bpm, point.bpm, dt)
        else:
            nxt = points[i + 1]
            end_bpm = (
                nxt.bpm
                if seg_end >= nxt.time_seconds
                else interpolated_bpm(point, nxt, dt)
            )
            dqn = quarter_notes_between(point.bpm, end_bpm, dt, TempoShape.LINEAR)

        total_qn += dqn
        total_measures += dqn / signature.qn_per_measure

    return SessionLength(round_up_measures(total_measures), total_qn)
