"""core/tempo/planner.py — Place sessions back-to-back on one merged timeline.

Each session starts where the previous one ended plus a gap of empty
measures.  Offsets are computed in one forward pass from zero:

    offset(sessionₖ) = accumulators before sessionₖ
    time    += (base_measures + gap) · sec_per_measure
    measure += max(1, measures) + gap
    qn      += (base_measures + gap) · qn_per_measure

``sec_per_measure`` and ``qn_per_measure`` come from each session's own base
tempo; ``base_measures`` is the duration rounded up to whole measures at that
tempo (at least 1, so offsets strictly increase).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import replace

from core.rpp.types import QueueOffset, Session
from core.tempo.calculator import ROUNDING_TOLERANCE, session_length


def base_measures(session: Session) -> int:
    """Whole measures spanned by ``session`` at its base tempo (minimum 1)."""
    spm = session.base_tempo.seconds_per_measure
    return max(1, math.ceil(session.duration_seconds / spm - ROUNDING_TOLERANCE))


def plan_offsets(
    sessions: Sequence[Session], gap_measures: int = 2
) -> tuple[Session, ...]:
    """Return copies of ``sessions`` carrying their :class:`QueueOffset`.

    Args:
        sessions: Sessions in queue order.
        gap_measures: Empty measures between consecutive sessions.

    Raises:
        ValueError: If ``gap_measures`` is negative.
    """
    if gap_measures < 0:
        raise ValueError(f"gap_measures must be non-negative, got {gap_measures}")

    measure = 0
    time_seconds = 0.0
    quarter_notes = 0.0
    planned: list[Session] = []

    for session in sessions:
        planned.append(
            replace(
                session,
                offset=QueueOffset(
                    measure=measure,
                    time_seconds=time_seconds,
                    quarter_notes=quarter_notes,
                ),
            )
        )
        tempo = session.base_tempo
        spanned = base_measures(session)
        time_seconds += (spanned + gap_measures) * tempo.seconds_per_measure
        measure += max(1, session_length(session).measures) + gap_measures
        quarter_notes += (spanned + gap_measures) * tempo.qn_per_measure

    return tuple(planned)
