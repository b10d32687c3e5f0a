"""
core/tempo — Tempo-map algebra and queue planning.

calculator.py: session length in quarter notes and whole measures.
planner.py:    back-to-back queue offsets with a configurable gap.
timeline.py:   merged tempo map and markers for a planned queue.
"""

from core.tempo.calculator import SessionLength, quarter_notes_between, session_length
from core.tempo.planner import plan_offsets
from core.tempo.timeline import Timeline, build_timeline

__all__ = [
    "SessionLength",
    "Timeline",
    "build_timeline",
    "plan_offsets",
    "quarter_notes_between",
    "session_length",
]
