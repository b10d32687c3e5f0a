"""load_sessions tool — Parse session files and show where each lands on the merged timeline.

Use when the user says:
  - "Load these songs"
  - "How long is each session?"
  - "Where does song B start after merging?"
"""

from __future__ import annotations

from typing import Any

from core.queue import SessionQueue
from core.rpp.types import Session
from core.tempo.calculator import session_length
from ingestion.session_loader import load_sessions
from tools.base import MergeTool, ToolParameter, ToolResult


def describe_session(session: Session) -> dict[str, Any]:
    """Plain-dict summary of one loaded session."""
    base = session.base_tempo
    return {
        "name": session.name,
        "path": session.path,
        "bpm": base.bpm,
        "time_signature": f"{base.numerator}/{base.denominator}",
        "duration_seconds": round(session.duration_seconds, 3),
        "measures": session_length(session).measures,
        "tracks": [t.name for t in session.tracks],
        "regions": session.region_count,
        "markers": len(session.markers) - session.region_count,
        "offset": {
            "measure": session.offset.measure,
            "time_seconds": round(session.offset.time_seconds, 6),
            "quarter_notes": round(session.offset.quarter_notes, 6),
        },
        "diagnostics": [d.as_dict() for d in session.diagnostics],
    }


class LoadSessions(MergeTool):
    """Load sessions in order and plan their offsets on the merged timeline."""

    @property
    def name(self) -> str:
        return "load_sessions"

    @property
    def description(self) -> str:
        return (
            "Read one or more REAPER session files (.rpp) in merge order. "
            "For each session returns tempo, time signature, length in measures, "
            "the tracks holding audio, markers/regions, and the offset (measure, "
            "seconds, quarter notes) at which it starts on the merged timeline. "
            "One unreadable file fails the whole load."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="session_paths",
                type=list,
                description="Session file paths, in the order they should play.",
            ),
            ToolParameter(
                name="gap_measures",
                type=int,
                description="Empty measures between consecutive sessions. Default: 2.",
                required=False,
                default=2,
            ),
            ToolParameter(
                name="only_with_media",
                type=bool,
                description="Ignore tracks without audio items. Default: true.",
                required=False,
                default=True,
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        paths = [str(p) for p in kwargs["session_paths"]]
        gap = kwargs.get("gap_measures")
        gap = 2 if gap is None else gap
        only_with_media = kwargs.get("only_with_media")
        only_with_media = True if only_with_media is None else only_with_media

        if not paths:
            return ToolResult(success=False, error="No session paths given")

        queue = SessionQueue(gap_measures=gap)
        for session in load_sessions(paths, only_with_media=only_with_media):
            queue.append(session)

        sessions = [describe_session(s) for s in queue.sessions]
        timeline = queue.timeline()
        return ToolResult(
            success=True,
            data={
                "sessions": sessions,
                "tempo_points": len(timeline.tempo_points),
                "markers": len(timeline.markers),
            },
            metadata={"gap_measures": gap, "session_count": len(sessions)},
        )
