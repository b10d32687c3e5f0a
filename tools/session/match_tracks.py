"""match_tracks tool — Propose which session track goes to which template track.

Use when the user says:
  - "Match my sessions to the template"
  - "Which template track does 'Kick In' go to?"
  - "What did not match?"
"""

from __future__ import annotations

from typing import Any

from core.matching.scoring import match_score
from ingestion.merge_workspace import MergeWorkspace
from tools.base import MergeTool, ToolParameter, ToolResult


def describe_matches(workspace: MergeWorkspace) -> dict[str, Any]:
    """Assignment of ``workspace`` as plain dicts, plus what stayed unmatched."""
    destinations = {d.index: d for d in workspace.destinations}
    sessions = workspace.sessions
    matches = []
    for dest_index, session_index, cell in workspace.assignment:
        destination = destinations[dest_index]
        source = sessions[session_index].tracks[cell.source]
        matches.append(
            {
                "destination": destination.name,
                "session": sessions[session_index].name,
                "source": source.name,
                "score": round(match_score(destination.name, source.name), 3),
                "manual": cell.manual,
            }
        )

    unmatched_sources = {
        session.name: [
            track.name
            for i, track in enumerate(session.tracks)
            if workspace.assignment.destination_of(k, i) is None
        ]
        for k, session in enumerate(sessions)
    }
    unmatched_destinations = [
        d.name
        for d in workspace.destinations
        if d.index not in workspace.assignment and not d.is_folder
    ]
    return {
        "matches": matches,
        "unmatched_sources": unmatched_sources,
        "unmatched_destinations": unmatched_destinations,
        "locked": sorted(destinations[i].name for i in workspace.locked if i in destinations),
    }


class MatchTracks(MergeTool):
    """Auto-match session tracks onto the template's tracks."""

    @property
    def name(self) -> str:
        return "match_tracks"

    @property
    def description(self) -> str:
        return (
            "Match the tracks of one or more REAPER sessions to the tracks of a mix "
            "template by name (exact, prefix, containment and fuzzy similarity, with "
            "alias rules from the optional YAML config applied first). Read-only: "
            "returns every proposed (destination, session, source) match with its "
            "score, the unmatched tracks on both sides, and the folders that stay locked."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="template_path",
                type=str,
                description="Path of the mix template (.rpp).",
            ),
            ToolParameter(
                name="session_paths",
                type=list,
                description="Session file paths, in merge order.",
            ),
            ToolParameter(
                name="config_path",
                type=str,
                description="Optional YAML merge config (threshold, bus keywords, aliases).",
                required=False,
                default="",
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        config_path = (kwargs.get("config_path") or "").strip() or None
        workspace = MergeWorkspace.open(kwargs["template_path"], config_path=config_path)
        workspace.add_sessions([str(p) for p in kwargs["session_paths"]])
        workspace.auto_match()

        data = describe_matches(workspace)
        return ToolResult(
            success=True,
            data=data,
            metadata={
                "destinations": len(workspace.destinations),
                "sessions": len(workspace.sessions),
                "threshold": workspace.config.match_threshold,
            },
        )
