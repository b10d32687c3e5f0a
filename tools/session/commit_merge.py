"""commit_merge tool — Merge sessions into the mix template and write the result.

Use when the user says:
  - "Merge these songs into my template"
  - "Build the album session"
  - "Put Bass DI of song 2 on the Bass track and merge"
"""

from __future__ import annotations

from typing import Any

from ingestion.merge_workspace import MergeWorkspace
from tools.base import MergeTool, ToolParameter, ToolResult


class CommitMerge(MergeTool):
    """Auto-match, apply manual overrides, consolidate and save."""

    @property
    def name(self) -> str:
        return "commit_merge"

    @property
    def description(self) -> str:
        return (
            "Merge REAPER sessions into a mix template: sessions are laid end to end "
            "with a gap, every matched source track is imported onto its template "
            "track (positions shifted, media relinked, routing and FX taken from the "
            "template), and the merged tempo map and markers are written. "
            "Manual assignments override auto-matching. Writes output_path "
            "(or the template itself when omitted) and returns the commit report."
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
                name="output_path",
                type=str,
                description="Where to write the merged project. Default: overwrite the template.",
                required=False,
                default="",
            ),
            ToolParameter(
                name="config_path",
                type=str,
                description="Optional YAML merge config.",
                required=False,
                default="",
            ),
            ToolParameter(
                name="assignments",
                type=list,
                description=(
                    "Manual assignments, each a dict with 'destination' (name), "
                    "'session' (index), 'source' (name) and optional 'keep_name', 'keep_fx'."
                ),
                required=False,
                default=None,
            ),
            ToolParameter(
                name="auto_match",
                type=bool,
                description="Run auto-matching before the manual assignments. Default: true.",
                required=False,
                default=True,
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        config_path = (kwargs.get("config_path") or "").strip() or None
        output_path = (kwargs.get("output_path") or "").strip() or None
        manual = kwargs.get("assignments") or []
        auto = kwargs.get("auto_match")

        workspace = MergeWorkspace.open(kwargs["template_path"], config_path=config_path)
        workspace.add_sessions([str(p) for p in kwargs["session_paths"]])
        if auto is None or auto:
            workspace.auto_match()
        for entry in manual:
            if not isinstance(entry, dict):
                return ToolResult(success=False, error=f"Assignment must be a dict, got {entry!r}")
            workspace.assign(
                str(entry["destination"]),
                int(entry["session"]),
                str(entry["source"]),
                manual=True,
                keep_name=bool(entry.get("keep_name", False)),
                keep_fx=bool(entry.get("keep_fx", False)),
            )

        cells = len(workspace.assignment)
        report = workspace.commit(output_path)
        return ToolResult(
            success=True,
            data=report.to_dict(),
            metadata={
                "output_path": str(output_path or workspace.template.path),
                "cells": cells,
                "sessions": len(workspace.sessions),
            },
        )
