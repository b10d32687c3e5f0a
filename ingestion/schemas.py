"""
ingestion/schemas.py — Pydantic models for the merge configuration file.

All fields use snake_case. Default values match ``core.config.MergeConfig``.

Example file::

    merge:
      gap_measures: 4
      bus_keywords: [BUS, FX]
      locked_tracks: [Reference]
    aliases:
      - sources: [OH L, OH R]
        destination: Overheads
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from core.config import TRACK_MATCH_THRESHOLD


class AliasSchema(BaseModel):
    """One alias rule: any of ``sources`` maps straight to ``destination``."""

    sources: list[str] = Field(..., min_length=1, description="Source names or name fragments")
    destination: str = Field(..., min_length=1, description="Exact destination track name")


class MergeSettings(BaseModel):
    """The ``merge:`` section."""

    gap_measures: int = Field(2, ge=0, description="Empty measures between consecutive sessions")
    match_threshold: float = Field(
        TRACK_MATCH_THRESHOLD, ge=0.0, le=1.0, description="Minimum auto-match score"
    )
    align_lanes: bool = Field(True, description="Align imports onto the highest active lane")
    only_with_media: bool = Field(True, description="Ignore source tracks without audio items")
    copy_media: bool = Field(False, description="Copy resolved media next to the template")
    delete_unused: bool = Field(False, description="Delete unmatched, unlocked destinations")
    import_timeline: bool = Field(True, description="Write merged tempo map and markers")
    bus_keywords: list[str] = Field(
        default_factory=list, description="Name fragments marking bus tracks and folders"
    )
    locked_tracks: list[str] = Field(
        default_factory=list, description="Destination names excluded from deletion"
    )


class MergeConfigFile(BaseModel):
    """Top-level document of a merge configuration file."""

    merge: MergeSettings = Field(default_factory=MergeSettings)
    aliases: list[AliasSchema] = Field(default_factory=list)
