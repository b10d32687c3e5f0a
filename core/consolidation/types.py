"""core/consolidation/types.py — Outcome of one consolidation run."""

from __future__ import annotations

from dataclasses import dataclass, field

from core.errors import Diagnostic


@dataclass(frozen=True)
class ConsolidationReport:
    """What a commit did, destination by destination.

    ``created`` holds the handles of the merged tracks that replaced their
    destinations, in processing order.
    """

    processed: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    deleted_unused: tuple[str, ...] = ()
    created: tuple[str, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
    timeline_imported: bool = False

    @property
    def summary(self) -> str:
        return f"{len(self.processed)} destinations processed, {len(self.skipped)} skipped"

    def to_dict(self) -> dict:
        return {
            "processed": list(self.processed),
            "skipped": list(self.skipped),
            "deleted_unused": list(self.deleted_unused),
            "created": list(self.created),
            "diagnostics": [d.as_dict() for d in self.diagnostics],
            "timeline_imported": self.timeline_imported,
            "summary": self.summary,
        }
