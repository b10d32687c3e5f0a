"""
core/consolidation — Multi-session import and merge onto template tracks.

The engine works against two protocols (host.py) so it never performs I/O
itself: ``TrackHost`` edits the template, ``MediaResolver`` relinks audio.

chunk_edit.py: field-level edits on track chunks.
shift.py:      timeline shifting and pooled-envelope renumbering.
lanes.py:      fixed-lane alignment and track merging.
engine.py:     per-destination consolidation and the whole commit.
"""

from core.consolidation.engine import consolidate, consolidate_destination, prepare_import
from core.consolidation.host import MediaResolver, TrackHost
from core.consolidation.types import ConsolidationReport

__all__ = [
    "ConsolidationReport",
    "MediaResolver",
    "TrackHost",
    "consolidate",
    "consolidate_destination",
    "prepare_import",
]
