"""core/consolidation/host.py — What the consolidation engine needs from its surroundings.

The engine never touches a project or the filesystem directly.  It edits
tracks through a :class:`TrackHost` (implemented over the template text by
``ingestion/template_project.py``) and relinks media through a
:class:`MediaResolver` (``ingestion/media_resolver.py``).  Tests use
in-memory fakes of both.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.tempo.timeline import Timeline


@runtime_checkable
class TrackHost(Protocol):
    """Owner of the template's track list.

    Handles are opaque strings that stay valid while tracks are inserted or
    deleted around them.
    """

    def index_of(self, handle: str) -> int:
        """Current 0-based position of the track."""
        ...

    def get_chunk(self, handle: str) -> str:
        ...

    def set_chunk(self, handle: str, chunk: str) -> None:
        """Replace the track's text.

        Raises:
            ChunkApplyRejected: If ``chunk`` is not a well-formed track.
        """
        ...

    def insert_track(self, index: int) -> str:
        """Insert an empty track at ``index`` and return its handle."""
        ...

    def delete_track(self, handle: str) -> None:
        ...

    def copy_routing(self, src: str, dst: str, keep_fx: bool = False) -> None:
        """Copy FX chain (unless ``keep_fx``), track controls, receives and sends."""
        ...

    def max_pool_id(self) -> int:
        """Highest pooled-envelope id in use (0 when none)."""
        ...

    def import_timeline(self, timeline: Timeline) -> None:
        """Replace the project tempo map and markers."""
        ...


@runtime_checkable
class MediaResolver(Protocol):
    def resolve(self, path: str, session_dir: str) -> str | None:
        """Return the usable location of ``path`` or ``None`` when it cannot be found."""
        ...
