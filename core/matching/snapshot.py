"""core/matching/snapshot.py — Which template tracks can receive sources.

The snapshot walks the template's tracks in order, following folder depth
(second field of ``ISBUS``), and keeps every track except:

- tracks hidden in both mixer and track list;
- tracks whose name contains a bus keyword, and everything inside a folder
  whose name does.

Kept tracks are renumbered 0..n; ``parent`` points at the nearest kept
enclosing folder.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from core.consolidation.chunk_edit import folder_depth, is_hidden
from core.matching.types import DestinationTrack
from core.rpp.chunks import read_name


@dataclass
class _OpenFolder:
    index: int | None
    is_bus: bool


def _has_keyword(name: str, keywords: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(k.strip() and k.strip().lower() in lowered for k in keywords)


def snapshot_destinations(
    tracks: Sequence[tuple[str, str]],
    bus_keywords: Sequence[str] = (),
    locked_names: Sequence[str] = (),
) -> list[DestinationTrack]:
    """Build the destination snapshot from ``(handle, chunk)`` pairs in track order."""
    locked = {n.strip().lower() for n in locked_names}
    folders: list[_OpenFolder] = []
    snapshot: list[DestinationTrack] = []

    for handle, chunk in tracks:
        name = read_name(chunk)
        depth = folder_depth(chunk)
        in_bus = any(f.is_bus for f in folders) or _has_keyword(name, bus_keywords)
        excluded = in_bus or is_hidden(chunk)

        index: int | None = None
        if not excluded:
            index = len(snapshot)
            parent = next((f.index for f in reversed(folders) if f.index is not None), None)
            snapshot.append(
                DestinationTrack(
                    index=index,
                    handle=handle,
                    name=name,
                    is_folder=depth > 0,
                    parent=parent,
                    locked=name.strip().lower() in locked,
                )
            )

        if depth > 0:
            folders.append(_OpenFolder(index, in_bus))
        elif depth < 0:
            del folders[max(0, len(folders) + depth) :]

    return snapshot
