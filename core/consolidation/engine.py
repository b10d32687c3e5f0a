"""core/consolidation/engine.py — Import, shift and merge sources onto destinations.

For every destination that received at least one source:

1. Snapshot the destination (name, ``GROUP_FLAGS``, ``ISBUS``).
2. For each (session, source) cell in session order: sanitise the source
   chunk, relink its media, shift it by the session's time offset, renumber
   and attach its pooled envelopes, insert a track right above the
   destination and apply the chunk.
3. Align fixed lanes across the imports.
4. Merge the extra imports into the first one and delete them.
5. Give the merged track the destination's name, folder line, groups and
   routing, then delete the destination.

A rejected chunk undoes the tracks created for that destination and skips
it; the other destinations are unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from core.config import DEFAULT_CONFIG, MergeConfig
from core.consolidation.chunk_edit import (
    child_indent,
    folder_depth,
    insert_before_close,
    media_paths,
    reindent,
    replace_field,
    replace_group_flags,
    replace_media_path,
    sanitize_track,
    set_field,
    set_track_name,
)
from core.consolidation.host import MediaResolver, TrackHost
from core.consolidation.lanes import align_to_lane, highest_active_lane, merge_track_into, new_guid
from core.consolidation.shift import renumber_pools, shift_track
from core.consolidation.types import ConsolidationReport
from core.errors import (
    CHUNK_APPLY_REJECTED,
    MEDIA_UNRESOLVED,
    ChunkApplyRejected,
    Diagnostic,
    MediaUnresolved,
)
from core.matching.types import Assignment, Cell, DestinationTrack
from core.rpp.chunks import find_field_line, split_lines
from core.rpp.types import Session, SourceTrack
from core.tempo.timeline import build_timeline

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Preparing one import
# ---------------------------------------------------------------------------


def relink_media(
    chunk: str, session_dir: str, resolver: MediaResolver | None
) -> tuple[str, list[Diagnostic]]:
    """Point every ``FILE`` reference at the location ``resolver`` finds.

    Unresolved references are left untouched and reported.
    """
    if resolver is None:
        return chunk, []
    diagnostics: list[Diagnostic] = []
    for path in media_paths(chunk):
        resolved = resolver.resolve(path, session_dir)
        if resolved is None:
            exc = MediaUnresolved(path)
            logger.warning("Media unresolved: %s", path)
            diagnostics.append(Diagnostic(MEDIA_UNRESOLVED, str(exc), subject=path))
        elif resolved != path:
            chunk = replace_media_path(chunk, path, resolved)
    return chunk, diagnostics


def prepare_import(
    track: SourceTrack,
    session: Session,
    resolver: MediaResolver | None,
    first_free_pool_id: int,
) -> tuple[str, list[Diagnostic]]:
    """Turn a source track into a chunk ready for the host."""
    chunk = sanitize_track(track.content_chunk)
    chunk, diagnostics = relink_media(chunk, session.directory, resolver)
    chunk = shift_track(chunk, session.offset.time_seconds)

    chunk, payloads, mapping = renumber_pools(
        chunk, session.envelopes_for(track), first_free_pool_id
    )
    if payloads:
        indent = child_indent(chunk)
        attached: list[str] = []
        for payload in payloads:
            attached.extend(reindent(split_lines(payload), indent))
        chunk = insert_before_close(chunk, attached)
        logger.debug("Attached pooled envelopes %s to %s", mapping, track.name)
    return chunk, diagnostics


# ---------------------------------------------------------------------------
# One destination
# ---------------------------------------------------------------------------


def _discard(host: TrackHost, handles: Sequence[str]) -> None:
    for handle in handles:
        host.delete_track(handle)


def _valid_cells(
    cells: list[tuple[int, Cell]], sessions: Sequence[Session]
) -> list[tuple[int, Cell]]:
    valid = []
    for session_index, cell in cells:
        if session_index >= len(sessions):
            logger.warning("Assignment references missing session %d", session_index)
        elif not 0 <= cell.source < len(sessions[session_index].tracks):
            logger.warning(
                "Assignment references missing source %d in %s",
                cell.source,
                sessions[session_index].name,
            )
        else:
            valid.append((session_index, cell))
    return valid


def _import_cells(
    host: TrackHost,
    destination: DestinationTrack,
    cells: list[tuple[int, Cell]],
    sessions: Sequence[Session],
    resolver: MediaResolver | None,
    diagnostics: list[Diagnostic],
) -> list[str]:
    """Insert one track per cell above the destination; raises on a rejected chunk."""
    created: list[str] = []
    for session_index, cell in cells:
        session = sessions[session_index]
        chunk, media_diagnostics = prepare_import(
            session.tracks[cell.source], session, resolver, host.max_pool_id() + 1
        )
        diagnostics.extend(media_diagnostics)
        handle = host.insert_track(host.index_of(destination.handle))
        created.append(handle)
        try:
            host.set_chunk(handle, chunk)
        except ChunkApplyRejected:
            _discard(host, created)
            raise
    return created


def _align_lanes(
    host: TrackHost, handles: Sequence[str], guid_factory: Callable[[], str]
) -> None:
    chunks = {h: host.get_chunk(h) for h in handles}
    target = max(highest_active_lane(c) for c in chunks.values())
    for handle, chunk in chunks.items():
        if highest_active_lane(chunk) < target:
            host.set_chunk(handle, align_to_lane(chunk, target, guid_factory))


def _merge(host: TrackHost, master: str, extras: Sequence[str]) -> None:
    chunk = host.get_chunk(master)
    for extra in extras:
        chunk = merge_track_into(chunk, host.get_chunk(extra))
    host.set_chunk(master, chunk)
    _discard(host, extras)


def _apply_destination_settings(
    host: TrackHost,
    destination: DestinationTrack,
    master: str,
    name: str,
    group_flags: str | None,
    isbus: str | None,
    keep_fx: bool,
) -> None:
    chunk = set_track_name(host.get_chunk(master), name)
    chunk = set_field(chunk, "ISBUS", isbus or "ISBUS 0 0")
    chunk = replace_group_flags(chunk, group_flags)
    host.set_chunk(master, chunk)
    host.copy_routing(destination.handle, master, keep_fx=keep_fx)


def _retire_destination(host: TrackHost, destination: DestinationTrack) -> None:
    chunk = host.get_chunk(destination.handle)
    if folder_depth(chunk) != 0:
        # the merged track already carries the folder line
        host.set_chunk(destination.handle, replace_field(chunk, "ISBUS", "ISBUS 0 0"))
    host.delete_track(destination.handle)


def consolidate_destination(
    host: TrackHost,
    destination: DestinationTrack,
    cells: list[tuple[int, Cell]],
    sessions: Sequence[Session],
    resolver: MediaResolver | None = None,
    config: MergeConfig = DEFAULT_CONFIG,
    guid_factory: Callable[[], str] = new_guid,
) -> tuple[str | None, list[Diagnostic]]:
    """Replace one destination by the merge of its assigned sources.

    Returns:
        ``(handle of the merged track, diagnostics)``.  The handle is
        ``None`` when nothing was imported or the destination was skipped.
    """
    diagnostics: list[Diagnostic] = []
    cells = _valid_cells(cells, sessions)
    if not cells:
        return None, diagnostics
    dest_chunk = host.get_chunk(destination.handle)
    group_flags = find_field_line(dest_chunk, "GROUP_FLAGS")
    isbus = find_field_line(dest_chunk, "ISBUS")

    created: list[str] = []
    try:
        created = _import_cells(host, destination, cells, sessions, resolver, diagnostics)
        if not created:
            return None, diagnostics

        master, extras = created[0], created[1:]
        if extras and config.align_lanes:
            _align_lanes(host, created, guid_factory)
        if extras:
            _merge(host, master, extras)
            created = [master]

        first_session, first_cell = cells[0]
        name = destination.name
        if first_cell.options.keep_name:
            name = sessions[first_session].tracks[first_cell.source].name
        _apply_destination_settings(
            host, destination, master, name, group_flags, isbus, first_cell.options.keep_fx
        )
        _retire_destination(host, destination)
    except ChunkApplyRejected as exc:
        _discard(host, [h for h in created if _exists(host, h)])
        logger.warning("Skipping %s: %s", destination.name, exc)
        diagnostics.append(
            Diagnostic(
                CHUNK_APPLY_REJECTED, str(exc) or "chunk rejected", subject=destination.name
            )
        )
        return None, diagnostics

    logger.info("Consolidated %d import(s) onto %s", len(cells), destination.name)
    return master, diagnostics


def _exists(host: TrackHost, handle: str) -> bool:
    try:
        host.index_of(handle)
    except KeyError:
        return False
    return True


# ---------------------------------------------------------------------------
# Whole commit
# ---------------------------------------------------------------------------


def consolidate(
    host: TrackHost,
    destinations: Sequence[DestinationTrack],
    sessions: Sequence[Session],
    assignment: Assignment,
    resolver: MediaResolver | None = None,
    config: MergeConfig = DEFAULT_CONFIG,
    locked: frozenset[int] = frozenset(),
    guid_factory: Callable[[], str] = new_guid,
) -> ConsolidationReport:
    """Commit ``assignment`` into the host project.

    Destinations the user locked are never overwritten, even by manual cells.

    Args:
        host: The template's track owner.
        destinations: Snapshot the assignment rows refer to.
        sessions: Sessions in queue order, offsets already planned.
        assignment: The destination × session grid.
        resolver: Media relinking; ``None`` keeps paths as they are.
        config: Merge options (lane alignment, unused deletion, timeline).
        locked: Destination indices protected from unused deletion.
        guid_factory: Source of fresh item GUIDs for lane copies.

    Returns:
        :class:`ConsolidationReport` with per-destination outcomes.
    """
    processed: list[str] = []
    skipped: list[str] = []
    created: list[str] = []
    diagnostics: list[Diagnostic] = []

    for destination in destinations:
        cells = assignment.cells_for(destination.index)
        if not cells:
            continue
        if destination.locked:
            logger.warning("Not overwriting locked destination %s", destination.name)
            continue
        master, dest_diagnostics = consolidate_destination(
            host, destination, cells, sessions, resolver, config, guid_factory
        )
        diagnostics.extend(dest_diagnostics)
        if master is None:
            if any(d.code == CHUNK_APPLY_REJECTED for d in dest_diagnostics):
                skipped.append(destination.name)
            continue
        processed.append(destination.name)
        created.append(master)

    deleted: list[str] = []
    if config.delete_unused:
        for destination in destinations:
            if destination.index in assignment or destination.is_folder:
                continue
            if destination.locked or destination.index in locked:
                continue
            host.delete_track(destination.handle)
            deleted.append(destination.name)
        logger.info("Deleted %d unused destination(s)", len(deleted))

    timeline_imported = False
    if config.import_timeline and sessions:
        host.import_timeline(build_timeline(sessions))
        timeline_imported = True

    report = ConsolidationReport(
        processed=tuple(processed),
        skipped=tuple(skipped),
        deleted_unused=tuple(deleted),
        created=tuple(created),
        diagnostics=tuple(diagnostics),
        timeline_imported=timeline_imported,
    )
    logger.info("Consolidation finished: %s", report.summary)
    return report
