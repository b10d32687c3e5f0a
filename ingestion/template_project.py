"""ingestion/template_project.py — The mix template as an editable track host.

Holds the template text split into three parts, the project header
(everything before the first track), the track list, and the tail (what
follows the last track, including the closing ``>``), and implements the
:class:`core.consolidation.host.TrackHost` protocol over it:

- tracks are addressed by stable handles that survive inserts and deletes;
- ``AUXRECV`` lines reference their source track by index, so every insert
  and delete renumbers them, and receives from a deleted track are dropped;
- deleting a track keeps the folder structure balanced: a folder header's
  depth change moves to the next track, a folder end's to the previous one.

Side effects: :meth:`TemplateProject.from_file` reads and :meth:`save`
writes the template file.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from core.consolidation.chunk_edit import (
    add_field_lines,
    child_blocks,
    child_indent,
    field_lines,
    folder_depth,
    insert_child_block,
    is_track_chunk,
    reindent,
    remove_child_blocks,
    remove_fields,
    set_field,
)
from core.consolidation.shift import pool_instance_ids
from core.errors import BlockUnterminated, ChunkApplyRejected
from core.rpp.chunks import (
    find_block_end,
    find_blocks,
    find_field_line,
    format_number,
    indent_of,
    is_close,
    join_lines,
    normalize_text,
    opening_type,
    parse_int,
    read_numeric_field,
    split_lines,
    tokenize,
)
from core.tempo.timeline import Timeline, render_marker, render_tempo_envelope
from ingestion.session_loader import read_project_text

logger = logging.getLogger(__name__)

TRACK_INDENT = "  "
ROUTING_FIELDS = ("VOLPAN", "MUTESOLO", "IPHASE", "MAINSEND", "PEAKCOL")

_EMPTY_TRACK_FIELDS = (
    'NAME ""',
    "PEAKCOL 16576",
    "BEAT -1",
    "AUTOMODE 0",
    "VOLPAN 1 0 -1 -1 1",
    "MUTESOLO 0 0 0",
    "IPHASE 0",
    "ISBUS 0 0",
    "SHOWINMIX 1 0.6667 0.5 1 0.5 0 0 0",
    "SHOWINTCP 1",
    "SEL 0",
    "REC 0 0 1 0 0 0 0 0",
    "VU 2",
    "NCHAN 2",
    "FX 1",
    "MAINSEND 1 0",
)


def _guid() -> str:
    return "{" + str(uuid.uuid4()).upper() + "}"


def empty_track_lines(indent: str = TRACK_INDENT) -> list[str]:
    """Lines of a fresh, empty track."""
    return (
        [f"{indent}<TRACK {_guid()}"]
        + [f"{indent}  {line}" for line in _EMPTY_TRACK_FIELDS]
        + [f"{indent}>"]
    )


@dataclass
class _Track:
    handle: str
    lines: list[str]
    leading: list[str] = field(default_factory=list)
    """Non-track lines that sat between the previous track and this one."""


class TemplateProject:
    """In-memory template project implementing the track host protocol.

    Usage:
        template = TemplateProject.from_file("Mix Template.rpp")
        handles = template.tracks()
        ...
        template.save("Merged.rpp")
    """

    def __init__(self, text: str, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._head: list[str] = []
        self._tracks: list[_Track] = []
        self._tail: list[str] = []
        self._load(split_lines(normalize_text(text)))

    @classmethod
    def from_file(cls, path: str | Path) -> TemplateProject:
        """Read a template file.

        Raises:
            FileUnreadable: If the file cannot be read.
        """
        project = cls(read_project_text(path), path)
        logger.info("Loaded template %s with %d track(s)", path, len(project._tracks))
        return project

    @property
    def directory(self) -> str:
        return str(self.path.parent) if self.path is not None else ""

    # -- parsing -------------------------------------------------------------

    def _load(self, lines: list[str]) -> None:
        stop = len(lines)
        for i, line in enumerate(lines):
            if opening_type(line) == "REAPER_PROJECT":
                try:
                    stop = find_block_end(lines, i)
                except BlockUnterminated:
                    logger.warning("Template root block is unterminated")
                break

        pending: list[str] = []
        i = 0
        while i < stop:
            line = lines[i]
            if opening_type(line) == "TRACK":
                try:
                    end = find_block_end(lines[:stop], i)
                except BlockUnterminated:
                    pending.append(line)
                    i += 1
                    continue
                if not self._tracks:
                    self._head.extend(pending)
                    pending = []
                self._tracks.append(_Track(uuid.uuid4().hex, lines[i : end + 1], pending))
                pending = []
                i = end + 1
                continue
            pending.append(line)
            i += 1

        if not self._tracks:
            self._head = pending
        else:
            self._tail = pending
        self._tail.extend(lines[stop:])

    # -- TrackHost -----------------------------------------------------------

    def tracks(self) -> list[str]:
        """Track handles in project order."""
        return [t.handle for t in self._tracks]

    def track_chunks(self) -> list[tuple[str, str]]:
        return [(t.handle, join_lines(t.lines)) for t in self._tracks]

    def index_of(self, handle: str) -> int:
        for i, track in enumerate(self._tracks):
            if track.handle == handle:
                return i
        raise KeyError(f"Unknown track handle {handle!r}")

    def get_chunk(self, handle: str) -> str:
        return join_lines(self._tracks[self.index_of(handle)].lines)

    def set_chunk(self, handle: str, chunk: str) -> None:
        """Replace a track's text after checking it is one well-formed ``<TRACK`` block."""
        lines = split_lines(normalize_text(chunk))
        while lines and not lines[-1].strip():
            lines.pop()
        if not lines or not is_track_chunk(lines[0]):
            raise ChunkApplyRejected("chunk does not start with a <TRACK block")
        try:
            end = find_block_end(lines, 0)
        except BlockUnterminated as exc:
            raise ChunkApplyRejected(str(exc)) from exc
        if end != len(lines) - 1:
            raise ChunkApplyRejected("unexpected content after the track block")
        self._tracks[self.index_of(handle)].lines = lines

    def insert_track(self, index: int) -> str:
        index = max(0, min(index, len(self._tracks)))
        self._renumber_receives(lambda src: src + 1 if src >= index else src)
        track = _Track(uuid.uuid4().hex, empty_track_lines())
        self._tracks.insert(index, track)
        return track.handle

    def delete_track(self, handle: str) -> None:
        index = self.index_of(handle)
        track = self._tracks[index]
        delta = folder_depth(join_lines(track.lines))
        if delta > 0 and index + 1 < len(self._tracks):
            self._add_depth(self._tracks[index + 1], delta)
        elif delta < 0 and index > 0:
            self._add_depth(self._tracks[index - 1], delta)

        del self._tracks[index]
        if track.leading:
            target = self._tracks[index].leading if index < len(self._tracks) else self._tail
            target[:0] = track.leading

        def remap(src: int) -> int | None:
            if src == index:
                return None
            return src - 1 if src > index else src

        self._renumber_receives(remap)

    def copy_routing(self, src: str, dst: str, keep_fx: bool = False) -> None:
        """Make ``dst`` route like ``src``.

        Copies the FX chain (unless ``keep_fx``), the track controls, the
        receives and hardware outputs of ``src``, and duplicates every send
        other tracks make to ``src`` so they also feed ``dst``.
        """
        src_chunk = self.get_chunk(src)
        dst_chunk = self.get_chunk(dst)

        if not keep_fx:
            dst_chunk = remove_child_blocks(dst_chunk, "FXCHAIN")
            indent = child_indent(dst_chunk)
            for fx in child_blocks(src_chunk, "FXCHAIN"):
                dst_chunk = insert_child_block(dst_chunk, reindent(fx.lines, indent), before="ITEM")

        for key in ROUTING_FIELDS:
            line = find_field_line(src_chunk, key)
            if line is not None:
                dst_chunk = set_field(dst_chunk, key, line)

        dst_chunk = remove_fields(remove_fields(dst_chunk, "AUXRECV"), "HWOUT")
        dst_chunk = add_field_lines(
            dst_chunk, field_lines(src_chunk, "AUXRECV") + field_lines(src_chunk, "HWOUT")
        )
        self.set_chunk(dst, dst_chunk)

        src_index, dst_index = self.index_of(src), self.index_of(dst)
        for track in self._tracks:
            if track.handle in (src, dst):
                continue
            chunk = join_lines(track.lines)
            sends = [
                line
                for line in field_lines(chunk, "AUXRECV")
                if parse_int(tokenize(line)[1], -1) == src_index
            ]
            if sends:
                duplicates = [_with_receive_source(line, dst_index) for line in sends]
                track.lines = split_lines(add_field_lines(chunk, duplicates))

    def max_pool_id(self) -> int:
        text = self.render()
        ids = {int(read_numeric_field(b.lines, "ID", 0)) for b in find_blocks(text, "POOLEDENV")}
        ids |= pool_instance_ids(text)
        return max(ids, default=0)

    def import_timeline(self, timeline: Timeline) -> None:
        """Replace the project's tempo envelope, ``TEMPO`` line and markers."""
        head = self._head
        start = 1 if head and opening_type(head[0]) == "REAPER_PROJECT" else 0
        kept: list[str] = head[:start]
        insert_at: int | None = None
        i = start
        while i < len(head):
            line = head[i]
            block_type = opening_type(line)
            if block_type is not None:
                try:
                    end = find_block_end(head, i)
                except BlockUnterminated:
                    end = len(head) - 1
                if block_type == "TEMPOENVEX":
                    insert_at = len(kept) if insert_at is None else insert_at
                else:
                    kept.extend(head[i : end + 1])
                i = end + 1
                continue
            tokens = tokenize(line)
            if tokens and tokens[0] == "MARKER":
                insert_at = len(kept) if insert_at is None else insert_at
            elif tokens and tokens[0] == "TEMPO" and timeline.tempo_points:
                first = timeline.tempo_points[0]
                sig = first.time_sig
                kept.append(
                    f"{indent_of(line)}TEMPO {format_number(first.bpm)} "
                    f"{sig.numerator if sig else 4} {sig.denominator if sig else 4}"
                )
            else:
                kept.append(line)
            i += 1

        block: list[str] = []
        if timeline.tempo_points:
            block.extend(render_tempo_envelope(timeline.tempo_points, TRACK_INDENT))
        for marker in timeline.markers:
            block.extend(render_marker(marker, TRACK_INDENT))
        if insert_at is None:
            insert_at = len(kept)
        kept[insert_at:insert_at] = block
        self._head = kept
        logger.info(
            "Imported timeline: %d tempo point(s), %d marker(s)",
            len(timeline.tempo_points),
            len(timeline.markers),
        )

    # -- output --------------------------------------------------------------

    def render(self) -> str:
        lines = list(self._head)
        for track in self._tracks:
            lines.extend(track.leading)
            lines.extend(track.lines)
        lines.extend(self._tail)
        return join_lines(lines)

    def save(self, path: str | Path | None = None) -> Path:
        """Write the project; defaults to the file it was loaded from."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("No path given and the template was not loaded from a file")
        target.write_text(self.render(), encoding="utf-8")
        logger.info("Wrote template %s", target)
        return target

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _add_depth(track: _Track, delta: int) -> None:
        chunk = join_lines(track.lines)
        depth = folder_depth(chunk) + delta
        mode = 1 if depth > 0 else 2 if depth < 0 else 0
        track.lines = split_lines(set_field(chunk, "ISBUS", f"ISBUS {mode} {depth}"))

    def _renumber_receives(self, remap: Callable[[int], int | None]) -> None:
        for track in self._tracks:
            changed = False
            lines: list[str] = []
            depth = 0
            for line in track.lines:
                if line.lstrip().startswith("<"):
                    depth += 1
                elif is_close(line):
                    depth -= 1
                else:
                    tokens = tokenize(line)
                    if depth == 1 and len(tokens) > 1 and tokens[0] == "AUXRECV":
                        new_src = remap(parse_int(tokens[1], -1))
                        changed = True
                        if new_src is None:
                            continue
                        line = _with_receive_source(line, new_src)
                lines.append(line)
            if changed:
                track.lines = lines


def _with_receive_source(line: str, source_index: int) -> str:
    tokens = line.split()
    tokens[1] = str(source_index)
    return indent_of(line) + " ".join(tokens)

