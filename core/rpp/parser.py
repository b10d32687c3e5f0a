"""core/rpp/parser.py — Project text → Block list → Session.

Two stages:

1. :func:`parse_blocks` walks the project, descends into the root
   ``<REAPER_PROJECT`` wrapper and classifies the top-level entries it knows
   (tracks, the tempo envelope, pooled envelopes, ``TEMPO`` and ``MARKER``
   lines).  Anything else is skipped whole.
2. :func:`build_session` assembles a :class:`Session` from those blocks:
   region pairing, tempo map normalisation and the media filter.

Unterminated blocks never abort a parse — they are reported as
``block_unterminated`` diagnostics and skipped.
"""

from __future__ import annotations

from core.errors import BLOCK_UNTERMINATED, NO_CONTENT_FOUND, BlockUnterminated, Diagnostic
from core.rpp.chunks import (
    RawBlock,
    find_blocks,
    normalize_text,
    opening_type,
    parse_float,
    parse_int,
    read_block,
    read_name,
    read_numeric_field,
    split_lines,
    tokenize,
)
from core.rpp.types import (
    BaseTempo,
    Block,
    Marker,
    MarkerLine,
    PooledEnvelope,
    PooledEnvelopeBlock,
    Segment,
    Session,
    SourceTrack,
    TempoEnvelopeBlock,
    TempoLine,
    TempoPoint,
    TempoShape,
    TimeSignature,
    TrackBlock,
)

ROOT_BLOCK = "REAPER_PROJECT"
DEFAULT_TEMPO = BaseTempo(bpm=120.0, numerator=4, denominator=4)


# ---------------------------------------------------------------------------
# Block classifiers
# ---------------------------------------------------------------------------


def parse_track(raw: RawBlock) -> SourceTrack:
    """Build a :class:`SourceTrack` from a ``<TRACK`` block."""
    text = raw.text
    items = find_blocks(text, "ITEM")
    segments = tuple(
        Segment(
            position=read_numeric_field(item.lines, "POSITION", 0.0),
            length=read_numeric_field(item.lines, "LENGTH", 0.0),
            lane=int(read_numeric_field(item.lines, "FIXEDLANE", 0)),
        )
        for item in items
    )
    pools: set[int] = set()
    for line in raw.lines:
        tokens = tokenize(line)
        if len(tokens) >= 2 and tokens[0] == "POOLEDENVINST":
            pools.add(parse_int(tokens[1], -1))
    pools.discard(-1)
    return SourceTrack(
        name=read_name(text),
        content_chunk=text,
        has_media=any(opening_type(line) == "ITEM" for line in raw.lines[1:]),
        uses_pools=frozenset(pools),
        segments=segments,
    )


def parse_tempo_points(raw: RawBlock) -> tuple[TempoPoint, ...]:
    """Read the ``PT position bpm shape [packed]`` lines of a ``<TEMPOENVEX`` block."""
    points: list[TempoPoint] = []
    depth = 0
    for line in raw.lines:
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if line.strip() == ">":
            depth -= 1
            continue
        if depth != 1:
            continue
        tokens = tokenize(line)
        if len(tokens) < 3 or tokens[0] != "PT":
            continue
        shape_code = parse_int(tokens[3], 1) if len(tokens) > 3 else 1
        packed = parse_int(tokens[4], 0) if len(tokens) > 4 else 0
        points.append(
            TempoPoint(
                time_seconds=parse_float(tokens[1]),
                bpm=parse_float(tokens[2], DEFAULT_TEMPO.bpm),
                shape=TempoShape.from_code(shape_code),
                time_sig=TimeSignature.unpack(packed) if packed > 0 else None,
            )
        )
    return tuple(points)


def parse_pooled_envelope(raw: RawBlock) -> PooledEnvelope | None:
    """Return the ``<POOLEDENV`` payload keyed by its ``ID`` field, or ``None`` without one."""
    pool_id = int(read_numeric_field(raw.lines, "ID", -1))
    if pool_id < 0:
        return None
    return PooledEnvelope(pool_id=pool_id, chunk=raw.text)


def parse_tempo_line(tokens: list[str]) -> TempoLine:
    return TempoLine(
        BaseTempo(
            bpm=parse_float(tokens[1], DEFAULT_TEMPO.bpm) if len(tokens) > 1 else DEFAULT_TEMPO.bpm,
            numerator=parse_int(tokens[2], 4) if len(tokens) > 2 else 4,
            denominator=parse_int(tokens[3], 4) if len(tokens) > 3 else 4,
        )
    )


def parse_marker_line(tokens: list[str]) -> MarkerLine | None:
    """``MARKER index position name flags color …`` → :class:`MarkerLine`."""
    if len(tokens) < 3:
        return None
    return MarkerLine(
        index=parse_int(tokens[1]),
        pos=parse_float(tokens[2]),
        name=tokens[3] if len(tokens) > 3 else "",
        flags=parse_int(tokens[4]) if len(tokens) > 4 else 0,
        color=parse_int(tokens[5]) if len(tokens) > 5 else 0,
    )


def _classify(raw: RawBlock) -> Block | None:
    if raw.block_type == "TRACK":
        return TrackBlock(parse_track(raw))
    if raw.block_type == "TEMPOENVEX":
        return TempoEnvelopeBlock(parse_tempo_points(raw))
    if raw.block_type == "POOLEDENV":
        envelope = parse_pooled_envelope(raw)
        return PooledEnvelopeBlock(envelope) if envelope is not None else None
    return None


# ---------------------------------------------------------------------------
# Stage 1: blocks
# ---------------------------------------------------------------------------


def _project_body(lines: list[str], diagnostics: list[Diagnostic]) -> tuple[int, int]:
    """Return the ``[start, stop)`` line range holding the project's top level."""
    for i, line in enumerate(lines):
        block_type = opening_type(line)
        if block_type is None:
            continue
        if block_type != ROOT_BLOCK:
            break
        try:
            root = read_block(lines, i)
        except BlockUnterminated as exc:
            diagnostics.append(
                Diagnostic(BLOCK_UNTERMINATED, str(exc), subject=ROOT_BLOCK)
            )
            return i + 1, len(lines)
        return i + 1, root.end
    return 0, len(lines)


def parse_blocks(text: str, diagnostics: list[Diagnostic] | None = None) -> list[Block]:
    """Parse project text into its classified top-level blocks.

    Args:
        text: Raw project text (BOM and CRLF tolerated).
        diagnostics: Optional list receiving one ``block_unterminated``
            diagnostic per block that never closes.

    Returns:
        Blocks in file order.  Unknown block types are skipped.
    """
    if diagnostics is None:
        diagnostics = []
    lines = split_lines(normalize_text(text))
    start, stop = _project_body(lines, diagnostics)
    body = lines[start:stop]

    blocks: list[Block] = []
    i = 0
    while i < len(body):
        line = body[i]
        block_type = opening_type(line)
        if block_type is not None:
            try:
                raw = read_block(body, i)
            except BlockUnterminated:
                diagnostics.append(
                    Diagnostic(
                        BLOCK_UNTERMINATED,
                        f"Unterminated <{block_type} block opened at line {start + i + 1}",
                        subject=block_type,
                    )
                )
                i += 1
                continue
            block = _classify(raw)
            if block is not None:
                blocks.append(block)
            i = raw.end + 1
            continue

        tokens = tokenize(line)
        if tokens and tokens[0] == "TEMPO":
            blocks.append(parse_tempo_line(tokens))
        elif tokens and tokens[0] == "MARKER":
            marker = parse_marker_line(tokens)
            if marker is not None:
                blocks.append(marker)
        i += 1
    return blocks


# ---------------------------------------------------------------------------
# Stage 2: session assembly
# ---------------------------------------------------------------------------


def pair_markers(lines: list[MarkerLine]) -> tuple[Marker, ...]:
    """Fold region start/end line pairs into single region markers.

    A region start waits under its index until a later region line with the
    same index and an empty name closes it.  Starts that never close are
    dropped.  The result is ordered by position.
    """
    markers: list[Marker] = []
    pending: dict[int, MarkerLine] = {}
    for line in lines:
        if not line.is_region:
            markers.append(Marker(line.index, line.pos, line.name, color=line.color))
            continue
        start = pending.get(line.index)
        if start is not None and not line.name:
            del pending[line.index]
            markers.append(
                Marker(
                    index=start.index,
                    pos=start.pos,
                    name=start.name,
                    is_region=True,
                    region_end=line.pos,
                    color=start.color,
                )
            )
        else:
            pending[line.index] = line
    markers.sort(key=lambda m: (m.pos, m.index))
    return tuple(markers)


def normalize_tempo_map(
    points: tuple[TempoPoint, ...], base: BaseTempo
) -> tuple[TempoPoint, ...]:
    """Guarantee a point at 0 and a square last point."""
    ordered = sorted(points, key=lambda p: p.time_seconds)
    if not ordered or ordered[0].time_seconds > 0:
        ordered.insert(
            0,
            TempoPoint(0.0, base.bpm, TempoShape.SQUARE, base.time_signature),
        )
    last = ordered[-1]
    ordered[-1] = TempoPoint(last.time_seconds, last.bpm, TempoShape.SQUARE, last.time_sig)
    return tuple(ordered)


def build_session(text: str, path: str, only_with_media: bool = True) -> Session:
    """Parse one project text into a :class:`Session` (offset left at zero).

    Args:
        text: Raw project text.
        path: Path of the file, kept for media resolution and display.
        only_with_media: Drop tracks that hold no audio items.

    Returns:
        The session.  A session without qualifying tracks is returned empty
        with a ``no_content_found`` diagnostic.
    """
    diagnostics: list[Diagnostic] = []
    blocks = parse_blocks(text, diagnostics)

    base = DEFAULT_TEMPO
    points: tuple[TempoPoint, ...] = ()
    marker_lines: list[MarkerLine] = []
    all_tracks: list[SourceTrack] = []
    pooled: dict[int, PooledEnvelope] = {}
    tempo_seen = False

    for block in blocks:
        if isinstance(block, TempoLine):
            if not tempo_seen:
                base = block.tempo
                tempo_seen = True
        elif isinstance(block, MarkerLine):
            marker_lines.append(block)
        elif isinstance(block, TrackBlock):
            all_tracks.append(block.track)
        elif isinstance(block, TempoEnvelopeBlock):
            points = block.points
        elif isinstance(block, PooledEnvelopeBlock):
            pooled[block.envelope.pool_id] = block.envelope

    tracks = tuple(t for t in all_tracks if t.has_media or not only_with_media)
    if not tracks:
        diagnostics.append(
            Diagnostic(NO_CONTENT_FOUND, "No importable tracks found", subject=path)
        )

    return Session(
        path=path,
        base_tempo=base,
        tempo_map=normalize_tempo_map(points, base),
        markers=pair_markers(marker_lines),
        tracks=tracks,
        pooled_envelopes=pooled,
        duration_seconds=max((t.content_end for t in all_tracks), default=0.0),
        diagnostics=tuple(diagnostics),
    )

