"""core/consolidation/chunk_edit.py — Textual edits on ``<TRACK`` chunks.

Every function takes a chunk string and returns a new chunk string.  Only
the track's own field lines (depth 1) are touched unless stated otherwise;
nested items, envelopes and FX chains are carried through verbatim.
"""

from __future__ import annotations

from core.rpp.chunks import (
    RawBlock,
    field_tokens,
    find_field_line,
    indent_of,
    is_close,
    iter_child_blocks,
    join_lines,
    opening_type,
    parse_int,
    quote_token,
    split_lines,
    tokenize,
    top_level_fields,
)

DEFAULT_FIELD_INDENT = "  "

# Applied by sanitize_track in this order.
_SANITIZED_FIELDS: tuple[tuple[str, str], ...] = (
    ("ISBUS", "ISBUS 0 0"),
    ("RECARM", "RECARM 0"),
    ("SHOWINMIX", "SHOWINMIX 1"),
    ("SHOWINTCP", "SHOWINTCP 1"),
)
_ROUTING_FIELDS = ("AUXRECV", "HWOUT")


# ---------------------------------------------------------------------------
# Field lines
# ---------------------------------------------------------------------------


def _field_indent(lines: list[str]) -> str:
    for line in lines[1:]:
        if line.strip() and not is_close(line):
            return indent_of(line)
    return indent_of(lines[0]) + DEFAULT_FIELD_INDENT


def _first_child_line(lines: list[str]) -> int:
    """Index of the first nested block opening (or the closing line)."""
    for i in range(1, len(lines)):
        if lines[i].lstrip().startswith("<"):
            return i
    return len(lines) - 1


def field_values(chunk: str, key: str) -> list[str] | None:
    """Tokens after ``KEY`` on the first top-level ``KEY`` line, or ``None``."""
    line = find_field_line(chunk, key)
    return field_tokens(line, key) if line is not None else None


def replace_field(chunk: str, key: str, new_line: str) -> str:
    """Replace every top-level ``KEY …`` line with ``new_line`` (indent preserved)."""
    lines = split_lines(chunk)
    for i, line in top_level_fields(chunk):
        if field_tokens(line, key) is not None:
            lines[i] = indent_of(line) + new_line.strip()
    return join_lines(lines)


def has_field(chunk: str, key: str) -> bool:
    return find_field_line(chunk, key) is not None


def set_field(chunk: str, key: str, new_line: str, after: str | None = None) -> str:
    """Replace ``KEY`` or, when missing, insert ``new_line``.

    The new line goes after the ``after`` field when present, else after the
    last field line before the first nested block.
    """
    if has_field(chunk, key):
        return replace_field(chunk, key, new_line)
    lines = split_lines(chunk)
    indent = _field_indent(lines)
    position = _first_child_line(lines)
    if after is not None:
        for i, line in top_level_fields(chunk):
            if field_tokens(line, after) is not None:
                position = i + 1
                break
    lines.insert(position, indent + new_line.strip())
    return join_lines(lines)


def remove_fields(chunk: str, key: str) -> str:
    """Drop every top-level ``KEY …`` line."""
    doomed = {i for i, line in top_level_fields(chunk) if field_tokens(line, key) is not None}
    return join_lines([line for i, line in enumerate(split_lines(chunk)) if i not in doomed])


def field_lines(chunk: str, key: str) -> list[str]:
    """All top-level ``KEY …`` lines, stripped."""
    return [
        line.strip()
        for _i, line in top_level_fields(chunk)
        if field_tokens(line, key) is not None
    ]


def add_field_lines(chunk: str, new_lines: list[str]) -> str:
    """Insert ``new_lines`` after the last field line before the first nested block."""
    if not new_lines:
        return chunk
    lines = split_lines(chunk)
    indent = _field_indent(lines)
    position = _first_child_line(lines)
    lines[position:position] = [indent + line.strip() for line in new_lines]
    return join_lines(lines)


# ---------------------------------------------------------------------------
# Track-level semantics
# ---------------------------------------------------------------------------


def set_track_name(chunk: str, name: str) -> str:
    return set_field(chunk, "NAME", f"NAME {quote_token(name)}")


def folder_depth(chunk: str) -> int:
    """Folder depth change of the track: second field of ``ISBUS`` (0 when absent)."""
    values = field_values(chunk, "ISBUS")
    if not values or len(values) < 2:
        return 0
    return parse_int(values[1])


def is_hidden(chunk: str) -> bool:
    """Hidden in both mixer and track list (``SHOWINMIX 0 …`` and ``SHOWINTCP 0``)."""
    mix = field_values(chunk, "SHOWINMIX")
    tcp = field_values(chunk, "SHOWINTCP")
    return bool(mix and tcp and mix[0] == "0" and tcp[0] == "0")


def sanitize_track(chunk: str) -> str:
    """Neutralise an imported track.

    Folder depth is reset, record arm cleared, the track made visible, and
    its sends and hardware outputs removed, since those point at tracks of
    the source project.
    """
    for key in _ROUTING_FIELDS:
        chunk = remove_fields(chunk, key)
    for key, line in _SANITIZED_FIELDS:
        if key == "ISBUS":
            chunk = set_field(chunk, key, line)
            continue
        values = field_values(chunk, key)
        if values is None:
            continue
        chunk = replace_field(chunk, key, " ".join([line, *values[1:]]))
    return chunk


def replace_group_flags(chunk: str, group_flags_line: str | None) -> str:
    """Copy the destination's ``GROUP_FLAGS`` line; inserted after ``VU`` when missing."""
    if not group_flags_line:
        return chunk
    return set_field(chunk, "GROUP_FLAGS", group_flags_line, after="VU")


# ---------------------------------------------------------------------------
# Child blocks
# ---------------------------------------------------------------------------


def child_blocks(chunk: str, block_type: str | None = None) -> list[RawBlock]:
    """Direct child blocks of the track, optionally filtered by type."""
    blocks = list(iter_child_blocks(split_lines(chunk)))
    if block_type is None:
        return blocks
    return [b for b in blocks if b.block_type == block_type]


def remove_child_blocks(chunk: str, block_type: str) -> str:
    lines = split_lines(chunk)
    doomed: set[int] = set()
    for block in child_blocks(chunk, block_type):
        doomed.update(range(block.start, block.end + 1))
    return join_lines([line for i, line in enumerate(lines) if i not in doomed])


def insert_before_close(chunk: str, block_lines: list[str]) -> str:
    """Insert raw lines right before the track's closing ``>``."""
    lines = split_lines(chunk)
    close = max(i for i, line in enumerate(lines) if is_close(line))
    lines[close:close] = block_lines
    return join_lines(lines)


def insert_child_block(chunk: str, block_lines: list[str], before: str | None = None) -> str:
    """Insert a child block before the first child of type ``before`` (or at the end)."""
    if before is not None:
        for block in child_blocks(chunk, before):
            lines = split_lines(chunk)
            lines[block.start : block.start] = block_lines
            return join_lines(lines)
    return insert_before_close(chunk, block_lines)


def reindent(block_lines: list[str] | tuple[str, ...], indent: str) -> list[str]:
    """Re-base a block's indentation so its opening line sits at ``indent``."""
    base = indent_of(block_lines[0])
    out = []
    for line in block_lines:
        if line.startswith(base):
            out.append(indent + line[len(base) :])
        else:
            out.append(indent + line.lstrip())
    return out


def child_indent(chunk: str) -> str:
    return _field_indent(split_lines(chunk))


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


def media_paths(chunk: str) -> list[str]:
    """Every ``FILE`` path referenced anywhere in the chunk, in order, without duplicates."""
    paths: list[str] = []
    for line in split_lines(chunk):
        tokens = tokenize(line)
        if len(tokens) >= 2 and tokens[0] == "FILE" and tokens[1].strip():
            path = tokens[1].strip()
            if path not in paths:
                paths.append(path)
    return paths


def replace_media_path(chunk: str, old: str, new: str) -> str:
    """Point every ``FILE`` line referencing ``old`` at ``new``."""
    lines = split_lines(chunk)
    for i, line in enumerate(lines):
        tokens = tokenize(line)
        if len(tokens) >= 2 and tokens[0] == "FILE" and tokens[1].strip() == old:
            lines[i] = " ".join([f"{indent_of(line)}FILE", quote_token(new), *tokens[2:]])
    return join_lines(lines)


def is_track_chunk(chunk: str) -> bool:
    lines = split_lines(chunk)
    return bool(lines) and opening_type(lines[0]) == "TRACK"
