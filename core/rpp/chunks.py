"""core/rpp/chunks.py — Line-level primitives for the nested project text format.

Format recap
────────────
The format is line oriented.  A block opens with ``<BLOCKTYPE …`` and closes
with a line that is exactly ``>``; blocks nest::

    <TRACK
      NAME "Kick In"
      <ITEM
        POSITION 0
        LENGTH 16
        <SOURCE WAVE
          FILE "Audio/kick.wav"
        >
      >
    >

Depth is tracked by counting every line that begins with ``<`` as +1 and
every ``>`` line as −1.  A block is closed only when the depth returns to 0
relative to its own opening line.

Pure module — string in, string/list out.  The ingestion layer reads files,
then delegates all text handling here.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from core.errors import BlockUnterminated

_OPEN_RE = re.compile(r"^\s*<\s*([A-Za-z0-9_]+)")
_CLOSE_RE = re.compile(r"^\s*>\s*$")
_TOKEN_RE = re.compile(r'"([^"]*)"|\'([^\']*)\'|`([^`]*)`|(\S+)')


# ---------------------------------------------------------------------------
# Text and line helpers
# ---------------------------------------------------------------------------


def normalize_text(text: str) -> str:
    """Strip a UTF-8 BOM and convert every line ending to ``\\n``."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> list[str]:
    """Split normalised text into lines (no trailing empty line for a final ``\\n``)."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def join_lines(lines: list[str]) -> str:
    """Inverse of :func:`split_lines`; chunks always end with a newline."""
    return "\n".join(lines) + "\n"


def opening_type(line: str) -> str | None:
    """Return ``"ITEM"`` for a ``<ITEM`` line, ``None`` for any other line."""
    match = _OPEN_RE.match(line)
    return match.group(1).upper() if match else None


def is_close(line: str) -> bool:
    return bool(_CLOSE_RE.match(line))


def indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


# ---------------------------------------------------------------------------
# Tokens and numbers
# ---------------------------------------------------------------------------


def tokenize(line: str) -> list[str]:
    """Split a field line into tokens, honouring ``"…"``, ``'…'`` and `` `…` `` quoting.

    Example:
        >>> tokenize('MARKER 1 4.0 "Verse 1" 1')
        ['MARKER', '1', '4.0', 'Verse 1', '1']
    """
    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(line):
        for group in match.groups():
            if group is not None:
                tokens.append(group)
                break
    return tokens


def quote_token(value: str) -> str:
    """Quote ``value`` with a quote character it does not contain."""
    for quote in ('"', "'", "`"):
        if quote not in value:
            return f"{quote}{value}{quote}"
    return '"' + value.replace('"', "'") + '"'


def format_number(value: float) -> str:
    """Format a float without trailing zeros (``12.50`` → ``"12.5"``, ``3.0`` → ``"3"``)."""
    text = f"{value:.10f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def parse_float(token: str, default: float = 0.0) -> float:
    try:
        return float(token)
    except (TypeError, ValueError):
        return default


def parse_int(token: str, default: int = 0) -> int:
    try:
        return int(float(token))
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Block scanning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawBlock:
    """A block cut out of a larger text, before it is classified."""

    block_type: str
    start: int
    """0-based index of the opening line in the scanned line list."""

    end: int
    """0-based index of the closing ``>`` line (inclusive)."""

    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return join_lines(list(self.lines))


def find_block_end(lines: list[str], start: int) -> int:
    """Return the index of the ``>`` line closing the block opened at ``start``.

    Raises:
        BlockUnterminated: If the text ends before the depth returns to 0.
    """
    depth = 0
    for i in range(start, len(lines)):
        line = lines[i]
        if line.lstrip().startswith("<"):
            depth += 1
        elif is_close(line):
            depth -= 1
            if depth == 0:
                return i
    raise BlockUnterminated(opening_type(lines[start]) or "?", start + 1)


def read_block(lines: list[str], start: int) -> RawBlock:
    """Cut the block opened at ``lines[start]`` out of ``lines``."""
    end = find_block_end(lines, start)
    return RawBlock(
        block_type=opening_type(lines[start]) or "",
        start=start,
        end=end,
        lines=tuple(lines[start : end + 1]),
    )


def iter_child_blocks(lines: list[str] | tuple[str, ...]) -> Iterator[RawBlock]:
    """Yield the direct child blocks of the block spanning ``lines``.

    ``lines[0]`` is the parent's opening line and ``lines[-1]`` its closing
    ``>``.  Unterminated children are not yielded.
    """
    body = list(lines)
    i = 1
    while i < len(body) - 1:
        if opening_type(body[i]) is not None:
            try:
                block = read_block(body, i)
            except BlockUnterminated:
                return
            yield block
            i = block.end + 1
        else:
            i += 1


def find_blocks(text: str, block_type: str) -> list[RawBlock]:
    """Return every block of ``block_type`` at any depth, outermost first.

    Once a block is found the scan continues after its closing line, so a
    block is never reported inside another block of the same type.
    """
    wanted = block_type.upper()
    lines = split_lines(text)
    found: list[RawBlock] = []
    i = 0
    while i < len(lines):
        if opening_type(lines[i]) == wanted:
            try:
                block = read_block(lines, i)
            except BlockUnterminated:
                break
            found.append(block)
            i = block.end + 1
        else:
            i += 1
    return found


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------


def field_tokens(line: str, key: str) -> list[str] | None:
    """Return the tokens after ``key`` when ``line`` is a ``KEY …`` field line."""
    tokens = tokenize(line)
    if tokens and tokens[0] == key:
        return tokens[1:]
    return None


def top_level_fields(chunk: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_index, line)`` for the field lines directly inside the outer block."""
    lines = split_lines(chunk)
    depth = 0
    for i, line in enumerate(lines):
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if is_close(line):
            depth -= 1
            continue
        if depth == 1:
            yield i, line


def find_field_line(chunk: str, key: str) -> str | None:
    """Return the first top-level ``KEY …`` line of ``chunk`` (stripped), if any."""
    for _i, line in top_level_fields(chunk):
        if field_tokens(line, key) is not None:
            return line.strip()
    return None


def read_name(chunk: str, default: str = "(unnamed)") -> str:
    """Extract the block's ``NAME`` field.

    Only field lines before the first nested block are considered.  A quoted
    value is preferred; an unquoted value is trimmed; blank or missing names
    fall back to ``default``.
    """
    lines = split_lines(chunk)
    start = next((i for i, line in enumerate(lines) if opening_type(line)), None)
    if start is None:
        return default
    for line in lines[start + 1 :]:
        if line.lstrip().startswith("<"):
            break
        stripped = line.strip()
        if not stripped:
            continue
        quoted = re.match(r'^NAME\s+"(.*)"\s*$', stripped)
        if quoted:
            return quoted.group(1) or default
        bare = re.match(r"^NAME\s+(.+)$", stripped)
        if bare:
            value = bare.group(1).strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "'`":
                value = value[1:-1]
            return value or default
    return default


def read_numeric_field(lines: tuple[str, ...] | list[str], key: str, default: float) -> float:
    """Return the first numeric value of the ``KEY`` field directly inside a block."""
    depth = 0
    for line in lines:
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if is_close(line):
            depth -= 1
            continue
        if depth == 1:
            tokens = field_tokens(line, key)
            if tokens:
                return parse_float(tokens[0], default)
    return default
