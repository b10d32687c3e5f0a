"""core/consolidation/shift.py — Move a track's content along the timeline.

What moves when a session lands at ``time_offset`` seconds:

- ``POSITION`` of every ``<ITEM`` directly inside the track;
- ``PT`` breakpoints and ``POOLEDENVINST`` positions of the track's own
  envelopes.

Take envelopes live inside ``<ITEM`` blocks and are item-relative; pooled
payloads are relative to their instance.  Neither is shifted.

Also here: pooled-envelope id renumbering, which must run after the shift so
the attached payloads are never touched by it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from core.rpp.chunks import (
    format_number,
    indent_of,
    is_close,
    join_lines,
    opening_type,
    parse_float,
    parse_int,
    split_lines,
    tokenize,
)
from core.rpp.types import PooledEnvelope

_UNSHIFTED_CONTEXTS = frozenset({"ITEM", "POOLEDENV"})


def _rewrite_token(line: str, index: int, value: str) -> str:
    tokens = line.split()
    tokens[index] = value
    return indent_of(line) + " ".join(tokens)


def shift_track(chunk: str, delta: float) -> str:
    """Return ``chunk`` with its item and track-envelope positions moved by ``delta`` seconds."""
    if delta == 0:
        return chunk
    lines = split_lines(chunk)
    stack: list[str] = []
    for i, line in enumerate(lines):
        block_type = opening_type(line)
        if block_type is not None:
            stack.append(block_type)
            continue
        if is_close(line):
            if stack:
                stack.pop()
            continue
        tokens = tokenize(line)
        if not tokens:
            continue
        key = tokens[0]

        if key == "POSITION" and len(stack) == 2 and stack[-1] == "ITEM" and len(tokens) > 1:
            lines[i] = _rewrite_token(line, 1, format_number(parse_float(tokens[1]) + delta))
            continue

        if len(stack) < 2 or _UNSHIFTED_CONTEXTS.intersection(stack[1:]):
            continue
        if key == "PT" and len(tokens) > 1:
            lines[i] = _rewrite_token(line, 1, format_number(parse_float(tokens[1]) + delta))
        elif key == "POOLEDENVINST" and len(tokens) > 2:
            lines[i] = _rewrite_token(line, 2, format_number(parse_float(tokens[2]) + delta))
    return join_lines(lines)


def pool_instance_ids(chunk: str) -> set[int]:
    ids: set[int] = set()
    for line in split_lines(chunk):
        tokens = tokenize(line)
        if len(tokens) >= 2 and tokens[0] == "POOLEDENVINST":
            ids.add(parse_int(tokens[1]))
    return ids


def renumber_pools(
    chunk: str, envelopes: Sequence[PooledEnvelope], first_free_id: int
) -> tuple[str, list[str], dict[int, int]]:
    """Give the track's pooled envelopes ids starting at ``first_free_id``.

    Args:
        chunk: Track chunk referencing the pools through ``POOLEDENVINST``.
        envelopes: Payloads the track uses, in pool-id order.
        first_free_id: Lowest id not used by the host project.

    Returns:
        ``(chunk, payload_chunks, mapping)`` — the track chunk with its
        instance ids rewritten, the payload chunks with their ``ID`` fields
        rewritten, and the ``old → new`` id mapping.
    """
    mapping: dict[int, int] = {}
    for offset, envelope in enumerate(sorted(envelopes, key=lambda e: e.pool_id)):
        mapping[envelope.pool_id] = first_free_id + offset
    if not mapping:
        return chunk, [], mapping

    payloads = [_renumber_payload(e, mapping[e.pool_id]) for e in envelopes]
    return _renumber_instances(chunk, mapping), payloads, mapping


def _renumber_instances(chunk: str, mapping: Mapping[int, int]) -> str:
    lines = split_lines(chunk)
    for i, line in enumerate(lines):
        tokens = tokenize(line)
        if len(tokens) >= 2 and tokens[0] == "POOLEDENVINST":
            old = parse_int(tokens[1], -1)
            if old in mapping:
                lines[i] = _rewrite_token(line, 1, str(mapping[old]))
    return join_lines(lines)


def _renumber_payload(envelope: PooledEnvelope, new_id: int) -> str:
    lines = split_lines(envelope.chunk)
    depth = 0
    for i, line in enumerate(lines):
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if is_close(line):
            depth -= 1
            continue
        tokens = tokenize(line)
        if depth == 1 and tokens and tokens[0] == "ID":
            lines[i] = _rewrite_token(line, 1, str(new_id))
            break
    return join_lines(lines)
