"""core/consolidation/lanes.py — Fixed item lane alignment and track merging.

Lane convention used by the chunk format:

    LANESOLO <mask> …      first field is the bitmask of active (playing) lanes;
                           missing means only lane 0 plays
    FIXEDLANES <count> …   number of lanes on the track
    FIXEDLANE <n>          lane of an ``<ITEM`` (default 0)

When several sessions land on one destination they may have recorded on
different lanes.  Before merging, every import whose highest active lane is
below the common maximum gets copies of its active-lane items on that lane,
and only that lane stays active, so all sessions play from the same lane.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable

from core.consolidation.chunk_edit import (
    child_blocks,
    child_indent,
    field_values,
    insert_before_close,
    reindent,
    set_field,
)
from core.rpp.chunks import (
    RawBlock,
    field_tokens,
    indent_of,
    join_lines,
    parse_int,
    read_numeric_field,
    split_lines,
    tokenize,
)

_ENVELOPE_RE = re.compile(r"^[A-Z0-9_]*ENV\d*$")
_NOT_TRACK_ENVELOPES = frozenset({"POOLEDENV", "TEMPOENVEX"})


def new_guid() -> str:
    """Fresh item GUID in the ``{XXXXXXXX-…}`` form."""
    return "{" + str(uuid.uuid4()).upper() + "}"


# ---------------------------------------------------------------------------
# Lanes
# ---------------------------------------------------------------------------


def active_lane_mask(chunk: str) -> int:
    values = field_values(chunk, "LANESOLO")
    if not values:
        return 1
    return parse_int(values[0], 1)


def highest_active_lane(chunk: str) -> int:
    """Index of the highest lane set in the ``LANESOLO`` mask (0 when none)."""
    mask = active_lane_mask(chunk)
    return mask.bit_length() - 1 if mask > 0 else 0


def item_lane(item: RawBlock) -> int:
    return int(read_numeric_field(item.lines, "FIXEDLANE", 0))


def _copy_item_to_lane(item: RawBlock, lane: int, guid_factory: Callable[[], str]) -> list[str]:
    lines = list(item.lines)
    depth = 0
    has_lane = False
    for i, line in enumerate(lines):
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if line.strip() == ">":
            depth -= 1
            continue
        if depth != 1:
            continue
        tokens = tokenize(line)
        if not tokens:
            continue
        if tokens[0] == "FIXEDLANE":
            lines[i] = f"{indent_of(line)}FIXEDLANE {lane}"
            has_lane = True
        elif tokens[0] in ("IGUID", "GUID"):
            lines[i] = f"{indent_of(line)}{tokens[0]} {guid_factory()}"
    if not has_lane:
        field_indent = indent_of(lines[1]) if len(lines) > 2 else indent_of(lines[0]) + "  "
        lines.insert(1, f"{field_indent}FIXEDLANE {lane}")
    return lines


def align_to_lane(
    chunk: str, target_lane: int, guid_factory: Callable[[], str] = new_guid
) -> str:
    """Copy the active-lane items of ``chunk`` onto ``target_lane`` and solo that lane.

    Items already on ``target_lane`` are not copied again.  ``FIXEDLANES``
    grows to hold the target lane.
    """
    mask = active_lane_mask(chunk)
    copies: list[str] = []
    for item in child_blocks(chunk, "ITEM"):
        lane = item_lane(item)
        if lane != target_lane and mask & (1 << lane):
            copies.extend(_copy_item_to_lane(item, target_lane, guid_factory))
    if copies:
        chunk = insert_before_close(chunk, copies)

    lanes = field_values(chunk, "FIXEDLANES")
    count = max(parse_int(lanes[0]) if lanes else 0, target_lane + 1)
    rest = " ".join(lanes[1:]) if lanes and len(lanes) > 1 else "0 0 0 0"
    chunk = set_field(chunk, "FIXEDLANES", f"FIXEDLANES {count} {rest}")

    solo = field_values(chunk, "LANESOLO")
    solo_rest = " ".join(solo[1:]) if solo and len(solo) > 1 else "0 0 0 0 0 0 0"
    return set_field(chunk, "LANESOLO", f"LANESOLO {1 << target_lane} {solo_rest}")


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def is_track_envelope(block_type: str) -> bool:
    return bool(_ENVELOPE_RE.match(block_type)) and block_type not in _NOT_TRACK_ENVELOPES


def _envelope_points(block: RawBlock) -> list[str]:
    """Point lines (``PT`` and ``POOLEDENVINST``) directly inside an envelope block."""
    points = []
    depth = 0
    for line in block.lines:
        if line.lstrip().startswith("<"):
            depth += 1
            continue
        if line.strip() == ">":
            depth -= 1
            continue
        if depth == 1 and (
            field_tokens(line, "PT") is not None or field_tokens(line, "POOLEDENVINST") is not None
        ):
            points.append(line.strip())
    return points


def merge_track_into(master: str, extra: str) -> str:
    """Move the items, envelope points and pooled payloads of ``extra`` onto ``master``.

    Envelopes missing on ``master`` are copied whole.  ``extra`` itself is
    left for the caller to delete.
    """
    indent = child_indent(master)

    moved: list[str] = []
    for block in child_blocks(extra, "ITEM"):
        moved.extend(reindent(block.lines, indent))
    for block in child_blocks(extra, "POOLEDENV"):
        moved.extend(reindent(block.lines, indent))

    for block in child_blocks(extra):
        if not is_track_envelope(block.block_type):
            continue
        targets = child_blocks(master, block.block_type)
        if not targets:
            moved.extend(reindent(block.lines, indent))
            continue
        target = targets[0]
        point_indent = indent_of(target.lines[1]) if len(target.lines) > 2 else indent + "  "
        lines = split_lines(master)
        lines[target.end : target.end] = [point_indent + p for p in _envelope_points(block)]
        master = join_lines(lines)

    if moved:
        master = insert_before_close(master, moved)
    return master
