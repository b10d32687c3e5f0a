"""
Shared fixtures for the test suite.

Centralizes the project-text builders so individual test files can
describe sessions and templates in a few lines instead of repeating
raw ``.rpp`` boilerplate.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from core.consolidation.shift import pool_instance_ids
from core.errors import ChunkApplyRejected
from core.rpp.chunks import join_lines, opening_type, split_lines
from core.tempo.timeline import Timeline

# ---------------------------------------------------------------------------
# Text builders
# ---------------------------------------------------------------------------


def item_lines(
    position: float,
    length: float,
    file: str = "audio.wav",
    lane: int | None = None,
    guid: str = "{ITEM-GUID}",
    indent: str = "    ",
) -> list[str]:
    """One ``<ITEM`` block with a ``<SOURCE WAVE`` child."""
    lines = [
        f"{indent}<ITEM",
        f"{indent}  POSITION {position}",
        f"{indent}  LENGTH {length}",
    ]
    if lane is not None:
        lines.append(f"{indent}  FIXEDLANE {lane}")
    lines += [
        f"{indent}  IGUID {guid}",
        f'{indent}  NAME "{file}"',
        f"{indent}  <SOURCE WAVE",
        f'{indent}    FILE "{file}"',
        f"{indent}  >",
        f"{indent}>",
    ]
    return lines


def track_text(
    name: str,
    items: Sequence[tuple[float, float]] = (),
    fields: Sequence[str] = (),
    children: Sequence[str] = (),
    file: str = "audio.wav",
    indent: str = "  ",
) -> str:
    """A ``<TRACK`` chunk.

    ``items`` are ``(position, length)`` pairs; ``children`` are raw lines
    (already indented) appended after the items.
    """
    guid = "{GUID-" + name.upper().replace(" ", "-") + "}"
    lines = [f"{indent}<TRACK {guid}", f'{indent}  NAME "{name}"']
    lines += [f"{indent}  {f}" for f in fields]
    for position, length in items:
        lines += item_lines(position, length, file=file, indent=indent + "  ")
    lines += list(children)
    lines.append(f"{indent}>")
    return join_lines(lines)


def project_text(
    tracks: Sequence[str] = (),
    tempo: tuple[float, int, int] = (120, 4, 4),
    tempo_points: Sequence[str] = (),
    markers: Sequence[str] = (),
    extra: Sequence[str] = (),
) -> str:
    """A whole project: header, optional tempo envelope and markers, tracks."""
    bpm, num, den = tempo
    lines = [
        '<REAPER_PROJECT 0.1 "7.0/linux" 1700000000',
        "  RIPPLE 0",
        f"  TEMPO {bpm} {num} {den}",
    ]
    if tempo_points:
        lines += ["  <TEMPOENVEX", "    ACT 1 -1"] + [f"    {p}" for p in tempo_points] + ["  >"]
    lines += [f"  {m}" for m in markers]
    lines += [f"  {e}" for e in extra]
    for track in tracks:
        lines += split_lines(track)
    lines.append(">")
    return join_lines(lines)


# ---------------------------------------------------------------------------
# In-memory track host
# ---------------------------------------------------------------------------


class FakeHost:
    """Minimal :class:`TrackHost` over a list of ``[handle, chunk]`` pairs.

    Records every routing copy and timeline import; ``reject`` makes
    ``set_chunk`` refuse chunks containing that text.
    """

    def __init__(self, chunks: Sequence[str] = (), pool_base: int = 0) -> None:
        self.tracks: list[list[str]] = [[f"t{i}", c] for i, c in enumerate(chunks)]
        self._next = len(self.tracks)
        self.pool_base = pool_base
        self.routing_copies: list[tuple[str, str, bool]] = []
        self.timelines: list[Timeline] = []
        self.reject: str | None = None

    def handles(self) -> list[str]:
        return [h for h, _ in self.tracks]

    def index_of(self, handle: str) -> int:
        for i, (h, _) in enumerate(self.tracks):
            if h == handle:
                return i
        raise KeyError(handle)

    def get_chunk(self, handle: str) -> str:
        return self.tracks[self.index_of(handle)][1]

    def set_chunk(self, handle: str, chunk: str) -> None:
        lines = split_lines(chunk)
        if not lines or opening_type(lines[0]) != "TRACK":
            raise ChunkApplyRejected("not a track")
        if self.reject is not None and self.reject in chunk:
            raise ChunkApplyRejected(f"refused {self.reject}")
        self.tracks[self.index_of(handle)][1] = chunk

    def insert_track(self, index: int) -> str:
        handle = f"n{self._next}"
        self._next += 1
        self.tracks.insert(index, [handle, "  <TRACK\n  >\n"])
        return handle

    def delete_track(self, handle: str) -> None:
        del self.tracks[self.index_of(handle)]

    def copy_routing(self, src: str, dst: str, keep_fx: bool = False) -> None:
        self.routing_copies.append((src, dst, keep_fx))

    def max_pool_id(self) -> int:
        ids = {self.pool_base}
        for _, chunk in self.tracks:
            ids |= pool_instance_ids(chunk)
        return max(ids)

    def import_timeline(self, timeline: Timeline) -> None:
        self.timelines.append(timeline)


class FakeResolver:
    """Resolver mapping paths through a dict; missing keys are unresolved."""

    def __init__(self, mapping: dict[str, str]) -> None:
        self.mapping = mapping
        self.calls: list[tuple[str, str]] = []

    def resolve(self, path: str, session_dir: str) -> str | None:
        self.calls.append((path, session_dir))
        return self.mapping.get(path)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_track() -> Callable[..., str]:
    return track_text


@pytest.fixture
def make_project() -> Callable[..., str]:
    return project_text


@pytest.fixture
def make_items() -> Callable[..., list[str]]:
    return item_lines


@pytest.fixture
def fake_host() -> type[FakeHost]:
    return FakeHost


@pytest.fixture
def fake_resolver() -> type[FakeResolver]:
    return FakeResolver


@pytest.fixture
def song_text() -> str:
    """8 measures at 120 BPM 4/4 (16 s), two audio tracks and one region."""
    return project_text(
        tracks=[
            track_text("Kick In", items=[(0, 16)], file="Audio/kick.wav"),
            track_text("Bass DI", items=[(0, 16)], file="Audio/bass.wav"),
            track_text("Notes"),
        ],
        markers=['MARKER 1 0 "Verse" 1 0', 'MARKER 1 8 "" 1', 'MARKER 2 12 "Drop" 0 0'],
    )


@pytest.fixture
def template_text() -> str:
    """A small mix template: drum folder with two children, a bass and a reverb bus."""
    return project_text(
        tracks=[
            track_text("Drums", fields=["ISBUS 1 1", "VOLPAN 0.8 0 -1 -1 1"]),
            track_text("Kick", fields=["ISBUS 0 0", "VOLPAN 0.5 0 -1 -1 1", "VU 2"]),
            track_text(
                "Snare",
                fields=["ISBUS 2 -1", "AUXRECV 1 0 1 0 0 0 0 0 0 -1:U 0 -1 ''"],
            ),
            track_text(
                "Bass",
                fields=["ISBUS 0 0", "VU 2", "GROUP_FLAGS 1 0 0 0 0 0 0 0", "MAINSEND 1 0"],
                children=[
                    "    <FXCHAIN",
                    "      SHOW 0",
                    "    >",
                ],
            ),
            track_text("Verb BUS", fields=["ISBUS 0 0", "AUXRECV 3 0 1 0 0 0 0 0 0 -1:U 0 -1 ''"]),
        ],
    )


@pytest.fixture
def merge_files(tmp_path: Path, template_text: str, song_text: str) -> dict[str, Path]:
    """Template ``Mix.rpp`` plus ``songs/Song A.rpp``, ``songs/Song B.rpp`` and their media."""
    songs = tmp_path / "songs"
    (songs / "Audio").mkdir(parents=True)
    (songs / "Audio" / "kick.wav").write_bytes(b"RIFF")
    (songs / "Audio" / "bass.wav").write_bytes(b"RIFF")
    (songs / "Song A.rpp").write_text(song_text, encoding="utf-8")
    (songs / "Song B.rpp").write_text(song_text, encoding="utf-8")
    template = tmp_path / "Mix.rpp"
    template.write_text(template_text, encoding="utf-8")
    return {
        "template": template,
        "a": songs / "Song A.rpp",
        "b": songs / "Song B.rpp",
        "songs": songs,
        "root": tmp_path,
    }
