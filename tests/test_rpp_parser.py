"""
Tests for core.rpp.parser module.

These tests verify block classification, region pairing, tempo map
normalisation and session assembly, including malformed input.
"""

from core.errors import BLOCK_UNTERMINATED, NO_CONTENT_FOUND
from core.rpp.parser import (
    build_session,
    normalize_tempo_map,
    pair_markers,
    parse_blocks,
)
from core.rpp.types import (
    BaseTempo,
    MarkerLine,
    TempoLine,
    TempoPoint,
    TempoShape,
    TimeSignature,
    TrackBlock,
)

BROKEN = """TEMPO 90 3 4
<TRACK
  NAME "A"
  <ITEM
    POSITION 0
    LENGTH 2
  >
>
<TRACK
  NAME "Broken"
  <ITEM
"""


class TestParseBlocks:
    """Test stage 1: project text to classified blocks."""

    def test_blocks_in_file_order(self, song_text: str) -> None:
        blocks = parse_blocks(song_text)
        kinds = [type(b).__name__ for b in blocks]
        assert kinds[0] == "TempoLine"
        assert kinds.count("MarkerLine") == 3
        assert kinds.count("TrackBlock") == 3

    def test_unknown_blocks_are_skipped(self, make_project) -> None:
        text = make_project(extra=["<METRONOME 6 2", "  VOL 0.25 0.125", ">"])
        assert all(not isinstance(b, TrackBlock) for b in parse_blocks(text))
        assert len(parse_blocks(text)) == 1

    def test_unterminated_blocks_become_diagnostics(self) -> None:
        diagnostics = []
        blocks = parse_blocks(BROKEN, diagnostics)

        assert isinstance(blocks[0], TempoLine)
        assert [b.track.name for b in blocks if isinstance(b, TrackBlock)] == ["A"]
        assert [d.code for d in diagnostics] == [BLOCK_UNTERMINATED, BLOCK_UNTERMINATED]
        assert [d.subject for d in diagnostics] == ["TRACK", "ITEM"]

    def test_unterminated_root_still_parses_body(self) -> None:
        text = "<REAPER_PROJECT\n  TEMPO 100 4 4\n  <TRACK\n    NAME \"X\"\n  >\n"
        diagnostics = []
        blocks = parse_blocks(text, diagnostics)
        assert diagnostics[0].subject == "REAPER_PROJECT"
        assert any(isinstance(b, TrackBlock) for b in blocks)

    def test_crlf_and_bom(self, song_text: str) -> None:
        windows = "\ufeff" + song_text.replace("\n", "\r\n")
        assert len(parse_blocks(windows)) == len(parse_blocks(song_text))


class TestPairMarkers:
    """Test folding of region start/end lines."""

    def test_region_and_marker(self) -> None:
        markers = pair_markers(
            [
                MarkerLine(1, 0.0, "Verse", 1),
                MarkerLine(2, 4.0, "Hit", 0),
                MarkerLine(1, 8.0, "", 1),
            ]
        )
        assert len(markers) == 2
        region, hit = markers
        assert region.is_region and region.pos == 0.0 and region.region_end == 8.0
        assert region.name == "Verse"
        assert not hit.is_region and hit.name == "Hit"

    def test_unpaired_region_start_is_dropped(self) -> None:
        markers = pair_markers([MarkerLine(3, 2.0, "Outro", 1)])
        assert markers == ()

    def test_sorted_by_position(self) -> None:
        markers = pair_markers([MarkerLine(5, 9.0, "B", 0), MarkerLine(6, 1.0, "A", 0)])
        assert [m.name for m in markers] == ["A", "B"]


class TestNormalizeTempoMap:
    """Test the point-at-zero and square-last guarantees."""

    def test_empty_map_gets_base_point(self) -> None:
        points = normalize_tempo_map((), BaseTempo(97.0, 6, 8))
        assert points == (TempoPoint(0.0, 97.0, TempoShape.SQUARE, TimeSignature(6, 8)),)

    def test_late_first_point_gets_base_point(self) -> None:
        points = normalize_tempo_map((TempoPoint(4.0, 130.0),), BaseTempo(120.0))
        assert [p.time_seconds for p in points] == [0.0, 4.0]
        assert points[0].bpm == 120.0

    def test_last_point_forced_square(self) -> None:
        points = normalize_tempo_map(
            (TempoPoint(0.0, 120.0, TempoShape.LINEAR), TempoPoint(8.0, 140.0, TempoShape.LINEAR)),
            BaseTempo(120.0),
        )
        assert points[0].shape is TempoShape.LINEAR
        assert points[-1].shape is TempoShape.SQUARE


class TestBuildSession:
    """Test stage 2: session assembly."""

    def test_song_fixture(self, song_text: str) -> None:
        session = build_session(song_text, "/songs/Song A.rpp")

        assert session.name == "Song A"
        assert session.directory == "/songs"
        assert session.base_tempo == BaseTempo(120.0, 4, 4)
        assert [t.name for t in session.tracks] == ["Kick In", "Bass DI"]
        assert session.duration_seconds == 16.0
        assert session.region_count == 1
        assert len(session.markers) == 2
        assert session.diagnostics == ()

    def test_tracks_without_media_kept_on_request(self, song_text: str) -> None:
        session = build_session(song_text, "a.rpp", only_with_media=False)
        assert [t.name for t in session.tracks] == ["Kick In", "Bass DI", "Notes"]

    def test_segments_and_lanes(self, make_project, make_track, make_items) -> None:
        track = make_track(
            "Gtr",
            children=make_items(2.0, 3.0, lane=1) + make_items(10.0, 1.5),
        )
        session = build_session(make_project(tracks=[track]), "g.rpp")
        segments = session.tracks[0].segments
        assert [(s.position, s.length, s.lane) for s in segments] == [(2.0, 3.0, 1), (10.0, 1.5, 0)]
        assert session.duration_seconds == 11.5

    def test_tempo_envelope_points(self, make_project, make_track) -> None:
        text = make_project(
            tracks=[make_track("Kick", items=[(0, 4)])],
            tempo_points=["PT 0 120 0 262148", "PT 8 140 1"],
        )
        session = build_session(text, "t.rpp")
        first, last = session.tempo_map
        assert first.shape is TempoShape.LINEAR
        assert first.time_sig == TimeSignature(4, 4)
        assert last.bpm == 140.0 and last.time_sig is None

    def test_first_tempo_line_wins(self, make_project, make_track) -> None:
        text = make_project(
            tracks=[make_track("Kick", items=[(0, 4)])], tempo=(90, 3, 4), extra=["TEMPO 150 4 4"]
        )
        assert build_session(text, "t.rpp").base_tempo == BaseTempo(90.0, 3, 4)

    def test_missing_tempo_defaults(self, make_track) -> None:
        text = "<REAPER_PROJECT\n" + make_track("Kick", items=[(0, 4)]) + ">\n"
        assert build_session(text, "t.rpp").base_tempo == BaseTempo(120.0, 4, 4)

    def test_pooled_envelopes_are_indexed(self, make_project, make_track) -> None:
        track = make_track(
            "Synth",
            items=[(0, 4)],
            children=["    <VOLENV2", "      POOLEDENVINST 3 0 4 1 0 0 0", "    >"],
        )
        text = make_project(tracks=[track], extra=["<POOLEDENV", "  ID 3", "  PT 0 1", ">"])
        session = build_session(text, "p.rpp")

        assert session.tracks[0].uses_pools == frozenset({3})
        assert [e.pool_id for e in session.envelopes_for(session.tracks[0])] == [3]

    def test_empty_session_reports_no_content(self, make_project, make_track) -> None:
        session = build_session(make_project(tracks=[make_track("Empty")]), "/x/empty.rpp")
        assert session.is_empty
        assert session.diagnostics[0].code == NO_CONTENT_FOUND
        assert session.diagnostics[0].subject == "/x/empty.rpp"

    def test_name_round_trip(self, make_project, make_track) -> None:
        kick = make_track("Kick In", items=[(0, 1)])
        vox = make_track("v", items=[(0, 1)]).replace('NAME "v"', "NAME \"Vox 'Lead'\"")
        gtr = make_track("g", items=[(0, 1)]).replace('NAME "g"', "NAME 'Gtr 12\" amp'")
        session = build_session(make_project(tracks=[kick, vox, gtr]), "n.rpp")
        assert [t.name for t in session.tracks] == ["Kick In", "Vox 'Lead'", 'Gtr 12" amp']
