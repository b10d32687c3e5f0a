"""
Tests for ingestion.template_project module.

The template host must keep receive indices pointing at the same tracks
through inserts and deletes, and keep folder depth balanced.
"""

from pathlib import Path

import pytest

from core.consolidation.chunk_edit import child_blocks, field_lines, field_values, folder_depth
from core.errors import ChunkApplyRejected, FileUnreadable
from core.rpp.chunks import find_blocks, parse_int, read_name, split_lines, tokenize
from core.rpp.parser import build_session
from core.rpp.types import BaseTempo, Marker, TempoPoint, TempoShape, TimeSignature
from core.tempo.timeline import Timeline
from ingestion.template_project import TemplateProject


def handle_of(project: TemplateProject, name: str) -> str:
    for handle, chunk in project.track_chunks():
        if read_name(chunk) == name:
            return handle
    raise AssertionError(f"no track named {name}")


def receives(project: TemplateProject, name: str) -> list[int]:
    chunk = project.get_chunk(handle_of(project, name))
    return sorted(parse_int(tokenize(line)[1]) for line in field_lines(chunk, "AUXRECV"))


@pytest.fixture
def project(template_text: str) -> TemplateProject:
    return TemplateProject(template_text)


class TestLoading:
    """Test splitting the template into header, tracks and tail."""

    def test_render_round_trip(self, project: TemplateProject, template_text: str) -> None:
        assert project.render() == template_text

    def test_tracks_in_order(self, project: TemplateProject) -> None:
        names = [read_name(chunk) for _h, chunk in project.track_chunks()]
        assert names == ["Drums", "Kick", "Snare", "Bass", "Verb BUS"]
        assert [project.index_of(h) for h in project.tracks()] == [0, 1, 2, 3, 4]

    def test_unknown_handle(self, project: TemplateProject) -> None:
        with pytest.raises(KeyError):
            project.index_of("missing")

    def test_directory_empty_without_path(self, project: TemplateProject) -> None:
        assert project.directory == ""

    def test_lines_between_tracks_survive_delete(self, make_project, make_track) -> None:
        text = make_project(
            tracks=[make_track("A"), "  <EXTENSIONS\n  >\n", make_track("B")]
        )
        project = TemplateProject(text)
        assert len(project.tracks()) == 2
        project.delete_track(handle_of(project, "B"))
        rendered = split_lines(project.render())
        assert "  <EXTENSIONS" in rendered
        assert rendered[-1] == ">"


class TestInsertDelete:
    """Test receive renumbering and folder balance."""

    def test_insert_shifts_receive_sources(self, project: TemplateProject) -> None:
        handle = project.insert_track(1)
        assert project.index_of(handle) == 1
        assert receives(project, "Snare") == [2]
        assert receives(project, "Verb BUS") == [4]
        assert 'NAME ""' in [line.strip() for line in split_lines(project.get_chunk(handle))]

    def test_insert_index_is_clamped(self, project: TemplateProject) -> None:
        assert project.index_of(project.insert_track(99)) == 5
        assert project.index_of(project.insert_track(-3)) == 0

    def test_delete_drops_and_shifts_receives(self, project: TemplateProject) -> None:
        project.delete_track(handle_of(project, "Kick"))
        assert receives(project, "Snare") == []
        assert receives(project, "Verb BUS") == [2]

    def test_delete_folder_header_moves_depth_down(self, project: TemplateProject) -> None:
        project.delete_track(handle_of(project, "Drums"))
        kick = project.get_chunk(handle_of(project, "Kick"))
        assert field_values(kick, "ISBUS") == ["1", "1"]

    def test_delete_folder_end_moves_depth_up(self, project: TemplateProject) -> None:
        project.delete_track(handle_of(project, "Snare"))
        kick = project.get_chunk(handle_of(project, "Kick"))
        assert folder_depth(kick) == -1
        assert field_values(kick, "ISBUS") == ["2", "-1"]

    def test_depths_stay_balanced(self, project: TemplateProject) -> None:
        project.delete_track(handle_of(project, "Drums"))
        project.delete_track(handle_of(project, "Snare"))
        assert sum(folder_depth(chunk) for _h, chunk in project.track_chunks()) == 0


class TestSetChunk:
    """Test chunk validation."""

    def test_accepts_track_and_trims_blank_tail(self, project: TemplateProject) -> None:
        handle = handle_of(project, "Kick")
        project.set_chunk(handle, '  <TRACK\n    NAME "Kick 2"\n  >\n\n\n')
        assert project.get_chunk(handle) == '  <TRACK\n    NAME "Kick 2"\n  >\n'

    @pytest.mark.parametrize(
        "chunk",
        ["<ITEM\n>\n", "<TRACK\n  NAME x\n", "<TRACK\n>\nEXTRA\n", ""],
    )
    def test_rejects_malformed(self, project: TemplateProject, chunk: str) -> None:
        handle = handle_of(project, "Kick")
        before = project.get_chunk(handle)
        with pytest.raises(ChunkApplyRejected):
            project.set_chunk(handle, chunk)
        assert project.get_chunk(handle) == before


class TestCopyRouting:
    """Test routing transfer from a destination to its replacement."""

    def test_fx_controls_and_incoming_sends(self, project: TemplateProject) -> None:
        bass = handle_of(project, "Bass")
        new = project.insert_track(project.index_of(bass))
        project.copy_routing(bass, new)

        chunk = project.get_chunk(new)
        fx = child_blocks(chunk, "FXCHAIN")
        assert len(fx) == 1
        assert "SHOW 0" in [line.strip() for line in fx[0].lines]
        assert field_values(chunk, "MAINSEND") == ["1", "0"]
        assert receives(project, "Verb BUS") == [3, 4]

    def test_receives_and_volume_copied(self, project: TemplateProject) -> None:
        snare = handle_of(project, "Snare")
        new = project.insert_track(project.index_of(snare))
        project.copy_routing(snare, new)
        copied = field_lines(project.get_chunk(new), "AUXRECV")
        assert [tokenize(line)[1] for line in copied] == ["1"]

        kick = handle_of(project, "Kick")
        project.copy_routing(kick, new)
        chunk = project.get_chunk(new)
        assert field_values(chunk, "VOLPAN")[0] == "0.5"
        assert field_lines(chunk, "AUXRECV") == []

    def test_keep_fx(self, project: TemplateProject) -> None:
        bass = handle_of(project, "Bass")
        new = project.insert_track(0)
        project.copy_routing(bass, new, keep_fx=True)
        assert child_blocks(project.get_chunk(new), "FXCHAIN") == []


class TestPoolsAndTimeline:
    """Test pool id scanning and timeline import."""

    def test_max_pool_id(self, project: TemplateProject, make_project, make_track) -> None:
        assert project.max_pool_id() == 0
        envelope = ["    <VOLENV2", "      POOLEDENVINST 8 0 4", "    >"]
        track = make_track("Synth", children=envelope)
        text = make_project(tracks=[track], extra=["<POOLEDENV", "  ID 5", ">"])
        assert TemplateProject(text).max_pool_id() == 8

    def test_import_timeline(self, make_project, make_track) -> None:
        text = make_project(
            tracks=[make_track("Kick")],
            tempo_points=["PT 0 120 1"],
            markers=['MARKER 1 4 "Old" 0 0'],
        )
        project = TemplateProject(text)
        timeline = Timeline(
            tempo_points=(
                TempoPoint(0.0, 100.0, TempoShape.SQUARE, TimeSignature(3, 4)),
                TempoPoint(12.0, 140.0, TempoShape.SQUARE),
            ),
            markers=(
                Marker(1, 0.0, "Verse", is_region=True, region_end=8.0),
                Marker(2, 12.0, "Drop"),
            ),
        )
        project.import_timeline(timeline)
        project.import_timeline(timeline)

        rendered = project.render()
        assert len(find_blocks(rendered, "TEMPOENVEX")) == 1
        assert "Old" not in rendered
        assert sum(1 for line in split_lines(rendered) if line.strip().startswith("MARKER")) == 3

        session = build_session(rendered, "merged.rpp", only_with_media=False)
        assert session.base_tempo == BaseTempo(100.0, 3, 4)
        assert [p.bpm for p in session.tempo_map] == [100.0, 140.0]
        assert [m.name for m in session.markers] == ["Verse", "Drop"]
        assert session.region_count == 1
        assert [t.name for t in session.tracks] == ["Kick"]


class TestFiles:
    """Test reading and writing template files."""

    def test_from_file_and_save(self, tmp_path: Path, template_text: str) -> None:
        path = tmp_path / "Mix.rpp"
        path.write_text(template_text, encoding="utf-8")

        project = TemplateProject.from_file(path)
        assert project.directory == str(tmp_path)
        project.delete_track(handle_of(project, "Verb BUS"))
        assert project.save() == path
        assert "Verb BUS" not in path.read_text(encoding="utf-8")

        other = project.save(tmp_path / "Out.rpp")
        assert other.read_text(encoding="utf-8") == project.render()

    def test_save_needs_a_path(self, project: TemplateProject) -> None:
        with pytest.raises(ValueError):
            project.save()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileUnreadable):
            TemplateProject.from_file(tmp_path / "nope.rpp")
