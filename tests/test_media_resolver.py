"""
Tests for ingestion.media_resolver module.
"""

from pathlib import Path

import pytest

from core.consolidation.host import MediaResolver
from ingestion.media_resolver import FileMediaResolver


@pytest.fixture
def dirs(tmp_path: Path) -> tuple[Path, Path]:
    session_dir = tmp_path / "song"
    template_dir = tmp_path / "template"
    (session_dir / "Audio").mkdir(parents=True)
    template_dir.mkdir()
    (session_dir / "Audio" / "kick.wav").write_bytes(b"RIFF")
    (template_dir / "click.wav").write_bytes(b"RIFF")
    return session_dir, template_dir


class TestFileMediaResolver:
    """Test candidate order and copying."""

    def test_is_a_media_resolver(self, tmp_path: Path) -> None:
        assert isinstance(FileMediaResolver(tmp_path), MediaResolver)

    def test_relative_to_session(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolver = FileMediaResolver(template_dir)
        resolved = resolver.resolve("Audio/kick.wav", str(session_dir))
        assert resolved == str(session_dir / "Audio" / "kick.wav")

    def test_relative_to_template(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolved = FileMediaResolver(template_dir).resolve("click.wav", str(session_dir))
        assert resolved == str(template_dir / "click.wav")

    def test_existing_absolute_path_is_kept(self, dirs) -> None:
        session_dir, template_dir = dirs
        path = str(session_dir / "Audio" / "kick.wav")
        assert FileMediaResolver(template_dir).resolve(path, "") == path

    def test_stale_absolute_path_falls_back_to_tail(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolved = FileMediaResolver(template_dir).resolve(
            "/old/disk/Audio/kick.wav", str(session_dir)
        )
        assert resolved == str(session_dir / "Audio" / "kick.wav")

    def test_windows_path(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolver = FileMediaResolver(template_dir)
        assert resolver.resolve("Audio\\kick.wav", str(session_dir)) == str(
            session_dir / "Audio" / "kick.wav"
        )
        assert resolver.resolve("C:\\rec\\Audio\\kick.wav", str(session_dir)) == str(
            session_dir / "Audio" / "kick.wav"
        )

    def test_candidate_order(self, tmp_path: Path) -> None:
        resolver = FileMediaResolver(tmp_path / "t")
        assert resolver.candidates("a.wav", "/s") == [Path("/s/a.wav"), tmp_path / "t" / "a.wav"]

    def test_unresolved(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolver = FileMediaResolver(template_dir)
        assert resolver.resolve("Audio/snare.wav", str(session_dir)) is None
        assert resolver.resolve("", str(session_dir)) is None

    def test_copy_media(self, dirs) -> None:
        session_dir, template_dir = dirs
        resolver = FileMediaResolver(template_dir, copy_media=True)
        resolved = resolver.resolve("Audio/kick.wav", str(session_dir))

        assert resolved == str(template_dir / "Media" / "kick.wav")
        assert Path(resolved).read_bytes() == b"RIFF"

    def test_copy_of_file_already_in_media_dir(self, dirs) -> None:
        _, template_dir = dirs
        media = template_dir / "Media"
        media.mkdir()
        (media / "bass.wav").write_bytes(b"RIFF")
        resolver = FileMediaResolver(template_dir, copy_media=True)
        assert resolver.resolve("Media/bass.wav", "") == str(media / "bass.wav")
