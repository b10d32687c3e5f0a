"""ingestion/media_resolver.py — Find the audio files a session references.

Session files often reference media with paths that no longer exist as
written: the session moved, was recorded on another machine, or uses the
other platform's separator.  Candidates are tried in order:

1. the path itself when absolute;
2. relative to the session file's directory;
3. relative to the template's directory;
4. the same after converting ``\\`` separators to ``/``;
5. for absolute paths, progressively shorter tails of the path under the
   session directory (``/old/disk/Audio/kick.wav`` → ``<session>/Audio/kick.wav``
   → ``<session>/kick.wav``).

With ``copy_media`` on, a resolved file is copied into the template's media
directory and that copy is returned.

Side effects: filesystem lookups; copies files when ``copy_media`` is set.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath, PureWindowsPath

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_SUBDIR = "Media"


def _is_absolute(path: str) -> bool:
    return PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute()


def _path_parts(path: str) -> list[str]:
    """Segments of ``path`` without drive or root, for either separator style."""
    parts = [p for p in path.replace("\\", "/").split("/") if p]
    if parts and parts[0].endswith(":"):
        parts = parts[1:]
    return parts


class FileMediaResolver:
    """Resolve media references against the session and template directories.

    Args:
        template_dir: Directory of the template project.
        copy_media: Copy resolved files into ``media_dir``.
        media_dir: Copy destination; defaults to ``<template_dir>/Media``.
    """

    def __init__(
        self,
        template_dir: str | Path,
        copy_media: bool = False,
        media_dir: str | Path | None = None,
    ) -> None:
        self.template_dir = Path(template_dir)
        self.copy_media = copy_media
        self.media_dir = (
            Path(media_dir) if media_dir is not None else self.template_dir / DEFAULT_MEDIA_SUBDIR
        )

    def candidates(self, path: str, session_dir: str) -> list[Path]:
        """Locations tried for ``path``, in order."""
        found: list[Path] = []
        variants = [path]
        if "\\" in path:
            variants.append(path.replace("\\", "/"))
        for variant in variants:
            if _is_absolute(variant):
                found.append(Path(variant))
                continue
            if session_dir:
                found.append(Path(session_dir) / variant)
            found.append(self.template_dir / variant)
        if session_dir and _is_absolute(path):
            parts = _path_parts(path)
            for start in range(1, len(parts)):
                found.append(Path(session_dir).joinpath(*parts[start:]))
        return found

    def resolve(self, path: str, session_dir: str) -> str | None:
        """Return a usable location for ``path``, or ``None`` if none exists."""
        if not path:
            return None
        for candidate in self.candidates(path, session_dir):
            if candidate.is_file():
                resolved = str(candidate)
                if self.copy_media:
                    resolved = self._copy(candidate)
                if resolved != path:
                    logger.info("Relinked media %s -> %s", path, resolved)
                return resolved
        logger.warning("Media not found: %s (session dir %s)", path, session_dir)
        return None

    def _copy(self, source: Path) -> str:
        target = self.media_dir / source.name
        if target.resolve() == source.resolve():
            return str(target)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        logger.info("Copied media %s -> %s", source, target)
        return str(target)
