"""ingestion/session_loader.py — Read session project files from disk.

All parsing lives in core/rpp; this module only reads bytes and turns I/O
failures into :class:`FileUnreadable`.

Side effects: reads the given files.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from core.errors import FileUnreadable
from core.rpp.parser import build_session
from core.rpp.types import Session

logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".rpp"


def read_project_text(path: str | Path) -> str:
    """Return the decoded text of a project file.

    Raises:
        FileUnreadable: The file is missing, unreadable or a directory.
    """
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as exc:
        raise FileUnreadable(str(p), exc.strerror or type(exc).__name__) from exc
    return raw.decode("utf-8", errors="replace")


def load_session(path: str | Path, only_with_media: bool = True) -> Session:
    """Read and parse one session file.

    Args:
        path: Project file to read.
        only_with_media: Drop tracks without audio items.

    Raises:
        FileUnreadable: If the file cannot be read.
    """
    text = read_project_text(path)
    session = build_session(text, str(path), only_with_media=only_with_media)
    logger.info(
        "Loaded session %s: %d track(s), %.2f s, %d region(s)",
        session.name,
        len(session.tracks),
        session.duration_seconds,
        session.region_count,
    )
    for diagnostic in session.diagnostics:
        logger.warning("%s: %s", session.name, diagnostic.message)
    return session


def load_sessions(
    paths: Iterable[str | Path], only_with_media: bool = True
) -> list[Session]:
    """Load several sessions; one unreadable file aborts the whole load.

    Raises:
        FileUnreadable: For the first file that cannot be read.  No session
            of the batch is returned in that case.
    """
    return [load_session(p, only_with_media=only_with_media) for p in paths]


def find_sessions(directory: str | Path) -> list[Path]:
    """Session files directly inside ``directory``, sorted by name."""
    root = Path(directory)
    if not root.is_dir():
        raise FileUnreadable(str(root), "not a directory")
    return sorted(
        p for p in root.iterdir() if p.is_file() and p.suffix.lower() == SESSION_SUFFIX
    )
