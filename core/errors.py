"""core/errors.py — Error taxonomy for session loading, matching and consolidation.

Propagation rules
─────────────────
- ``FileUnreadable``     aborts the whole load; no partial session is registered.
- ``BlockUnterminated``  is caught by the block scanner; the block is skipped.
- ``ChunkApplyRejected`` skips one destination; other destinations continue.
- ``MediaUnresolved``    is recorded per file; the stale reference is kept.

"No content found" and "no eligible match" are not errors: they surface as
empty results plus a :class:`Diagnostic`.
"""

from __future__ import annotations

from dataclasses import dataclass

# Diagnostic codes
BLOCK_UNTERMINATED = "block_unterminated"
NO_CONTENT_FOUND = "no_content_found"
MEDIA_UNRESOLVED = "media_unresolved"
CHUNK_APPLY_REJECTED = "chunk_apply_rejected"


class SessionMergeError(Exception):
    """Base class for every error raised by this package."""


class FileUnreadable(SessionMergeError):
    """A session or template file could not be read."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot read file {path!r}{detail}")


class BlockUnterminated(SessionMergeError):
    """A ``<BLOCK`` opened at ``line_number`` never returned to depth 0."""

    def __init__(self, block_type: str, line_number: int) -> None:
        self.block_type = block_type
        self.line_number = line_number
        super().__init__(f"Unterminated <{block_type} block opened at line {line_number}")


class ChunkApplyRejected(SessionMergeError):
    """The host refused a track chunk (malformed text)."""


class MediaUnresolved(SessionMergeError):
    """No candidate location exists for a referenced media file."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Media file not found: {path!r}")


@dataclass(frozen=True)
class Diagnostic:
    """One skipped or unresolved item, reported to the caller."""

    code: str
    """One of the ``*_UNTERMINATED`` / ``*_FOUND`` / ``*_UNRESOLVED`` / ``*_REJECTED`` codes."""

    message: str

    subject: str = ""
    """What the diagnostic is about: a file path, a track or block name."""

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message, "subject": self.subject}
