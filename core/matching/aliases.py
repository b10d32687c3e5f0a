"""core/matching/aliases.py — User alias rules, applied before any scoring."""

from __future__ import annotations

from collections.abc import Sequence

from core.matching.normalize import strip_extension
from core.matching.types import Alias


def key_matches(key: str, name: str) -> bool:
    """True when ``key`` is ``name``, a space-bounded word of it, its start or its end."""
    return name == key or f" {key} " in name or name.startswith(key) or name.endswith(key)


def find_alias_target(source_name: str, aliases: Sequence[Alias]) -> str | None:
    """Return the destination name of the first alias whose keys match ``source_name``.

    Example:
        >>> find_alias_target("Kik Out.wav", [Alias("kik, bd", "Kick")])
        'Kick'
    """
    name = strip_extension(source_name).strip().lower()
    if not name:
        return None
    for alias in aliases:
        if any(key_matches(key, name) for key in alias.keys):
            return alias.destination
    return None
