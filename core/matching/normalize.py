"""core/matching/normalize.py — Canonical track names for comparison.

Recording engineers abbreviate freely ("Kik", "Vox 2", "03_Amb L"); mix
templates usually don't.  Names are lowercased, common abbreviations are
folded onto one spelling, separators become spaces and a leading track
number is dropped, so ``"03_Amb-L"`` and ``"Room L"`` compare equal.
"""

from __future__ import annotations

import re

# Applied in order; longer spellings first so "ambience" is not hit by "amb".
ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("ambience", "room"),
    ("ambi", "room"),
    ("amb", "room"),
    ("kik", "kick"),
    ("vox", "voc"),
    ("guitar", "gtr"),
    ("guit", "gtr"),
    ("git", "gtr"),
)

_SEPARATORS_RE = re.compile(r"[_\-./]")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_NUMBER_RE = re.compile(r"^\d+\s+")
_EXTENSION_RE = re.compile(r"\.\w+$")
_NUMERIC_SUFFIX_RE = re.compile(r"^(.*?)[\s_.\-]*(\d+)\s*$")
_FIRST_TOKEN_RE = re.compile(r"^[^\W_]+")


def normalize_name(name: str) -> str:
    """Return the comparison form of a track name.

    Example:
        >>> normalize_name("02_Kik-In")
        'kick in'
    """
    s = (name or "").lower()
    for short, canonical in ABBREVIATIONS:
        s = s.replace(short, canonical)
    s = _SEPARATORS_RE.sub(" ", s)
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return _LEADING_NUMBER_RE.sub("", s)


def strip_extension(name: str) -> str:
    """Drop a trailing ``.ext`` (``"Kick.wav"`` → ``"Kick"``)."""
    return _EXTENSION_RE.sub("", name or "").strip()


def first_token(normalized: str) -> str:
    """Leading alphanumeric run of an already-normalised name."""
    match = _FIRST_TOKEN_RE.match(normalized)
    return match.group(0) if match else normalized


def split_numeric_suffix(name: str) -> tuple[str, int | None]:
    """Split ``"BVoc 2"`` into ``("bvoc", 2)``; names without a trailing number get ``None``."""
    match = _NUMERIC_SUFFIX_RE.match(name or "")
    if match and match.group(1).strip():
        return match.group(1).strip().lower(), int(match.group(2))
    return (name or "").strip().lower(), None
