"""core/matching/scoring.py — Priority-tiered name similarity.

Tiers, first hit wins:

    1.00  exact normalised equality
    0.95  one name is the other followed by a space or digit ("gtr" / "gtr 2")
    0.85  same first word, longer than one character
    0.75  the shorter name is a whole word of the longer one
    LCS   2·LCS / (len a + len b), with three guards

Alias overrides sit above all tiers and are handled by the matcher.
"""

from __future__ import annotations

import re

from core.matching.normalize import first_token, normalize_name

EXACT_SCORE = 1.0
PREFIX_SCORE = 0.95
FIRST_WORD_SCORE = 0.85
WORD_CONTAINED_SCORE = 0.75
BASS_BRASS_SCORE = 0.05
LENGTH_MISMATCH_SCORE = 0.1
MAX_LENGTH_DIFFERENCE = 10
MIN_CONTAINED_LENGTH = 3


def lcs_length(a: str, b: str) -> int:
    """Length of the longest common subsequence of ``a`` and ``b``."""
    if not a or not b:
        return 0
    previous = [0] * (len(b) + 1)
    for ch_a in a:
        current = [0]
        for j, ch_b in enumerate(b, start=1):
            if ch_a == ch_b:
                current.append(previous[j - 1] + 1)
            else:
                current.append(max(previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Fuzzy similarity of two raw names (normalised here)."""
    a, b = normalize_name(a), normalize_name(b)
    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SCORE
    if ("bass" in a and "brass" in b) or ("brass" in a and "bass" in b):
        return BASS_BRASS_SCORE
    if abs(len(a) - len(b)) > MAX_LENGTH_DIFFERENCE:
        return LENGTH_MISMATCH_SCORE
    return 2 * lcs_length(a, b) / (len(a) + len(b))


def _is_prefix_of(short: str, long: str) -> bool:
    return re.match(re.escape(short) + r"[\s\d]", long) is not None


def _contains_word(shorter: str, longer: str) -> bool:
    word = re.escape(shorter)
    return bool(
        re.search("^" + word + r"\s", longer)
        or re.search(r"\s" + word + r"\s", longer)
        or re.search(r"\s" + word + "$", longer)
    )


def match_score(destination_name: str, source_name: str) -> float:
    """Score how well ``source_name`` fits ``destination_name``, in [0, 1]."""
    dst = normalize_name(destination_name)
    src = normalize_name(source_name)
    if not dst or not src:
        return 0.0
    if dst == src:
        return EXACT_SCORE
    if _is_prefix_of(dst, src) or _is_prefix_of(src, dst):
        return PREFIX_SCORE

    dst_word, src_word = first_token(dst), first_token(src)
    if dst_word and dst_word == src_word and len(dst_word) > 1:
        return FIRST_WORD_SCORE

    shorter, longer = (dst, src) if len(dst) < len(src) else (src, dst)
    if (
        len(shorter) >= MIN_CONTAINED_LENGTH
        and len(longer) > len(shorter) + 2
        and _contains_word(shorter, longer)
    ):
        return WORD_CONTAINED_SCORE

    return similarity(destination_name, source_name)
