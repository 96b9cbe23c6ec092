from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def similarity(a: str, b: str) -> float:
    """Case-insensitive Levenshtein similarity normalized to [0, 1].

    Two empty strings are identical (1.0); exactly one empty string scores 0.
    """
    s1 = (a or "").lower()
    s2 = (b or "").lower()
    longest = max(len(s1), len(s2))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(s1, s2) / longest
