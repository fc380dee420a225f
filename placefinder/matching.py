"""
Token-level edit distance with a length-adaptive acceptance threshold.

Distance is classic Levenshtein over code points (insert/delete/substitute
cost 1), computed by rapidfuzz. A token fuzzily matches a query only when both
are at least MIN_FUZZY_LENGTH long and distance / max(len) stays within the
ratio bound, so one- and two-letter queries never match everything.
"""

from __future__ import annotations

from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

MIN_FUZZY_LENGTH = 2
DEFAULT_MAX_RATIO = 0.5


def distance(a: str, b: str) -> int:
    """Levenshtein distance between `a` and `b`."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    return Levenshtein.distance(a, b)


def shares_first_letter(token: str, query: str) -> bool:
    """Cheap pre-check used to skip edit-distance work on unrelated tokens."""
    return bool(token) and bool(query) and token[0] == query[0]


def fuzzy_ratio(
    token: str,
    query: str,
    max_ratio: float = DEFAULT_MAX_RATIO,
    first_letter_gate: bool = False,
) -> Optional[float]:
    """
    Normalized distance between `token` and `query`, or None if they are not
    a fuzzy match (too short, gated out, or further apart than `max_ratio`).
    """
    if len(token) < MIN_FUZZY_LENGTH or len(query) < MIN_FUZZY_LENGTH:
        return None
    if first_letter_gate and not shares_first_letter(token, query):
        return None

    longest = max(len(token), len(query))
    # Any distance above this bound is rejected anyway; let rapidfuzz stop early
    cutoff = int(max_ratio * longest)
    d = Levenshtein.distance(token, query, score_cutoff=cutoff)
    ratio = d / longest
    if ratio > max_ratio:
        return None
    return ratio


def best_token_ratio(
    token_list: Iterable[str],
    query: str,
    max_ratio: float = DEFAULT_MAX_RATIO,
    first_letter_gate: bool = False,
) -> Optional[float]:
    """Lowest accepted fuzzy ratio across `token_list`, or None."""
    best: Optional[float] = None
    for token in token_list:
        ratio = fuzzy_ratio(token, query, max_ratio, first_letter_gate)
        if ratio is not None and (best is None or ratio < best):
            best = ratio
            if best == 0.0:
                break
    return best
