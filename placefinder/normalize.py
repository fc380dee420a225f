"""
Place-name normalization.

Canonicalizes text so that "Côte d'Ivoire", "COTE D’IVOIRE" and "cote-divoire"
compare equal:
  1. Lower-case
  2. Decompose (NFKD) and drop combining marks (accents, harakat, ...)
  3. Remove apostrophe-like punctuation outright ("d'ivoire" -> "divoire")
  4. Collapse every run of non-letter/non-digit characters to a single space
  5. Trim

Letter/digit classification is Unicode-aware so Arabic, Cyrillic, CJK, Thai,
etc. survive untouched apart from their diacritics.
"""

from __future__ import annotations

import unicodedata
from functools import lru_cache
from typing import Optional

APOSTROPHES = frozenset("'`´ʹʻʼʽ‘’‛′")


def _is_word_char(ch: str) -> bool:
    # Spacing marks (e.g. Devanagari/Thai vowel signs) belong to the word
    return ch.isalnum() or unicodedata.category(ch).startswith("M")


@lru_cache(maxsize=50000)
def normalize(text: Optional[str]) -> str:
    """Return the comparable form of `text`. None and "" yield ""."""
    if not text:
        return ""

    # Lower-case after compatibility decomposition too: NFKD can surface capitals (ℌ -> H)
    decomposed = unicodedata.normalize("NFKD", unicodedata.normalize("NFKD", text).lower())

    out: list[str] = []
    pending_space = False
    for ch in decomposed:
        if unicodedata.combining(ch) or ch in APOSTROPHES:
            continue
        if _is_word_char(ch):
            if pending_space and out:
                out.append(" ")
            pending_space = False
            out.append(ch)
        else:
            pending_space = True

    return "".join(out)


def tokens(text: Optional[str]) -> list[str]:
    """Normalized whitespace-separated tokens of `text`."""
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []
