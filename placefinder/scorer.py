"""
Multi-tier place scoring. Lower scores are better.

Each searchable field of a candidate is matched independently and the first
tier that fires wins:

    tier                                     score
    raw exact (case-insensitive)             0
    raw prefix                               0.2
    raw substring (query >= 3 chars)         0.4
    normalized exact                         0.3
    normalized prefix                        0.45
    normalized substring (query >= 3 chars)  0.6
    fuzzy token match                        1 + distance / max(len)

A field-priority penalty is then added (original name < translated name <
region name < region code) and the candidate keeps its best field. A candidate
with no matching field is not a match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from placefinder.matching import DEFAULT_MAX_RATIO, best_token_ratio
from placefinder.models import Place
from placefinder.normalize import normalize

ENGLISH = "en"

# Field-priority penalties
NAME_PENALTY = 0.0
TRANSLATED_NAME_PENALTY = 0.1
REGION_NAME_PENALTY = 0.5
REGION_CODE_PENALTY = 0.75

# Tier scores
RAW_EXACT = 0.0
RAW_PREFIX = 0.2
RAW_SUBSTRING = 0.4
NORMALIZED_EXACT = 0.3
NORMALIZED_PREFIX = 0.45
NORMALIZED_SUBSTRING = 0.6
FUZZY_BASE = 1.0

MIN_SUBSTRING_LENGTH = 3
MIN_FUZZY_QUERY_LENGTH = 2


@dataclass(frozen=True)
class ScoredPlace:
    score: float
    place: Place


@dataclass(frozen=True)
class PreparedQuery:
    """A query in the two forms every tier needs."""
    raw: str          # trimmed, lower-cased
    normalized: str

    @classmethod
    def from_text(cls, text: str) -> "PreparedQuery":
        return cls(raw=text.strip().lower(), normalized=normalize(text))


class Scorer:
    def __init__(self, max_ratio: float = DEFAULT_MAX_RATIO, first_letter_gate: bool = False):
        self.max_ratio = max_ratio
        self.first_letter_gate = first_letter_gate

    def match_field(self, value: Optional[str], query: PreparedQuery) -> Optional[float]:
        """Tiered sub-score of one field value, or None if it doesn't match."""
        if not value:
            return None

        raw_value = value.lower()
        q = query.raw
        if q:
            if raw_value == q:
                return RAW_EXACT
            if raw_value.startswith(q):
                return RAW_PREFIX
            if len(q) >= MIN_SUBSTRING_LENGTH and q in raw_value:
                return RAW_SUBSTRING

        nq = query.normalized
        if not nq:
            return None
        norm_value = normalize(value)
        if not norm_value:
            return None
        if norm_value == nq:
            return NORMALIZED_EXACT
        if norm_value.startswith(nq):
            return NORMALIZED_PREFIX
        if len(nq) >= MIN_SUBSTRING_LENGTH and nq in norm_value:
            return NORMALIZED_SUBSTRING

        if len(nq) >= MIN_FUZZY_QUERY_LENGTH:
            ratio = best_token_ratio(
                norm_value.split(" "), nq, self.max_ratio, self.first_letter_gate
            )
            if ratio is not None:
                return FUZZY_BASE + ratio
        return None

    def score_fields(
        self, fields: Iterable[tuple[Optional[str], float]], query: PreparedQuery
    ) -> Optional[float]:
        """Best (lowest) penalized score across `(value, penalty)` pairs."""
        best: Optional[float] = None
        for value, penalty in fields:
            sub = self.match_field(value, query)
            if sub is None:
                continue
            total = sub + penalty
            if best is None or total < best:
                best = total
        return best

    def score(self, place: Place, query: PreparedQuery, language: str) -> Optional[float]:
        fields: list[tuple[Optional[str], float]] = [(place.name, NAME_PENALTY)]
        if language != ENGLISH:
            fields.append((place.localized_name(language), TRANSLATED_NAME_PENALTY))
        fields.append((place.state_name, REGION_NAME_PENALTY))
        fields.append((place.state_code, REGION_CODE_PENALTY))
        return self.score_fields(fields, query)

    def rank(self, places: Sequence[Place], query: PreparedQuery, language: str) -> list[ScoredPlace]:
        """Score every place, drop non-matches, order by (score, name)."""
        out: list[ScoredPlace] = []
        for place in places:
            s = self.score(place, query, language)
            if s is not None:
                out.append(ScoredPlace(score=s, place=place))
        out.sort(key=lambda c: (c.score, c.place.name))
        return out
