"""
Tests for tiered place scoring.
"""

from __future__ import annotations

import pytest

from placefinder.models import Place
from placefinder.scorer import (
    NORMALIZED_EXACT,
    NORMALIZED_PREFIX,
    NORMALIZED_SUBSTRING,
    RAW_EXACT,
    RAW_PREFIX,
    RAW_SUBSTRING,
    PreparedQuery,
    Scorer,
)


def _place(pid: int, name: str, state_name: str = "", state_code: str | None = None,
           country_code: str = "LB", names: dict | None = None) -> Place:
    return Place(
        id=pid,
        name=name,
        state_name=state_name,
        state_code=state_code,
        country_code=country_code,
        kind="city",
        names=names or {},
    )


def q(text: str) -> PreparedQuery:
    return PreparedQuery.from_text(text)


@pytest.fixture
def scorer():
    return Scorer()


class TestFieldTiers:
    def test_raw_exact(self, scorer):
        assert scorer.match_field("Beirut", q("beirut")) == RAW_EXACT
        assert scorer.match_field("Beirut", q("  BEIRUT ")) == RAW_EXACT

    def test_raw_prefix(self, scorer):
        assert scorer.match_field("Beirut", q("bei")) == RAW_PREFIX
        # Prefixes have no minimum length
        assert scorer.match_field("Beirut", q("b")) == RAW_PREFIX

    def test_raw_substring(self, scorer):
        assert scorer.match_field("Beirut", q("iru")) == RAW_SUBSTRING

    def test_raw_substring_needs_three_chars(self, scorer):
        assert scorer.match_field("Beirut", q("ir")) is None

    def test_normalized_exact(self, scorer):
        assert scorer.match_field("Zahlé", q("zahle")) == NORMALIZED_EXACT

    def test_normalized_prefix(self, scorer):
        assert scorer.match_field("Île-de-France", q("ile de")) == NORMALIZED_PREFIX

    def test_normalized_substring(self, scorer):
        assert scorer.match_field("Île-de-France", q("de fra")) == NORMALIZED_SUBSTRING

    def test_fuzzy(self, scorer):
        assert scorer.match_field("Beirut", q("beirt")) == pytest.approx(1 + 1 / 6)

    def test_fuzzy_on_any_token(self, scorer):
        assert scorer.match_field("Mount Lebanon", q("lebanin")) == pytest.approx(1 + 1 / 7)

    def test_no_match(self, scorer):
        assert scorer.match_field("Beirut", q("x")) is None
        assert scorer.match_field("Beirut", q("tokyo")) is None

    def test_empty_values(self, scorer):
        assert scorer.match_field(None, q("beirut")) is None
        assert scorer.match_field("", q("beirut")) is None

    def test_exact_beats_substring(self, scorer):
        exact = scorer.match_field("Sur", q("sur"))
        substring = scorer.match_field("Nahr Sur", q("sur"))
        assert exact < substring


class TestPlaceScore:
    def test_name_match(self, scorer):
        place = _place(1, "Beirut", "Beirut", "BA")
        assert scorer.score(place, q("beirut"), "en") == 0.0

    def test_region_name_penalty(self, scorer):
        place = _place(1, "Tripoli", "North", "AS")
        assert scorer.score(place, q("north"), "en") == pytest.approx(0.5)

    def test_region_code_penalty(self, scorer):
        place = _place(1, "Tripoli", "North", "AS")
        assert scorer.score(place, q("as"), "en") == pytest.approx(0.75)

    def test_translated_name_only_outside_english(self, scorer):
        place = _place(1, "Beirut", "Beirut", "BA", names={"ar": "بيروت"})
        assert scorer.score(place, q("بيروت"), "ar") == pytest.approx(0.1)
        assert scorer.score(place, q("بيروت"), "en") is None

    def test_best_field_wins(self, scorer):
        place = _place(1, "Beirut", "Beirut", "BA")
        # Name and region name both match exactly; the name has no penalty
        assert scorer.score(place, q("Beirut"), "en") == 0.0

    def test_name_outranks_region_code(self, scorer):
        by_name = _place(1, "Sur", "South", "JA")
        by_code = _place(2, "Tyre", "South", "SUR")
        assert scorer.score(by_name, q("sur"), "en") < scorer.score(by_code, q("sur"), "en")

    def test_no_field_matches(self, scorer):
        place = _place(1, "Beirut", "Beirut", "BA")
        assert scorer.score(place, q("xyz123notaplace"), "en") is None


class TestRanking:
    def test_sorted_by_score_then_name(self, scorer):
        places = [
            _place(1, "Tyre", "South", "JA"),
            _place(2, "South", "South", "JA"),
            _place(3, "Sidon", "South", "JA"),
            _place(4, "Beirut", "Beirut", "BA"),
        ]
        ranked = scorer.rank(places, q("south"), "en")
        assert [c.place.name for c in ranked] == ["South", "Sidon", "Tyre"]
        assert [c.score for c in ranked] == [0.0, 0.5, 0.5]

    def test_scores_non_decreasing(self, scorer):
        places = [
            _place(1, "Beirut", "Beirut", "BA"),
            _place(2, "Beit Mery", "Mount Lebanon", "JL"),
            _place(3, "Bint Jbeil", "Nabatieh", "NA"),
            _place(4, "Batroun", "North", "AS"),
        ]
        ranked = scorer.rank(places, q("bei"), "en")
        scores = [c.score for c in ranked]
        assert scores == sorted(scores)
        assert ranked[0].place.name == "Beirut"

    def test_first_letter_gate_prunes_fuzzy(self):
        places = [_place(1, "Beirut", "Beirut", "BA")]
        assert Scorer().rank(places, q("xeirut"), "en")
        assert Scorer(first_letter_gate=True).rank(places, q("xeirut"), "en") == []
