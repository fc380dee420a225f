"""
Shared fixtures: a tiny three-country dataset, a scripted translator and a
service factory. No network or database required.
"""

from __future__ import annotations

import copy
import json

import pytest

from placefinder.cache import MemoryCache, ResultCache
from placefinder.config import SearchConfig
from placefinder.errors import CacheUnavailable, TranslationFailed
from placefinder.index import PlaceIndex
from placefinder.search import PlaceSearch

DATASET = [
    {
        "id": 422, "alpha2": "lb", "alpha3": "lbn",
        "en": "Lebanon", "fr": "Liban", "ar": "لبنان",
        "subdivisions": [
            {"code": "LB-BA", "name": "Beirut", "type": "governorate",
             "names": {"ar": "بيروت", "fr": "Beyrouth"}},
            {"code": "LB-AS", "name": "North", "type": "governorate"},
            {"code": "LB-JA", "name": "South", "type": "governorate"},
            {"code": "LB-JL", "name": "Mount Lebanon", "type": "governorate"},
            {"code": "LB-AS-TRI", "name": "Tripoli", "type": "city", "parent": "LB-AS",
             "names": {"ar": "طرابلس"}},
            {"code": "LB-JA-SID", "name": "Sidon", "type": "city", "parent": "LB-JA"},
            {"code": "LB-JA-TYR", "name": "Tyre", "type": "city", "parent": "LB-JA"},
            {"code": "LB-JL-JOU", "name": "Jounieh", "type": "city", "parent": "LB-JL"},
            {"code": "LB-BI-ZAH", "name": "Zahlé", "type": "city", "parent": "LB-BI"},
        ],
    },
    {
        "id": 250, "alpha2": "fr", "alpha3": "fra",
        "en": "France", "fr": "France", "de": "Frankreich",
        "subdivisions": [
            {"code": "FR-IDF", "name": "Île-de-France", "type": "region"},
            {"code": "FR-IDF-PAR", "name": "Paris", "type": "city", "parent": "FR-IDF",
             "names": {"fr": "Paris"}},
        ],
    },
    {
        "id": 276, "alpha2": "de", "alpha3": "deu",
        "en": "Germany", "de": "Deutschland",
        "subdivisions": [
            {"code": "DE-BY", "name": "Bavaria", "type": "land", "names": {"de": "Bayern"}},
            {"code": "DE-BY-MUC", "name": "Munich", "type": "city", "parent": "DE-BY",
             "names": {"de": "München"}},
        ],
    },
]


class FakeTranslator:
    """Scripted stand-in for GoogleTranslator. Unknown texts come back unchanged."""

    def __init__(self, mapping: dict | None = None, available: bool = True, fail: bool = False):
        self.mapping = mapping or {}
        self._available = available
        self.fail = fail
        self.calls: list[tuple] = []

    @property
    def available(self) -> bool:
        return self._available

    async def translate(self, text, target, source="auto"):
        self.calls.append(("translate", text, target, source))
        if self.fail:
            raise TranslationFailed("provider down")
        return self.mapping.get((text, target), text)

    async def translate_batch(self, texts, target, source="en"):
        self.calls.append(("batch", tuple(texts), target, source))
        if self.fail:
            raise TranslationFailed("provider down")
        return [self.mapping.get((t, target), t) for t in texts]


@pytest.fixture
def dataset_path(tmp_path):
    path = tmp_path / "countries.json"
    path.write_text(json.dumps(DATASET, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def index(dataset_path):
    return PlaceIndex.from_path(str(dataset_path))


@pytest.fixture
def search_config():
    return SearchConfig(default_language="en", first_letter_gate=False, fuzzy_max_ratio=0.5)


@pytest.fixture
def make_service(index, search_config):
    """Build a PlaceSearch over the test dataset; defaults to an in-memory cache."""
    def _make(translator=None, cache=None, config=None):
        return PlaceSearch(
            index=index,
            cache=cache if cache is not None else ResultCache(MemoryCache()),
            translator=translator,
            config=config or search_config,
        )
    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def records():
    """Raw country records of the test dataset."""
    return copy.deepcopy(DATASET)


class BrokenBackend:
    """Cache backend whose store is unreachable."""

    name = "broken"

    async def get(self, key):
        raise CacheUnavailable("connection refused")

    async def set(self, key, value, ttl_seconds=0):
        raise CacheUnavailable("connection refused")

    async def delete(self, key):
        raise CacheUnavailable("connection refused")

    async def delete_prefix(self, prefix):
        raise CacheUnavailable("connection refused")


@pytest.fixture
def broken_cache():
    return ResultCache(BrokenBackend())


@pytest.fixture
def make_translator():
    return FakeTranslator
