"""
Search orchestrator.

search(query, language, scope):
  1. Validate the query, resolve language and scope
  2. Return the cached result if (scope, language, normalized query) was seen before
  3. Score the scope's candidates and order them by (score, name)
  4. Nothing matched? Translate the query to English and score again
  5. Localize display names for non-English requests (per-place degradation)
  6. Write the result through to the cache (no expiry) and return it

Only InvalidQuery and CountryNotFound propagate; translation and cache
failures degrade the result instead of failing it.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

from pydantic import ValidationError

from placefinder.cache import NullCache, ResultCache, build_cache_backend
from placefinder.config import SearchConfig, get_settings
from placefinder.dataset import (
    SUPPORTED_LANGUAGES,
    country_names,
    filter_languages,
    normalize_language,
)
from placefinder.errors import InvalidQuery, TranslationError, TranslationUnavailable
from placefinder.index import PlaceIndex
from placefinder.models import (
    GLOBAL_SCOPE,
    CountrySummary,
    Place,
    PlaceListing,
    SearchResult,
    Translated,
    TranslationFailure,
    TranslationSource,
)
from placefinder.scorer import (
    ENGLISH,
    NAME_PENALTY,
    REGION_CODE_PENALTY,
    TRANSLATED_NAME_PENALTY,
    PreparedQuery,
    ScoredPlace,
    Scorer,
)
from placefinder.translation import AUTO, GoogleTranslator, Translator

logger = logging.getLogger(__name__)

GLOBAL_ALIASES = frozenset({"", "global", "*", "all"})


class PlaceSearch:
    def __init__(
        self,
        index: PlaceIndex,
        cache: Optional[ResultCache] = None,
        translator: Optional[Translator] = None,
        config: Optional[SearchConfig] = None,
    ):
        config = config or get_settings().search
        self.index = index
        self.cache = cache or ResultCache(NullCache())
        self.translator = translator
        self.default_language = config.default_language
        self.scorer = Scorer(max_ratio=config.fuzzy_max_ratio, first_letter_gate=config.first_letter_gate)

    # ── Place search ──────────────────────────────────────────────────

    async def search(self, query: str, language: str = ENGLISH, scope: Optional[str] = None) -> SearchResult:
        text = (query or "").strip()
        if not text:
            raise InvalidQuery()

        lang = normalize_language(language, self.default_language)
        country = self._resolve_scope(scope)
        alpha2 = country["alpha2"].upper() if country is not None else None
        scope_tag = alpha2.lower() if alpha2 else GLOBAL_SCOPE

        prepared = PreparedQuery.from_text(text)
        # Pure-symbol queries normalize to "", so fall back to the raw form
        key = self.cache.search_key(scope_tag, lang, prepared.normalized or prepared.raw)

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return SearchResult.model_validate(cached).model_copy(update={"from_cache": True})
            except ValidationError as e:
                logger.warning("Discarding malformed cache entry '%s': %s", key, e)

        candidates = self.index.all_places() if alpha2 is None else self.index.places_for_country(alpha2)
        ranked = self.scorer.rank(candidates, prepared, lang)

        resolved_query, alternate_query = text, None
        if not ranked:
            fallback = await self._english_fallback(text, candidates)
            if fallback is not None:
                resolved_query, ranked = fallback
                alternate_query = text

        places = [c.place for c in ranked]
        if places and lang != ENGLISH:
            places = await self._localize(places, lang)

        result = SearchResult(
            query=text,
            resolved_query=resolved_query,
            alternate_query=alternate_query,
            language=lang,
            scope=alpha2 or GLOBAL_SCOPE,
            country=self._summary(country, [lang]) if country is not None else None,
            places=places,
            from_cache=False,
        )
        logger.debug("Search '%s' (lang=%s, scope=%s): %d match(es)",
                     text, lang, result.scope, len(places))

        await self.cache.set(key, result.model_dump(mode="json"))
        return result

    def _resolve_scope(self, scope: Optional[str]) -> Optional[dict]:
        """None for a global search, else the country record (CountryNotFound if unknown)."""
        if scope is None or scope.strip().lower() in GLOBAL_ALIASES:
            return None
        return self.index.require_country(scope)

    async def _english_fallback(
        self, text: str, candidates: Sequence[Place]
    ) -> Optional[tuple[str, list[ScoredPlace]]]:
        """Re-score with the English translation of `text`; None if it can't help."""
        if self.translator is None or not self.translator.available:
            return None
        try:
            translated = (await self.translator.translate(text, ENGLISH, AUTO)).strip()
        except TranslationError as e:
            logger.warning("Query translation failed, skipping fallback for '%s': %s", text, e)
            return None

        if not translated or translated.lower() == text.lower():
            return None

        ranked = self.scorer.rank(candidates, PreparedQuery.from_text(translated), ENGLISH)
        if not ranked:
            return None
        logger.info("No direct match for '%s'; English translation '%s' matched %d place(s)",
                    text, translated, len(ranked))
        return translated, ranked

    async def _localize(self, places: list[Place], language: str) -> list[Place]:
        """
        Swap display names for `language`. Dataset-provided names are used as is;
        the rest go to the translator in one batch. A failed batch keeps the
        original names and tags each affected place with TranslationFailure.
        """
        out: list[Optional[Place]] = [None] * len(places)
        pending: list[int] = []

        for i, place in enumerate(places):
            local = place.localized_name(language)
            if local:
                out[i] = place.model_copy(update={
                    "name": local,
                    "original_name": place.name,
                    "translation": Translated(source=TranslationSource.DATASET),
                })
            else:
                pending.append(i)

        if pending:
            names = [places[i].name for i in pending]
            try:
                if self.translator is None:
                    raise TranslationUnavailable("No translator configured")
                translated = await self.translator.translate_batch(names, language, ENGLISH)
            except TranslationError as e:
                logger.warning("Translation to '%s' failed, returning original names: %s", language, e)
                for i in pending:
                    place = places[i]
                    out[i] = place.model_copy(update={
                        "original_name": place.name,
                        "translation": TranslationFailure(original=place.name),
                    })
            else:
                for i, name in zip(pending, translated):
                    place = places[i]
                    out[i] = place.model_copy(update={
                        "name": name or place.name,
                        "original_name": place.name,
                        "translation": Translated(source=TranslationSource.PROVIDER),
                    })

        return [p for p in out if p is not None]

    # ── Listings ──────────────────────────────────────────────────────

    async def list_places(self, country_code: str, language: str = ENGLISH) -> PlaceListing:
        """Every place of one country, localized and cached like search results."""
        country = self.index.require_country(country_code)
        lang = normalize_language(language, self.default_language)
        alpha2 = country["alpha2"].upper()
        key = self.cache.listing_key(alpha2.lower(), lang)

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return PlaceListing.model_validate(cached).model_copy(update={"from_cache": True})
            except ValidationError as e:
                logger.warning("Discarding malformed cache entry '%s': %s", key, e)

        places = list(self.index.places_for_country(alpha2))
        if places and lang != ENGLISH:
            places = await self._localize(places, lang)

        listing = PlaceListing(
            country=self._summary(country, [lang]),
            language=lang,
            places=places,
        )
        await self.cache.set(key, listing.model_dump(mode="json"))
        return listing

    # ── Countries ─────────────────────────────────────────────────────

    def get_country(self, code: str, languages: Optional[list[str]] = None) -> CountrySummary:
        country = self.index.require_country(code)
        return self._summary(country, filter_languages(languages, self.default_language))

    def list_countries(self, languages: Optional[list[str]] = None) -> list[CountrySummary]:
        langs = filter_languages(languages, self.default_language)
        return [self._summary(c, langs) for c in self.index.snapshot().countries]

    def search_countries(self, query: str, languages: Optional[list[str]] = None) -> list[CountrySummary]:
        """Countries whose English/requested-language name or ISO code matches `query`."""
        text = (query or "").strip()
        if not text:
            raise InvalidQuery()

        langs = filter_languages(languages, self.default_language)
        prepared = PreparedQuery.from_text(text)

        scored: list[tuple[float, str, dict]] = []
        for country in self.index.snapshot().countries:
            fields = [(country.get("en"), NAME_PENALTY)]
            fields += [(country.get(lang), TRANSLATED_NAME_PENALTY) for lang in langs if lang != ENGLISH]
            fields += [(country["alpha2"], REGION_CODE_PENALTY), (country["alpha3"], REGION_CODE_PENALTY)]
            s = self.scorer.score_fields(fields, prepared)
            if s is not None:
                scored.append((s, country.get("en") or "", country))

        scored.sort(key=lambda t: (t[0], t[1]))
        return [self._summary(c, langs) for _, _, c in scored]

    @staticmethod
    def _summary(country: dict, languages: list[str]) -> CountrySummary:
        return CountrySummary(
            id=int(country.get("id") or 0),
            alpha2=country["alpha2"].upper(),
            alpha3=country["alpha3"].upper(),
            names=country_names(country, languages),
        )

    # ── Invalidation ──────────────────────────────────────────────────

    async def invalidate_scope(self, country_code: str) -> bool:
        """
        Best-effort removal of one country's cached searches and listings.
        Deletes fan out independently per supported language, so a failure
        part-way leaves some languages cached; the return value is False then.
        """
        country = self.index.find_country(country_code)
        if country is None:
            logger.warning("Cannot invalidate unknown country '%s'", country_code)
            return False

        alpha2 = country["alpha2"].upper()
        tag = alpha2.lower()
        ok = True
        for lang in SUPPORTED_LANGUAGES:
            if await self.cache.delete_prefix(self.cache.search_prefix(tag, lang)) is None:
                ok = False
            if not await self.cache.delete(self.cache.listing_key(tag, lang)):
                ok = False

        self.index.forget_country(alpha2)
        logger.info("Cache invalidated for country %s (complete=%s)", alpha2, ok)
        return ok

    async def invalidate_all(self) -> dict:
        """Sweep the whole cache namespace and force an index rebuild on next access."""
        cleared = await self.cache.clear()
        self.index.reset()
        logger.info("Cleared %d cache entries", cleared)
        return {"cleared_count": cleared}

    def stats(self) -> dict:
        snap = self.index.snapshot()
        return {
            "countries": len(snap.countries),
            "places": len(snap.places),
            "cache_backend": self.cache.backend.name,
            "translation_enabled": bool(self.translator is not None and self.translator.available),
        }


# ── Factory ───────────────────────────────────────────────────────────

@lru_cache(maxsize=1)
def get_search_service() -> PlaceSearch:
    """Process-wide service wired from settings."""
    settings = get_settings()
    cache = ResultCache(
        build_cache_backend(settings.cache),
        namespace=settings.cache.namespace,
        ttl_seconds=settings.cache.result_ttl_seconds,
    )
    return PlaceSearch(
        index=PlaceIndex.from_path(settings.dataset.path),
        cache=cache,
        translator=GoogleTranslator(settings.translation, cache=cache),
        config=settings.search,
    )
