"""
FastAPI service exposing place and country search.

Endpoints:
  GET    /search                  - Unified search (?type=city|country)
  GET    /countries               - All countries with names in the requested languages
  GET    /countries/search        - Country search by name or ISO code
  GET    /countries/{code}        - Single country by alpha-2, alpha-3 or numeric id
  GET    /places/{country}        - Every place of a country, localized
  DELETE /places/{country}/cache  - Invalidate one country's cached results
  DELETE /cache                   - Invalidate everything and rebuild the index lazily
  GET    /languages               - Supported language codes
  GET    /health                  - Dataset and wiring status
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from placefinder.config import get_settings
from placefinder.dataset import SUPPORTED_LANGUAGES, filter_languages
from placefinder.errors import CountryNotFound, InvalidQuery
from placefinder.models import (
    CacheClearResponse,
    CountryListResponse,
    CountrySearchResponse,
    CountrySummary,
    HealthResponse,
    LanguagesResponse,
    PlaceListingResponse,
    PlaceSearchResponse,
)
from placefinder.search import PlaceSearch, get_search_service

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load the place index (fatal on failure). Shutdown: close the DB pool."""
    settings = get_settings()
    logger.info("Starting up API server...")
    service = get_search_service()
    service.index.snapshot()
    yield
    if settings.cache.backend == "postgres":
        from placefinder.db import close_pool

        await close_pool()
    logger.info("API server shut down.")


# ── App ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="Placefinder API",
    description="Resolve country and city names in any supported language",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Helpers ───────────────────────────────────────────────────────────

def _language_list(lang: Optional[str], languages: Optional[str]) -> list[str]:
    """`?languages=fr,de` wins over `?lang=fr`; defaults to English."""
    if languages:
        return [item.strip() for item in languages.split(",") if item.strip()]
    if lang:
        return [lang.strip()]
    return ["en"]


def _limit(items: list, limit: Optional[int]) -> list:
    max_results = get_settings().api.max_results
    return items[: min(limit or max_results, max_results)]


# ══════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ══════════════════════════════════════════════════════════════════════

@app.get("/search", response_model=PlaceSearchResponse | CountrySearchResponse)
async def unified_search(
    q: str = Query(..., max_length=200, description="Place or country name"),
    type: str = Query("city", pattern="^(city|country)$"),
    lang: Optional[str] = Query(None, description="Language code, e.g. 'ar'"),
    languages: Optional[str] = Query(None, description="Comma separated language codes (country search)"),
    country: Optional[str] = Query(None, description="Restrict city search to one country"),
    limit: Optional[int] = Query(None, ge=1),
    service: PlaceSearch = Depends(get_search_service),
):
    """
    City search ranks places across one country (or globally when `country` is
    omitted) and falls back to an English translation of the query when
    nothing matches. Country search matches names and ISO codes.
    """
    try:
        if type == "country":
            language_list = _language_list(lang, languages)
            countries = _limit(service.search_countries(q, language_list), limit)
            return CountrySearchResponse(
                query=q.strip(),
                languages=filter_languages(language_list),
                count=len(countries),
                countries=countries,
            )

        result = await service.search(q, lang or "en", country)
    except InvalidQuery as e:
        raise HTTPException(400, str(e))
    except CountryNotFound as e:
        raise HTTPException(404, str(e))

    places = _limit(result.places, limit)
    return PlaceSearchResponse(
        query=result.query,
        resolved_query=result.resolved_query,
        alternate_query=result.alternate_query,
        language=result.language,
        scope=result.scope,
        country=result.country,
        count=len(places),
        places=places,
        from_cache=result.from_cache,
    )


@app.get("/countries", response_model=CountryListResponse)
async def all_countries(
    lang: Optional[str] = Query(None),
    languages: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    service: PlaceSearch = Depends(get_search_service),
):
    language_list = filter_languages(_language_list(lang, languages))
    countries = service.list_countries(language_list)
    if limit:
        countries = countries[:limit]
    return CountryListResponse(languages=language_list, count=len(countries), countries=countries)


@app.get("/countries/search", response_model=CountrySearchResponse)
async def search_countries(
    q: str = Query(..., max_length=200),
    lang: Optional[str] = Query(None),
    languages: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    service: PlaceSearch = Depends(get_search_service),
):
    language_list = _language_list(lang, languages)
    try:
        countries = _limit(service.search_countries(q, language_list), limit)
    except InvalidQuery as e:
        raise HTTPException(400, str(e))
    return CountrySearchResponse(
        query=q.strip(),
        languages=filter_languages(language_list),
        count=len(countries),
        countries=countries,
    )


@app.get("/countries/{code}", response_model=CountrySummary)
async def get_country(
    code: str,
    lang: Optional[str] = Query(None),
    languages: Optional[str] = Query(None),
    service: PlaceSearch = Depends(get_search_service),
):
    try:
        return service.get_country(code, _language_list(lang, languages))
    except CountryNotFound as e:
        raise HTTPException(404, str(e))


@app.get("/places/{country_code}", response_model=PlaceListingResponse | PlaceSearchResponse)
async def country_places(
    country_code: str,
    lang: Optional[str] = Query(None),
    q: Optional[str] = Query(None, max_length=200, description="Optional search within the country"),
    service: PlaceSearch = Depends(get_search_service),
):
    """All places of a country, or a scoped search when `q` is given."""
    if q:
        return await unified_search(
            q=q, type="city", lang=lang, languages=None, country=country_code, limit=None, service=service,
        )
    try:
        listing = await service.list_places(country_code, lang or "en")
    except CountryNotFound as e:
        raise HTTPException(404, str(e))
    return PlaceListingResponse(
        country=listing.country,
        language=listing.language,
        count=len(listing.places),
        places=listing.places,
        from_cache=listing.from_cache,
    )


@app.delete("/places/{country_code}/cache", response_model=CacheClearResponse)
async def clear_country_cache(country_code: str, service: PlaceSearch = Depends(get_search_service)):
    if service.index.find_country(country_code) is None:
        raise HTTPException(404, f"Country not found: {country_code}")
    if not await service.invalidate_scope(country_code):
        raise HTTPException(500, f"Could not clear cache for country {country_code.upper()}")
    return CacheClearResponse(success=True, message=f"Cache cleared for country {country_code.upper()}")


@app.delete("/cache", response_model=CacheClearResponse)
async def clear_all_cache(service: PlaceSearch = Depends(get_search_service)):
    out = await service.invalidate_all()
    return CacheClearResponse(
        success=True,
        message="Cache cleared; place index will reload on next access",
        cleared_count=out["cleared_count"],
    )


@app.get("/languages", response_model=LanguagesResponse)
async def supported_languages():
    return LanguagesResponse(count=len(SUPPORTED_LANGUAGES), languages=list(SUPPORTED_LANGUAGES))


@app.get("/health", response_model=HealthResponse)
async def health_check(service: PlaceSearch = Depends(get_search_service)):
    """Dataset and wiring status."""
    try:
        return HealthResponse(status="ok", **service.stats())
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return HealthResponse(status="error")
