"""
Pydantic models used across the service for validation and serialization.
These are pure data objects with no cache or network coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


# ── Translation status ────────────────────────────────────────────────

class TranslationSource(str, Enum):
    DATASET = "dataset"
    PROVIDER = "provider"


class Translated(BaseModel):
    """The display name was localized into the requested language."""
    status: Literal["translated"] = "translated"
    source: TranslationSource = TranslationSource.PROVIDER


class TranslationFailure(BaseModel):
    """Localization failed; `original` is the name that is being shown instead."""
    status: Literal["failed"] = "failed"
    original: str


TranslationStatus = Annotated[
    Union[Translated, TranslationFailure], Field(discriminator="status")
]


# ── Reference data ────────────────────────────────────────────────────

class Place(BaseModel):
    """A city/subdivision-level record flattened out of the dataset."""
    id: int
    name: str
    original_name: Optional[str] = None
    state_code: Optional[str] = None
    state_name: str = ""
    country_code: str = Field(..., min_length=2, max_length=2)
    kind: str = "subdivision"
    parent: Optional[str] = None
    # Localized names shipped with the dataset; used for matching, never serialized
    names: dict[str, str] = Field(default_factory=dict, exclude=True)
    translation: Optional[TranslationStatus] = None

    model_config = {"frozen": True}

    def localized_name(self, language: str) -> Optional[str]:
        return self.names.get(language)

    @property
    def translation_error(self) -> bool:
        return isinstance(self.translation, TranslationFailure)


class CountrySummary(BaseModel):
    id: int
    alpha2: str
    alpha3: str
    names: dict[str, str] = Field(default_factory=dict)


# ── Search results ────────────────────────────────────────────────────

GLOBAL_SCOPE = "global"


class SearchResult(BaseModel):
    """
    Outcome of a place search. `places` is ordered best match first; equal
    scores are ordered by `original_name` when it is set (the pre-localization
    name), else by `name`.
    """
    query: str
    resolved_query: str
    alternate_query: Optional[str] = None
    language: str
    scope: str = GLOBAL_SCOPE  # "global" or an ISO alpha-2 code
    country: Optional[CountrySummary] = None
    places: list[Place] = Field(default_factory=list)
    from_cache: bool = False

    @property
    def is_global(self) -> bool:
        return self.scope == GLOBAL_SCOPE


class PlaceListing(BaseModel):
    """Every place of one country, localized into `language`."""
    country: CountrySummary
    language: str
    places: list[Place] = Field(default_factory=list)
    from_cache: bool = False


# ── API response models ───────────────────────────────────────────────

class PlaceSearchResponse(BaseModel):
    type: Literal["city"] = "city"
    query: str
    resolved_query: str
    alternate_query: Optional[str] = None
    language: str
    scope: str
    country: Optional[CountrySummary] = None
    count: int
    places: list[Place]
    from_cache: bool = False


class CountrySearchResponse(BaseModel):
    type: Literal["country"] = "country"
    query: str
    languages: list[str]
    count: int
    countries: list[CountrySummary]


class CountryListResponse(BaseModel):
    languages: list[str]
    count: int
    countries: list[CountrySummary]


class PlaceListingResponse(BaseModel):
    country: CountrySummary
    language: str
    count: int
    places: list[Place]
    from_cache: bool = False


class CacheClearResponse(BaseModel):
    success: bool
    message: str
    cleared_count: Optional[int] = None


class LanguagesResponse(BaseModel):
    count: int
    languages: list[str]


class HealthResponse(BaseModel):
    status: str = "ok"
    countries: int = 0
    places: int = 0
    cache_backend: str = "memory"
    translation_enabled: bool = False
