"""
Exception taxonomy.

Only InvalidQuery and CountryNotFound ever leave PlaceSearch.search(); the
translation and cache errors are absorbed into degraded results, and
DatasetLoadFailure is fatal at startup.
"""

from __future__ import annotations


class PlaceSearchError(Exception):
    """Base class for all placefinder errors."""


class InvalidQuery(PlaceSearchError):
    def __init__(self, message: str = "Search query is required"):
        super().__init__(message)


class CountryNotFound(PlaceSearchError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Country not found: {code}")


class TranslationError(PlaceSearchError):
    pass


class TranslationUnavailable(TranslationError):
    """No provider credential is configured."""


class TranslationFailed(TranslationError):
    """The provider request failed or returned an unusable payload."""


class CacheUnavailable(PlaceSearchError):
    pass


class DatasetLoadFailure(PlaceSearchError):
    pass
