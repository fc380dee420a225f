"""
Central configuration loaded from environment variables with sensible defaults.
All secrets come from env vars; no hardcoded credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

_DEFAULT_DATASET = Path(__file__).resolve().parent / "data" / "countries.json"


@dataclass(frozen=True)
class DatasetConfig:
    path: str = os.getenv("PLACES_DATASET_PATH", str(_DEFAULT_DATASET))


@dataclass(frozen=True)
class TranslationConfig:
    api_url: str = os.getenv(
        "TRANSLATE_API_URL", "https://translation.googleapis.com/language/translate/v2"
    )
    api_key: str = os.getenv("GOOGLE_CLOUD_API_KEY", "")
    # Per-request timeout in seconds; a slow provider degrades the search, never blocks it
    timeout: float = float(os.getenv("TRANSLATE_TIMEOUT", "5.0"))
    max_retries: int = int(os.getenv("TRANSLATE_MAX_RETRIES", "2"))
    backoff_base: float = float(os.getenv("TRANSLATE_BACKOFF_BASE", "0.5"))

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class CacheConfig:
    backend: str = os.getenv("CACHE_BACKEND", "memory")  # memory | postgres | none
    namespace: str = os.getenv("CACHE_NAMESPACE", "placefinder:")
    # 0 = keep forever (dataset and translations are static)
    result_ttl_seconds: int = int(os.getenv("CACHE_RESULT_TTL", "0"))


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = os.getenv("PG_HOST", "localhost")
    port: int = int(os.getenv("PG_PORT", "5432"))
    user: str = os.getenv("PG_USER", "placefinder")
    password: str = os.getenv("PG_PASSWORD", "placefinder")
    database: str = os.getenv("PG_DATABASE", "placefinder")
    min_pool_size: int = int(os.getenv("PG_POOL_MIN", "1"))
    max_pool_size: int = int(os.getenv("PG_POOL_MAX", "5"))

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class SearchConfig:
    default_language: str = os.getenv("SEARCH_DEFAULT_LANGUAGE", "en")
    # Skip edit-distance for tokens that don't share the query's first letter
    first_letter_gate: bool = os.getenv("SEARCH_FIRST_LETTER_GATE", "false").lower() == "true"
    fuzzy_max_ratio: float = float(os.getenv("SEARCH_FUZZY_MAX_RATIO", "0.5"))


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "3000"))
    max_results: int = int(os.getenv("API_MAX_RESULTS", "200"))


@dataclass(frozen=True)
class Settings:
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
