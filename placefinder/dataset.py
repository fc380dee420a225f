"""
Reference dataset loading.

The dataset is a JSON array of country records. Each record carries its ISO
codes, its name in every supported language (one key per language code) and a
list of subdivisions:

    {"id": 422, "alpha2": "lb", "alpha3": "lbn", "en": "Lebanon", "ar": "لبنان",
     "subdivisions": [
        {"code": "LB-BA", "name": "Beirut", "type": "governorate",
         "names": {"ar": "بيروت", "fr": "Beyrouth"}},
        {"code": "LB-JL-JOU", "name": "Jounieh", "type": "city", "parent": "LB-JL"}
     ]}

The file is read once and treated as immutable for the process lifetime.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from placefinder.errors import DatasetLoadFailure

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "ar", "bg", "br", "cs", "da", "de", "el", "en", "eo", "es", "et", "eu",
    "fa", "fi", "fr", "hr", "hu", "hy", "it", "ja", "ko", "lt", "nl", "no",
    "pl", "pt", "ro", "ru", "sk", "sl", "sr", "sv", "th", "tr", "uk", "zh", "zh-tw",
)


def load_dataset(path: str | Path) -> list[dict]:
    """Read and minimally validate the country/subdivision records at `path`."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            records = json.load(f)
    except FileNotFoundError as e:
        raise DatasetLoadFailure(f"Dataset file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetLoadFailure(f"Failed to load dataset {path}: {e}") from e

    if not isinstance(records, list):
        raise DatasetLoadFailure(f"Dataset {path} must be a JSON array of countries")

    for i, record in enumerate(records):
        if not isinstance(record, dict) or not record.get("alpha2") or not record.get("alpha3"):
            raise DatasetLoadFailure(f"Dataset {path}: record #{i} is missing alpha2/alpha3")

    logger.info("Loaded %d countries from %s", len(records), path)
    return records


def normalize_language(language: Optional[str], default: str = "en") -> str:
    """Trim and lower-case a language tag; unsupported tags fall back to `default`."""
    tag = (language or "").strip().lower().replace("_", "-")
    if not tag:
        return default
    if tag not in SUPPORTED_LANGUAGES:
        logger.warning("Unsupported language '%s', falling back to '%s'", language, default)
        return default
    return tag


def filter_languages(languages: Optional[list[str]], default: str = "en") -> list[str]:
    """Keep the supported tags of `languages` (deduplicated, in order); never empty."""
    valid: list[str] = []
    for lang in languages or []:
        tag = lang.strip().lower().replace("_", "-")
        if tag in SUPPORTED_LANGUAGES and tag not in valid:
            valid.append(tag)
    return valid or [default]


def country_names(record: dict, languages: Optional[list[str]] = None) -> dict[str, str]:
    """Localized names of a country record. English is always included."""
    wanted = languages if languages is not None else list(SUPPORTED_LANGUAGES)
    names: dict[str, str] = {}
    if record.get("en"):
        names["en"] = record["en"]
    for lang in wanted:
        if lang != "en" and record.get(lang):
            names[lang] = record[lang]
    return names
