"""
In-memory place index.

The hierarchical country -> subdivision dataset is flattened into uniform
Place records once and held as an immutable PlaceSnapshot. PlaceIndex owns
the snapshot: it builds it lazily behind a lock on first access, can reload
(build a fresh snapshot, then swap the reference) and can be reset so the next
access rebuilds from the dataset file.

Place ids are sequential per flattening pass and are not stable across reloads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from placefinder.dataset import load_dataset
from placefinder.errors import CountryNotFound
from placefinder.models import Place

logger = logging.getLogger(__name__)


def _short_code(code: Optional[str], country_code: str) -> Optional[str]:
    """"LB-JL" -> "JL"; codes without the country prefix pass through."""
    if not code:
        return None
    prefix = f"{country_code}-"
    if code.upper().startswith(prefix):
        return code[len(prefix):]
    return code


def flatten(records: list[dict]) -> list[Place]:
    """Turn country records into Place records, numbering them from 1."""
    places: list[Place] = []
    next_id = 1

    for country in records:
        cc = country["alpha2"].upper()
        subdivisions = country.get("subdivisions") or []
        by_code = {s["code"]: s for s in subdivisions if s.get("code")}

        for sub in subdivisions:
            name = sub.get("name")
            if not name:
                logger.debug("Skipping unnamed subdivision %s in %s", sub.get("code"), cc)
                continue

            parent_code = sub.get("parent")
            region = by_code.get(parent_code) if parent_code else sub
            if region is not None:
                state_code = _short_code(region.get("code"), cc)
                state_name = region.get("name") or ""
            else:
                state_code = _short_code(parent_code, cc)
                state_name = ""

            places.append(Place(
                id=next_id,
                name=name,
                state_code=sub.get("state_code", state_code),
                state_name=sub.get("state_name", state_name) or "",
                country_code=cc,
                kind=sub.get("type") or "subdivision",
                parent=parent_code,
                names=dict(sub.get("names") or {}),
            ))
            next_id += 1

    return places


@dataclass(frozen=True, eq=False)
class PlaceSnapshot:
    countries: tuple[dict, ...]
    places: tuple[Place, ...]
    _lookup: dict[str, dict] = field(default_factory=dict, repr=False)
    # Per-country place lists, filled on demand
    _by_country: dict[str, tuple[Place, ...]] = field(default_factory=dict, repr=False)

    @classmethod
    def build(cls, records: list[dict]) -> "PlaceSnapshot":
        lookup: dict[str, dict] = {}
        for record in records:
            lookup[record["alpha2"].upper()] = record
            lookup[record["alpha3"].upper()] = record
            if record.get("id") is not None:
                lookup[str(record["id"])] = record
        return cls(countries=tuple(records), places=tuple(flatten(records)), _lookup=lookup)

    def find_country(self, code: Optional[str]) -> Optional[dict]:
        """Country record by alpha-2, alpha-3 (any case) or numeric id."""
        if not code:
            return None
        return self._lookup.get(code.strip().upper())

    def places_for_country(self, alpha2: str) -> tuple[Place, ...]:
        cached = self._by_country.get(alpha2)
        if cached is None:
            cached = tuple(p for p in self.places if p.country_code == alpha2)
            self._by_country[alpha2] = cached
        return cached

    def forget(self, alpha2: str) -> None:
        """Drop the memoized place list of one country; it is rebuilt on next use."""
        self._by_country.pop(alpha2.upper(), None)


class PlaceIndex:
    """Lazily built, reloadable holder of the current PlaceSnapshot."""

    def __init__(self, loader: Callable[[], list[dict]]):
        self._loader = loader
        self._lock = threading.Lock()
        self._snapshot: Optional[PlaceSnapshot] = None

    @classmethod
    def from_path(cls, path: str) -> "PlaceIndex":
        return cls(lambda: load_dataset(path))

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def snapshot(self) -> PlaceSnapshot:
        snap = self._snapshot
        if snap is not None:
            return snap
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._build()
            return self._snapshot

    def reload(self) -> PlaceSnapshot:
        """Rebuild from the dataset and swap it in; readers keep the old one meanwhile."""
        fresh = self._build()
        with self._lock:
            self._snapshot = fresh
        return fresh

    def reset(self) -> None:
        """Drop the snapshot; the next access rebuilds it."""
        with self._lock:
            self._snapshot = None
        logger.info("Place index reset")

    def _build(self) -> PlaceSnapshot:
        snap = PlaceSnapshot.build(self._loader())
        logger.info("Place index built: %d countries, %d places",
                    len(snap.countries), len(snap.places))
        return snap

    # ── Lookups ───────────────────────────────────────────────────────

    def all_places(self) -> tuple[Place, ...]:
        return self.snapshot().places

    def find_country(self, code: Optional[str]) -> Optional[dict]:
        return self.snapshot().find_country(code)

    def require_country(self, code: Optional[str]) -> dict:
        country = self.find_country(code)
        if country is None:
            raise CountryNotFound(code or "")
        return country

    def places_for_country(self, code: str) -> tuple[Place, ...]:
        country = self.require_country(code)
        return self.snapshot().places_for_country(country["alpha2"].upper())

    def forget_country(self, alpha2: str) -> None:
        """Drop the memoized place list of one country."""
        snap = self._snapshot
        if snap is not None:
            snap.forget(alpha2)
