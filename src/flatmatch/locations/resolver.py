"""Location resolution to canonical zones.

Rental posts describe their location loosely: a neighbourhood name with or
without accents, a postal code covering several neighbourhoods, a landmark
("près de Cornavin"), or just the city. This module maps such raw tokens to
the closed set of canonical zones defined in ``known_locations.json``.

The lookup index is built once and is read-only afterwards, so a single
resolver instance can be shared freely between concurrent workers.

Example:
    resolver = get_location_resolver()
    resolver.resolve("1227")          # frozenset({"Carouge", "Acacias"})
    resolver.resolve(" PAQUIS ")      # frozenset({"Pâquis"})
    resolver.resolve_listing_location(listing)
"""

import json
import logging
import re
from collections.abc import Iterable, Mapping
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel

from ..config import config as default_config
from ..models.listing import ListingRecord

logger = logging.getLogger(__name__)

CanonicalLocation = str

_WHITESPACE = re.compile(r"\s+")


class AliasContext(str, Enum):
    """Why a token maps to its canonical targets."""

    SPELLING_VARIANT = "spelling_variants"
    VAGUE_TERM = "vague_terms"
    LANDMARK = "landmarks"
    HISTORICAL_PLACE = "historical_places"
    ADMINISTRATIVE_SECTOR = "administrative_sectors"
    POSTAL_CODE = "postal_codes"
    OUTSIDE_CITY = "outside_cities"
    REGION_EXCLUSIVE = "region_exclusive_aliases"


class LocationAlias(BaseModel):
    """One raw token and the canonical zones it refers to."""

    token: str
    targets: tuple[CanonicalLocation, ...]
    context: AliasContext

    model_config = {"frozen": True}


class LocationDataError(ValueError):
    """Location data file is missing or structurally invalid."""


def normalize_token(raw: Optional[str]) -> str:
    """Lower-case, trim and collapse inner whitespace."""
    if not raw:
        return ""
    return _WHITESPACE.sub(" ", str(raw).strip()).lower()


class LocationResolver:
    """Resolve raw location tokens to canonical zones.

    Two indexes are kept: the general one (identity + every alias section)
    and the region-exclusive one, which holds short or generic names such
    as "gare" or "rive droite" that are only meaningful within Geneva.
    """

    def __init__(
        self,
        canonical_locations: Iterable[CanonicalLocation],
        aliases: Iterable[LocationAlias],
    ):
        """Build the lookup indexes.

        Args:
            canonical_locations: The closed set of canonical zones
            aliases: Alias records, in any context. Targets that are not
                canonical are skipped; use validate_consistency() to list them.
        """
        self._canonical = frozenset(canonical_locations)
        self._aliases = tuple(aliases)

        general: dict[str, set[str]] = {}
        exclusive: dict[str, set[str]] = {}

        for location in self._canonical:
            general.setdefault(normalize_token(location), set()).add(location)

        for alias in self._aliases:
            index = exclusive if alias.context is AliasContext.REGION_EXCLUSIVE else general
            key = normalize_token(alias.token)
            for target in alias.targets:
                if target not in self._canonical:
                    logger.debug(
                        f"Skipping non-canonical target {target!r} for {key!r} ({alias.context.value})"
                    )
                    continue
                index.setdefault(key, set()).add(target)

        self._index: Mapping[str, frozenset[str]] = MappingProxyType(
            {k: frozenset(v) for k, v in general.items()}
        )
        self._exclusive_index: Mapping[str, frozenset[str]] = MappingProxyType(
            {k: frozenset(v) for k, v in exclusive.items()}
        )

        logger.debug(
            f"Location index built: {len(self._canonical)} canonical, "
            f"{len(self._index)} tokens, {len(self._exclusive_index)} region-exclusive"
        )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocationResolver":
        """Build a resolver from the parsed known_locations structure."""
        try:
            canonical_sections = data["canonical_locations"]
            alias_sections = data.get("aliases", {})
            exclusive_section = data.get(AliasContext.REGION_EXCLUSIVE.value, {})
        except (KeyError, TypeError) as e:
            raise LocationDataError(f"Malformed location data: {e}") from e

        canonical = [loc for section in canonical_sections.values() for loc in section]

        aliases: list[LocationAlias] = []
        for section_name, mapping in alias_sections.items():
            try:
                context = AliasContext(section_name)
            except ValueError as e:
                raise LocationDataError(f"Unknown alias section: {section_name}") from e
            aliases.extend(
                LocationAlias(token=token, targets=tuple(targets), context=context)
                for token, targets in mapping.items()
            )
        aliases.extend(
            LocationAlias(
                token=token,
                targets=tuple(targets),
                context=AliasContext.REGION_EXCLUSIVE,
            )
            for token, targets in exclusive_section.items()
        )

        return cls(canonical, aliases)

    @classmethod
    def from_file(cls, path: Path) -> "LocationResolver":
        """Load known_locations.json from disk."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LocationDataError(f"Cannot load location data from {path}: {e}") from e
        return cls.from_dict(data)

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def canonical_locations(self) -> frozenset[CanonicalLocation]:
        return self._canonical

    @property
    def aliases(self) -> tuple[LocationAlias, ...]:
        return self._aliases

    def is_canonical(self, location: str) -> bool:
        return location in self._canonical

    def resolve(
        self, raw_token: Optional[str], region_scoped: bool = True
    ) -> frozenset[CanonicalLocation]:
        """Resolve one raw token to canonical zones.

        Args:
            raw_token: Neighbourhood, postal code, city or landmark as written
            region_scoped: Also apply the region-exclusive alias layer

        Returns:
            Set of canonical zones, empty when nothing matches
        """
        key = normalize_token(raw_token)
        if not key:
            return frozenset()

        matches = self._index.get(key, frozenset())
        if region_scoped:
            matches = matches | self._exclusive_index.get(key, frozenset())
        return matches

    def resolve_many(
        self, raw_tokens: Iterable[Optional[str]], region_scoped: bool = True
    ) -> frozenset[CanonicalLocation]:
        """Union of resolve() over several tokens."""
        result: frozenset[str] = frozenset()
        for token in raw_tokens:
            result |= self.resolve(token, region_scoped)
        return result

    def resolve_listing_location(
        self, listing: ListingRecord, region_scoped: bool = True
    ) -> list[CanonicalLocation]:
        """Resolve a listing using its most precise location field.

        Tries neighbourhood, then postal code, then city, and returns the
        first non-empty resolution (sorted).
        """
        for raw in (listing.neighborhood, listing.postal_code, listing.city):
            zones = self.resolve(raw, region_scoped)
            if zones:
                return sorted(zones)
        return []

    # =========================================================================
    # Consistency
    # =========================================================================

    def validate_consistency(self) -> list[str]:
        """List alias targets that are not canonical locations.

        Meant for CI and release gates; an empty list means the alias
        tables are well-formed.
        """
        errors = []
        for alias in self._aliases:
            for target in alias.targets:
                if target not in self._canonical:
                    errors.append(
                        f'Invalid target location "{target}" referenced in '
                        f'"{alias.context.value}" for key "{alias.token}"'
                    )
        return errors


@lru_cache(maxsize=None)
def get_location_resolver(path: Optional[Path] = None) -> LocationResolver:
    """Process-wide resolver, loaded once from the configured data file."""
    return LocationResolver.from_file(path or default_config.locations_file)
