"""Tests for LocationResolver."""

import pytest

from flatmatch.locations import (
    AliasContext,
    LocationAlias,
    LocationDataError,
    LocationResolver,
    normalize_token,
)
from flatmatch.models import ListingRecord

from conftest import make_listing


class TestNormalization:
    """Test token normalization."""

    def test_trims_and_lowercases(self):
        assert normalize_token("  Eaux-Vives ") == "eaux-vives"

    def test_collapses_inner_whitespace(self):
        assert normalize_token("rive   droite") == "rive droite"

    def test_empty_input(self):
        assert normalize_token(None) == ""
        assert normalize_token("   ") == ""


class TestResolve:
    """Test single-token resolution."""

    def test_canonical_resolves_to_itself(self, resolver: LocationResolver):
        """Already-canonical input contains itself."""
        for zone in resolver.canonical_locations:
            assert zone in resolver.resolve(zone)

    def test_case_and_whitespace_insensitive(self, resolver: LocationResolver):
        assert resolver.resolve(" CAROUGE ") == resolver.resolve("carouge")
        assert resolver.resolve("carouge") == {"Carouge"}

    def test_spelling_variant(self, resolver: LocationResolver):
        assert resolver.resolve("paquis") == {"Pâquis"}
        assert resolver.resolve("Les Eaux-Vives") == {"Eaux-Vives"}

    def test_postal_code_covers_several_zones(self, resolver: LocationResolver):
        """One postal code maps to more than one canonical zone."""
        zones = resolver.resolve("1201")
        assert len(zones) > 1
        assert {"Pâquis", "Grottes", "Saint-Gervais"} <= zones

    def test_carouge_postal_code(self, resolver: LocationResolver):
        assert resolver.resolve("1227") == {"Carouge", "Acacias"}

    def test_landmark(self, resolver: LocationResolver):
        assert resolver.resolve("Cornavin") == {"Saint-Gervais", "Grottes"}

    def test_outside_city(self, resolver: LocationResolver):
        assert resolver.resolve("Ferney") == {"Ferney-Voltaire"}

    def test_unknown_token_returns_empty(self, resolver: LocationResolver):
        assert resolver.resolve("Atlantis") == frozenset()
        assert resolver.resolve("") == frozenset()
        assert resolver.resolve(None) == frozenset()

    def test_region_exclusive_only_when_scoped(self, resolver: LocationResolver):
        """Ambiguous short names resolve only within the home region."""
        assert resolver.resolve("gare", region_scoped=True) == {"Saint-Gervais", "Grottes"}
        assert resolver.resolve("gare", region_scoped=False) == frozenset()

    def test_unscoped_still_resolves_general_aliases(self, resolver: LocationResolver):
        assert resolver.resolve("paquis", region_scoped=False) == {"Pâquis"}

    def test_resolve_many_unions(self, resolver: LocationResolver):
        zones = resolver.resolve_many(["Carouge", "1201", "nowhere"])
        assert zones == {"Carouge", "Pâquis", "Grottes", "Saint-Gervais"}


class TestResolveListingLocation:
    """Test listing field precedence."""

    def test_neighborhood_wins(self, resolver: LocationResolver):
        listing = make_listing("a", neighborhood="Plainpalais", postal_code="1227", city="Genève")
        assert resolver.resolve_listing_location(listing) == ["Plainpalais"]

    def test_falls_back_to_postal_code(self, resolver: LocationResolver):
        listing = make_listing("a", neighborhood="somewhere nice", postal_code="1227", city="Genève")
        assert resolver.resolve_listing_location(listing) == ["Acacias", "Carouge"]

    def test_falls_back_to_city(self, resolver: LocationResolver):
        listing = make_listing("a", city="Geneva")
        assert resolver.resolve_listing_location(listing) == ["Genève"]

    def test_nothing_resolvable(self, resolver: LocationResolver):
        listing = make_listing("a", neighborhood="?", city="Zürich")
        assert resolver.resolve_listing_location(listing) == []

    def test_no_location_fields(self, resolver: LocationResolver):
        listing = make_listing("a")
        assert isinstance(listing, ListingRecord)
        assert resolver.resolve_listing_location(listing) == []


class TestIndexConstruction:
    """Test behaviour with malformed data."""

    def test_non_canonical_target_skipped(self):
        resolver = LocationResolver(
            ["Carouge"],
            [
                LocationAlias(
                    token="karouge",
                    targets=("Carouge", "Bogusville"),
                    context=AliasContext.SPELLING_VARIANT,
                )
            ],
        )
        assert resolver.resolve("karouge") == {"Carouge"}
        assert resolver.resolve("bogusville") == frozenset()

    def test_consistency_reports_bad_targets(self):
        resolver = LocationResolver.from_dict({
            "canonical_locations": {"communes": ["Carouge"]},
            "aliases": {"postal_codes": {"1227": ["Carouge", "Acacias"]}},
            "region_exclusive_aliases": {"centre": ["Cité-Centre"]},
        })
        errors = resolver.validate_consistency()
        assert len(errors) == 2
        assert any('"Acacias"' in e and "postal_codes" in e for e in errors)
        assert any('"Cité-Centre"' in e and "region_exclusive_aliases" in e for e in errors)

    def test_shipped_data_is_consistent(self, resolver: LocationResolver):
        assert resolver.validate_consistency() == []

    def test_unknown_section_rejected(self):
        with pytest.raises(LocationDataError):
            LocationResolver.from_dict({
                "canonical_locations": {"communes": ["Carouge"]},
                "aliases": {"nicknames": {"carou": ["Carouge"]}},
            })

    def test_missing_canonical_section_rejected(self):
        with pytest.raises(LocationDataError):
            LocationResolver.from_dict({"aliases": {}})

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(LocationDataError):
            LocationResolver.from_file(tmp_path / "missing.json")
