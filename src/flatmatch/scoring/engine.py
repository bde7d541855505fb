"""Listing scoring against a user's strict and comfort criteria.

Scoring has two phases:

1. Strict phase (deal-breakers). Zone, budget, room count and dwelling
   type are always all evaluated so the audit trail is complete. If any
   of them fails, the whole result is vetoed to zero.
2. Comfort phase (bonus). Only when no strict criterion vetoed. Each
   requested amenity the listing has adds a fixed number of points; the
   comfort subtotal is capped.

The engine is pure: no I/O, no mutable state, safe to share across tasks.
"""

import logging
from typing import Optional

from ..config import Settings, config as default_config
from ..locations.resolver import LocationResolver, get_location_resolver
from ..models.criteria import ComfortCriteria, StrictCriteria, UserCriteria
from ..models.listing import ListingRecord
from ..models.score import CriterionCheck, ScoreResult

logger = logging.getLogger(__name__)


# Strict pillar (0-100)
STRICT_WEIGHTS = {
    "zone": 30,
    "budget": 30,
    "rooms": 25,
    "type": 15,
}

# Comfort pillar, capped by Settings.comfort_cap (30 by default)
COMFORT_WEIGHTS = {
    "top_floor": 5,
    "balcony": 4,
    "furnished": 4,
    "parking": 4,
    # Listings carry no quiet/elevator attribute; requests are audited only
    "quiet": 0,
    "elevator": 0,
}

BADGE_EXCEPTIONAL_PRICE = "💎 Exceptional price"
BADGE_URGENT = "🚨 URGENT"
BADGE_PERFECT_MATCH = "⭐⭐⭐ Perfect match"


def _fmt_rooms(value: float) -> str:
    return f"{value:g}"


class ScoringEngine:
    """Score listings against user criteria.

    Example:
        engine = ScoringEngine()
        result = engine.score(listing, criteria)
        if result.is_match:
            print(result.total, result.badges)
        else:
            print(result.rejection_reasons)
    """

    def __init__(
        self,
        resolver: Optional[LocationResolver] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize engine.

        Args:
            resolver: LocationResolver used for the zone criterion.
                     Uses the process-wide instance if not provided.
            settings: Scoring thresholds. Defaults to the global config.
        """
        self.settings = settings or default_config
        self.resolver = resolver or get_location_resolver()

    def score(self, listing: ListingRecord, criteria: UserCriteria) -> ScoreResult:
        """Compute the score and audit trail of a listing for one user.

        Args:
            listing: Listing to evaluate
            criteria: The user's current criteria

        Returns:
            ScoreResult; total is 0 when any enforced strict criterion fails
        """
        strict = criteria.strict

        evaluated = [
            self._check_zone(listing, strict),
            self._check_budget(listing, strict),
            self._check_rooms(listing, strict),
            self._check_type(listing, strict),
        ]
        checks = [check for check, _, _ in evaluated]
        vetoes = [check for check, _, vetoes in evaluated if vetoes]

        if vetoes:
            logger.debug(
                f"Listing {listing.id} vetoed for user {criteria.user_id}: "
                f"{', '.join(c.name for c in vetoes)}"
            )
            return ScoreResult(
                checks=checks,
                rejection_reasons=[c.explanation for c in vetoes],
            )

        strict_score = sum(c.points_awarded for c in checks)
        strict_matches = [check.name for check, matched, _ in evaluated if matched]

        comfort_checks = self._comfort_checks(listing, criteria.comfort)
        checks.extend(comfort_checks)
        comfort_score = min(
            sum(c.points_awarded for c in comfort_checks),
            self.settings.comfort_cap,
        )
        comfort_matches = [c.name for c in comfort_checks if c.passed]

        total = strict_score + comfort_score

        return ScoreResult(
            total=total,
            strict_score=strict_score,
            comfort_score=comfort_score,
            strict_matches=strict_matches,
            comfort_matches=comfort_matches,
            badges=self._badges(listing, strict, total),
            checks=checks,
        )

    # =========================================================================
    # Strict criteria
    #
    # Each check returns (CriterionCheck, explicitly_matched, vetoes).
    # Auto-passes (criterion unspecified, or listing data missing) award
    # the points but are not counted as explicit matches.
    # =========================================================================

    def _check_zone(
        self, listing: ListingRecord, strict: StrictCriteria
    ) -> tuple[CriterionCheck, bool, bool]:
        weight = STRICT_WEIGHTS["zone"]

        if not strict.zones:
            return self._strict_pass("Zone", weight, "Zone: no preference"), False, False

        region_scoped = self.settings.region_scoped
        wanted = self.resolver.resolve_many(strict.zones, region_scoped)
        listing_zones = self.resolver.resolve_listing_location(listing, region_scoped)
        overlap = sorted(wanted.intersection(listing_zones))

        if overlap:
            return (
                self._strict_pass("Zone", weight, f"Zone: {', '.join(overlap)} is a wanted zone"),
                True,
                False,
            )

        if listing_zones:
            explanation = (
                f"Zone: {', '.join(listing_zones)} not in wanted zones "
                f"({', '.join(strict.zones)})"
            )
        else:
            explanation = "Zone: listing location could not be resolved"
        return self._strict_fail("Zone", weight, explanation), False, True

    def _check_budget(
        self, listing: ListingRecord, strict: StrictCriteria
    ) -> tuple[CriterionCheck, bool, bool]:
        weight = STRICT_WEIGHTS["budget"]

        if strict.budget_max is None:
            return self._strict_pass("Budget", weight, "Budget: no maximum"), False, False

        if listing.rent_total is None:
            return (
                self._strict_pass("Budget", weight, "Budget: rent not stated (benefit of the doubt)"),
                False,
                False,
            )

        if listing.rent_total <= strict.budget_max:
            return (
                self._strict_pass(
                    "Budget", weight,
                    f"Budget: CHF {listing.rent_total} ≤ CHF {strict.budget_max}",
                ),
                True,
                False,
            )

        return (
            self._strict_fail(
                "Budget", weight,
                f"Budget exceeded: CHF {listing.rent_total} > CHF {strict.budget_max}",
            ),
            False,
            True,
        )

    def _check_rooms(
        self, listing: ListingRecord, strict: StrictCriteria
    ) -> tuple[CriterionCheck, bool, bool]:
        weight = STRICT_WEIGHTS["rooms"]
        low, high = strict.rooms_min, strict.rooms_max

        if low is None and high is None:
            return self._strict_pass("Rooms", weight, "Rooms: no preference"), False, False

        if listing.rooms is None:
            return (
                self._strict_pass("Rooms", weight, "Rooms: not stated (benefit of the doubt)"),
                False,
                False,
            )

        rooms = listing.rooms
        if low is not None and rooms < low:
            return (
                self._strict_fail("Rooms", weight, f"Rooms: too few ({_fmt_rooms(rooms)} < {_fmt_rooms(low)})"),
                False,
                True,
            )
        if high is not None and rooms > high:
            return (
                self._strict_fail("Rooms", weight, f"Rooms: too many ({_fmt_rooms(rooms)} > {_fmt_rooms(high)})"),
                False,
                True,
            )

        bounds = f"[{_fmt_rooms(low) if low is not None else '?'}-{_fmt_rooms(high) if high is not None else '?'}]"
        return (
            self._strict_pass("Rooms", weight, f"Rooms: {_fmt_rooms(rooms)} within {bounds}"),
            True,
            False,
        )

    def _check_type(
        self, listing: ListingRecord, strict: StrictCriteria
    ) -> tuple[CriterionCheck, bool, bool]:
        weight = STRICT_WEIGHTS["type"]
        accepted = [t for t in strict.dwelling_types if t and t.strip()]

        if not accepted:
            return self._strict_pass("Type", weight, "Type: no preference"), False, False

        if not listing.dwelling_type:
            return (
                self._strict_pass("Type", weight, "Type: not stated (benefit of the doubt)"),
                False,
                False,
            )

        listing_type = listing.dwelling_type.lower()
        if any(t.strip().lower() in listing_type for t in accepted):
            return (
                self._strict_pass(
                    "Type", weight,
                    f'Type: "{listing.dwelling_type}" matches {", ".join(accepted)}',
                ),
                True,
                False,
            )

        enforced = self.settings.enforce_dwelling_type
        explanation = f'Type: "{listing.dwelling_type}" does not match {", ".join(accepted)}'
        if not enforced:
            explanation += " (not enforced)"
        return self._strict_fail("Type", weight, explanation), False, enforced

    @staticmethod
    def _strict_pass(name: str, weight: int, explanation: str) -> CriterionCheck:
        return CriterionCheck(
            name=name,
            strict=True,
            passed=True,
            points_awarded=weight,
            points_possible=weight,
            explanation=explanation,
        )

    @staticmethod
    def _strict_fail(name: str, weight: int, explanation: str) -> CriterionCheck:
        return CriterionCheck(
            name=name,
            strict=True,
            passed=False,
            points_awarded=0,
            points_possible=weight,
            explanation=explanation,
        )

    # =========================================================================
    # Comfort criteria
    # =========================================================================

    def _comfort_checks(
        self, listing: ListingRecord, comfort: ComfortCriteria
    ) -> list[CriterionCheck]:
        """Evaluate requested comfort flags only."""
        wants = [
            ("Top floor", "top_floor", comfort.top_floor, listing.top_floor),
            ("Balcony/Terrace", "balcony", comfort.balcony, listing.balcony or listing.terrace),
            ("Furnished", "furnished", comfort.furnished, listing.furnished),
            ("Parking", "parking", comfort.parking, listing.parking_included),
            ("Quiet", "quiet", comfort.quiet, None),
            ("Elevator", "elevator", comfort.elevator, None),
        ]

        checks = []
        for name, key, requested, has_it in wants:
            if not requested:
                continue
            weight = COMFORT_WEIGHTS[key]
            if has_it is None:
                passed, explanation = False, f"{name}: not reported on listings"
            elif has_it:
                passed, explanation = True, f"{name}: yes"
            else:
                passed, explanation = False, f"{name}: no"
            checks.append(CriterionCheck(
                name=name,
                strict=False,
                passed=passed,
                points_awarded=weight if passed else 0,
                points_possible=weight,
                explanation=explanation,
            ))
        return checks

    # =========================================================================
    # Badges
    # =========================================================================

    def _badges(
        self, listing: ListingRecord, strict: StrictCriteria, total: int
    ) -> list[str]:
        badges = []
        if (
            strict.budget_max is not None
            and listing.rent_total is not None
            and listing.rent_total <= strict.budget_max * self.settings.exceptional_price_ratio
        ):
            badges.append(BADGE_EXCEPTIONAL_PRICE)
        if listing.urgent:
            badges.append(BADGE_URGENT)
        if total > self.settings.premium_score_threshold:
            badges.append(BADGE_PERFECT_MATCH)
        return badges
