"""Listing scoring against user criteria."""

from .engine import (
    BADGE_EXCEPTIONAL_PRICE,
    BADGE_PERFECT_MATCH,
    BADGE_URGENT,
    COMFORT_WEIGHTS,
    STRICT_WEIGHTS,
    ScoringEngine,
)

__all__ = [
    "ScoringEngine",
    "STRICT_WEIGHTS",
    "COMFORT_WEIGHTS",
    "BADGE_EXCEPTIONAL_PRICE",
    "BADGE_URGENT",
    "BADGE_PERFECT_MATCH",
]
