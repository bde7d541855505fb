"""Canonical zones, alias resolution and the proximity relation."""

from .proximity import ProximityGraph, get_proximity_graph
from .resolver import (
    AliasContext,
    LocationAlias,
    LocationDataError,
    LocationResolver,
    get_location_resolver,
    normalize_token,
)

__all__ = [
    "AliasContext",
    "LocationAlias",
    "LocationDataError",
    "LocationResolver",
    "ProximityGraph",
    "get_location_resolver",
    "get_proximity_graph",
    "normalize_token",
]
