"""Proximity relation over canonical zones."""

import json
import logging
from collections.abc import Iterable, Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Optional

from ..config import config as default_config
from .resolver import CanonicalLocation, LocationDataError

logger = logging.getLogger(__name__)


class ProximityGraph:
    """Static adjacency list over canonical zones.

    Edges are directed: if A lists B as a neighbour, B does not
    necessarily list A. Used by onboarding to suggest broadening a
    user's zone selection.

    Example:
        graph = get_proximity_graph()
        graph.neighbors("Carouge")
        graph.expand(["Carouge", "Plainpalais"])
    """

    def __init__(self, adjacency: Mapping[str, Iterable[str]]):
        self._adjacency: Mapping[str, tuple[CanonicalLocation, ...]] = MappingProxyType(
            {zone: tuple(neighbors) for zone, neighbors in adjacency.items()}
        )

    @classmethod
    def from_file(cls, path: Path) -> "ProximityGraph":
        """Load proximity.json from disk."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LocationDataError(f"Cannot load proximity data from {path}: {e}") from e
        if not isinstance(data, dict):
            raise LocationDataError(f"Proximity data in {path} must be an object")
        return cls(data)

    def has_node(self, zone: str) -> bool:
        return zone in self._adjacency

    def all_nodes(self) -> list[CanonicalLocation]:
        return sorted(self._adjacency)

    def neighbors(self, zone: str) -> tuple[CanonicalLocation, ...]:
        """Configured neighbours of a zone, empty if it is not a node."""
        return self._adjacency.get(zone, ())

    def expand(self, zones: Iterable[str]) -> list[CanonicalLocation]:
        """Suggest zones adjacent to a selection.

        Args:
            zones: Zones the user already selected

        Returns:
            Neighbours of the selection that are not selected yet, in
            discovery order without duplicates
        """
        selected = list(zones)
        seen = set(selected)
        suggestions = []
        for zone in selected:
            for neighbor in self.neighbors(zone):
                if neighbor not in seen:
                    seen.add(neighbor)
                    suggestions.append(neighbor)
        return suggestions

    def asymmetric_edges(self) -> list[tuple[CanonicalLocation, CanonicalLocation]]:
        """Edges A -> B for which B does not list A."""
        return [
            (zone, neighbor)
            for zone, neighbors in self._adjacency.items()
            for neighbor in neighbors
            if zone not in self.neighbors(neighbor)
        ]


@lru_cache(maxsize=None)
def get_proximity_graph(path: Optional[Path] = None) -> ProximityGraph:
    """Process-wide proximity graph, loaded once."""
    return ProximityGraph.from_file(path or default_config.proximity_file)
