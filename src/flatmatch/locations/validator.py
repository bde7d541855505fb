"""Consistency checks for the location data files.

Run via: python -m flatmatch.locations.validator
Intended for CI: exits with status 1 when an error is found. The running
service never calls this module.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import config as default_config
from .proximity import ProximityGraph
from .resolver import LocationDataError, LocationResolver

console = Console()

# Postal codes whose expected coverage is known; each must resolve to at
# least these zones.
DEFAULT_POSTAL_PROBES: dict[str, tuple[str, ...]] = {
    "1201": ("Pâquis", "Grottes", "Saint-Gervais"),
    "1227": ("Carouge", "Acacias"),
    "1212": ("Lancy",),
}


@dataclass
class ValidationReport:
    """Errors fail the release gate, warnings are informational."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_location_data(
    resolver: LocationResolver,
    graph: ProximityGraph,
    postal_probes: Optional[dict[str, tuple[str, ...]]] = None,
) -> ValidationReport:
    """Cross-check alias tables, canonical set and proximity graph.

    Args:
        resolver: Resolver built from known_locations.json
        graph: Graph built from proximity.json
        postal_probes: Postal code -> zones it must resolve to.
            Defaults to DEFAULT_POSTAL_PROBES.

    Returns:
        ValidationReport with errors and warnings
    """
    report = ValidationReport()
    canonical = resolver.canonical_locations
    probes = DEFAULT_POSTAL_PROBES if postal_probes is None else postal_probes

    # Alias targets
    report.errors.extend(resolver.validate_consistency())

    # Every canonical location needs a graph node
    for location in sorted(canonical):
        if not graph.has_node(location):
            report.errors.append(
                f'Canonical location "{location}" is missing in the proximity graph'
            )

    # Graph nodes and neighbours outside the canonical set
    for node in graph.all_nodes():
        if node not in canonical:
            report.warnings.append(
                f'Proximity graph contains node "{node}" which is not canonical'
            )
        for neighbor in graph.neighbors(node):
            if neighbor not in canonical:
                report.warnings.append(
                    f'Proximity node "{node}" lists non-canonical neighbour "{neighbor}"'
                )

    # Postal code resolution
    for code, expected in probes.items():
        found = resolver.resolve(code)
        missing = [zone for zone in expected if zone not in found]
        if missing:
            report.errors.append(
                f"Postal code {code} missing expected locations: {', '.join(missing)}. "
                f"Found: {', '.join(sorted(found)) or 'nothing'}"
            )

    # Directed edges without a reverse edge
    for zone, neighbor in graph.asymmetric_edges():
        report.warnings.append(f'Edge "{zone}" -> "{neighbor}" has no reverse edge')

    return report


def print_report(report: ValidationReport, show_warnings: bool = True) -> None:
    """Print a validation report with Rich formatting."""
    for error in report.errors:
        console.print(f"[red][ERROR][/red] {error}")
    if show_warnings:
        for warning in report.warnings:
            console.print(f"[yellow][WARN][/yellow] {warning}")

    console.print()
    if report.ok:
        console.print(
            f"[bold green]✅ All checks passed[/bold green] "
            f"[dim]({len(report.warnings)} warnings)[/dim]"
        )
    else:
        console.print(f"[bold red]❌ Found {len(report.errors)} issues.[/bold red]")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Validate flatmatch location data files",
    )
    parser.add_argument(
        "--locations",
        type=Path,
        default=default_config.locations_file,
        help="Path to known_locations.json",
    )
    parser.add_argument(
        "--proximity",
        type=Path,
        default=default_config.proximity_file,
        help="Path to proximity.json",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Hide warnings",
    )
    args = parser.parse_args(argv)

    console.print("[bold]Starting location data verification...[/bold]")

    try:
        resolver = LocationResolver.from_file(args.locations)
        graph = ProximityGraph.from_file(args.proximity)
    except LocationDataError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    report = validate_location_data(resolver, graph)
    print_report(report, show_warnings=not args.quiet)
    sys.exit(0 if report.ok else 1)


if __name__ == "__main__":
    main()
