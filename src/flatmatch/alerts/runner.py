"""CLI runner for the alert poller.

Run via: python -m flatmatch.alerts.runner
Or use the flatmatch-alerts console script.
"""

import argparse
import asyncio
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import Settings, config as default_config
from ..scoring.engine import ScoringEngine
from ..storage.sqlite import SQLiteStore
from .notifier import ConsoleNotifier, TelegramNotifier
from .poller import AlertPoller, CycleReport

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def print_cycle_report(report: CycleReport) -> None:
    """Summarize one cycle on the console."""
    if report.skipped:
        console.print("[yellow]Cycle skipped: another cycle is running[/yellow]")
        return
    if report.aborted:
        console.print(f"[red]Cycle aborted: {report.error}[/red]")
        return

    console.print(
        f"[bold]Cycle complete.[/bold] "
        f"{report.listings_seen} listings, {report.users_checked} users, "
        f"{report.pairs_scored} pairs scored, "
        f"[green]{report.alerts_sent} alerts sent[/green], "
        f"{report.duplicates_skipped} already sent, "
        f"[red]{report.failures} failures[/red]"
    )


async def explain_user(
    store: SQLiteStore,
    user_id: int,
    hours: int,
    settings: Settings,
) -> int:
    """Score a user's criteria against recent listings without alerting.

    Prints every listing with its verdict and the rejection statistics.

    Returns:
        Number of accepted listings, or -1 if the user has no criteria
    """
    criteria = await store.criteria_for(user_id)
    if criteria is None:
        console.print(f"[yellow]No criteria found for user {user_id}.[/yellow]")
        return -1

    listings = await store.recent_listings(hours)
    if not listings:
        console.print(f"[yellow]No listings in the last {hours}h.[/yellow]")
        return 0

    engine = ScoringEngine(settings=settings)
    if criteria.summary:
        console.print(f"[bold]Criteria:[/bold] {criteria.summary}")
    console.print(f"[dim]Scoring {len(listings)} listings from the last {hours}h[/dim]")
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Listing")
    table.add_column("Location", max_width=30)
    table.add_column("Rent", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Verdict", max_width=50)

    accepted = 0
    reasons: Counter[str] = Counter()

    for listing in listings:
        result = engine.score(listing, criteria)
        location = ", ".join(p for p in (listing.neighborhood, listing.postal_code, listing.city) if p)
        rent = f"CHF {listing.rent_total}" if listing.rent_total is not None else "N/A"

        if result.is_match:
            accepted += 1
            verdict = "[green]✅ accepted[/green]"
            if result.badges:
                verdict += f" {' '.join(result.badges)}"
            score_str = f"[green]{result.total}[/green]"
        else:
            verdict = "[red]❌ " + "; ".join(result.rejection_reasons) + "[/red]"
            score_str = "[red]0[/red]"
            reasons.update(c.name for c in result.failed_checks(strict_only=True))

        table.add_row(listing.id, location or "N/A", rent, score_str, verdict)

    console.print(table)
    console.print()

    total = len(listings)
    console.print(f"Accepted: {accepted}/{total} ({round(accepted / total * 100)}%)")
    if reasons:
        console.print("[bold]Rejection reasons:[/bold]")
        for name, count in reasons.most_common():
            console.print(f"  {name}: {count}")

    return accepted


async def run_poller(
    settings: Settings,
    once: bool = False,
    use_console: bool = False,
) -> int:
    """Run the poller once or forever.

    Returns:
        Number of alerts sent (single cycle), -1 on aborted cycle
    """
    store = SQLiteStore(settings.db_path)
    channel = ConsoleNotifier() if use_console else TelegramNotifier(settings=settings)

    if isinstance(channel, TelegramNotifier) and not channel.is_available():
        console.print(
            "[yellow]FLATMATCH_TELEGRAM_BOT_TOKEN is not set; "
            "use --console to print alerts instead.[/yellow]"
        )
        return -1

    poller = AlertPoller(store, store, store, channel, settings=settings)

    try:
        if once:
            report = await poller.run_cycle()
            print_cycle_report(report)
            return -1 if report.aborted else report.alerts_sent

        await poller.run_forever()
        return 0
    finally:
        await poller.stop()
        if isinstance(channel, TelegramNotifier):
            await channel.close()


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="flatmatch alert poller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m flatmatch.alerts.runner
  python -m flatmatch.alerts.runner --once --console
  python -m flatmatch.alerts.runner --explain 123456789 --hours 6
        """,
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single polling cycle and exit",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print alerts to the console instead of sending them",
    )
    parser.add_argument(
        "--explain",
        type=int,
        metavar="USER_ID",
        help="Show how recent listings score for a user, without alerting",
    )
    parser.add_argument(
        "--hours",
        type=int,
        default=None,
        help="Recency window in hours (default from settings)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (default from settings)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    overrides = {}
    if args.hours is not None:
        overrides["recency_hours"] = args.hours
    if args.db is not None:
        overrides["db_path"] = args.db
    settings = default_config.model_copy(update=overrides)

    try:
        if args.explain is not None:
            store = SQLiteStore(settings.db_path)
            result = asyncio.run(
                explain_user(store, args.explain, settings.recency_hours, settings)
            )
            sys.exit(0 if result >= 0 else 1)

        result = asyncio.run(run_poller(
            settings,
            once=args.once,
            use_console=args.console,
        ))
        sys.exit(0 if result >= 0 else 1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
