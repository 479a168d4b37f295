import sys
import asyncio
import argparse
import signal
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from proclubs.config.settings import (
    ConfigurationError,
    build_league_config,
    load_settings,
)
from proclubs.logging.setup import setup_logging
from proclubs.models.enums import SnapshotId
from proclubs.pipeline.runner import LeagueRunner
from proclubs.scheduling.scheduler import LeagueScheduler
from proclubs.sources.proclubs_source import ProClubsSource
from proclubs.storage.supabase_client import (
    SupabaseMatchStore,
    SupabaseSnapshotStore,
    initialize_supabase,
)

console = Console()


def parse_cutoff(value: str) -> int:
    """Epoch seconds, or an ISO 8601 datetime (UTC if no offset)."""
    if value.strip().isdigit():
        return int(value)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid cutoff: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Pro Clubs league ingestion and standings service"
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("run", help="Run the scheduler until interrupted")
    commands.add_parser("ingest", help="Clean old, fetch, ingest and trim now")
    trim = commands.add_parser("trim", help="Delete matches beyond the retention cap")
    trim.add_argument("--cap", type=int, default=None)
    commands.add_parser("clean-old", help="Delete matches before the season start")
    commands.add_parser("snapshot", help="Rebuild the league snapshot")
    commands.add_parser("season", help="Rebuild the full-season snapshot")
    delete = commands.add_parser(
        "delete-before", help="Delete a club's matches before a cutoff"
    )
    delete.add_argument("club_id")
    delete.add_argument("cutoff", type=parse_cutoff)
    show = commands.add_parser("show", help="Print the stored league snapshot")
    show.add_argument("--season", action="store_true")
    recent = commands.add_parser("recent", help="Print the most recent stored matches")
    recent.add_argument("--limit", type=int, default=50)
    commands.add_parser("members", help="Fetch member lists for every club")
    return parser


def render_snapshot(document: Dict[str, Any]) -> None:
    updated = datetime.fromtimestamp(document.get("updatedAt", 0) / 1000, timezone.utc)
    table = Table(title=f"Standings (updated {updated:%Y-%m-%d %H:%M} UTC)")
    for column in ("#", "Club", "GP", "W", "D", "L", "GF", "GA", "Pts"):
        table.add_column(column, justify="left" if column == "Club" else "right")
    for position, row in enumerate(document.get("standings", []), start=1):
        table.add_row(
            str(position),
            row.get("name", "?"),
            str(row.get("gp", 0)),
            str(row.get("wins", 0)),
            str(row.get("draws", 0)),
            str(row.get("losses", 0)),
            str(row.get("goalsFor", 0)),
            str(row.get("goalsAgainst", 0)),
            str(row.get("points", 0)),
        )
    console.print(table)

    boards = (
        ("topScorers", "Top Scorers", "goals"),
        ("topAssisters", "Top Assisters", "assists"),
    )
    for key, title, stat in boards:
        entries: List[Dict[str, Any]] = document.get(key) or []
        if not entries:
            continue
        leaders = Table(title=title)
        leaders.add_column("Player")
        leaders.add_column("Total", justify="right")
        for entry in entries:
            leaders.add_row(entry.get("name", "?"), str(entry.get(stat, 0)))
        console.print(leaders)


async def run_forever(runner: LeagueRunner, scheduler: LeagueScheduler) -> None:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    scheduler.start()
    # First sweep right away instead of waiting a full interval
    await runner.scheduled_ingestion()
    await runner.scheduled_league_snapshot()
    logger.info("Scheduler is running. Press Ctrl+C to stop.")
    await shutdown.wait()
    scheduler.stop()


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
        setup_logging(settings)
        config = build_league_config(settings)
        supabase_client = await initialize_supabase(settings)
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        return 2
    if not supabase_client:
        logger.critical("Failed to initialize Supabase client. Exiting.")
        return 1

    logger.info(
        f"League configured with {len(config.clubs)} clubs, cap {config.retention_cap}."
    )
    source = ProClubsSource.from_settings(settings)
    runner = LeagueRunner(
        config,
        source,
        SupabaseMatchStore(supabase_client, batch_limit=config.batch_limit),
        SupabaseSnapshotStore(supabase_client),
    )

    try:
        if args.command == "run":
            await run_forever(runner, LeagueScheduler(runner, settings))
        elif args.command == "ingest":
            summary = await runner.run_ingestion()
            console.print(summary)
        elif args.command == "trim":
            console.print(f"Deleted {await runner.trim(args.cap)} matches")
        elif args.command == "clean-old":
            console.print(f"Deleted {await runner.clean_old()} matches")
        elif args.command == "snapshot":
            snapshot = await runner.rebuild_league_snapshot()
            render_snapshot(snapshot.to_document())
        elif args.command == "season":
            season = await runner.rebuild_season_snapshot()
            console.print(season.to_document())
        elif args.command == "delete-before":
            deleted = await runner.delete_before(args.club_id, args.cutoff)
            console.print(f"Deleted {deleted} matches for club {args.club_id}")
        elif args.command == "show":
            snapshot_id = SnapshotId.SEASON if args.season else SnapshotId.LEAGUE
            document = await runner.current_snapshot(snapshot_id)
            if document is None:
                logger.warning(f"No '{snapshot_id.value}' snapshot stored yet.")
            elif args.season:
                console.print(document)
            else:
                render_snapshot(document)
        elif args.command == "recent":
            for match in await runner.recent_matches(args.limit):
                console.print(match)
        elif args.command == "members":
            members = await runner.club_members()
            console.print({"members": members})
    except Exception:
        logger.exception(f"Command '{args.command}' failed.")
        return 1
    finally:
        await source.close()
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)


if __name__ == "__main__":
    cli()
