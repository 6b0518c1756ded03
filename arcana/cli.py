"""Command-line interface for arcana."""

import sys
import logging
import argparse
import asyncio
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)

from arcana import __version__
from arcana.config.loader import load_config, ConfigError
from arcana.config.validator import validate_config, ValidationError
from arcana.catalog.store import CatalogStore, CatalogError
from arcana.errors import ScanError
from arcana.scanner.registry import ScannerRegistry, create_default_registry
from arcana.ui.event_bus import EventBus
from arcana.ui.headless_logger import HeadlessLogger, TaskOutcome
from arcana.workflow.engine import ScanEngine

DEFAULT_USER = 'default'
SHUTDOWN_GRACE_SECONDS = 5


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog='arcana',
        description='Scan game platforms and import their libraries into a local catalog',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import your Steam library
  arcana scan Steam

  # Give up on a scan that takes longer than two minutes
  arcana scan Steam --timeout 120

  # Store Steam credentials (client id is your SteamID64)
  arcana set-key Steam YOUR_API_KEY --client-id 76561197960287930

  # Show what was imported
  arcana games --platform Steam

  # Use custom config file
  arcana --config /path/to/config.yaml scan Steam
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=Path,
        metavar='PATH',
        help='Path to config.yaml (default: ./config.yaml)'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    scan_parser = subparsers.add_parser('scan', help='Scan platforms and import their games')
    scan_parser.add_argument(
        'platforms',
        nargs='+',
        metavar='PLATFORM',
        help='Platform names to scan (e.g. Steam)'
    )
    scan_parser.add_argument(
        '--timeout',
        type=float,
        metavar='SECONDS',
        help='Cancel any scan still running after this many seconds'
    )

    subparsers.add_parser('scanners', help='List platforms that can be scanned')
    subparsers.add_parser('platforms', help='List platforms in the catalog')

    games_parser = subparsers.add_parser('games', help='List games in the catalog')
    games_parser.add_argument(
        '--platform',
        metavar='NAME',
        help='Only show games from this platform'
    )

    key_parser = subparsers.add_parser('set-key', help='Store a platform API key for the active user')
    key_parser.add_argument('platform', metavar='PLATFORM', help='Platform name (e.g. Steam)')
    key_parser.add_argument('key', metavar='KEY', help='API key')
    key_parser.add_argument(
        '--client-id',
        metavar='ID',
        help='Platform account id (SteamID64 for Steam)'
    )
    key_parser.add_argument(
        '--user',
        metavar='NAME',
        help=f'User to store the key for (default: active user, or "{DEFAULT_USER}")'
    )

    return parser


def _setup_logging(config: dict) -> None:
    """
    Setup logging configuration from config.

    Args:
        config: Configuration dictionary
    """
    logging_config = config.get('logging', {})

    # Get log level
    level_str = logging_config.get('level', 'INFO').upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers = []

    if logging_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        formatter = logging.Formatter('%(levelname)s: %(message)s')
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    # File handler (if configured)
    log_file = logging_config.get('file')
    if log_file:
        try:
            log_path = Path(log_file)
            # Create parent directory if it doesn't exist
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except (OSError, PermissionError) as e:
            print(f"Error: Could not create log file '{log_file}': {e}", file=sys.stderr)
            sys.exit(1)

    if not handlers:
        handlers.append(logging.NullHandler())

    # Configure root logger
    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # Suppress httpx debug logging to prevent API key leakage in URLs
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    # SQL echo is far too verbose for normal runs
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for arcana CLI.

    Args:
        argv: Command-line arguments (default: sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Load and validate configuration
    try:
        config = load_config(args.config)
        validate_config(config)
    except (ConfigError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error loading config: {e}", file=sys.stderr)
        return 1

    _setup_logging(config)
    console = Console()

    try:
        store = CatalogStore.from_url(config['database']['url'])
    except Exception as e:
        print(f"Error opening catalog database: {e}", file=sys.stderr)
        return 1

    registry = create_default_registry(config, store)

    try:
        if args.command == 'scan':
            return asyncio.run(run_scans(config, args, store, registry, console))
        if args.command == 'scanners':
            return list_scanners(registry, console)
        if args.command == 'platforms':
            return list_platforms(store, console)
        if args.command == 'games':
            return list_games(store, console, args.platform)
        if args.command == 'set-key':
            return set_key(store, args, console)
    except KeyboardInterrupt:
        print("\n\nScan interrupted by user.", file=sys.stderr)
        return 130
    except CatalogError as e:
        print(f"Catalog error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"\nFatal error: {e}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


async def run_scans(
    config: dict,
    args: argparse.Namespace,
    store: CatalogStore,
    registry: ScannerRegistry,
    console: Console
) -> int:
    """
    Run the requested scans concurrently (async).

    Args:
        config: Loaded configuration
        args: Parsed command-line arguments
        store: Catalog store
        registry: Scanner registry
        console: Rich console for the summary

    Returns:
        Exit code
    """
    unknown = [p for p in args.platforms if p not in registry]
    if unknown:
        print(
            f"Error: No scanner registered for: {', '.join(unknown)} "
            f"(available: {', '.join(registry.names()) or 'none'})",
            file=sys.stderr
        )
        return 1

    event_bus = EventBus()
    headless_logger = HeadlessLogger(event_bus)
    headless_logger.start()
    consumer = asyncio.create_task(event_bus.process_events())

    engine = ScanEngine.from_config(config, registry, store, event_bus)
    watchdogs = []
    exit_code = 0

    try:
        for platform in dict.fromkeys(args.platforms):
            try:
                task_id = engine.request_scan(platform)
            except ScanError as e:
                logger.error(str(e))
                exit_code = 1
                continue
            if args.timeout:
                watchdogs.append(asyncio.create_task(engine.cancel_after(task_id, args.timeout)))

        # Scanners that ignore cancellation get a grace period, then shutdown() stops them
        deadline = args.timeout + SHUTDOWN_GRACE_SECONDS if args.timeout else None
        if not await engine.wait_idle(timeout=deadline):
            logger.warning("Some scans did not stop after cancellation")
    finally:
        for watchdog in watchdogs:
            watchdog.cancel()
        await engine.shutdown()
        await event_bus.stop()
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
        headless_logger.stop()

    _print_summary(console, headless_logger.get_outcomes())

    if headless_logger.has_failures:
        return 2
    return exit_code


def _print_summary(console: Console, outcomes: List[TaskOutcome]) -> None:
    if not outcomes:
        return

    table = Table(title="Scan Summary", box=box.SIMPLE_HEAVY)
    table.add_column("Platform", style="cyan")
    table.add_column("Status")
    table.add_column("Found", justify="right")
    table.add_column("Added", justify="right", style="green")
    table.add_column("Present", justify="right")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Time", justify="right")

    status_styles = {
        'complete': "[green]complete[/green]",
        'cancelled': "[yellow]cancelled[/yellow]",
        'failed': "[red]failed[/red]",
    }

    for outcome in outcomes:
        status = status_styles.get(outcome.status, outcome.status)
        if outcome.error:
            status = f"{status}: {outcome.error}"
        elapsed = f"{outcome.duration_ms / 1000:.1f}s" if outcome.duration_ms is not None else "-"
        table.add_row(
            outcome.platform,
            status,
            str(outcome.candidates),
            str(outcome.added),
            str(outcome.skipped),
            str(outcome.failed),
            elapsed,
        )

    console.print(table)


def list_scanners(registry: ScannerRegistry, console: Console) -> int:
    for name in registry.names():
        console.print(name)
    return 0


def list_platforms(store: CatalogStore, console: Console) -> int:
    table = Table(title="Platforms", box=box.SIMPLE_HEAVY)
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Games", justify="right")

    for platform in store.list_platforms():
        table.add_row(str(platform.id), platform.name, str(store.count_games(platform.name)))

    console.print(table)
    return 0


def list_games(store: CatalogStore, console: Console, platform: Optional[str] = None) -> int:
    games = store.list_games(platform)

    table = Table(title=f"Games ({len(games)})", box=box.SIMPLE_HEAVY)
    table.add_column("Title", style="cyan")
    table.add_column("Platform")
    table.add_column("Genre")
    table.add_column("Playtime", justify="right")

    for game in games:
        playtime = f"{game.playtime_minutes / 60:.1f}h" if game.playtime_minutes else "-"
        table.add_row(game.title, game.platform.name, game.genre, playtime)

    console.print(table)
    return 0


def set_key(store: CatalogStore, args: argparse.Namespace, console: Console) -> int:
    if args.user:
        user = store.ensure_user(args.user)
    else:
        user = store.get_active_user() or store.ensure_user(DEFAULT_USER)

    if store.get_active_user() is None:
        store.set_active_user(user.id)

    store.set_api_key(user.id, args.platform, args.key, client_id=args.client_id)
    console.print(f"Stored {args.platform} key for user '{user.name}'")
    return 0


if __name__ == '__main__':
    sys.exit(main())
