#!/usr/bin/env python3
"""Main entry point for Wanderstream.

This module provides the command-line interface: replaying a recorded SSE
body offline and streaming a live chat response from the API.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from wanderstream import __version__
from wanderstream.client.chat_client import ChatStreamClient
from wanderstream.client.rate_limiter import ClientRateLimiter
from wanderstream.config.env_schema import EnvironmentConfig
from wanderstream.config.loader import ConfigLoader
from wanderstream.config.models import Config
from wanderstream.storage.session_store import SessionStore
from wanderstream.streaming.assembler import StreamAssembler, StreamCallbacks, UpdateKind
from wanderstream.streaming.navigation import get_domain_route
from wanderstream.streaming.session import DomainType, Session, StreamPhase
from wanderstream.utils.env_manager import EnvironmentManager
from wanderstream.utils.exceptions import (
    ConfigurationError,
    RateLimitError,
    WanderstreamError,
)
from wanderstream.utils.logging import get_current_log_files, get_logger, setup_logging

install_rich_traceback(show_locals=False)

console = Console()
logger = get_logger(__name__)

# Items listed per results table
MAX_ROWS = 15


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list; defaults to ``sys.argv[1:]``.

    Returns:
        Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="wanderstream",
        description="Stream and assemble AI travel recommendations",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show program version and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("wanderstream.yml"),
        help="Path to configuration file (default: wanderstream.yml)",
    )

    parser.add_argument(
        "--env",
        type=Path,
        default=Path(".env"),
        help="Path to environment file (default: .env)",
    )

    parser.add_argument(
        "--debug",
        nargs="?",
        const="DEBUG",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Enable debug mode with optional log level (default: DEBUG)",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Do not store the completed session",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser(
        "replay", help="Assemble a recorded SSE response body offline"
    )
    replay.add_argument("capture", type=Path, help="File holding the raw SSE body")
    replay.add_argument(
        "--chunk-size",
        type=int,
        default=64,
        help="Bytes fed to the assembler per read (default: 64)",
    )
    replay.add_argument(
        "--domain",
        choices=[d.value for d in DomainType],
        default=DomainType.GENERAL.value,
        help="Domain the session starts in (default: general)",
    )

    chat = subparsers.add_parser("chat", help="Send a message and stream the answer")
    chat.add_argument("message", help="Message to send")
    chat.add_argument("--profile", help="Search profile id (omit for the free endpoint)")
    chat.add_argument("--lat", type=float, help="User latitude")
    chat.add_argument("--lon", type=float, help="User longitude")

    return parser.parse_args(argv)


def load_configuration(args: argparse.Namespace) -> Config:
    """Load YAML configuration and apply environment overrides."""
    env_manager = EnvironmentManager(env_file=args.env if args.env.exists() else None)
    env_manager.load()
    logger.debug(f"Environment status: {env_manager.get_status_report()}")

    config = ConfigLoader(args.config).load(missing_ok=True)
    return EnvironmentConfig().apply_to(config)


async def read_capture(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    """Yield a capture file in fixed-size pieces, as a network read would."""
    data = path.read_bytes()
    for start in range(0, len(data), chunk_size):
        yield data[start : start + chunk_size]
        await asyncio.sleep(0)


def _item_name(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("name") or item.get("title") or "-")
    return str(item)


def _item_detail(item: Any, *keys: str) -> str:
    if not isinstance(item, dict):
        return ""
    for key in keys:
        if item.get(key) not in (None, ""):
            return str(item[key])
    return ""


def _items_table(title: str, items: List[Any]) -> Table:
    table = Table(title=f"{title} ({len(items)})", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Rating", justify="right")
    table.add_column("Address", overflow="fold")
    for i, item in enumerate(items[:MAX_ROWS], start=1):
        table.add_row(
            str(i),
            _item_name(item),
            _item_detail(item, "category", "cuisine_type"),
            _item_detail(item, "rating"),
            _item_detail(item, "address"),
        )
    if len(items) > MAX_ROWS:
        table.caption = f"... and {len(items) - MAX_ROWS} more"
    return table


def render_session(session: Session) -> None:
    """Print the assembled result of a session."""
    header = (
        f"[bold]Domain:[/bold] {session.domain.value}\n"
        f"[bold]Session:[/bold] {session.session_id or '-'}\n"
        f"[bold]City:[/bold] {session.city or '-'}"
    )
    console.print(Panel(header, title="Wanderstream Result", border_style="cyan"))

    data = session.data_dict()
    if session.domain.is_city:
        city = data.get("general_city_data")
        if isinstance(city, dict) and city.get("description"):
            console.print(Panel(str(city["description"]), title=str(city.get("city", "City"))))

        pois = data.get("points_of_interest") or []
        if pois:
            console.print(_items_table("Points of interest", pois))

        itinerary = data.get("itinerary_response")
        if isinstance(itinerary, dict) and itinerary.get("points_of_interest"):
            console.print(
                _items_table(
                    itinerary.get("itinerary_name") or "Itinerary",
                    itinerary["points_of_interest"],
                )
            )
    else:
        for field in ("hotels", "restaurants", "activities"):
            if field in data:
                console.print(_items_table(field.capitalize(), data[field]))


def persist_session(session: Session, config: Config, args: argparse.Namespace) -> None:
    if args.no_persist or not config.storage.enabled:
        return
    store = SessionStore(config.storage.directory)
    stored_id = store.persist_completed(session.session_id, session.data_dict())
    if stored_id:
        console.print(f"[dim]Session saved to {config.storage.directory}[/dim]")


async def replay_capture(args: argparse.Namespace, config: Config) -> int:
    """Assemble a recorded response body with a progress bar.

    Returns:
        Exit code.
    """
    if not args.capture.exists():
        raise ConfigurationError(f"Capture file not found: {args.capture}")
    if args.chunk_size < 1:
        raise ConfigurationError(f"Chunk size must be positive, got: {args.chunk_size}")

    assembler = StreamAssembler(domain=DomainType(args.domain))
    final = None

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Connecting...", total=100)
        async for update in assembler.assemble(read_capture(args.capture, args.chunk_size)):
            progress.update(task, completed=update.progress, description=update.step)
            if update.kind in (UpdateKind.COMPLETE, UpdateKind.ERROR):
                final = update

    logger.debug(f"Replay statistics: {assembler.stats.get_report()}")

    if final is None or final.kind == UpdateKind.ERROR:
        message = final.parsed_error.user_message if final else "Stream ended unexpectedly"
        console.print(f"[red]Error:[/red] {message}")
        if final is not None:
            console.print(f"[dim]{final.error}[/dim]")
        return 1

    render_session(final.session)
    persist_session(final.session, config, args)
    return 0


async def stream_chat(args: argparse.Namespace, config: Config, token: Optional[str]) -> int:
    """Send a chat message and render the streamed answer.

    Returns:
        Exit code.
    """
    user_location: Optional[Dict[str, float]] = None
    if args.lat is not None and args.lon is not None:
        user_location = {"latitude": args.lat, "longitude": args.lon}

    rate_limiter = None
    if config.rate_limit.enabled:
        rate_limiter = ClientRateLimiter(
            max_requests=config.rate_limit.max_requests,
            window_seconds=config.rate_limit.window_seconds,
        )

    last_status = {"text": ""}

    def on_progress(session: Session) -> None:
        status = f"{session.domain.value}: {assembler.tracker.message} ({assembler.tracker.progress}%)"
        if status != last_status["text"]:
            console.print(f"[dim]{status}[/dim]")
            last_status["text"] = status

    def on_complete(session: Session) -> None:
        render_session(session)
        persist_session(session, config, args)

    def on_error(message: str) -> None:
        console.print(f"[red]Error:[/red] {message}")

    def on_redirect(domain: DomainType, data: Dict[str, Any]) -> None:
        route = get_domain_route(domain, data.get("session_id"), assembler.session.city)
        console.print(f"[cyan]View:[/cyan] {route}")

    assembler = StreamAssembler()
    callbacks = StreamCallbacks(
        on_progress=on_progress,
        on_complete=on_complete,
        on_error=on_error,
        on_redirect=on_redirect,
    )

    profile_id = None if config.api.free_endpoint else args.profile
    async with ChatStreamClient(config.api, token=token, rate_limiter=rate_limiter) as client:
        session = await client.chat(
            args.message,
            profile_id=profile_id,
            user_location=user_location,
            callbacks=callbacks,
            assembler=assembler,
        )

    return 0 if session.phase == StreamPhase.COMPLETED else 1


async def run_application(args: argparse.Namespace) -> int:
    """Run the selected command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = load_configuration(args)

        log_level = args.debug if args.debug else config.logging.level
        log_dir = Path(config.logging.directory) if config.logging.directory else None
        setup_logging(level=log_level, log_dir=log_dir)
        logger.info(f"Starting Wanderstream v{__version__} ({args.command})")

        if args.command == "replay":
            return await replay_capture(args, config)

        token = EnvironmentConfig().api_token or EnvironmentManager().get_api_token()
        if args.profile and not token:
            console.print(
                "[yellow]Warning:[/yellow] WANDERSTREAM_API_TOKEN is not set; "
                "the authenticated endpoint will likely refuse the request"
            )
        return await stream_chat(args, config, token)

    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        return 1

    except RateLimitError as e:
        console.print(
            f"[yellow]Rate limited:[/yellow] please wait {e.retry_after} seconds before trying again."
        )
        return 1

    except WanderstreamError as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.error(f"Command failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 130  # Standard exit code for SIGINT

    finally:
        log_files = get_current_log_files()
        if "main" in log_files:
            logger.debug(f"Log file: {log_files['main']}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    # Disable color if requested
    if args.no_color:
        console.no_color = True

    exit_code = asyncio.run(run_application(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
