#!/usr/bin/env python3
"""
drivepull - Main Entry Point

Pulls a remote Drive folder into the local sync root.

Usage:
    python -m drivepull.main                 # Pull the whole drive
    python -m drivepull.main /docs           # Pull one folder
    python -m drivepull.main --dry-run       # Preview changes without applying
    python -m drivepull.main --verbose       # Enable debug logging

Environment Variables Required:
    DRIVE_ACCESS_TOKEN      - OAuth 2.0 access token for the Drive API

See .env.example for all configuration options.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence

from config.settings import load_settings, ConfigurationError
from drivepull.remote.client import DriveClient, AuthenticationError, TransportError
from drivepull.sync.changes import Change, ResolutionError
from drivepull.sync.context import SyncContext
from drivepull.sync.engine import PullEngine
from drivepull.sync.progress import LoggingProgress


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_args(argv: Sequence[str] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Pull a remote Drive folder into the local sync root",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m drivepull.main                     # Pull everything
    python -m drivepull.main /docs --no-prompt   # Pull without confirmation
    python -m drivepull.main --dry-run           # Preview changes
    python -m drivepull.main --env .env.local    # Use custom env file
        """,
    )

    parser.add_argument(
        "path",
        nargs="?",
        default="/",
        help="Remote path to pull, relative to the drive root (default: /)",
    )

    parser.add_argument(
        "--no-prompt",
        action="store_true",
        help="Apply changes without asking for confirmation",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without making any modifications",
    )

    parser.add_argument(
        "--max-concurrent",
        type=int,
        help="Maximum number of changes applied in parallel",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    return parser.parse_args(argv)


def print_change_list(
    changes: Sequence[Change],
    input_fn: Callable[[str], str] = input,
) -> bool:
    """
    Show the change list and ask whether to apply it.

    Returns:
        True unless the user answered no
    """
    for change in changes:
        print(change)

    answer = input_fn("Proceed with the changes? [Y/n]: ").strip().lower()
    return answer in ("", "y", "yes")


def main(argv: Sequence[str] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please check your .env file or environment variables")
        return 1

    # --verbose wins over LOG_LEVEL
    if not args.verbose:
        logging.getLogger().setLevel(settings.log_level)

    client = None

    try:
        client = DriveClient(
            access_token=settings.drive.access_token,
            base_url=settings.drive.api_url,
            timeout=settings.pull.request_timeout_seconds,
            max_retries=settings.pull.max_retries,
        )

        engine = PullEngine(
            client=client,
            context=SyncContext(settings.context.root),
            max_concurrent=args.max_concurrent or settings.pull.max_concurrent,
            no_prompt=args.no_prompt or settings.pull.no_prompt,
            dry_run=args.dry_run or settings.pull.dry_run,
            confirm=print_change_list,
            progress=LoggingProgress(),
        )

        stats = engine.pull(args.path)

        if stats.errors > 0:
            logger.warning("Some changes failed to apply. Check logs above.")
            return 1

        return 0

    except ResolutionError as e:
        logger.error(f"Resolution failed: {e}")
        return 1
    except AuthenticationError as e:
        logger.error(f"Drive authentication failed: {e}")
        logger.error("Refresh DRIVE_ACCESS_TOKEN and try again")
        return 1
    except TransportError as e:
        logger.error(f"Drive API error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Pull interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        if client:
            client.close()


if __name__ == "__main__":
    sys.exit(main())
