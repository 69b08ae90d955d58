"""
Pull engine.

Orchestrates a pull: resolves the remote and local roots, computes the
change list, asks for confirmation and applies the changes.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..remote.client import DriveClient, TransportError
from .applier import MAX_CONCURRENT, BatchApplier
from .changes import Change, Op, ResolutionError
from .context import SyncContext
from .handlers import HandlerError, LocalChangeHandler
from .materialize import ContentMaterializer
from .progress import ProgressReporter
from .resolver import ChangeResolver

logger = logging.getLogger(__name__)


@dataclass
class PullStats:
    """Statistics from a pull run."""
    total_changes: int = 0
    added: int = 0
    modified: int = 0
    deleted: int = 0
    skipped: int = 0
    confirmed: bool = False
    failures: list[HandlerError] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return len(self.failures)

    def __str__(self) -> str:
        return (
            f"Pull complete: {self.total_changes} changes, "
            f"{self.added} added, {self.modified} modified, "
            f"{self.deleted} deleted, {self.skipped} skipped, "
            f"{self.errors} errors"
        )


class PullEngine:
    """
    Pulls a remote path into the local sync root.

    Core principles:
    - Resolution failures abort before any local mutation
    - A failing change never blocks the others
    - Every failure is reported back in PullStats

    Usage:
        engine = PullEngine(
            client=client,
            context=SyncContext(Path("~/Drive").expanduser()),
            confirm=ask_user,
        )

        stats = engine.pull("/docs")
        print(stats)
    """

    def __init__(
        self,
        client: DriveClient,
        context: SyncContext,
        max_concurrent: int = MAX_CONCURRENT,
        no_prompt: bool = False,
        dry_run: bool = False,
        confirm: Optional[Callable[[Sequence[Change]], bool]] = None,
        progress: Optional[ProgressReporter] = None,
    ):
        """
        Initialize pull engine.

        Args:
            client: Configured Drive API client
            context: Local sync root
            max_concurrent: Maximum changes applied in parallel
            no_prompt: Apply without asking for confirmation
            dry_run: Only report the changes, never apply them
            confirm: Called with the change list, returns True to proceed
            progress: Receives per-task progress notifications
        """
        self.client = client
        self.context = context
        self.max_concurrent = max_concurrent
        self.no_prompt = no_prompt
        self.dry_run = dry_run
        self.confirm = confirm
        self.progress = progress

        self.resolver = ChangeResolver(client, context)
        self.handler = LocalChangeHandler(context, ContentMaterializer(client, context))

    def pull(self, path: str = "/") -> PullStats:
        """
        Execute a pull.

        Steps:
        1. Find the remote entry at path
        2. Snapshot the local entry, if it exists
        3. Resolve the change list
        4. Confirm, then apply the changes in batches

        Returns:
            PullStats with counts and per-change failures

        Raises:
            ResolutionError: If the change list cannot be computed
        """
        stats = PullStats()

        logger.info("Resolving...")
        try:
            remote = self.client.find_by_path(path)
        except TransportError as e:
            raise ResolutionError(f"Cannot resolve remote path {path}: {e}") from e

        try:
            local_path = self.context.abs_path_of(path)
        except ValueError as e:
            raise ResolutionError(str(e)) from e
        # Exported documents live on disk under their export name
        if remote.local_name != remote.name:
            local_path = local_path.with_name(remote.local_name)
        local = self.context.local_meta(local_path)

        changes = self.resolver.resolve(path, local, remote)
        stats.total_changes = len(changes)

        if not changes:
            logger.info("Everything is up-to-date.")
            return stats

        if self.dry_run:
            logger.info("DRY RUN MODE - No changes will be made")
            for change in changes:
                logger.info(f"DRY RUN: Would apply {change}")
            stats.skipped = len(changes)
            return stats

        if not self.no_prompt and self.confirm is not None and not self.confirm(changes):
            logger.info("Pull aborted, no changes applied")
            stats.skipped = len(changes)
            return stats
        stats.confirmed = True

        applier = BatchApplier(self.handler, self.max_concurrent, self.progress)
        result = applier.apply(changes)

        for change in result.applied:
            if change.op is Op.ADD:
                stats.added += 1
            elif change.op is Op.MODIFY:
                stats.modified += 1
            else:
                stats.deleted += 1
        stats.skipped = len(result.skipped)
        stats.failures = list(result.failures)

        logger.info(str(stats))

        if stats.failures:
            logger.warning(f"Pull completed with {stats.errors} errors")
            for failure in stats.failures:
                logger.warning(f"  - {failure.change.path}: {failure.cause}")

        return stats
