"""
Batched concurrent applier.

Applies an ordered change list in consecutive batches. Changes inside a
batch run in parallel; a batch must finish completely before the next one
starts, which bounds open files and in-flight downloads to the batch size.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from .changes import Change, check_unique_paths
from .handlers import HandlerError, LocalChangeHandler
from .progress import NullProgress, ProgressCounter, ProgressReporter

logger = logging.getLogger(__name__)

MAX_CONCURRENT = 4


def batches(changes: Sequence[Change], size: int) -> Iterator[Sequence[Change]]:
    """Split changes into consecutive batches of at most size elements."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    for start in range(0, len(changes), size):
        yield changes[start:start + size]


@dataclass
class ApplyResult:
    """
    Outcome of applying a change list.

    Attributes:
        applied: Changes that were applied successfully
        failures: One HandlerError per failed change
        skipped: Changes never dispatched because the run was cancelled
    """
    applied: list[Change] = field(default_factory=list)
    failures: list[HandlerError] = field(default_factory=list)
    skipped: list[Change] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.applied)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        """True when every change was applied."""
        return not self.failures and not self.skipped

    def __str__(self) -> str:
        return (
            f"{self.succeeded} applied, {self.failed} failed, "
            f"{len(self.skipped)} skipped"
        )


class BatchApplier:
    """
    Applies changes with bounded parallelism and a barrier between batches.

    A failing change never stops its siblings or later batches; every
    failure is collected in the returned ApplyResult.

    Usage:
        applier = BatchApplier(handler, max_concurrent=4, progress=LoggingProgress())
        result = applier.apply(changes)
        for failure in result.failures:
            print(failure.change.path, failure.cause)
    """

    def __init__(
        self,
        handler: LocalChangeHandler,
        max_concurrent: int = MAX_CONCURRENT,
        progress: Optional[ProgressReporter] = None,
    ):
        """
        Initialize applier.

        Args:
            handler: Applies a single change; must raise HandlerError on failure
            max_concurrent: Batch size, i.e. maximum changes in flight
            progress: Receives start/done/finish notifications
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")

        self.handler = handler
        self.max_concurrent = max_concurrent
        self.progress = progress or NullProgress()

        self._counter = ProgressCounter()
        self._cancelled = threading.Event()

    @property
    def completed(self) -> int:
        """Number of tasks finished so far in the current run."""
        return self._counter.completed

    def cancel(self) -> None:
        """Stop dispatching new batches; in-flight changes still finish."""
        self._cancelled.set()

    def apply(self, changes: Sequence[Change]) -> ApplyResult:
        """
        Apply a change list.

        Args:
            changes: Ordered changes with unique paths

        Returns:
            ApplyResult with applied, failed and skipped changes

        Raises:
            ResolutionError: If two changes target the same path
        """
        changes = list(changes)
        check_unique_paths(changes)

        result = ApplyResult()
        self._counter.start(len(changes))
        self.progress.start(len(changes))

        with ThreadPoolExecutor(
            max_workers=self.max_concurrent,
            thread_name_prefix="pull",
        ) as executor:
            for index, batch in enumerate(batches(changes, self.max_concurrent)):
                if self._cancelled.is_set():
                    result.skipped.extend(changes[index * self.max_concurrent:])
                    logger.warning(f"Pull cancelled, skipping {len(result.skipped)} changes")
                    break

                logger.debug(f"Dispatching batch {index + 1} with {len(batch)} changes")
                futures = {executor.submit(self._run, change): change for change in batch}

                # Batch barrier: every future is joined before the next batch
                for future in as_completed(futures):
                    change = futures[future]
                    error = future.result()
                    if error is None:
                        result.applied.append(change)
                    else:
                        logger.error(str(error))
                        result.failures.append(error)

        self.progress.finish()
        logger.info(f"Apply complete: {result}")
        return result

    def _run(self, change: Change) -> Optional[HandlerError]:
        """Run one change and return its error instead of raising it."""
        try:
            self.handler.handle(change)
            return None
        except HandlerError as e:
            return e
        except Exception as e:
            return HandlerError(change, e)
        finally:
            self._counter.done()
            self.progress.done()
