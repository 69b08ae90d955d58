"""
Per-operation handlers.

Each handler applies one Change to the local filesystem. Failures are
wrapped in HandlerError so the applier can collect them alongside the
Change that caused them.
"""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path

from .changes import Change, Op
from .context import SyncContext, datetime_to_ns
from .materialize import ContentMaterializer

logger = logging.getLogger(__name__)

DIR_MODE = 0o755


class HandlerError(Exception):
    """Raised when a single Change could not be applied."""

    def __init__(self, change: Change, cause: BaseException):
        super().__init__(f"{change.op.value} {change.path} failed: {cause}")
        self.change = change
        self.cause = cause

    @property
    def error_type(self) -> str:
        return type(self.cause).__name__


def set_mod_time(path: Path, mod_time: datetime) -> None:
    """Set access and modification time of path to exactly mod_time."""
    ns = datetime_to_ns(mod_time)
    os.utime(path, ns=(ns, ns))


class LocalChangeHandler:
    """
    Applies Add, Modify and Delete changes to the local tree.

    Usage:
        handler = LocalChangeHandler(context, ContentMaterializer(client, context))
        handler.handle(change)
    """

    def __init__(self, context: SyncContext, materializer: ContentMaterializer):
        self.context = context
        self.materializer = materializer

    def handle(self, change: Change) -> None:
        """
        Route a Change to the handler matching its op.

        Raises:
            HandlerError: Wrapping whatever the handler raised
        """
        handlers = {
            Op.ADD: self.add,
            Op.MODIFY: self.modify,
            Op.DELETE: self.delete,
        }
        try:
            handlers[change.op](change)
        except Exception as e:
            raise HandlerError(change, e) from e

    def add(self, change: Change) -> None:
        """
        Create a missing local entry.

        Directories are created with their full parent chain. Files get
        their parent chain created, their content downloaded and their
        modification time set to the remote one. Directories that already
        exist, for instance as the parent of a sibling change, are fine.
        """
        dest = self.context.abs_path_of(change.path)

        if change.src.is_dir:
            dest.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            set_mod_time(dest, change.src.mod_time)
            logger.debug(f"Created directory {dest}")
            return

        dest.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        written = self.materializer.download(change)
        set_mod_time(written, change.src.mod_time)

    def modify(self, change: Change) -> None:
        """
        Overwrite a diverged local entry.

        Content is re-downloaded for files. The modification time is set in
        every case, so metadata-only changes still line up with the remote.
        An entry that switched between file and directory is replaced, and
        a local file under a name other than the one written is removed.
        """
        if change.src.is_dir != change.dest.is_dir:
            logger.info(f"Replacing {change.path}: file/directory type changed")
            self._remove(Path(change.dest.blob_at))
            self.add(change)
            return

        if change.src.is_dir:
            written = self.context.abs_path_of(change.path)
        else:
            written = self.materializer.download(change)
        set_mod_time(written, change.src.mod_time)

        if change.dest.blob_at and Path(change.dest.blob_at) != written:
            self._remove(Path(change.dest.blob_at))

    def delete(self, change: Change) -> None:
        """Remove a local file or a whole directory subtree."""
        self._remove(Path(change.dest.blob_at))

    def _remove(self, target: Path) -> None:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            try:
                target.unlink()
            except FileNotFoundError:
                logger.debug(f"{target} already removed")
                return
        logger.debug(f"Removed {target}")
