"""
Local sync context.

Maps logical drive paths onto the local sync root and snapshots local
entries into FileMeta values.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Optional

from .changes import FileMeta

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def datetime_to_ns(value: datetime) -> int:
    """Convert an aware datetime to integer nanoseconds since the epoch."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def ns_to_datetime(value: int) -> datetime:
    """Convert nanoseconds since the epoch to an aware UTC datetime."""
    return EPOCH + timedelta(microseconds=value // 1000)


def join_path(parent: str, name: str) -> str:
    """Join a logical path and a child name."""
    return str(PurePosixPath(parent or "/") / name)


class SyncContext:
    """
    Local side of a pull.

    All logical paths are "/"-separated and relative to the sync root;
    a leading "/" is optional. Paths that would escape the root are
    rejected.

    Usage:
        context = SyncContext(Path("~/Drive").expanduser())
        context.abs_path_of("/docs/report")  # ~/Drive/docs/report
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def __repr__(self) -> str:
        return f"SyncContext(root='{self.root}')"

    def abs_path_of(self, path: str) -> Path:
        """
        Resolve a logical path to an absolute local path.

        Raises:
            ValueError: If the path points outside the sync root
        """
        parts = PurePosixPath("/", path).parts[1:]
        if ".." in parts:
            raise ValueError(f"Path {path!r} escapes the sync root")
        return self.root.joinpath(*parts)

    def local_meta(self, abs_path: Path) -> Optional[FileMeta]:
        """
        Snapshot a local entry.

        Returns:
            FileMeta with blob_at set to the absolute path, or None if the
            entry does not exist
        """
        try:
            info = os.stat(abs_path)
        except FileNotFoundError:
            return None

        is_dir = os.path.isdir(abs_path)
        return FileMeta(
            name=abs_path.name,
            is_dir=is_dir,
            mod_time=ns_to_datetime(info.st_mtime_ns),
            blob_at=str(abs_path),
            size=None if is_dir else info.st_size,
        )

    def list_local(self, abs_path: Path) -> dict[str, FileMeta]:
        """List the direct children of a local directory keyed by name."""
        children = {}
        with os.scandir(abs_path) as entries:
            for entry in entries:
                meta = self.local_meta(Path(entry.path))
                if meta is not None:
                    children[entry.name] = meta
        logger.debug(f"Found {len(children)} local entries in {abs_path}")
        return children
