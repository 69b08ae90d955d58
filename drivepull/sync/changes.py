"""
Change model for the pull engine.

A Change describes the transition one local path has to make so that it
matches the remote tree. Changes are produced by the resolver and consumed
exactly once by the applier.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Cloud-native document MIME type -> (export MIME type, file extension)
EXPORT_FORMATS: Mapping[str, tuple[str, str]] = MappingProxyType({
    "text/plain": ("text/plain", "txt"),
    "application/vnd.google-apps.drawing": ("image/svg+xml", "svg+xml"),
    "application/vnd.google-apps.spreadsheet": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "xlsx",
    ),
    "application/vnd.google-apps.document": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "docx",
    ),
    "application/vnd.google-apps.presentation": (
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "pptx",
    ),
})

DEFAULT_EXPORT: tuple[str, str] = ("text/plain", "txt")


def export_format_for(mime_type: str) -> tuple[str, str]:
    """Return (export MIME type, extension) for a document MIME type."""
    return EXPORT_FORMATS.get(mime_type, DEFAULT_EXPORT)


class Op(Enum):
    """Local mutation required by a Change."""

    # Remote entry has no local counterpart - create it
    ADD = "add"

    # Both sides exist but differ - overwrite the local entry
    MODIFY = "modify"

    # Local entry has no remote counterpart - remove it
    DELETE = "delete"

    @property
    def symbol(self) -> str:
        """Single-character marker used when listing changes."""
        return {Op.ADD: "+", Op.MODIFY: "M", Op.DELETE: "-"}[self]


@dataclass(frozen=True)
class FileMeta:
    """
    Snapshot of one filesystem entry, local or remote.

    Attributes:
        name: Base name of the entry
        is_dir: Whether the entry is a directory
        mod_time: Last modification time (timezone aware)
        id: Remote file id, empty for local entries
        blob_at: Remote raw content reference, or the absolute path for
            local entries. Empty for directories and cloud-native documents.
        export_links: Export MIME type -> download URL for documents
            without a raw blob
        mime_type: Remote MIME type
        size: Content size in bytes, None when unknown
    """
    name: str
    is_dir: bool
    mod_time: datetime
    id: str = ""
    blob_at: str = ""
    export_links: Mapping[str, str] = field(default_factory=dict, hash=False)
    mime_type: str = ""
    size: Optional[int] = None

    def __post_init__(self):
        if self.mod_time.tzinfo is None:
            object.__setattr__(self, "mod_time", self.mod_time.replace(tzinfo=timezone.utc))
        if self.is_dir and (self.export_links or (self.id and self.blob_at)):
            raise ValueError(f"Directory {self.name!r} cannot carry content")
        object.__setattr__(self, "export_links", MappingProxyType(dict(self.export_links)))

    @property
    def is_exported(self) -> bool:
        """True for remote non-directory entries that have no raw blob."""
        return not self.is_dir and not self.blob_at

    @property
    def local_name(self) -> str:
        """Name the entry takes on disk once materialized."""
        if self.id and self.is_exported:
            _, extension = export_format_for(self.mime_type)
            return f"{self.name}.{extension}"
        return self.name

    def differs_from(self, other: "FileMeta") -> bool:
        """
        Check whether two snapshots of the same path diverge.

        Directories only differ from files. Files differ when they live
        under different names on disk, when their modification times
        differ, or when both sizes are known and differ.
        """
        if self.is_dir != other.is_dir:
            return True
        if self.is_dir:
            return False
        if self.local_name != other.local_name:
            return True
        if self.size is not None and other.size is not None and self.size != other.size:
            return True
        return self.mod_time != other.mod_time


@dataclass(frozen=True)
class Change:
    """
    Required local transition for one path.

    Attributes:
        path: Logical path relative to the sync root ("/" separated)
        src: Target state (remote snapshot), None for deletions
        dest: Current local state, None for additions
    """
    path: str
    src: Optional[FileMeta] = None
    dest: Optional[FileMeta] = None

    def __post_init__(self):
        if not self.path:
            raise ValueError("Change path must not be empty")
        if self.src is None and self.dest is None:
            raise ValueError(f"Change for {self.path!r} has neither source nor destination")
        if self.src is not None and self.dest is not None and not self.src.differs_from(self.dest):
            raise ValueError(f"Change for {self.path!r} is a no-op")

    @property
    def op(self) -> Op:
        """Classify the change; exactly one Op holds for any Change."""
        if self.dest is None:
            return Op.ADD
        if self.src is None:
            return Op.DELETE
        return Op.MODIFY

    def __str__(self) -> str:
        return f"{self.op.symbol} {self.path}"


class ResolutionError(Exception):
    """Raised when a change list cannot be computed or is malformed."""
    pass


def check_unique_paths(changes: Iterable[Change]) -> None:
    """
    Reject a change list that targets the same path more than once.

    Changes within a batch run concurrently, so two changes to one path
    would race on the filesystem.

    Raises:
        ResolutionError: Listing the duplicated paths
    """
    counts = Counter(change.path for change in changes)
    duplicates = sorted(path for path, count in counts.items() if count > 1)
    if duplicates:
        raise ResolutionError(f"Change list has duplicate paths: {', '.join(duplicates)}")
