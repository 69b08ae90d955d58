"""
Content materialization.

Turns the target state of a Change into bytes on the local disk, either by
streaming the raw blob or, for cloud-native documents that have no raw
form, by streaming an export in a standard format.
"""

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Protocol

from .changes import Change, export_format_for
from .context import SyncContext

logger = logging.getLogger(__name__)


class MaterializeError(Exception):
    """Raised when a Change cannot be turned into local content."""
    pass


class Transport(Protocol):
    """Remote side of a download."""

    def download(self, file_id: str, export_url: str = "") -> BinaryIO:
        ...


class ContentMaterializer:
    """
    Writes remote content to its local path.

    Exported documents are written with the export extension appended to
    their logical path, matching FileMeta.local_name.
    """

    def __init__(self, transport: Transport, context: SyncContext):
        self.transport = transport
        self.context = context

    def target_path(self, change: Change) -> tuple[str, str]:
        """
        Decide where and how a Change's content is fetched.

        Returns:
            (logical destination path, export URL); the URL is empty for
            raw blobs

        Raises:
            MaterializeError: If the document has no link for its export type
        """
        src = change.src
        if src.blob_at:
            return change.path, ""

        export_mime, extension = export_format_for(src.mime_type)
        export_url = src.export_links.get(export_mime, "")
        if not export_url:
            raise MaterializeError(
                f"No {export_mime} export available for {change.path} ({src.mime_type or 'unknown type'})"
            )
        return f"{change.path}.{extension}", export_url

    def download(self, change: Change) -> Path:
        """
        Materialize the content of change.src.

        The destination is created (or truncated) first, then the remote
        stream is copied into it. Both are closed on every exit path.
        Partial content is left behind if the copy fails.

        Args:
            change: Add or Modify change with a non-directory src

        Returns:
            Absolute path of the written file

        Raises:
            MaterializeError: If no export link matches the document type
            OSError: If the destination cannot be created or written
            TransportError: If the remote fetch fails
        """
        if change.src is None or change.src.is_dir:
            raise MaterializeError(f"{change.path} has no content to download")

        path, export_url = self.target_path(change)
        if export_url:
            logger.info(f"Exported {change.path} to: {path}")

        dest = self.context.abs_path_of(path)
        with open(dest, "wb") as fo:
            with self.transport.download(change.src.id, export_url) as blob:
                shutil.copyfileobj(blob, fo)

        logger.debug(f"Downloaded {change.path} to {dest}")
        return dest
