"""
Drive API data models.

Converts Drive v2 file resources into the FileMeta snapshots used by the
pull engine.
"""

from datetime import datetime

from ..sync.changes import FOLDER_MIME_TYPE, FileMeta


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as returned by the Drive API."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def file_meta_from_api_response(data: dict) -> FileMeta:
    """
    Create FileMeta from a Drive v2 file resource.

    Folders carry no content. Cloud-native documents have no downloadUrl
    and are materialized through their exportLinks instead.
    """
    is_dir = data.get("mimeType") == FOLDER_MIME_TYPE
    size = data.get("fileSize")

    return FileMeta(
        name=data["title"],
        is_dir=is_dir,
        mod_time=parse_timestamp(data["modifiedDate"]),
        id=data["id"],
        blob_at="" if is_dir else data.get("downloadUrl", ""),
        export_links={} if is_dir else dict(data.get("exportLinks") or {}),
        mime_type=data.get("mimeType", ""),
        size=int(size) if size is not None else None,
    )
