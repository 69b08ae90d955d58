"""
Pytest configuration and shared fixtures.

Provides an in-memory Drive double and test data for pull engine testing.
"""

import io
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional

import pytest

from drivepull.remote.client import TransportError
from drivepull.sync.changes import FOLDER_MIME_TYPE, FileMeta
from drivepull.sync.context import SyncContext


DOC_MIME = "application/vnd.google-apps.document"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class TrackedStream(io.BytesIO):
    """BytesIO that remembers it was closed and can fail mid-read."""

    def __init__(self, data: bytes, fail_after: Optional[int] = None):
        super().__init__(data)
        self.fail_after = fail_after
        self.was_closed = False

    def read(self, size=-1):
        if self.fail_after is not None and self.tell() >= self.fail_after:
            raise OSError("connection reset")
        if self.fail_after is not None:
            size = self.fail_after - self.tell()
        return super().read(size)

    def close(self):
        self.was_closed = True
        super().close()


class FakeDrive:
    """
    In-memory stand-in for DriveClient.

    Entries are registered by logical path; content is keyed by file id
    (raw blobs) or by export URL (documents).
    """

    def __init__(self, root_time: datetime):
        self.entries: dict[str, FileMeta] = {}
        self.content: dict[str, bytes] = {}
        self.streams: list[TrackedStream] = []
        self.downloads: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self.fail_after: Optional[int] = None
        self.closed = False
        self._next_id = 0
        self.entries["/"] = FileMeta(name="My Drive", is_dir=True, mod_time=root_time, id="root")

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id-{self._next_id}"

    def add_folder(self, path: str, mod_time: datetime) -> FileMeta:
        meta = FileMeta(
            name=PurePosixPath(path).name,
            is_dir=True,
            mod_time=mod_time,
            id=self._new_id(),
            mime_type=FOLDER_MIME_TYPE,
        )
        self.entries[path] = meta
        return meta

    def add_file(self, path: str, data: bytes, mod_time: datetime) -> FileMeta:
        file_id = self._new_id()
        meta = FileMeta(
            name=PurePosixPath(path).name,
            is_dir=False,
            mod_time=mod_time,
            id=file_id,
            blob_at=f"https://drive.test/download/{file_id}",
            mime_type="application/octet-stream",
            size=len(data),
        )
        self.entries[path] = meta
        self.content[file_id] = data
        return meta

    def add_document(self, path: str, data: bytes, mod_time: datetime, mime_type: str = DOC_MIME) -> FileMeta:
        file_id = self._new_id()
        links = {
            DOCX_MIME: f"https://drive.test/export/{file_id}.docx",
            "text/plain": f"https://drive.test/export/{file_id}.txt",
        }
        meta = FileMeta(
            name=PurePosixPath(path).name,
            is_dir=False,
            mod_time=mod_time,
            id=file_id,
            export_links=links,
            mime_type=mime_type,
        )
        self.entries[path] = meta
        for url in links.values():
            self.content[url] = data
        return meta

    def find_by_path(self, path: str) -> FileMeta:
        key = str(PurePosixPath("/", path))
        if key not in self.entries:
            raise TransportError(f"Remote path not found: {path}", status_code=404)
        return self.entries[key]

    def list_children(self, file_id: str) -> list[FileMeta]:
        if file_id in self.failing:
            raise TransportError("listing failed", status_code=500)
        parent = next(path for path, meta in self.entries.items() if meta.id == file_id)
        return [
            meta for path, meta in self.entries.items()
            if path != "/" and str(PurePosixPath(path).parent) == parent
        ]

    def download(self, file_id: str, export_url: str = "") -> TrackedStream:
        self.downloads.append((file_id, export_url))
        key = export_url or file_id
        if key in self.failing:
            raise TransportError(f"download of {key} failed", status_code=500)
        stream = TrackedStream(self.content[key], fail_after=self.fail_after)
        self.streams.append(stream)
        return stream

    def close(self) -> None:
        self.closed = True


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def remote_time() -> datetime:
    """Remote modification time with sub-second precision."""
    return datetime(2026, 1, 15, 14, 30, 0, 123000, tzinfo=timezone.utc)


@pytest.fixture
def older_time() -> datetime:
    """A modification time earlier than remote_time."""
    return datetime(2025, 12, 1, 9, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Local/Remote Fixtures
# ============================================================================

@pytest.fixture
def sync_root(tmp_path: Path) -> Path:
    """Empty local sync root."""
    root = tmp_path / "drive"
    root.mkdir()
    return root


@pytest.fixture
def sync_context(sync_root: Path) -> SyncContext:
    """SyncContext over the temporary sync root."""
    return SyncContext(sync_root)


@pytest.fixture
def fake_drive(remote_time: datetime) -> FakeDrive:
    """Empty in-memory drive."""
    return FakeDrive(remote_time)


@pytest.fixture
def blob_meta(remote_time: datetime) -> FileMeta:
    """Remote file with a raw blob."""
    return FileMeta(
        name="notes.bin",
        is_dir=False,
        mod_time=remote_time,
        id="file-1",
        blob_at="https://drive.test/download/file-1",
        mime_type="application/octet-stream",
        size=11,
    )


@pytest.fixture
def doc_meta(remote_time: datetime) -> FileMeta:
    """Remote cloud-native document without a raw blob."""
    return FileMeta(
        name="Report",
        is_dir=False,
        mod_time=remote_time,
        id="doc-1",
        export_links={
            DOCX_MIME: "https://drive.test/export/doc-1.docx",
            "text/plain": "https://drive.test/export/doc-1.txt",
        },
        mime_type=DOC_MIME,
    )


@pytest.fixture
def folder_meta(remote_time: datetime) -> FileMeta:
    """Remote folder."""
    return FileMeta(
        name="photos",
        is_dir=True,
        mod_time=remote_time,
        id="folder-1",
        mime_type=FOLDER_MIME_TYPE,
    )


# ============================================================================
# API Response Fixtures
# ============================================================================

@pytest.fixture
def drive_file_response() -> dict:
    """Sample Drive v2 file resource with a raw blob."""
    return {
        "id": "0B1234",
        "title": "notes.txt",
        "mimeType": "text/plain",
        "modifiedDate": "2026-01-15T14:30:00.123Z",
        "downloadUrl": "https://doc-0s.googleusercontent.com/notes.txt",
        "fileSize": "42",
    }


@pytest.fixture
def drive_document_response() -> dict:
    """Sample Drive v2 file resource for a Google document."""
    return {
        "id": "1Abcd",
        "title": "Report",
        "mimeType": DOC_MIME,
        "modifiedDate": "2026-01-15T14:30:00.123Z",
        "exportLinks": {
            DOCX_MIME: "https://docs.google.com/feeds/download/documents/export?id=1Abcd&exportFormat=docx",
            "text/plain": "https://docs.google.com/feeds/download/documents/export?id=1Abcd&exportFormat=txt",
        },
    }


@pytest.fixture
def drive_folder_response() -> dict:
    """Sample Drive v2 folder resource."""
    return {
        "id": "0Bfolder",
        "title": "photos",
        "mimeType": FOLDER_MIME_TYPE,
        "modifiedDate": "2026-01-10T08:00:00.000Z",
    }


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def mock_env(monkeypatch, tmp_path: Path):
    """Valid configuration environment, isolated from any local .env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DRIVE_ACCESS_TOKEN", "test_token")
    monkeypatch.setenv("PULL_MAX_CONCURRENT", "8")
    monkeypatch.setenv("DRIVEPULL_ROOT", str(tmp_path / "drive"))
    for name in ("DRIVE_API_URL", "PULL_NO_PROMPT", "PULL_DRY_RUN", "PULL_REQUEST_TIMEOUT", "PULL_MAX_RETRIES",
                 "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
