"""
Drive API client.

Handles authentication, pagination, and error handling for the Drive v2
REST API. Tokens are passed via configuration and never logged.
"""

import logging
from pathlib import PurePosixPath
from typing import BinaryIO, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..sync.changes import FileMeta
from .models import file_meta_from_api_response

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the Drive API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Raised when the access token is rejected."""
    pass


class DriveClient:
    """
    Client for the Drive v2 API.

    Handles:
    - Bearer token authentication
    - Automatic pagination of file listings
    - Retry logic for transient failures
    - Streaming downloads of raw blobs and document exports

    Usage:
        client = DriveClient(access_token="...")

        folder = client.find_by_path("/docs")
        for child in client.list_children(folder.id):
            print(child.name)
    """

    DEFAULT_BASE_URL = "https://www.googleapis.com/drive/v2"
    FILES_ENDPOINT = "/files"
    FILE_ENDPOINT = "/files/{file_id}"
    ROOT_ID = "root"

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 3,
    ):
        """
        Initialize Drive client.

        Args:
            access_token: OAuth 2.0 access token (never logged)
            base_url: Drive API base URL
            timeout: Per-request timeout in seconds, applied to downloads too
            max_retries: Maximum retry attempts for transient failures
        """
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout

        self._session = requests.Session()

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

        self._session.headers.update({
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        })

        logger.info(f"Drive client initialized for {self.base_url}")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"DriveClient(base_url='{self.base_url}')"

    def _get(self, url: str, params: Optional[dict] = None, stream: bool = False) -> requests.Response:
        """
        Issue an authenticated GET.

        Raises:
            AuthenticationError: On 401/403 responses
            TransportError: On any other failure
        """
        try:
            response = self._session.get(
                url,
                params=params,
                timeout=self.timeout,
                stream=stream,
            )
            response.raise_for_status()
            return response

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            error_msg = f"Drive API error: {e}"
            try:
                error_body = e.response.json()
                if "error" in error_body:
                    error_msg = f"Drive API error: {error_body['error'].get('message', str(e))}"
            except (ValueError, AttributeError):
                pass
            finally:
                if e.response is not None:
                    e.response.close()

            logger.error(error_msg)
            if status_code in (401, 403):
                raise AuthenticationError(error_msg, status_code=status_code) from e
            raise TransportError(error_msg, status_code=status_code) from e

        except requests.exceptions.RequestException as e:
            error_msg = f"Drive request failed: {e}"
            logger.error(error_msg)
            raise TransportError(error_msg) from e

    def _paginate(self, params: dict) -> Iterator[dict]:
        """
        Iterate over a file listing.

        Drive v2 returns a nextPageToken while more pages remain.

        Yields:
            Individual file resources
        """
        params = dict(params)
        params.setdefault("maxResults", 1000)
        url = f"{self.base_url}{self.FILES_ENDPOINT}"

        while True:
            data = self._get(url, params=params).json()
            yield from data.get("items", [])

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

    def get_file(self, file_id: str) -> FileMeta:
        """Fetch metadata for a single file."""
        url = f"{self.base_url}{self.FILE_ENDPOINT.format(file_id=file_id)}"
        return file_meta_from_api_response(self._get(url).json())

    def find_by_path(self, path: str) -> FileMeta:
        """
        Resolve a logical path to its remote entry.

        Walks the tree from the root one title at a time.

        Args:
            path: "/"-separated path, "/" for the drive root

        Returns:
            FileMeta of the remote entry

        Raises:
            TransportError: With status_code 404 if a segment does not exist
        """
        current = self.get_file(self.ROOT_ID)

        for segment in PurePosixPath("/", path).parts[1:]:
            title = segment.replace("\\", "\\\\").replace("'", "\\'")
            query = f"'{current.id}' in parents and title = '{title}' and trashed = false"
            matches = [file_meta_from_api_response(item) for item in self._paginate({"q": query})]

            if not matches:
                raise TransportError(f"Remote path not found: {path}", status_code=404)
            if len(matches) > 1:
                logger.warning(f"{len(matches)} remote entries named {segment!r}, using the first")
            current = matches[0]

        logger.debug(f"Resolved {path} to remote id {current.id}")
        return current

    def list_children(self, file_id: str) -> list[FileMeta]:
        """
        List the direct, non-trashed children of a folder.

        Args:
            file_id: Remote folder id

        Returns:
            List of FileMeta objects
        """
        query = f"'{file_id}' in parents and trashed = false"

        children = []
        for item in self._paginate({"q": query}):
            try:
                children.append(file_meta_from_api_response(item))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed file resource: {e}")
                continue

        logger.debug(f"Found {len(children)} remote entries in {file_id}")
        return children

    def download(self, file_id: str, export_url: str = "") -> BinaryIO:
        """
        Open a byte stream for a file's content.

        The export URL is used when given, otherwise the raw media of
        file_id is fetched. The caller must close the returned stream.

        Args:
            file_id: Remote file id, ignored when export_url is set
            export_url: Export link of a cloud-native document

        Returns:
            Readable binary stream
        """
        if export_url:
            url = export_url
            params = None
        else:
            url = f"{self.base_url}{self.FILE_ENDPOINT.format(file_id=file_id)}"
            params = {"alt": "media"}

        response = self._get(url, params=params, stream=True)
        response.raw.decode_content = True
        return response.raw

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
        logger.debug("Drive client session closed")

    def __enter__(self) -> "DriveClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
