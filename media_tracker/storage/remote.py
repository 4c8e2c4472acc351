"""
Remote Drive Storage Adapter

Implements StorageAdapter against the Google Drive REST API (v3) using aiohttp.
All files live below a single app folder in the user's drive; relative paths
are mapped onto nested drive folders.
"""

import asyncio
import logging
import mimetypes
from collections.abc import Callable
from typing import Any

import aiohttp

from media_tracker.exceptions import (
    DriveAPIError,
    StorageError,
    StorageSelectionCancelled,
)

from .adapter import StorageAdapter, normalize_directory, normalize_path
from .drive_cache import DriveItemCache
from .handles import DriveToken, RemoteFolderHandle, resolve_maybe_awaitable

log = logging.getLogger(__name__)

TokenProvider = Callable[[], Any]

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def _quote(value: str) -> str:
    """Escapes a value for use inside a single-quoted drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _guess_mime_type(name: str, content: str | bytes) -> str:
    if name.endswith(".md"):
        return "text/markdown"
    mime_type, _ = mimetypes.guess_type(name)
    if mime_type:
        return mime_type
    return "text/plain" if isinstance(content, str) else "application/octet-stream"


class RemoteDriveAdapter(StorageAdapter):
    """
    Storage adapter for a folder in the user's Google Drive.

    Features:
    - Token supplied by an injectable provider (OAuth flow lives outside)
    - App folder and '.trash' subfolder found or created on connect
    - Multipart uploads that overwrite files of the same name
    - Retry with exponential backoff on rate limiting and server errors
    - Optional on-disk cache of file contents keyed by modifiedTime
    """

    storage_type = "googledrive"
    display_name = "Google Drive"
    description = "Store files in your Google Drive"

    API_URL = "https://www.googleapis.com/drive/v3/"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"
    FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
    DEFAULT_FOLDER_NAME = "MarkdownMediaTracker"
    TRASH_FOLDER_NAME = ".trash"

    def __init__(
        self,
        token_provider: TokenProvider | None = None,
        folder_name: str = DEFAULT_FOLDER_NAME,
        api_url: str | None = None,
        upload_url: str | None = None,
        revoke_url: str | None = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        item_cache: DriveItemCache | None = None,
    ):
        """
        Initializes the adapter.

        Args:
            token_provider: Callable (sync or async) that performs authorization
                and returns a DriveToken, an access token string, or an OAuth
                token response dict. Returning None means the user cancelled.
            folder_name: Name of the app folder at the root of the drive.
            api_url: Override for the Drive API base URL.
            upload_url: Override for the Drive upload base URL.
            revoke_url: Override for the OAuth token revocation URL.
            max_attempts: Attempts per request before giving up.
            base_delay: Initial backoff delay in seconds.
            item_cache: Cache for downloaded text files. Entries are dropped
                when the file is written or moved, and on disconnect.
        """
        super().__init__()
        self.handle: RemoteFolderHandle | None = None
        self.folder_name = folder_name or self.DEFAULT_FOLDER_NAME
        self.trash_folder_id: str | None = None
        self.api_url = api_url or self.API_URL
        self.upload_url = upload_url or self.UPLOAD_URL
        self.revoke_url = revoke_url or self.REVOKE_URL
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.item_cache = item_cache

        self._token_provider = token_provider
        self._session: aiohttp.ClientSession | None = None
        self._initialized = False

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept-Encoding": "gzip, deflate"},
                timeout=aiohttp.ClientTimeout(total=60, connect=15, sock_read=30),
            )

    async def close(self) -> None:
        """Closes the HTTP session without revoking the token."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def initialize(self) -> bool:
        if self._initialized:
            return True
        if self._token_provider is None:
            log.error(
                "[red]Google Drive is not configured: no access token source.[/red]"
            )
            return False

        await self._initialize_session()
        self._initialized = True
        return True

    def is_connected(self) -> bool:
        return (
            self._initialized
            and self.handle is not None
            and bool(self.handle.folder_id)
            and self.handle.token is not None
            and not self.handle.token.is_expired()
        )

    def get_storage_info(self) -> str | None:
        if not self.is_connected():
            return None
        return f"Google Drive - {self.folder_name} folder"

    async def select_storage(self) -> RemoteFolderHandle:
        """
        Authorizes with the drive and connects to the app folder.

        Raises:
            StorageSelectionCancelled: If authorization produced no token.
            StorageError: If the adapter is not configured or the folders
                cannot be prepared.
        """
        if not await self.initialize():
            raise StorageError("Google Drive is not configured.")

        log.info("Requesting Google Drive authorization...")
        token = DriveToken.coerce(
            await resolve_maybe_awaitable(self._token_provider())
        )
        if token is None:
            raise StorageSelectionCancelled("Google Drive authorization was cancelled.")

        self.handle = RemoteFolderHandle(
            folder_id="",
            name=self.folder_name,
            token=token,
            reauthorizer=self._token_provider,
        )
        try:
            self.handle.folder_id = await self._find_or_create_folder(self.folder_name)
            self.trash_folder_id = await self._find_or_create_folder(
                self.TRASH_FOLDER_NAME, self.handle.folder_id
            )
        except StorageError as e:
            self.handle = None
            self.trash_folder_id = None
            raise StorageError(f"Failed to initialize Google Drive: {e}") from e

        log.info(f"Connected to Google Drive folder [cyan]{self.folder_name}[/cyan]")
        return self.handle

    async def disconnect(self) -> None:
        await self.clear_cache()

        if self.handle and self.handle.token:
            try:
                await self._initialize_session()
                async with self._session.post(
                    self.revoke_url, params={"token": self.handle.token.access_token}
                ) as r:
                    if r.status >= 400:
                        log.warning(f"Token revocation returned HTTP {r.status}.")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.warning(f"Failed to revoke Google Drive token: {e}")
            self.handle.revoke()

        self.handle = None
        self.trash_folder_id = None
        self._initialized = False
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        expect: str = "json",
        body_factory: Callable[[], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Makes an authenticated request with retry and exponential backoff.

        Args:
            method: HTTP method.
            url: Absolute URL.
            expect: 'json', 'bytes' or 'none' for the response body.
            body_factory: Builds a fresh request body for every attempt.
            **kwargs: Passed to aiohttp (params, json, ...).

        Raises:
            DriveAPIError: On a non-retryable error status or once attempts
                are exhausted.
        """
        await self._initialize_session()
        if not self.handle or not self.handle.token:
            raise DriveAPIError("No Google Drive access token available.")

        headers = {"Authorization": f"Bearer {self.handle.token.access_token}"}
        last_exception: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if body_factory is not None:
                kwargs["data"] = body_factory()
            try:
                async with self._session.request(
                    method, url, headers=headers, **kwargs
                ) as r:
                    if r.status in RETRY_STATUSES and attempt < self.max_attempts:
                        log.debug(
                            f"Drive request {method} {url} returned {r.status}, "
                            f"retrying (attempt {attempt}/{self.max_attempts})."
                        )
                        await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
                        continue

                    if r.status == 401:
                        # The token is no longer accepted; force re-authorization.
                        self.handle.token.expires_at = 0
                    if r.status >= 400:
                        detail = (await r.text())[:200]
                        raise DriveAPIError(
                            f"{method} {url} failed with HTTP {r.status}: {detail}",
                            status=r.status,
                        )

                    if expect == "json":
                        return await r.json(content_type=None)
                    if expect == "bytes":
                        return await r.read()
                    return None
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Drive request attempt {attempt}/{self.max_attempts} "
                    f"for {method} {url} failed: {e}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise DriveAPIError(
            f"{method} {url} failed after {self.max_attempts} attempts: {last_exception}"
        ) from last_exception

    async def _query_files(
        self, query: str, fields: str = "files(id, name, modifiedTime)"
    ) -> list[dict[str, Any]]:
        """Runs a files.list query, following pagination to the end."""
        files: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken, {fields}",
                "pageSize": "1000",
                "spaces": "drive",
            }
            if page_token:
                params["pageToken"] = page_token
            result = await self._request("GET", self.api_url + "files", params=params)
            files.extend(result.get("files", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                return files

    async def _find_folder(self, name: str, parent_id: str | None = None) -> str | None:
        query = (
            f"name='{_quote(name)}' and mimeType='{self.FOLDER_MIME_TYPE}'"
            f" and trashed=false and '{parent_id or 'root'}' in parents"
        )
        folders = await self._query_files(query, fields="files(id, name)")
        return folders[0]["id"] if folders else None

    async def _find_or_create_folder(
        self, name: str, parent_id: str | None = None
    ) -> str:
        folder_id = await self._find_folder(name, parent_id)
        if folder_id:
            return folder_id

        log.debug(f"Creating drive folder '{name}'.")
        result = await self._request(
            "POST",
            self.api_url + "files",
            params={"fields": "id"},
            json={
                "name": name,
                "mimeType": self.FOLDER_MIME_TYPE,
                "parents": [parent_id or "root"],
            },
        )
        return result["id"]

    async def _resolve_folder(
        self, parts: tuple[str, ...], create: bool
    ) -> str | None:
        """Walks folder names below the app folder, optionally creating them."""
        current_id = self.handle.folder_id
        for part in parts:
            if create:
                current_id = await self._find_or_create_folder(part, current_id)
            else:
                found = await self._find_folder(part, current_id)
                if found is None:
                    return None
                current_id = found
        return current_id

    async def _find_file(self, name: str, parent_id: str) -> dict[str, Any] | None:
        query = (
            f"name='{_quote(name)}' and '{parent_id}' in parents"
            f" and mimeType!='{self.FOLDER_MIME_TYPE}' and trashed=false"
        )
        files = await self._query_files(query)
        return files[0] if files else None

    async def _locate(self, path: str) -> dict[str, Any] | None:
        relative = normalize_path(path)
        parent_id = await self._resolve_folder(relative.parent.parts, create=False)
        if parent_id is None:
            return None
        return await self._find_file(relative.name, parent_id)

    async def read_file(self, path: str, binary: bool = False) -> str | bytes | None:
        self._require_connection()
        entry = await self._locate(path)
        if entry is None:
            return None

        use_cache = self.item_cache is not None and not binary
        if use_cache:
            cached = await asyncio.to_thread(
                self.item_cache.get, entry["id"], entry.get("modifiedTime")
            )
            if cached is not None:
                log.debug(f"Drive cache hit for '{path}'.")
                return cached

        try:
            data = await self._request(
                "GET",
                self.api_url + f"files/{entry['id']}",
                params={"alt": "media"},
                expect="bytes",
            )
        except DriveAPIError as e:
            if e.status == 404:
                return None
            raise
        if binary:
            return data

        text = data.decode("utf-8")
        if use_cache:
            await asyncio.to_thread(
                self.item_cache.set,
                entry["id"],
                self.handle.folder_id,
                entry["name"],
                entry.get("modifiedTime"),
                text,
            )
        return text

    async def clear_cache(self) -> int:
        """Drops the cached contents of every file in the app folder."""
        if self.item_cache is None or not self.handle or not self.handle.folder_id:
            return 0
        return await asyncio.to_thread(self.item_cache.clear_folder, self.handle.folder_id)

    async def _drop_cached(self, *file_ids: str) -> None:
        if self.item_cache is None:
            return
        for file_id in file_ids:
            await asyncio.to_thread(self.item_cache.remove, file_id)

    def _multipart_factory(
        self, metadata: dict[str, Any], content: str | bytes, mime_type: str
    ) -> Callable[[], aiohttp.MultipartWriter]:
        data = content.encode("utf-8") if isinstance(content, str) else content

        def build() -> aiohttp.MultipartWriter:
            writer = aiohttp.MultipartWriter("related")
            writer.append_json(metadata)
            writer.append(data, {"Content-Type": mime_type})
            return writer

        return build

    async def write_file(self, path: str, content: str | bytes) -> None:
        self._require_connection()
        relative = normalize_path(path)
        parent_id = await self._resolve_folder(relative.parent.parts, create=True)
        existing = await self._find_file(relative.name, parent_id)
        mime_type = _guess_mime_type(relative.name, content)

        if existing:
            log.debug(f"Updating drive file '{path}' ({existing['id']}).")
            await self._drop_cached(existing["id"])
            await self._request(
                "PATCH",
                self.upload_url + f"files/{existing['id']}",
                params={"uploadType": "multipart"},
                body_factory=self._multipart_factory(
                    {"name": relative.name}, content, mime_type
                ),
            )
        else:
            log.debug(f"Creating drive file '{path}'.")
            await self._request(
                "POST",
                self.upload_url + "files",
                params={"uploadType": "multipart", "fields": "id"},
                body_factory=self._multipart_factory(
                    {"name": relative.name, "parents": [parent_id]}, content, mime_type
                ),
            )

    async def list_files(
        self, directory: str = "", suffix: str | None = None
    ) -> list[str]:
        self._require_connection()
        relative = normalize_directory(directory)
        parts = relative.parts if relative is not None else ()
        folder_id = await self._resolve_folder(parts, create=False)
        if folder_id is None:
            return []

        query = (
            f"'{folder_id}' in parents and trashed=false"
            f" and mimeType!='{self.FOLDER_MIME_TYPE}'"
        )
        files = await self._query_files(query)
        return sorted(
            f["name"]
            for f in files
            if suffix is None or f["name"].endswith(suffix)
        )

    async def file_exists(self, path: str) -> bool:
        self._require_connection()
        return await self._locate(path) is not None

    async def move_file(self, source: str, destination: str) -> None:
        self._require_connection()
        entry = await self._locate(source)
        if entry is None:
            raise StorageError(f"Cannot move '{source}': file not found.")

        source_parent = await self._resolve_folder(
            normalize_path(source).parent.parts, create=False
        )
        target = normalize_path(destination)
        target_parent = await self._resolve_folder(target.parent.parts, create=True)

        replaced = await self._find_file(target.name, target_parent)
        if replaced and replaced["id"] != entry["id"]:
            await self._drop_cached(replaced["id"])
            await self._request(
                "PATCH",
                self.api_url + f"files/{replaced['id']}",
                json={"trashed": True},
            )

        await self._drop_cached(entry["id"])
        params = {"fields": "id, parents"}
        if target_parent != source_parent:
            params["addParents"] = target_parent
            params["removeParents"] = source_parent
        await self._request(
            "PATCH",
            self.api_url + f"files/{entry['id']}",
            params=params,
            json={"name": target.name},
        )
