import itertools
import re
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from media_tracker.storage.handle_cache import HandleCache
from media_tracker.storage.handles import DirectoryHandle, forget_session_grants
from media_tracker.storage.local import LocalAdapter
from media_tracker.storage.local_settings import LocalSettingsStore
from media_tracker.storage.remote import RemoteDriveAdapter

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
VALID_TOKEN = "good-token"

NAME_RE = re.compile(r"name='((?:[^'\\]|\\.)*)'")
PARENT_RE = re.compile(r"'([^']*)' in parents")
MIME_EQ_RE = re.compile(r"mimeType='([^']*)'")
MIME_NE_RE = re.compile(r"mimeType!='([^']*)'")


class FakeDrive:
    """An in-memory stand-in for the parts of Drive REST v3 the adapter uses."""

    def __init__(self, page_size: int = 2):
        self.files: dict[str, dict] = {}
        self.page_size = page_size
        self.fail_next: list[int] = []
        self.revoked: list[str] = []
        self.requests: list[tuple[str, str]] = []
        self.base_url = ""
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    # Helpers for tests

    def add(self, name, parent="root", content=b"", mime_type="text/markdown"):
        file_id = f"id{next(self._ids)}"
        self.files[file_id] = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": [parent],
            "trashed": False,
            "content": content,
            "modifiedTime": self._tick(),
        }
        return file_id

    def _tick(self):
        return f"2024-01-01T00:00:{next(self._clock):02d}.000Z"

    def add_folder(self, name, parent="root"):
        return self.add(name, parent, mime_type=FOLDER_MIME_TYPE)

    def downloads(self):
        return sum(
            1 for method, path in self.requests
            if method == "GET" and path.startswith("/drive/v3/files/")
        )

    def find(self, name, parent=None):
        for f in self.files.values():
            if f["name"] == name and not f["trashed"]:
                if parent is None or parent in f["parents"]:
                    return f
        return None

    def adapter(self, token=VALID_TOKEN, **kwargs) -> RemoteDriveAdapter:
        return RemoteDriveAdapter(
            token_provider=(lambda: token),
            api_url=self.base_url + "drive/v3/",
            upload_url=self.base_url + "upload/drive/v3/",
            revoke_url=self.base_url + "revoke",
            base_delay=0,
            **kwargs,
        )

    # Request handling

    def make_app(self) -> web.Application:
        app = web.Application(middlewares=[self._middleware])
        app.router.add_get("/drive/v3/files", self.list_files)
        app.router.add_post("/drive/v3/files", self.create_folder)
        app.router.add_get("/drive/v3/files/{file_id}", self.download)
        app.router.add_patch("/drive/v3/files/{file_id}", self.update_metadata)
        app.router.add_post("/upload/drive/v3/files", self.upload_new)
        app.router.add_patch("/upload/drive/v3/files/{file_id}", self.upload_existing)
        app.router.add_post("/revoke", self.revoke)
        return app

    @web.middleware
    async def _middleware(self, request, handler):
        self.requests.append((request.method, request.path))
        if request.path == "/revoke":
            return await handler(request)
        if self.fail_next:
            return web.Response(status=self.fail_next.pop(0), text="injected failure")
        if request.headers.get("Authorization") != f"Bearer {VALID_TOKEN}":
            return web.json_response({"error": "invalid token"}, status=401)
        return await handler(request)

    def _matches(self, f, query):
        if "trashed=false" in query and f["trashed"]:
            return False
        name = NAME_RE.search(query)
        if name and f["name"] != name.group(1).replace("\\'", "'").replace("\\\\", "\\"):
            return False
        parent = PARENT_RE.search(query)
        if parent and parent.group(1) not in f["parents"]:
            return False
        mime_eq = MIME_EQ_RE.search(query)
        if mime_eq and f["mimeType"] != mime_eq.group(1):
            return False
        mime_ne = MIME_NE_RE.search(query)
        return not (mime_ne and f["mimeType"] == mime_ne.group(1))

    async def list_files(self, request):
        query = request.query.get("q", "")
        matched = [
            {"id": f["id"], "name": f["name"], "modifiedTime": f["modifiedTime"]}
            for f in self.files.values()
            if self._matches(f, query)
        ]
        start = int(request.query.get("pageToken", "0"))
        page = matched[start : start + self.page_size]
        body = {"files": page}
        if start + self.page_size < len(matched):
            body["nextPageToken"] = str(start + self.page_size)
        return web.json_response(body)

    async def create_folder(self, request):
        meta = await request.json()
        file_id = self.add(meta["name"], meta["parents"][0], mime_type=meta["mimeType"])
        return web.json_response({"id": file_id})

    async def download(self, request):
        f = self.files.get(request.match_info["file_id"])
        if f is None or request.query.get("alt") != "media":
            return web.json_response({"error": "not found"}, status=404)
        return web.Response(body=f["content"])

    async def update_metadata(self, request):
        f = self.files.get(request.match_info["file_id"])
        if f is None:
            return web.json_response({"error": "not found"}, status=404)
        meta = await request.json()
        if "trashed" in meta:
            f["trashed"] = meta["trashed"]
        if "name" in meta:
            f["name"] = meta["name"]
        add = request.query.get("addParents")
        remove = request.query.get("removeParents")
        if add and remove:
            f["parents"] = [add if p == remove else p for p in f["parents"]]
        f["modifiedTime"] = self._tick()
        return web.json_response({"id": f["id"], "parents": f["parents"]})

    async def _read_multipart(self, request):
        reader = await request.multipart()
        meta_part = await reader.next()
        meta = await meta_part.json()
        content_part = await reader.next()
        content = await content_part.read(decode=False)
        return meta, bytes(content)

    async def upload_new(self, request):
        meta, content = await self._read_multipart(request)
        file_id = self.add(meta["name"], meta["parents"][0], content=content)
        return web.json_response({"id": file_id})

    async def upload_existing(self, request):
        f = self.files.get(request.match_info["file_id"])
        if f is None:
            return web.json_response({"error": "not found"}, status=404)
        meta, content = await self._read_multipart(request)
        f["name"] = meta.get("name", f["name"])
        f["content"] = content
        f["modifiedTime"] = self._tick()
        return web.json_response({"id": f["id"]})

    async def revoke(self, request):
        self.revoked.append(request.query.get("token", ""))
        return web.Response(status=200)


@pytest.fixture(autouse=True)
def fresh_session():
    yield
    forget_session_grants()


@pytest.fixture
async def drive():
    fake = FakeDrive()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}/"
    yield fake
    await server.close()


@pytest.fixture
async def drive_adapter(drive):
    adapter = drive.adapter()
    await adapter.select_storage()
    yield adapter
    await adapter.close()


@pytest.fixture
def config_dir(tmp_path) -> Path:
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    path = tmp_path / "media"
    path.mkdir()
    return path


@pytest.fixture
async def handle_cache(config_dir):
    cache = HandleCache(config_dir)
    yield cache
    await cache.close()


@pytest.fixture
def local_store(config_dir) -> LocalSettingsStore:
    return LocalSettingsStore(config_dir)


@pytest.fixture
def local_adapter(storage_dir) -> LocalAdapter:
    adapter = LocalAdapter()
    adapter.handle = DirectoryHandle.picked(storage_dir)
    return adapter
