import pickle
import time

import pytest

from media_tracker.storage.handles import (
    READ,
    READWRITE,
    DirectoryHandle,
    DriveToken,
    PermissionState,
    RemoteFolderHandle,
    forget_session_grants,
)


class TestDriveToken:
    def test_coerce_string(self):
        token = DriveToken.coerce("abc")
        assert token == DriveToken("abc")
        assert not token.is_expired()

    def test_coerce_empty_values(self):
        assert DriveToken.coerce(None) is None
        assert DriveToken.coerce("  ") is None

    def test_coerce_token_response(self):
        token = DriveToken.coerce({"access_token": "abc", "expires_in": 3600})
        assert token.access_token == "abc"
        assert token.expires_at > time.time()

    def test_coerce_rejects_other_types(self):
        with pytest.raises(TypeError):
            DriveToken.coerce(42)

    def test_expiry(self):
        token = DriveToken("abc", expires_at=100.0)
        assert token.is_expired(now=100.0)
        assert not token.is_expired(now=99.0)


class TestDirectoryHandle:
    async def test_picked_handle_is_granted(self, tmp_path):
        handle = DirectoryHandle.picked(tmp_path)
        assert await handle.query_permission(READWRITE) is PermissionState.GRANTED
        assert await handle.query_permission(READ) is PermissionState.GRANTED

    async def test_new_handle_needs_prompt(self, tmp_path):
        handle = DirectoryHandle(tmp_path)
        assert await handle.query_permission() is PermissionState.PROMPT

    async def test_missing_directory_is_denied(self, tmp_path):
        handle = DirectoryHandle.picked(tmp_path / "gone")
        assert await handle.query_permission() is PermissionState.DENIED

    async def test_unknown_mode_raises(self, tmp_path):
        with pytest.raises(ValueError):
            await DirectoryHandle(tmp_path).query_permission("execute")

    async def test_pickle_keeps_location_and_drops_prompter(self, tmp_path):
        handle = DirectoryHandle.picked(tmp_path, prompter=lambda h, m: True)
        restored = pickle.loads(pickle.dumps(handle))
        assert restored == handle
        assert restored.name == tmp_path.name
        assert restored._prompter is None
        assert set(handle.__getstate__()) == {"path", "name"}

    async def test_grants_last_for_the_session(self, tmp_path):
        handle = DirectoryHandle.picked(tmp_path)
        restored = pickle.loads(pickle.dumps(handle))
        assert await restored.query_permission() is PermissionState.GRANTED
        assert await DirectoryHandle(tmp_path).query_permission() is PermissionState.GRANTED

        forget_session_grants()
        assert await restored.query_permission() is PermissionState.PROMPT
        assert await handle.query_permission() is PermissionState.PROMPT

    async def test_request_without_prompter_raises(self, tmp_path):
        handle = DirectoryHandle(tmp_path)
        with pytest.raises(PermissionError):
            await handle.request_permission()

    async def test_request_accepted_by_prompter(self, tmp_path):
        calls = []

        def prompter(handle, mode):
            calls.append(mode)
            return True

        handle = DirectoryHandle(tmp_path, prompter=prompter)
        assert await handle.request_permission() is PermissionState.GRANTED
        assert await handle.query_permission() is PermissionState.GRANTED
        assert calls == [READWRITE]

    async def test_request_declined_by_async_prompter(self, tmp_path):
        async def prompter(handle, mode):
            return False

        handle = DirectoryHandle(tmp_path, prompter=prompter)
        assert await handle.request_permission() is PermissionState.DENIED
        assert await handle.query_permission() is PermissionState.PROMPT


class TestRemoteFolderHandle:
    async def test_states(self):
        handle = RemoteFolderHandle("f1", "Folder", token=DriveToken("abc"))
        assert await handle.query_permission() is PermissionState.GRANTED

        handle.token.expires_at = 0
        assert await handle.query_permission() is PermissionState.PROMPT

        handle.revoke()
        assert await handle.query_permission() is PermissionState.DENIED

    async def test_request_reauthorizes(self):
        handle = RemoteFolderHandle(
            "f1", "Folder", token=DriveToken("old", 0), reauthorizer=lambda: "new"
        )
        assert await handle.request_permission() is PermissionState.GRANTED
        assert handle.token.access_token == "new"

    def test_pickle_drops_token(self):
        handle = RemoteFolderHandle("f1", "Folder", token=DriveToken("abc"))
        restored = pickle.loads(pickle.dumps(handle))
        assert restored.folder_id == "f1"
        assert restored.token is None
