"""
Capability handles that identify a storage root.

A handle carries the location of a storage root together with the access that
has been granted to it. Local grants live in a per-process registry keyed by
the resolved directory, not in the pickled state: a handle restored from the
durable cache keeps the access granted earlier in the same process, and has to
be approved again in a new one.
"""

import asyncio
import inspect
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

READ = "read"
READWRITE = "readwrite"
PERMISSION_MODES = (READ, READWRITE)

# Grants made in this process, keyed by resolved directory path.
_session_grants: dict[Path, set[str]] = {}


def forget_session_grants() -> None:
    """Drops every directory grant made in this process, as when a session ends."""
    _session_grants.clear()


class PermissionState(Enum):
    """Access state of a handle for a given mode."""

    GRANTED = "granted"
    PROMPT = "prompt"
    DENIED = "denied"


async def resolve_maybe_awaitable(value: Any) -> Any:
    """Awaits the value if a callback returned a coroutine, else returns it as-is."""
    if inspect.isawaitable(value):
        return await value
    return value


def _validate_mode(mode: str) -> None:
    if mode not in PERMISSION_MODES:
        raise ValueError(
            f"Unknown permission mode '{mode}'. "
            f"Expected one of: {', '.join(PERMISSION_MODES)}."
        )


@dataclass
class DriveToken:
    """An OAuth access token for the remote drive."""

    access_token: str
    expires_at: float | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at

    @classmethod
    def coerce(cls, value: Any) -> "DriveToken | None":
        """
        Builds a token from whatever a token provider returned.

        Accepts a DriveToken, a bare access token string, or an OAuth token
        response dictionary with 'access_token' and optional 'expires_in'.
        """
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(value) if value.strip() else None
        if isinstance(value, dict) and value.get("access_token"):
            expires_in = value.get("expires_in")
            expires_at = time.time() + float(expires_in) if expires_in else None
            return cls(value["access_token"], expires_at)
        raise TypeError(f"Cannot build a drive token from {type(value).__name__}")


class StorageHandle(ABC):
    """Opaque capability object identifying a storage root."""

    kind: str = "base"

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def query_permission(self, mode: str = READWRITE) -> PermissionState:
        """Reports the current access state without prompting."""

    @abstractmethod
    async def request_permission(self, mode: str = READWRITE) -> PermissionState:
        """Asks for access, prompting the user if the state is PROMPT."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


Prompter = Callable[[StorageHandle, str], bool | Awaitable[bool]]


class DirectoryHandle(StorageHandle):
    """Handle over a local directory."""

    kind = "local"

    def __init__(
        self,
        path: str | Path,
        name: str | None = None,
        prompter: Prompter | None = None,
    ):
        self.path = Path(path).expanduser().resolve()
        super().__init__(name or self.path.name or str(self.path))
        self._prompter = prompter

    @classmethod
    def picked(
        cls, path: str | Path, prompter: Prompter | None = None
    ) -> "DirectoryHandle":
        """Creates a handle for a directory the user just picked for read-write use."""
        handle = cls(path, prompter=prompter)
        handle._grants().add(READWRITE)
        return handle

    def _grants(self) -> set[str]:
        return _session_grants.setdefault(self.path, set())

    def attach_prompter(self, prompter: Prompter | None) -> None:
        self._prompter = prompter

    def __getstate__(self) -> dict[str, Any]:
        return {"path": str(self.path), "name": self.name}

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.path = Path(state["path"])
        self.name = state["name"]
        self._prompter = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DirectoryHandle):
            return NotImplemented
        return self.path == other.path and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.path, self.name))

    def __repr__(self) -> str:
        return f"DirectoryHandle(path={str(self.path)!r}, name={self.name!r})"

    def _is_accessible(self, mode: str) -> bool:
        if not self.path.is_dir():
            return False
        flags = os.R_OK | os.X_OK
        if mode == READWRITE:
            flags |= os.W_OK
        return os.access(self.path, flags)

    async def query_permission(self, mode: str = READWRITE) -> PermissionState:
        _validate_mode(mode)
        if not await asyncio.to_thread(self._is_accessible, mode):
            return PermissionState.DENIED
        granted = self._grants()
        if READWRITE in granted or mode in granted:
            return PermissionState.GRANTED
        return PermissionState.PROMPT

    async def request_permission(self, mode: str = READWRITE) -> PermissionState:
        state = await self.query_permission(mode)
        if state is not PermissionState.PROMPT:
            return state

        if self._prompter is None:
            raise PermissionError(
                f"Access to '{self.name}' must be requested in response to a user action."
            )

        allowed = await resolve_maybe_awaitable(self._prompter(self, mode))
        if not allowed:
            log.debug(f"User declined {mode} access to '{self.name}'.")
            return PermissionState.DENIED

        self._grants().add(mode)
        log.debug(f"Granted {mode} access to '{self.name}'.")
        return PermissionState.GRANTED


class RemoteFolderHandle(StorageHandle):
    """Handle over a folder on the remote drive; the access token is its capability."""

    kind = "remote"

    def __init__(
        self,
        folder_id: str,
        name: str,
        token: DriveToken | None = None,
        reauthorizer: Callable[[], Any] | None = None,
    ):
        super().__init__(name)
        self.folder_id = folder_id
        self.token = token
        self._reauthorizer = reauthorizer
        self._revoked = False

    def revoke(self) -> None:
        self.token = None
        self._revoked = True

    def __getstate__(self) -> dict[str, Any]:
        return {"folder_id": self.folder_id, "name": self.name}

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.folder_id = state["folder_id"]
        self.name = state["name"]
        self.token = None
        self._reauthorizer = None
        self._revoked = False

    def __repr__(self) -> str:
        return f"RemoteFolderHandle(folder_id={self.folder_id!r}, name={self.name!r})"

    async def query_permission(self, mode: str = READWRITE) -> PermissionState:
        _validate_mode(mode)
        if self._revoked:
            return PermissionState.DENIED
        if self.token and not self.token.is_expired():
            return PermissionState.GRANTED
        return PermissionState.PROMPT

    async def request_permission(self, mode: str = READWRITE) -> PermissionState:
        state = await self.query_permission(mode)
        if state is not PermissionState.PROMPT:
            return state

        if self._reauthorizer is None:
            raise PermissionError(
                f"Access to '{self.name}' must be re-authorized by the user."
            )

        token = DriveToken.coerce(await resolve_maybe_awaitable(self._reauthorizer()))
        if token is None:
            return PermissionState.DENIED
        self.token = token
        return PermissionState.GRANTED
