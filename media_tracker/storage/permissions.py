"""
Decides whether a storage handle is usable for read-write access.

Grants can be revoked between runs outside of this application, so the verdict
is derived from the handle every time and never remembered.
"""

import logging

from .handles import READWRITE, PermissionState, StorageHandle

log = logging.getLogger(__name__)


async def verify_handle_permission(
    handle: StorageHandle, request_if_needed: bool = True
) -> bool:
    """
    Checks, and optionally requests, read-write access on a handle.

    Args:
        handle: The handle to check.
        request_if_needed: Whether the user may be prompted when the state is
            'prompt'. Only pass True in direct response to a user action.

    Returns:
        True if the handle is usable for read-write access, False otherwise.
        Failures while querying or requesting never propagate.
    """
    try:
        state = await handle.query_permission(READWRITE)
    except Exception as e:
        log.error(f"Could not query permission for {handle!r}: {e}")
        return False

    if state is PermissionState.GRANTED:
        return True
    if state is PermissionState.DENIED or not request_if_needed:
        return False

    try:
        result = await handle.request_permission(READWRITE)
    except Exception as e:
        log.debug(f"Permission request for {handle!r} was not completed: {e}")
        return False
    return result is PermissionState.GRANTED
