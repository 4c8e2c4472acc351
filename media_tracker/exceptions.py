"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MediaTrackerError(Exception):
    """Base exception for all application-specific errors."""


class StorageError(MediaTrackerError):
    """Raised when a storage backend or the durable handle store fails."""


class NotConnectedError(StorageError):
    """Raised when a storage operation is attempted without an active connection."""


class PermissionDeniedError(StorageError):
    """Raised when write access to a storage root has not been granted."""


class DriveAPIError(StorageError):
    """Raised when the remote drive API rejects a request."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class StorageSelectionCancelled(MediaTrackerError):
    """Raised when the user dismisses a storage picker or authorization flow."""


class ConfigurationError(MediaTrackerError):
    """Raised for issues related to configuration loading or validation."""
