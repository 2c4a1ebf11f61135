"""
Storage error types.

Only the credential cache lets these escape. The upload pipeline turns
them into placeholder results and the deletion pipeline into False.
"""

from typing import Optional


class StorageError(Exception):
    """Base class for storage failures. Carries the upstream response when there is one."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} ({self.status_code}): {self.body}"
        return self.message


class AuthError(StorageError):
    """Account authorization or bucket lookup failed."""
    pass


class ConfigError(AuthError):
    """Account credentials or bucket name are not configured."""
    pass


class UploadProtocolError(StorageError):
    """Getting an upload URL or uploading the bytes failed."""
    pass


class DeletionNotFound(StorageError):
    """No object matches the name being deleted."""
    pass


class DeletionProtocolError(StorageError):
    """Listing or deleting the object failed."""
    pass
