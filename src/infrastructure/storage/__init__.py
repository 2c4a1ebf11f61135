"""
Object storage integration for uploaded images.

Backblaze B2 via its native REST API, with a session cache and an
in-memory mock for local development without credentials.
"""

from .client import (
    B2StorageClient,
    MockStorageClient,
    StorageClient,
    StorageConfig,
    create_storage_client,
)
from .errors import (
    AuthError,
    ConfigError,
    DeletionNotFound,
    DeletionProtocolError,
    StorageError,
    UploadProtocolError,
)
from .session import AuthSession, CredentialCache

__all__ = [
    "B2StorageClient",
    "MockStorageClient",
    "StorageClient",
    "StorageConfig",
    "create_storage_client",
    "AuthError",
    "ConfigError",
    "DeletionNotFound",
    "DeletionProtocolError",
    "StorageError",
    "UploadProtocolError",
    "AuthSession",
    "CredentialCache",
]
