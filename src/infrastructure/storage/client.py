"""
Object storage client for uploaded images.

Talks to Backblaze B2 through its native REST API rather than the
S3-compatible one:
- Upload URLs are issued per upload and checked against a SHA-1 of the body
- Deletion needs the file id, which B2 resolves from a name-prefix listing
- No SDK dependency; httpx does the transport

Both pipelines favour availability. An upload that fails returns a
placeholder image URL instead of raising, and a delete that fails
returns False. The upload result says which of the two happened.

Mock mode stores images in memory, enabling API testing without a
storage account.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
from urllib.parse import quote

import httpx

from ...core.media.models import (
    UploadResult,
    build_object_name,
    build_public_url,
    object_name_from_url,
)
from .errors import (
    DeletionNotFound,
    DeletionProtocolError,
    StorageError,
    UploadProtocolError,
)
from .session import AuthSession, CredentialCache

logger = logging.getLogger(__name__)

CACHE_CONTROL_HINT = "max-age=31536000"


@dataclass
class StorageConfig:
    """
    Configuration for the B2 storage client.

    Credentials may be empty here; the client reports them missing on
    first use rather than at construction, so the app can still start.
    """
    key_id: str
    application_key: str
    bucket_name: str
    authorize_url: str = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
    session_ttl_seconds: float = 22 * 3600
    request_timeout_seconds: float = 30.0
    info_author: str = "bnusa-app"


class StorageClient(Protocol):
    """
    Protocol for image storage operations.

    Using a protocol means route handlers and the default-image
    bootstrapper work the same against B2 and the in-memory mock.
    """

    bucket_name: str

    async def get_session(self) -> AuthSession:
        """Authorize (or reuse the cached session). Raises AuthError on failure."""
        ...

    async def upload_image(
        self,
        data: bytes,
        original_name: str,
        mime_type: str,
        folder: str = "",
    ) -> UploadResult:
        """Store an image. Never raises for storage failures."""
        ...

    async def delete_image(self, public_url: str) -> bool:
        """Delete an image by its public URL. Never raises."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class B2StorageClient:
    """
    Backblaze B2 client using the native b2api/v2 endpoints.

    Holds its own credential cache, so two clients never share a
    session. Pass an httpx.AsyncClient to control transport (tests use
    httpx.MockTransport); otherwise the client creates and owns one.
    """

    def __init__(
        self,
        config: StorageConfig,
        http: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.request_timeout_seconds)
        self.bucket_name = config.bucket_name
        self.credentials = CredentialCache(
            http=self._http,
            key_id=config.key_id,
            application_key=config.application_key,
            bucket_name=config.bucket_name,
            authorize_url=config.authorize_url,
            ttl_seconds=config.session_ttl_seconds,
            clock=clock,
        )

        logger.info(
            "Initialized B2 storage client",
            extra={"bucket": config.bucket_name}
        )

    async def get_session(self) -> AuthSession:
        return await self.credentials.get_session()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def upload_image(
        self,
        data: bytes,
        original_name: str,
        mime_type: str,
        folder: str = "",
    ) -> UploadResult:
        """
        Upload an image and return its public URL.

        Steps: session, one-time upload URL, SHA-1 of the body, unique
        object name, upload. Any failure along the way is logged and
        turned into a placeholder result for `folder`.
        """
        logger.info(
            "Uploading image",
            extra={
                "original_name": original_name,
                "mime_type": mime_type,
                "folder": folder or "root",
                "size_bytes": len(data),
            }
        )

        try:
            session = await self.get_session()
            upload_url, upload_token = await self._get_upload_url(session)

            object_name = build_object_name(original_name, folder)
            await self._upload_bytes(
                upload_url,
                upload_token,
                object_name,
                data,
                mime_type,
            )
        except (StorageError, httpx.HTTPError) as e:
            result = UploadResult.placeholder(folder, e)
            logger.error(
                "Image upload failed, using placeholder",
                extra={
                    "original_name": original_name,
                    "folder": folder or "root",
                    "error": str(e),
                    "placeholder": result.url,
                }
            )
            return result

        url = build_public_url(session.download_url, self.bucket_name, object_name)
        logger.info("Image uploaded", extra={"url": url})

        return UploadResult.stored(url, object_name)

    async def _get_upload_url(self, session: AuthSession) -> tuple[str, str]:
        response = await self._http.post(
            f"{session.api_url}/b2api/v2/b2_get_upload_url",
            headers={"Authorization": session.auth_token},
            json={"bucketId": session.bucket_id},
        )

        if not response.is_success:
            raise UploadProtocolError(
                "Failed to get upload URL",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
            return payload["uploadUrl"], payload["authorizationToken"]
        except (KeyError, TypeError, ValueError) as e:
            raise UploadProtocolError(
                f"Unexpected upload URL response: {e!r}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def _upload_bytes(
        self,
        upload_url: str,
        upload_token: str,
        object_name: str,
        data: bytes,
        mime_type: str,
    ) -> None:
        # The cache hint changes at most once a day; it's stored as file
        # info only and doesn't affect how B2 serves the file.
        cache_date = datetime.now(timezone.utc).date().isoformat()

        response = await self._http.post(
            upload_url,
            headers={
                "Authorization": upload_token,
                "X-Bz-File-Name": quote(object_name, safe="/"),
                "Content-Type": mime_type,
                "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
                "X-Bz-Info-Author": self._config.info_author,
                "X-Bz-Info-Cache-Control": CACHE_CONTROL_HINT,
                "X-Bz-Info-Cache-Last-Modified": cache_date,
            },
            content=data,
        )

        if not response.is_success:
            raise UploadProtocolError(
                "Failed to upload file",
                status_code=response.status_code,
                body=response.text,
            )

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_image(self, public_url: str) -> bool:
        """
        Delete the image behind a public URL.

        URLs from another bucket, or not from B2 at all, are rejected
        without a network call. The URL has no file id in it, so the
        object is first looked up by name.
        """
        object_name = object_name_from_url(public_url, self.bucket_name)
        if object_name is None:
            logger.warning(
                "Invalid image URL format for deletion",
                extra={"url": public_url}
            )
            return False

        try:
            session = await self.get_session()
            file_id, file_name = await self._find_file(session, object_name)
            await self._delete_file_version(session, file_id, file_name)
        except DeletionNotFound:
            logger.warning(
                "File not found for deletion",
                extra={"object_name": object_name}
            )
            return False
        except (StorageError, httpx.HTTPError) as e:
            logger.error(
                "Error deleting image",
                extra={"object_name": object_name, "error": str(e)}
            )
            return False

        logger.info("Deleted image", extra={"object_name": object_name})
        return True

    async def _find_file(self, session: AuthSession, object_name: str) -> tuple[str, str]:
        response = await self._http.post(
            f"{session.api_url}/b2api/v2/b2_list_file_names",
            headers={"Authorization": session.auth_token},
            json={
                "bucketId": session.bucket_id,
                "prefix": object_name,
                "maxFileCount": 1,
            },
        )

        if not response.is_success:
            raise DeletionProtocolError(
                "Failed to find file",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            files = response.json().get("files") or []
            first = files[0] if files else {}
            if first.get("fileName") != object_name:
                raise DeletionNotFound(f"No file named {object_name!r}")
            return first["fileId"], first["fileName"]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DeletionProtocolError(
                f"Unexpected file listing response: {e!r}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def _delete_file_version(
        self,
        session: AuthSession,
        file_id: str,
        file_name: str,
    ) -> None:
        response = await self._http.post(
            f"{session.api_url}/b2api/v2/b2_delete_file_version",
            headers={"Authorization": session.auth_token},
            json={"fileName": file_name, "fileId": file_id},
        )

        if not response.is_success:
            raise DeletionProtocolError(
                "Failed to delete file",
                status_code=response.status_code,
                body=response.text,
            )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Uses the same object names and URL shape as B2, with a mock://
    download base, so URLs round-trip through delete_image exactly as
    real ones do.

    Not suitable for production, but perfect for development and testing.
    """

    DOWNLOAD_URL = "mock://storage"

    def __init__(self, bucket_name: str = "mock-bucket") -> None:
        self.bucket_name = bucket_name
        self.objects: dict[str, tuple[bytes, str]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def get_session(self) -> AuthSession:
        return AuthSession(
            auth_token="mock-token",
            api_url="mock://api",
            download_url=self.DOWNLOAD_URL,
            bucket_id="mock-bucket-id",
            expires_at=float("inf"),
        )

    async def upload_image(
        self,
        data: bytes,
        original_name: str,
        mime_type: str,
        folder: str = "",
    ) -> UploadResult:
        """Store image in memory."""
        object_name = build_object_name(original_name, folder)
        self.objects[object_name] = (data, mime_type)

        logger.debug(
            "Stored image in mock storage",
            extra={"object_name": object_name, "size_bytes": len(data)}
        )

        url = build_public_url(self.DOWNLOAD_URL, self.bucket_name, object_name)
        return UploadResult.stored(url, object_name)

    async def delete_image(self, public_url: str) -> bool:
        """Delete image from memory."""
        object_name = object_name_from_url(public_url, self.bucket_name)
        if object_name is None or object_name not in self.objects:
            return False

        del self.objects[object_name]
        return True

    async def aclose(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (B2 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return B2StorageClient(config)
