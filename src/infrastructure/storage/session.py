"""
Authorization session cache for the B2 native API.

Account authorization is rate-sensitive and its token is valid for 24
hours, so one session is fetched and reused until it is close to
expiring. A refresh is two calls: authorize the account, then list
buckets to find the configured bucket's id.

Refreshes are single-flight: callers that find the session expired at
the same time wait on one lock, and everyone after the first reuses the
session it fetched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .errors import AuthError, ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """
    Cached credential bundle for storage calls.

    Frozen because a session is replaced wholesale on refresh, never
    patched in place.
    """
    auth_token: str
    api_url: str
    download_url: str
    bucket_id: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class CredentialCache:
    """Holds one AuthSession and refreshes it lazily."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        key_id: str,
        application_key: str,
        bucket_name: str,
        authorize_url: str,
        ttl_seconds: float = 22 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._key_id = key_id
        self._application_key = application_key
        self._bucket_name = bucket_name
        self._authorize_url = authorize_url
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._session: Optional[AuthSession] = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Optional[AuthSession]:
        """The cached session, valid or not. None before the first refresh."""
        return self._session

    def invalidate(self) -> None:
        """Forget the cached session so the next call re-authorizes."""
        self._session = None

    async def get_session(self) -> AuthSession:
        """
        Return a valid session, refreshing it if absent or expired.

        Raises:
            ConfigError: credentials or bucket name missing
            AuthError: authorization or bucket lookup failed
        """
        session = self._session
        if session is not None and session.is_valid(self._clock()):
            return session

        async with self._lock:
            # Another caller may have refreshed while we waited for the lock
            session = self._session
            if session is not None and session.is_valid(self._clock()):
                return session

            self._session = await self._refresh()
            return self._session

    async def _refresh(self) -> AuthSession:
        logger.info(
            "Authorizing with B2",
            extra={
                "key_id_prefix": (self._key_id or "")[:8],
                "bucket": self._bucket_name,
            }
        )

        if not self._key_id or not self._application_key or not self._bucket_name:
            raise ConfigError(
                "Missing B2 credentials. Set B2_KEY_ID, B2_APP_KEY and B2_BUCKET_NAME."
            )

        now = self._clock()

        try:
            auth_response = await self._http.get(
                self._authorize_url,
                auth=(self._key_id, self._application_key),
            )
        except httpx.HTTPError as e:
            raise AuthError(f"B2 authorization request failed: {e}") from e

        if not auth_response.is_success:
            logger.error(
                "B2 authorization failed",
                extra={"status": auth_response.status_code, "body": auth_response.text}
            )
            raise AuthError(
                "B2 authorization failed",
                status_code=auth_response.status_code,
                body=auth_response.text,
            )

        try:
            auth_data = auth_response.json()
            auth_token = auth_data["authorizationToken"]
            api_url = auth_data["apiUrl"]
            download_url = auth_data["downloadUrl"]
            account_id = auth_data["accountId"]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(
                "Unexpected B2 authorization response",
                extra={"status": auth_response.status_code, "body": auth_response.text}
            )
            raise AuthError(
                f"Unexpected B2 authorization response: {e!r}",
                status_code=auth_response.status_code,
                body=auth_response.text,
            ) from e

        bucket_id = await self._find_bucket_id(api_url, auth_token, account_id)

        session = AuthSession(
            auth_token=auth_token,
            api_url=api_url,
            download_url=download_url,
            bucket_id=bucket_id,
            expires_at=now + self._ttl_seconds,
        )

        logger.info(
            "B2 session established",
            extra={"bucket": self._bucket_name, "bucket_id": bucket_id}
        )

        return session

    async def _find_bucket_id(self, api_url: str, auth_token: str, account_id: str) -> str:
        try:
            response = await self._http.post(
                f"{api_url}/b2api/v2/b2_list_buckets",
                headers={"Authorization": auth_token},
                json={"accountId": account_id},
            )
        except httpx.HTTPError as e:
            raise AuthError(f"B2 bucket listing request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "Failed to list buckets",
                extra={"status": response.status_code, "body": response.text}
            )
            raise AuthError(
                "Failed to list buckets",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            buckets = response.json().get("buckets") or []
            for bucket in buckets:
                if bucket.get("bucketName") == self._bucket_name:
                    return bucket["bucketId"]
            available = [b.get("bucketName") for b in buckets]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(
                "Unexpected bucket listing response",
                extra={"status": response.status_code, "body": response.text}
            )
            raise AuthError(
                f"Unexpected bucket listing response: {e!r}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.error(
            "Target bucket not found",
            extra={"bucket": self._bucket_name, "available": available}
        )
        raise AuthError(
            f"Target bucket {self._bucket_name!r} not found. "
            f"Available buckets: {', '.join(str(b) for b in available)}",
            status_code=response.status_code,
            body=response.text,
        )
