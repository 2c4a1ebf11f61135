"""
Built-in default images (banner, avatar).

On startup the bootstrapper looks for the default images on the local
filesystem, pushes them into the bucket's defaults folder and records the
resulting URLs. Until that happens (or if it never succeeds) callers get
the static fallback paths the frontends serve themselves.

The bootstrap is best-effort and runs after a short delay so it never
holds up application startup. Completion is observable through
`wait()`, which lets request handlers and tests decide how long they are
willing to wait for durable URLs.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from .models import DEFAULTS_FOLDER, DefaultImageRegistry, ImageKind, UploadResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ImageUploader(Protocol):
    """Anything that can store an image and report where it went."""

    async def upload_image(
        self,
        data: bytes,
        original_name: str,
        mime_type: str,
        folder: str = "",
    ) -> UploadResult:
        ...


@dataclass(frozen=True)
class DefaultAsset:
    """A default image: where to look for it locally and how to store it."""
    name: str
    relative_path: str
    upload_name: str
    mime_type: str


BANNER_ASSET = DefaultAsset(
    name="banner",
    relative_path="images/deafult-banner.jpg",
    upload_name="default-banner-primary.jpg",
    mime_type="image/jpeg",
)

AVATAR_ASSET = DefaultAsset(
    name="avatar",
    relative_path="images/placeholders/avatar-default.png",
    upload_name="default-avatar.png",
    mime_type="image/png",
)


def find_asset(asset: DefaultAsset, search_dirs: list[Union[str, Path]]) -> Optional[Path]:
    """Return the first existing candidate path for an asset, if any."""
    for directory in search_dirs:
        candidate = Path(directory) / asset.relative_path
        if candidate.is_file():
            return candidate
    return None


class DefaultAssetBootstrapper:
    """
    One-shot uploader for the built-in default images.

    Owns the DefaultImageRegistry. The registry is written only here, and
    only with URLs of images that were actually stored; a degraded upload
    leaves the fallback in place.
    """

    def __init__(
        self,
        uploader: ImageUploader,
        search_dirs: list[Union[str, Path]],
        delay_seconds: float = 5.0,
        registry: Optional[DefaultImageRegistry] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        self._uploader = uploader
        self._search_dirs = list(search_dirs)
        self._delay_seconds = delay_seconds
        self._public_base_url = public_base_url
        self.registry = registry or DefaultImageRegistry()
        self._done = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def completed(self) -> bool:
        """True once the bootstrap has finished, whatever the outcome."""
        return self._done.is_set()

    def start(self) -> asyncio.Task:
        """
        Schedule the bootstrap on the running loop after the configured delay.

        Safe to call more than once; the first task is returned every time.
        """
        if self._task is None:
            self._task = asyncio.create_task(self._run_delayed())
        return self._task

    async def stop(self) -> None:
        """Cancel a bootstrap that hasn't finished yet (used on shutdown)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for completion. Returns False if the timeout ran out first."""
        try:
            await asyncio.wait_for(self._done.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_delayed(self) -> None:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)
        await self.run()

    async def run(self) -> DefaultImageRegistry:
        """
        Upload every default image that can be found locally.

        With a public base URL configured, the fallbacks switch to bucket
        URLs first, so an asset that fails to upload still resolves to the
        seeded copy. Each asset is handled on its own; a failure is logged
        and the other asset is still uploaded.
        """
        logger.info(
            "Uploading default images",
            extra={"search_dirs": [str(d) for d in self._search_dirs]}
        )

        try:
            self.registry.use_public_fallbacks(self._public_base_url)

            banner_url = await self._upload_asset(BANNER_ASSET)
            if banner_url:
                self.registry.banner_primary = banner_url

            avatar_url = await self._upload_asset(AVATAR_ASSET)
            if avatar_url:
                self.registry.profile_avatar = avatar_url
        finally:
            self._done.set()

        logger.info(
            "Default image bootstrap finished",
            extra={
                "banner_primary": self.registry.banner_primary,
                "profile_avatar": self.registry.profile_avatar,
            }
        )

        return self.registry

    async def _upload_asset(self, asset: DefaultAsset) -> Optional[str]:
        path = find_asset(asset, self._search_dirs)
        if path is None:
            logger.warning(
                "Default image not found, keeping fallback URL",
                extra={"asset": asset.name}
            )
            return None

        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error(
                "Failed to read default image",
                extra={"asset": asset.name, "path": str(path), "error": str(e)}
            )
            return None

        try:
            result = await self._uploader.upload_image(
                data,
                asset.upload_name,
                asset.mime_type,
                DEFAULTS_FOLDER,
            )
        except Exception:
            logger.exception(
                "Default image upload raised, keeping fallback URL",
                extra={"asset": asset.name}
            )
            return None

        if result.degraded:
            logger.error(
                "Default image upload degraded, keeping fallback URL",
                extra={"asset": asset.name, "error": str(result.error)}
            )
            return None

        logger.info(
            "Default image uploaded",
            extra={"asset": asset.name, "url": result.url}
        )
        return result.url

    # -----------------------------------------------------------------------
    # Resolver
    # -----------------------------------------------------------------------

    def get_default_image_url(self, kind: Union[ImageKind, str]) -> str:
        """
        Default image URL for a kind, without waiting.

        Profiles always get an empty string: the UI draws an initials
        avatar instead of an image. Unknown kinds get an empty string too.
        """
        try:
            kind = ImageKind(kind)
        except ValueError:
            return ""

        if kind is ImageKind.BANNER:
            return self.registry.banner_primary
        return ""

    async def resolve_default_image_url(
        self,
        kind: Union[ImageKind, str],
        timeout: Optional[float] = None,
    ) -> str:
        """
        Like get_default_image_url, but first waits up to `timeout` seconds
        for bootstrap. No timeout means no waiting.
        """
        if timeout and not self.completed:
            await self.wait(timeout)
        return self.get_default_image_url(kind)
