"""
Domain models for stored media.

These models describe how an uploaded image is named, addressed and
reported back to callers. They have no dependencies on HTTP clients or
the storage provider's API; the same rules apply to the real bucket and
to the in-memory mock.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import uuid4


DEFAULTS_FOLDER = "defaults"

PROFILE_PLACEHOLDER_URL = "https://via.placeholder.com/200x200?text=Profile+Image"
BANNER_PLACEHOLDER_URL = "https://via.placeholder.com/1200x300?text=Banner+Image"
GENERIC_PLACEHOLDER_URL = "https://via.placeholder.com/800x600?text=Image"

PLACEHOLDER_URLS = frozenset({
    PROFILE_PLACEHOLDER_URL,
    BANNER_PLACEHOLDER_URL,
    GENERIC_PLACEHOLDER_URL,
})

# Static assets served by the frontends. The banner file name is what
# actually ships in public/images, typo included.
LOCAL_BANNER_PATH = "/images/deafult-banner.jpg"
LOCAL_AVATAR_PATH = "/images/placeholders/avatar-default.png"


class ImageKind(Enum):
    """Kinds of built-in default image a caller can ask for."""
    BANNER = "banner"
    PROFILE = "profile"


def build_object_name(original_name: str, folder: str = "") -> str:
    """
    Generate a unique object name for an upload.

    Format: {folder/}{uuid4}{extension}. The extension comes verbatim from
    the original filename; a name without one yields an extensionless key.
    Names are never reused, so a prefix search for one matches at most
    one object.
    """
    _, extension = os.path.splitext(original_name or "")
    prefix = f"{folder}/" if folder else ""
    return f"{prefix}{uuid4()}{extension}"


def url_marker(bucket_name: str) -> str:
    """The path segment that separates the download base from the object name."""
    return f"/file/{bucket_name}/"


def build_public_url(download_url: str, bucket_name: str, object_name: str) -> str:
    """Public URL format: {download_url}/file/{bucket}/{object_name}"""
    return f"{download_url.rstrip('/')}{url_marker(bucket_name)}{object_name}"


def object_name_from_url(public_url: str, bucket_name: str) -> Optional[str]:
    """
    Reverse a public URL back to its object name.

    Returns None for URLs that don't belong to this bucket (foreign or
    malformed) or that carry no object name after the marker.
    """
    marker = url_marker(bucket_name)
    if not bucket_name or marker not in (public_url or ""):
        return None

    object_name = public_url.split(marker, 1)[1]
    return object_name or None


def placeholder_for(folder: str) -> str:
    """Placeholder URL returned when an upload into `folder` fails."""
    if folder == "profiles":
        return PROFILE_PLACEHOLDER_URL
    if folder == "banners":
        return BANNER_PLACEHOLDER_URL
    return GENERIC_PLACEHOLDER_URL


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of an upload.

    Callers that only need something displayable use `url`. Callers that
    care whether the image was really stored check `degraded`: a degraded
    result carries a placeholder URL and the error that caused it.
    """
    url: str
    object_name: Optional[str] = None
    degraded: bool = False
    error: Optional[Exception] = None

    @classmethod
    def stored(cls, url: str, object_name: str) -> "UploadResult":
        return cls(url=url, object_name=object_name)

    @classmethod
    def placeholder(cls, folder: str, error: Exception) -> "UploadResult":
        return cls(url=placeholder_for(folder), degraded=True, error=error)


@dataclass
class DefaultImageRegistry:
    """
    Durable URLs for the built-in default images.

    Starts out pointing at local fallbacks and is overwritten, once per
    asset, when the bootstrap upload succeeds.
    """
    banner_primary: str = LOCAL_BANNER_PATH
    profile_avatar: str = LOCAL_AVATAR_PATH

    def use_public_fallbacks(self, public_base_url: Optional[str]) -> None:
        """
        Point the fallbacks at copies under a public base URL.

        Called when the bootstrap starts, for deployments where the
        default images were seeded into the bucket ahead of time.
        """
        if not public_base_url:
            return
        self.banner_primary = f"{public_base_url}{DEFAULTS_FOLDER}/default-banner-primary.jpg"
        self.profile_avatar = f"{public_base_url}{DEFAULTS_FOLDER}/default-avatar.png"
