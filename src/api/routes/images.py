"""
Image upload, deletion and default-image endpoints.

This is the HTTP intake for the storage client. It is the only place
that validates uploads (MIME type, size); the storage client assumes
it is handed an acceptable image.

Uploads never fail because storage is down: the client falls back to a
placeholder URL and the response says so in `degraded`.
"""

import asyncio
import hashlib
import logging
from typing import Optional

from fastapi import APIRouter, File, Form, Header, HTTPException, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...config.settings import Settings
from ...core.media.models import ImageKind, UploadResult
from ...infrastructure.storage.client import StorageClient
from ...infrastructure.storage.errors import AuthError
from ..dependencies import DefaultImagesDep, SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
MAX_FILES_PER_REQUEST = 10
RESPONSE_CACHE_CONTROL = "max-age=2592000"  # 30 days


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    """The frontends speak camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageUploadResponse(CamelModel):
    """Response after uploading a single image."""
    success: bool = True
    image_url: str = Field(description="Public URL of the image, or a placeholder")
    degraded: bool = Field(
        default=False,
        description="True if storage failed and image_url is a placeholder"
    )
    cache_hash: str = Field(description="Short content hash, also sent as the ETag")
    location: Optional[str] = Field(
        default=None,
        description="Same as image_url; set for rich-text editor uploads"
    )


class MultipleImageUploadResponse(CamelModel):
    """Response after uploading several images."""
    success: bool = True
    image_urls: list[str]
    degraded_count: int = 0


class DeleteImageRequest(CamelModel):
    image_url: str = Field(description="Public URL previously returned by an upload")


class DeleteImageResponse(CamelModel):
    success: bool


class DefaultImageResponse(CamelModel):
    kind: str
    url: str


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def cache_hash(data: bytes) -> str:
    """First 10 hex chars of the MD5, used for client-side cache validation."""
    return hashlib.md5(data).hexdigest()[:10]


async def read_validated_image(file: UploadFile, max_size_bytes: int) -> bytes:
    """
    Read an uploaded image, rejecting unsupported types and oversized files.

    Raises HTTPException (400 / 413) on invalid input.
    """
    if file.content_type not in ALLOWED_MIME_TYPES:
        logger.warning(
            "Rejected upload with unsupported type",
            extra={"content_type": file.content_type, "original_name": file.filename}
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported file format. Only JPEG, PNG and WebP are allowed.",
        )

    data = await file.read()

    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file is empty",
        )

    if len(data) > max_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds maximum size of {max_size_bytes // (1024 * 1024)}MB",
        )

    return data


async def store_single_image(
    file: UploadFile,
    folder: str,
    storage: StorageClient,
    settings: Settings,
    response: Response,
    cache_control: Optional[str] = None,
) -> tuple[UploadResult, str]:
    data = await read_validated_image(file, settings.max_upload_size_bytes)

    result = await storage.upload_image(
        data,
        file.filename or "",
        file.content_type,
        folder,
    )

    content_hash = cache_hash(data)
    response.headers["Cache-Control"] = cache_control or RESPONSE_CACHE_CONTROL
    response.headers["ETag"] = f'"{content_hash}"'
    response.headers["Vary"] = "Accept-Encoding"

    return result, content_hash


# ---------------------------------------------------------------------------
# Upload Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=ImageUploadResponse,
    summary="Upload an image",
    description="Upload a single image into an optional folder.",
)
async def upload_image(
    storage: StorageClientDep,
    settings: SettingsDep,
    response: Response,
    image: UploadFile = File(..., description="JPEG, PNG or WebP image"),
    folder: str = Form(default=""),
    x_cache_control: Optional[str] = Header(default=None, alias="X-Cache-Control"),
) -> ImageUploadResponse:
    """Upload one image. A client-sent X-Cache-Control overrides the default caching header."""
    result, content_hash = await store_single_image(
        image, folder, storage, settings, response, cache_control=x_cache_control
    )

    return ImageUploadResponse(
        image_url=result.url,
        degraded=result.degraded,
        cache_hash=content_hash,
    )


@router.post(
    "/upload-multiple",
    response_model=MultipleImageUploadResponse,
    summary="Upload several images",
)
async def upload_multiple_images(
    storage: StorageClientDep,
    settings: SettingsDep,
    images: list[UploadFile] = File(..., description="Up to 10 images"),
    folder: str = Form(default=""),
) -> MultipleImageUploadResponse:
    """Upload up to 10 images concurrently. URLs come back in request order."""
    if len(images) > MAX_FILES_PER_REQUEST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_FILES_PER_REQUEST} images per request",
        )

    payloads = [
        (await read_validated_image(f, settings.max_upload_size_bytes), f)
        for f in images
    ]

    results = await asyncio.gather(*(
        storage.upload_image(data, f.filename or "", f.content_type, folder)
        for data, f in payloads
    ))

    return MultipleImageUploadResponse(
        image_urls=[r.url for r in results],
        degraded_count=sum(1 for r in results if r.degraded),
    )


def _folder_upload_route(path: str, folder: str, summary: str, with_location: bool = False):
    """Register an upload route that always stores into `folder`."""

    @router.post(
        path,
        response_model=ImageUploadResponse,
        summary=summary,
        name=f"upload_{folder}_image",
    )
    async def upload_into_folder(
        storage: StorageClientDep,
        settings: SettingsDep,
        response: Response,
        image: UploadFile = File(..., description="JPEG, PNG or WebP image"),
    ) -> ImageUploadResponse:
        result, content_hash = await store_single_image(image, folder, storage, settings, response)

        return ImageUploadResponse(
            image_url=result.url,
            degraded=result.degraded,
            cache_hash=content_hash,
            location=result.url if with_location else None,
        )

    return upload_into_folder


_folder_upload_route("/profile", "profiles", "Upload a profile image")
_folder_upload_route("/banner", "banners", "Upload a banner image")
_folder_upload_route("/article", "articles", "Upload an article cover image")
# The rich-text editor reads the URL from `location`
_folder_upload_route("/content", "content", "Upload a content image", with_location=True)


# ---------------------------------------------------------------------------
# Delete / Defaults / Diagnostics
# ---------------------------------------------------------------------------

@router.delete(
    "",
    response_model=DeleteImageResponse,
    summary="Delete an image",
    description="Delete an image by the URL an upload returned. Unknown URLs give success=false.",
)
async def delete_image(
    request: DeleteImageRequest,
    storage: StorageClientDep,
) -> DeleteImageResponse:
    if not request.image_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No image URL provided",
        )

    success = await storage.delete_image(request.image_url)
    return DeleteImageResponse(success=success)


@router.get(
    "/defaults/{kind}",
    response_model=DefaultImageResponse,
    summary="Default image URL",
)
async def get_default_image(
    kind: str,
    default_images: DefaultImagesDep,
    settings: SettingsDep,
) -> DefaultImageResponse:
    """
    URL of a built-in default image.

    Waits briefly for the startup bootstrap so early requests still get
    the stored copy when it is about to be ready.
    """
    try:
        image_kind = ImageKind(kind)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown default image kind: {kind}",
        )

    url = await default_images.resolve_default_image_url(
        image_kind,
        timeout=settings.default_image_wait_seconds,
    )
    return DefaultImageResponse(kind=image_kind.value, url=url)


@router.get(
    "/check-config",
    summary="Check storage configuration",
    description="Authorizes against storage without uploading anything.",
    responses={503: {"description": "Storage authorization failed"}},
)
async def check_config(storage: StorageClientDep, settings: SettingsDep):
    logger.info(
        "Checking storage configuration",
        extra={
            "key_id_prefix": settings.b2_key_id[:8],
            "bucket": settings.b2_bucket_name,
            "mock_mode": settings.b2_mock_mode,
        }
    )

    try:
        session = await storage.get_session()
    except AuthError as e:
        logger.error("Storage configuration check failed", extra={"error": str(e)})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "message": "Storage configuration check failed",
                "error": str(e),
            },
        )

    return {
        "success": True,
        "message": "Storage configuration check passed",
        "bucketId": session.bucket_id,
        "apiUrl": "Connected" if session.api_url else "Failed",
        "downloadUrl": "Available" if session.download_url else "Failed",
    }
