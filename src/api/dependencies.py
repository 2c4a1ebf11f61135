"""
FastAPI dependency injection.

Dependencies provide the storage client, the default-image bootstrapper
and configuration to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped for mocks in tests
- The storage client and its cached session live exactly as long as the app

The client and bootstrapper are created in the application lifespan and
kept on app.state; these functions just hand them out.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ..config.settings import Settings, get_settings
from ..core.media.defaults import DefaultAssetBootstrapper
from ..infrastructure.storage.client import StorageClient

logger = logging.getLogger(__name__)


def get_storage_client(request: Request) -> StorageClient:
    """
    Provide the application's storage client.

    Returns either the B2 client or the mock client, whichever the
    lifespan created from settings.
    """
    client = getattr(request.app.state, "storage", None)
    if client is None:
        logger.error("Storage client requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not available yet",
        )
    return client


def get_default_images(request: Request) -> DefaultAssetBootstrapper:
    """Provide the default-image bootstrapper (and its registry)."""
    bootstrapper = getattr(request.app.state, "default_images", None)
    if bootstrapper is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Default images are not available yet",
        )
    return bootstrapper


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
DefaultImagesDep = Annotated[DefaultAssetBootstrapper, Depends(get_default_images)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
