"""
Media naming and default-image logic.

Contains the object naming rules, the upload result type and the
default-asset bootstrapper.
"""

from .models import (
    DEFAULTS_FOLDER,
    DefaultImageRegistry,
    ImageKind,
    UploadResult,
    build_object_name,
    build_public_url,
    object_name_from_url,
    placeholder_for,
)
from .defaults import DefaultAssetBootstrapper, ImageUploader

__all__ = [
    "DEFAULTS_FOLDER",
    "DefaultImageRegistry",
    "ImageKind",
    "UploadResult",
    "build_object_name",
    "build_public_url",
    "object_name_from_url",
    "placeholder_for",
    "DefaultAssetBootstrapper",
    "ImageUploader",
]
