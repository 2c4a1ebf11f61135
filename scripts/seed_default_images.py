#!/usr/bin/env python3
"""
Upload the built-in default images to B2 and print their URLs.

Runs the same bootstrap the API runs at startup, but immediately and
once. Useful after rotating buckets, or to check that the default images
can be found and stored before deploying.

Usage:
    python scripts/seed_default_images.py
    python scripts/seed_default_images.py --dir ../frontend/public --dry-run

Requires:
    - .env file with B2 credentials (or B2_MOCK_MODE=true)
    - public/images/deafult-banner.jpg and
      public/images/placeholders/avatar-default.png somewhere under --dir
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import get_settings
from src.core.media.defaults import AVATAR_ASSET, BANNER_ASSET, DefaultAssetBootstrapper, find_asset
from src.infrastructure.storage.client import create_storage_client


async def seed(search_dirs: list[str], dry_run: bool) -> bool:
    settings = get_settings()

    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: missing configuration: {', '.join(missing)}")
        return False

    for asset in (BANNER_ASSET, AVATAR_ASSET):
        path = find_asset(asset, search_dirs)
        print(f"  {asset.name}: {path or 'NOT FOUND'}")

    if dry_run:
        return True

    storage = create_storage_client(
        config=settings.storage_config(),
        mock_mode=settings.b2_mock_mode,
    )
    try:
        bootstrapper = DefaultAssetBootstrapper(storage, search_dirs, delay_seconds=0)
        registry = await bootstrapper.run()
    finally:
        await storage.aclose()

    print("\n=== Default images ===")
    print(f"Banner: {registry.banner_primary}")
    print(f"Avatar: {registry.profile_avatar}")

    # Anything still pointing at a local path didn't make it into the bucket
    return not any(
        url.startswith("/") for url in (registry.banner_primary, registry.profile_avatar)
    )


def main():
    parser = argparse.ArgumentParser(description='Upload default images to B2')
    parser.add_argument(
        '--dir',
        action='append',
        dest='dirs',
        help='Directory to search for default images (repeatable). Defaults to DEFAULT_ASSET_DIRS.',
    )
    parser.add_argument('--dry-run', action='store_true', help='Only locate the images, don\'t upload')
    args = parser.parse_args()

    search_dirs = args.dirs or get_settings().default_asset_dirs_list
    print(f"Searching for default images in: {', '.join(search_dirs)}")

    success = asyncio.run(seed(search_dirs, args.dry_run))

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
