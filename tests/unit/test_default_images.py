"""
Unit tests for the default-image bootstrap and resolver.

Local images are written to a temporary directory; uploads go either to
the in-memory mock client or to the FakeB2 API through the real client.
"""

import asyncio

import pytest

from src.core.media.defaults import (
    AVATAR_ASSET,
    BANNER_ASSET,
    DefaultAssetBootstrapper,
    find_asset,
)
from src.core.media.models import (
    LOCAL_AVATAR_PATH,
    LOCAL_BANNER_PATH,
    DefaultImageRegistry,
    ImageKind,
    UploadResult,
)
from src.infrastructure.storage.client import MockStorageClient

from conftest import BUCKET_NAME, DOWNLOAD_URL


def write_asset(root, asset, data=b"image-bytes"):
    path = root / asset.relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def public_dir(tmp_path):
    """A public/ directory containing both default images."""
    root = tmp_path / "public"
    write_asset(root, BANNER_ASSET, b"banner-bytes")
    write_asset(root, AVATAR_ASSET, b"avatar-bytes")
    return root


class RecordingUploader:
    """Uploader that records calls and returns a canned result, or raises for one name."""

    def __init__(self, degraded: bool = False, raise_for: str = "") -> None:
        self.calls = []
        self.degraded = degraded
        self.raise_for = raise_for

    async def upload_image(self, data, original_name, mime_type, folder=""):
        self.calls.append((data, original_name, mime_type, folder))
        if original_name == self.raise_for:
            raise TypeError("unexpected response body")
        if self.degraded:
            return UploadResult.placeholder(folder, RuntimeError("storage down"))
        return UploadResult.stored(f"https://cdn.test/{folder}/{original_name}", original_name)


# ---------------------------------------------------------------------------
# Asset Discovery Tests
# ---------------------------------------------------------------------------

class TestFindAsset:

    def test_first_existing_candidate_wins(self, tmp_path):
        first = tmp_path / "a"
        second = tmp_path / "b"
        write_asset(second, BANNER_ASSET)
        write_asset(first, BANNER_ASSET)

        assert find_asset(BANNER_ASSET, [tmp_path / "missing", first, second]) == (
            first / BANNER_ASSET.relative_path
        )

    def test_missing_everywhere(self, tmp_path):
        assert find_asset(AVATAR_ASSET, [tmp_path, tmp_path / "nope"]) is None


# ---------------------------------------------------------------------------
# Bootstrap Tests
# ---------------------------------------------------------------------------

class TestBootstrap:
    """Tests for the one-shot default image upload."""

    @pytest.mark.asyncio
    async def test_uploads_both_assets_into_defaults_folder(self, public_dir):
        uploader = RecordingUploader()
        bootstrapper = DefaultAssetBootstrapper(uploader, [public_dir], delay_seconds=0)

        registry = await bootstrapper.run()

        assert uploader.calls == [
            (b"banner-bytes", "default-banner-primary.jpg", "image/jpeg", "defaults"),
            (b"avatar-bytes", "default-avatar.png", "image/png", "defaults"),
        ]
        assert registry.banner_primary == "https://cdn.test/defaults/default-banner-primary.jpg"
        assert registry.profile_avatar == "https://cdn.test/defaults/default-avatar.png"
        assert bootstrapper.completed

    @pytest.mark.asyncio
    async def test_missing_asset_keeps_fallback_and_skips_upload(self, tmp_path):
        root = tmp_path / "public"
        write_asset(root, AVATAR_ASSET)
        uploader = RecordingUploader()
        bootstrapper = DefaultAssetBootstrapper(uploader, [root], delay_seconds=0)

        registry = await bootstrapper.run()

        assert [c[1] for c in uploader.calls] == ["default-avatar.png"]
        assert registry.banner_primary == LOCAL_BANNER_PATH
        assert registry.profile_avatar.startswith("https://cdn.test/")

    @pytest.mark.asyncio
    async def test_no_assets_at_all_still_completes(self, tmp_path):
        uploader = RecordingUploader()
        bootstrapper = DefaultAssetBootstrapper(uploader, [tmp_path], delay_seconds=0)

        registry = await bootstrapper.run()

        assert uploader.calls == []
        assert registry == DefaultImageRegistry()
        assert bootstrapper.completed

    @pytest.mark.asyncio
    async def test_degraded_upload_keeps_fallback(self, public_dir):
        """A placeholder is not a durable URL and must not replace the fallback."""
        bootstrapper = DefaultAssetBootstrapper(
            RecordingUploader(degraded=True), [public_dir], delay_seconds=0
        )

        registry = await bootstrapper.run()

        assert registry.banner_primary == LOCAL_BANNER_PATH
        assert registry.profile_avatar == LOCAL_AVATAR_PATH

    @pytest.mark.asyncio
    async def test_stores_into_b2(self, public_dir, b2_client, fake_b2):
        bootstrapper = DefaultAssetBootstrapper(b2_client, [public_dir], delay_seconds=0)

        registry = await bootstrapper.run()

        assert registry.banner_primary.startswith(f"{DOWNLOAD_URL}/file/{BUCKET_NAME}/defaults/")
        assert registry.banner_primary.endswith(".jpg")
        assert sorted(f["data"] for f in fake_b2.files.values()) == [b"avatar-bytes", b"banner-bytes"]

    @pytest.mark.asyncio
    async def test_b2_outage_keeps_fallbacks(self, public_dir, b2_client, fake_b2):
        fake_b2.fail["b2_authorize_account"] = 500
        bootstrapper = DefaultAssetBootstrapper(b2_client, [public_dir], delay_seconds=0)

        registry = await bootstrapper.run()

        assert registry == DefaultImageRegistry()
        assert bootstrapper.completed

    @pytest.mark.asyncio
    async def test_raising_upload_does_not_stop_the_other_asset(self, public_dir):
        uploader = RecordingUploader(raise_for="default-banner-primary.jpg")
        bootstrapper = DefaultAssetBootstrapper(uploader, [public_dir], delay_seconds=0)

        registry = await bootstrapper.run()

        assert [c[1] for c in uploader.calls] == ["default-banner-primary.jpg", "default-avatar.png"]
        assert registry.banner_primary == LOCAL_BANNER_PATH
        assert registry.profile_avatar == "https://cdn.test/defaults/default-avatar.png"
        assert bootstrapper.completed

    @pytest.mark.asyncio
    async def test_raising_upload_in_background_task(self, public_dir):
        uploader = RecordingUploader(raise_for="default-banner-primary.jpg")
        bootstrapper = DefaultAssetBootstrapper(uploader, [public_dir], delay_seconds=0)

        task = bootstrapper.start()
        await task

        assert task.exception() is None
        assert bootstrapper.registry.profile_avatar.startswith("https://cdn.test/")

    @pytest.mark.asyncio
    async def test_public_fallbacks_apply_once_bootstrap_runs(self, tmp_path):
        bootstrapper = DefaultAssetBootstrapper(
            RecordingUploader(),
            [tmp_path],
            delay_seconds=0,
            public_base_url="https://cdn.example.com/",
        )
        assert bootstrapper.registry == DefaultImageRegistry()

        registry = await bootstrapper.run()

        assert registry.banner_primary == "https://cdn.example.com/defaults/default-banner-primary.jpg"
        assert registry.profile_avatar == "https://cdn.example.com/defaults/default-avatar.png"

    @pytest.mark.asyncio
    async def test_uploaded_urls_win_over_public_fallbacks(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(
            RecordingUploader(),
            [public_dir],
            delay_seconds=0,
            public_base_url="https://cdn.example.com/",
        )

        registry = await bootstrapper.run()

        assert registry.banner_primary == "https://cdn.test/defaults/default-banner-primary.jpg"

    @pytest.mark.asyncio
    async def test_start_runs_after_delay_and_only_once(self, public_dir):
        uploader = RecordingUploader()
        bootstrapper = DefaultAssetBootstrapper(uploader, [public_dir], delay_seconds=0.01)

        task = bootstrapper.start()
        assert bootstrapper.start() is task
        assert not bootstrapper.completed

        assert await bootstrapper.wait(timeout=1.0)
        assert len(uploader.calls) == 2

    @pytest.mark.asyncio
    async def test_wait_times_out_before_bootstrap(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(RecordingUploader(), [public_dir], delay_seconds=60)
        bootstrapper.start()

        assert await bootstrapper.wait(timeout=0.01) is False

        await bootstrapper.stop()
        assert not bootstrapper.completed

    @pytest.mark.asyncio
    async def test_stop_without_start_is_harmless(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(RecordingUploader(), [public_dir])
        await bootstrapper.stop()


# ---------------------------------------------------------------------------
# Resolver Tests
# ---------------------------------------------------------------------------

class TestDefaultImageResolver:
    """Tests for default-image URL lookups."""

    def test_banner_before_bootstrap_is_local_fallback(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir])
        assert bootstrapper.get_default_image_url("banner") == LOCAL_BANNER_PATH

    @pytest.mark.asyncio
    async def test_banner_after_bootstrap_is_durable_url(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir], delay_seconds=0)
        await bootstrapper.run()

        url = bootstrapper.get_default_image_url(ImageKind.BANNER)

        assert url.startswith("mock://storage/file/mock-bucket/defaults/")

    @pytest.mark.asyncio
    async def test_profile_is_always_empty(self, public_dir):
        """The UI renders an initials avatar instead of a profile image."""
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir], delay_seconds=0)
        assert bootstrapper.get_default_image_url("profile") == ""

        await bootstrapper.run()

        assert bootstrapper.get_default_image_url("profile") == ""
        assert bootstrapper.get_default_image_url(ImageKind.PROFILE) == ""

    def test_unknown_kind_is_empty(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir])
        assert bootstrapper.get_default_image_url("wallpaper") == ""

    @pytest.mark.asyncio
    async def test_resolve_waits_for_pending_bootstrap(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir], delay_seconds=0.01)
        bootstrapper.start()

        url = await bootstrapper.resolve_default_image_url("banner", timeout=1.0)

        assert url.startswith("mock://storage/")

    @pytest.mark.asyncio
    async def test_resolve_falls_back_when_bootstrap_is_slow(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir], delay_seconds=60)
        bootstrapper.start()

        url = await bootstrapper.resolve_default_image_url("banner", timeout=0.01)

        assert url == LOCAL_BANNER_PATH
        await bootstrapper.stop()

    @pytest.mark.asyncio
    async def test_resolve_without_timeout_does_not_wait(self, public_dir):
        bootstrapper = DefaultAssetBootstrapper(MockStorageClient(), [public_dir], delay_seconds=60)

        url = await asyncio.wait_for(
            bootstrapper.resolve_default_image_url("banner"),
            timeout=1.0,
        )

        assert url == LOCAL_BANNER_PATH
