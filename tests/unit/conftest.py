"""
Shared fixtures for the storage tests.

FakeB2 is a small in-memory stand-in for the b2api/v2 endpoints the
client uses. It is served through httpx.MockTransport, so the real
B2StorageClient code runs unchanged down to the HTTP request.
"""

import asyncio
import base64
import hashlib
import json
from collections import Counter
from urllib.parse import unquote

import httpx
import pytest

from src.infrastructure.storage.client import B2StorageClient, StorageConfig


AUTHORIZE_URL = "https://auth.b2.test/b2api/v2/b2_authorize_account"
API_URL = "https://api001.b2.test"
DOWNLOAD_URL = "https://f001.b2.test"
UPLOAD_HOST = "pod-000.b2.test"

KEY_ID = "0012345abcdef"
APP_KEY = "K001secret"
BUCKET_NAME = "bnusa-images"
BUCKET_ID = "bucket-123"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeB2:
    """
    In-memory B2 account with one configured bucket.

    Set `fail[endpoint] = status` to make an endpoint answer with an
    error, or add an endpoint to `unreachable` to make it raise a
    connection error. Set `payloads[endpoint] = body` to make it answer
    200 with that JSON body instead. Endpoints are named after the last
    path segment of the API call ("b2_list_buckets", ...); uploads are
    "upload".
    """

    def __init__(self, bucket_name: str = BUCKET_NAME) -> None:
        self.buckets = [
            {"bucketId": "bucket-other", "bucketName": "someone-elses-bucket"},
            {"bucketId": BUCKET_ID, "bucketName": bucket_name},
        ]
        self.files: dict[str, dict] = {}
        self.calls: Counter = Counter()
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, int] = {}
        self.unreachable: set[str] = set()
        self.payloads: dict[str, object] = {}
        self._next_file_id = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        # Yield to the loop like a real network call would
        await asyncio.sleep(0)

        if request.url.host == UPLOAD_HOST:
            endpoint = "upload"
        else:
            endpoint = request.url.path.rsplit("/", 1)[-1]

        self.calls[endpoint] += 1
        self.requests.append(request)

        if endpoint in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if endpoint in self.fail:
            return httpx.Response(
                self.fail[endpoint],
                json={"status": self.fail[endpoint], "code": "bad_request", "message": "forced failure"},
            )
        if endpoint in self.payloads:
            return httpx.Response(200, json=self.payloads[endpoint])

        return getattr(self, f"_{endpoint}")(request)

    def requests_to(self, endpoint: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (endpoint == "upload" and r.url.host == UPLOAD_HOST)
            or r.url.path.endswith(f"/{endpoint}")
        ]

    # -- endpoints -----------------------------------------------------------

    def _b2_authorize_account(self, request: httpx.Request) -> httpx.Response:
        expected = "Basic " + base64.b64encode(f"{KEY_ID}:{APP_KEY}".encode()).decode()
        if request.headers.get("Authorization") != expected:
            return httpx.Response(401, json={"code": "unauthorized", "message": "bad key"})

        return httpx.Response(200, json={
            "accountId": "account-1",
            "authorizationToken": "account-token",
            "apiUrl": API_URL,
            "downloadUrl": DOWNLOAD_URL,
        })

    def _b2_list_buckets(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "account-token"
        assert json.loads(request.content) == {"accountId": "account-1"}
        return httpx.Response(200, json={"buckets": self.buckets})

    def _b2_get_upload_url(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "account-token"
        bucket_id = json.loads(request.content)["bucketId"]
        return httpx.Response(200, json={
            "bucketId": bucket_id,
            "uploadUrl": f"https://{UPLOAD_HOST}/b2api/v2/b2_upload_file/{bucket_id}/c001",
            "authorizationToken": "upload-token",
        })

    def _upload(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "upload-token"
        body = request.content
        if request.headers["X-Bz-Content-Sha1"] != hashlib.sha1(body).hexdigest():
            return httpx.Response(400, json={"code": "bad_request", "message": "sha1 mismatch"})

        file_name = unquote(request.headers["X-Bz-File-Name"])
        self._next_file_id += 1
        file_id = f"4_z{self._next_file_id:04d}"
        self.files[file_name] = {
            "fileId": file_id,
            "fileName": file_name,
            "data": body,
            "contentType": request.headers["Content-Type"],
        }
        return httpx.Response(200, json={"fileId": file_id, "fileName": file_name})

    def _b2_list_file_names(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        assert payload["bucketId"] == BUCKET_ID
        matches = sorted(
            (f for name, f in self.files.items() if name.startswith(payload["prefix"])),
            key=lambda f: f["fileName"],
        )
        files = [
            {"fileId": f["fileId"], "fileName": f["fileName"]}
            for f in matches[:payload["maxFileCount"]]
        ]
        return httpx.Response(200, json={"files": files, "nextFileName": None})

    def _b2_delete_file_version(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        stored = self.files.get(payload["fileName"])
        if stored is None or stored["fileId"] != payload["fileId"]:
            return httpx.Response(400, json={"code": "file_not_present", "message": "no such file"})

        del self.files[payload["fileName"]]
        return httpx.Response(200, json={"fileId": payload["fileId"], "fileName": payload["fileName"]})


@pytest.fixture
def fake_b2() -> FakeB2:
    return FakeB2()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def b2_config() -> StorageConfig:
    return StorageConfig(
        key_id=KEY_ID,
        application_key=APP_KEY,
        bucket_name=BUCKET_NAME,
        authorize_url=AUTHORIZE_URL,
    )


@pytest.fixture
def make_b2_client(fake_b2, clock):
    """Build a B2StorageClient wired to the fake API."""

    def _make(config: StorageConfig) -> B2StorageClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(fake_b2.handler))
        return B2StorageClient(config, http=http, clock=clock)

    return _make


@pytest.fixture
def b2_client(make_b2_client, b2_config) -> B2StorageClient:
    return make_b2_client(b2_config)
