"""Shared fixtures: an in-memory fake of the UFile HTTP API.

The fake is served through httpx.MockTransport, so the real clients, the
signing hook and the error mapping are all exercised without a network.
"""

import hashlib
import json
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest

from ufile.auth.signer import Signer
from ufile.core.config import ClientConfig, build_client_config
from ufile.storage.aio import AsyncUFileClient
from ufile.storage.client import UFileClient

PUBLIC_KEY = "test-public-key"
PRIVATE_KEY = "test-private-key"
BUCKET = "test-bucket"


def _json_response(status_code: int, payload: Dict[str, Any], **kwargs: Any) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), **kwargs)


def _error(status_code: int, message: str) -> httpx.Response:
    return _json_response(status_code, {"RetCode": -1, "ErrMsg": message})


class FakeUFile:
    """Minimal stateful UFile service.

    Attributes:
        objects: Stored objects by key
        uploads: Multipart uploads by upload id
        heads: Queued HEAD header sets per key; the last one repeats
        requests: Every request received, in order
    """

    def __init__(self, signer: Signer) -> None:
        self.signer = signer
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.heads: Dict[str, List[Dict[str, str]]] = {}
        self.restores: List[str] = []
        self.requests: List[httpx.Request] = []
        self.fail_next: Optional[httpx.Response] = None
        self._next_upload = 0

    def queue_heads(self, key: str, *header_sets: Dict[str, str]) -> None:
        self.heads[key] = list(header_sets)

    def head_count(self, key: str) -> int:
        return sum(
            1 for r in self.requests if r.method == "HEAD" and r.url.path == f"/{key}"
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        expected = self.signer.authorization(request.method, request.headers, request.url)
        if request.headers.get("authorization") != expected:
            return _error(401, "signature mismatch")
        if self.fail_next is not None:
            response, self.fail_next = self.fail_next, None
            return response

        params = request.url.params
        key = request.url.path[1:]

        if "uploads" in params:
            return self._initiate(key)
        if "uploadId" in params and "partNumber" in params:
            return self._upload_part(request, params)
        if "uploadId" in params and request.method == "POST":
            return self._finish(key, request, params)
        if "uploadId" in params and request.method == "DELETE":
            self.uploads.get(params["uploadId"], {})["aborted"] = True
            return httpx.Response(204)
        if "muploadid" in params:
            return self._list_uploads(params)
        if "restore" in params:
            self.restores.append(key)
            return httpx.Response(200)
        if "opmeta" in params:
            if key not in self.objects:
                return _error(404, "file not exist")
            self.content_types[key] = json.loads(request.content)["metav"]
            return httpx.Response(200)
        if key == "uploadhit":
            digest = params["Hash"]
            hit = any(hashlib.md5(data).hexdigest() == digest for data in self.objects.values())
            return httpx.Response(200 if hit else 404)
        if "list" in params or "listobjects" in params:
            prefix = params.get("prefix", "")
            names = sorted(k for k in self.objects if k.startswith(prefix))
            return _json_response(200, {"DataSet": [{"FileName": n} for n in names]})

        if request.method == "HEAD":
            return self._head(key)
        if request.method == "PUT":
            self.objects[key] = request.content
            self.content_types[key] = request.headers.get("content-type", "")
            return httpx.Response(200, headers={"ETag": f'"{hashlib.md5(request.content).hexdigest()}"'})
        if request.method == "GET":
            if key not in self.objects:
                return _error(404, "file not exist")
            return httpx.Response(200, content=self.objects[key])
        if request.method == "DELETE":
            self.objects.pop(key, None)
            return httpx.Response(204)
        return _error(400, "unsupported request")

    def _initiate(self, key: str) -> httpx.Response:
        if not key or key.endswith("/"):
            return _error(400, "invalid key")
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self.uploads[upload_id] = {"key": key, "parts": {}, "aborted": False, "finished": False}
        return _json_response(
            200,
            {"UploadId": upload_id, "BlkSize": 4194304, "Bucket": BUCKET, "Key": key},
        )

    def _upload_part(self, request: httpx.Request, params: httpx.QueryParams) -> httpx.Response:
        upload = self.uploads.get(params["uploadId"])
        if upload is None or upload["aborted"] or upload["finished"]:
            return _error(400, "no such upload")
        part_number = int(params["partNumber"])
        etag = hashlib.md5(request.content).hexdigest()
        upload["parts"][part_number] = (etag, request.content)
        return _json_response(200, {"PartNumber": part_number}, headers={"ETag": etag})

    def _finish(self, key: str, request: httpx.Request, params: httpx.QueryParams) -> httpx.Response:
        upload = self.uploads.get(params["uploadId"])
        if upload is None or upload["aborted"] or upload["finished"]:
            return _error(400, "no such upload")
        etags = request.content.decode().split(",")
        by_etag = {etag: data for etag, data in upload["parts"].values()}
        if any(etag not in by_etag for etag in etags):
            return _error(400, "unknown part")
        final_key = key
        if key in self.objects:
            if "newKey" not in params or params["newKey"] in self.objects:
                return _error(409, "file already exists")
            final_key = params["newKey"]
        data = b"".join(by_etag[etag] for etag in etags)
        self.objects[final_key] = data
        upload["finished"] = True
        return _json_response(
            200,
            {"Bucket": BUCKET, "Key": final_key, "FileSize": len(data)},
            headers={"ETag": f'"mpu-{len(etags)}"'},
        )

    def _list_uploads(self, params: httpx.QueryParams) -> httpx.Response:
        prefix = params.get("prefix", "")
        limit = int(params.get("limit", 20))
        live = sorted(
            (upload_id, upload)
            for upload_id, upload in self.uploads.items()
            if not upload["aborted"] and not upload["finished"] and upload["key"].startswith(prefix)
        )
        marker = params.get("marker")
        if marker:
            live = [item for item in live if item[0] > marker]
        page = live[:limit]
        next_marker = page[-1][0] if len(live) > limit else ""
        return _json_response(
            200,
            {
                "DataSet": [
                    {"UploadId": upload_id, "FileName": upload["key"], "TimeStamp": 1700000000}
                    for upload_id, upload in page
                ],
                "NextMarker": next_marker,
            },
        )

    def _head(self, key: str) -> httpx.Response:
        queued = self.heads.get(key)
        if queued:
            headers = queued.pop(0) if len(queued) > 1 else queued[0]
            return httpx.Response(200, headers=headers)
        if key not in self.objects:
            return httpx.Response(404)
        return httpx.Response(
            200,
            headers={
                "Content-Type": self.content_types.get(key, "application/octet-stream"),
                "Content-Length": str(len(self.objects[key])),
                "ETag": hashlib.md5(self.objects[key]).hexdigest(),
                "X-Ufile-Storage-Class": "STANDARD",
            },
        )


@pytest.fixture
def config() -> ClientConfig:
    """Client configuration for the fake bucket."""
    return build_client_config(
        public_key=PUBLIC_KEY,
        private_key=PRIVATE_KEY,
        bucket_name=BUCKET,
        region="cn-bj",
    )


@pytest.fixture
def fake_service(config: ClientConfig) -> FakeUFile:
    """Fresh fake service verifying signatures with the test credentials."""
    return FakeUFile(Signer(config.credentials, config.bucket_name))


@pytest.fixture
def client(config: ClientConfig, fake_service: FakeUFile) -> Generator[UFileClient, None, None]:
    """UFileClient wired to the fake service.

    Yields:
        UFileClient instance
    """
    with UFileClient(config, transport=httpx.MockTransport(fake_service)) as c:
        yield c


@pytest.fixture
def async_client(config: ClientConfig, fake_service: FakeUFile) -> AsyncUFileClient:
    """AsyncUFileClient wired to the fake service (closed by the test)."""
    return AsyncUFileClient(config, transport=httpx.MockTransport(fake_service))
