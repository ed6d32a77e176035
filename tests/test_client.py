"""Tests for UFileClient object operations, signing and error mapping."""

import hashlib
import io
import json
from pathlib import Path
from typing import AsyncIterator, Iterator

import httpx
import pytest

from ufile.core.config import ClientConfig
from ufile.core.errors import RemoteError
from ufile.core.models import Credentials, StorageClass
from ufile.storage.aio import AsyncUFileClient
from ufile.storage.client import UFileClient

from conftest import FakeUFile, PUBLIC_KEY


class TestClientInitialization:
    """Test client construction."""

    def test_base_url_from_region(self, client: UFileClient) -> None:
        assert client._http.base_url.host == "test-bucket.cn-bj.ufileos.com"
        assert client._http.base_url.scheme == "http"

    def test_every_request_is_signed(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("a.txt", b"hi")
        client.get_file("a.txt")
        client.delete_file("a.txt")

        assert len(fake_service.requests) == 3
        for request in fake_service.requests:
            assert request.headers["authorization"].startswith(f"UCloud {PUBLIC_KEY}:")

    def test_wrong_key_is_rejected(self, config: ClientConfig, fake_service: FakeUFile) -> None:
        other = ClientConfig(
            credentials=Credentials(PUBLIC_KEY, "wrong"),
            endpoint=config.endpoint,
        )
        with UFileClient(other, transport=httpx.MockTransport(fake_service)) as c:
            with pytest.raises(RemoteError) as exc_info:
                c.get_file("a.txt")
        assert exc_info.value.status_code == 401


class TestObjectOperations:
    """Test the single-request object wrappers."""

    def test_put_and_get(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("/docs/readme.txt", b"hello")

        assert fake_service.objects["docs/readme.txt"] == b"hello"
        assert fake_service.content_types["docs/readme.txt"] == "text/plain"
        assert client.get_file("docs/readme.txt") == b"hello"

    def test_put_unknown_extension_uses_octet_stream(
        self, client: UFileClient, fake_service: FakeUFile
    ) -> None:
        client.put_file("blob.unknownext", b"\x00")
        assert fake_service.content_types["blob.unknownext"] == "application/octet-stream"

    def test_explicit_mime_type(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("data", b"{}", mime_type="application/json")
        assert fake_service.content_types["data"] == "application/json"

    def test_upload_file(self, client: UFileClient, fake_service: FakeUFile, tmp_path: Path) -> None:
        source = tmp_path / "image.png"
        source.write_bytes(b"\x89PNG")

        client.upload_file("images/image.png", source)

        assert fake_service.objects["images/image.png"] == b"\x89PNG"
        assert fake_service.content_types["images/image.png"] == "image/png"

    def test_upload_missing_file(self, client: UFileClient, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            client.upload_file("x", tmp_path / "missing.bin")

    def test_get_sends_range_header(self, client: UFileClient, fake_service: FakeUFile) -> None:
        fake_service.objects["a.bin"] = b"abc"
        client.get_file("a.bin", byte_range="bytes=0-1")
        assert fake_service.requests[-1].headers["range"] == "bytes=0-1"
        assert "if-modified-since" not in fake_service.requests[-1].headers

    def test_get_missing_object_raises(self, client: UFileClient) -> None:
        with pytest.raises(RemoteError) as exc_info:
            client.get_file("missing.txt")
        assert exc_info.value.status_code == 404
        assert exc_info.value.ret_code == -1
        assert "file not exist" in str(exc_info.value)

    def test_head_file(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("a.txt", b"12345")

        head = client.head_file("/a.txt")

        assert head.content_length == 5
        assert head.content_type == "text/plain"
        assert head.storage_class == StorageClass.STANDARD.value
        assert head.restore is None
        assert head.etag == hashlib.md5(b"12345").hexdigest()

    def test_delete_file(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("a.txt", b"x")
        client.delete_file("a.txt")
        assert "a.txt" not in fake_service.objects

    def test_upload_hit(self, client: UFileClient) -> None:
        client.put_file("a.txt", b"known")
        assert client.upload_hit(hashlib.md5(b"known").hexdigest(), "copy.txt", 5) is True
        assert client.upload_hit("0" * 32, "copy.txt", 5) is False

    def test_prefix_file_list(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("logs/1.txt", b"1")
        client.put_file("other.txt", b"2")

        listing = client.prefix_file_list(prefix="logs/")

        assert listing["DataSet"] == [{"FileName": "logs/1.txt"}]
        params = fake_service.requests[-1].url.params
        assert params["list"] == ""
        assert params["limit"] == "20"

    def test_list_objects_drops_unset_params(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.list_objects("logs/", max_keys=10)
        params = fake_service.requests[-1].url.params
        assert params["max-keys"] == "10"
        assert "marker" not in params
        assert "delimiter" not in params

    def test_class_switch(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.class_switch("a.txt", StorageClass.ARCHIVE)
        assert fake_service.requests[-1].url.params["storageClass"] == "ARCHIVE"

    def test_op_meta(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("a.txt", b"x,y")
        client.op_meta("a.txt", "text/csv")

        request = fake_service.requests[-1]
        assert request.method == "POST"
        assert "opmeta" in request.url.params
        assert json.loads(request.content) == {"op": "set", "metak": "mimetype", "metav": "text/csv"}
        assert fake_service.content_types["a.txt"] == "text/csv"

    def test_op_meta_missing_object(self, client: UFileClient) -> None:
        with pytest.raises(RemoteError) as exc_info:
            client.op_meta("missing.txt", "text/csv")
        assert exc_info.value.status_code == 404

    def test_get_authorization(self, client: UFileClient) -> None:
        value = client.get_authorization("PUT", "a.txt", content_type="text/plain")
        assert value == client.signer.authorization("PUT", {"content-type": "text/plain"}, "a.txt")


class TestStreaming:
    """Test streamed uploads and downloads."""

    def test_put_file_object(self, client: UFileClient, fake_service: FakeUFile) -> None:
        client.put_file("a.bin", io.BytesIO(b"from a file object"))
        assert fake_service.objects["a.bin"] == b"from a file object"

    def test_put_iterator(self, client: UFileClient, fake_service: FakeUFile) -> None:
        def chunks() -> Iterator[bytes]:
            yield b"one-"
            yield b"two"

        client.put_file("a.bin", chunks())
        assert fake_service.objects["a.bin"] == b"one-two"

    def test_upload_file_sends_length(self, client: UFileClient, fake_service: FakeUFile, tmp_path: Path) -> None:
        source = tmp_path / "big.bin"
        source.write_bytes(b"z" * 1000)

        client.upload_file("big.bin", source)

        assert fake_service.requests[-1].headers["content-length"] == "1000"
        assert fake_service.objects["big.bin"] == b"z" * 1000

    def test_get_file_stream(self, client: UFileClient, fake_service: FakeUFile) -> None:
        fake_service.objects["a.bin"] = b"abcdefg"

        chunks = list(client.get_file_stream("a.bin", chunk_size=3))

        assert chunks == [b"abc", b"def", b"g"]

    def test_get_file_stream_missing_object(self, client: UFileClient) -> None:
        with pytest.raises(RemoteError) as exc_info:
            list(client.get_file_stream("missing.bin"))
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "file not exist"

    def test_get_file_stream_network_error(self, config: ClientConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with UFileClient(config, transport=httpx.MockTransport(handler)) as c:
            with pytest.raises(RemoteError) as exc_info:
                list(c.get_file_stream("a.bin"))
        assert exc_info.value.status_code is None

    def test_download_file(self, client: UFileClient, fake_service: FakeUFile, tmp_path: Path) -> None:
        fake_service.objects["a.bin"] = b"payload"
        target = tmp_path / "out.bin"

        assert client.download_file("a.bin", target, chunk_size=2) == 7
        assert target.read_bytes() == b"payload"


class TestErrorHandling:
    """Test that failures surface as typed errors."""

    def test_server_error_is_not_retried(self, client: UFileClient, fake_service: FakeUFile) -> None:
        fake_service.fail_next = httpx.Response(503, text="busy")

        with pytest.raises(RemoteError) as exc_info:
            client.put_file("a.txt", b"x")

        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "busy"
        assert len(fake_service.requests) == 1

    def test_network_error_is_wrapped(self, config: ClientConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with UFileClient(config, transport=httpx.MockTransport(handler)) as c:
            with pytest.raises(RemoteError) as exc_info:
                c.head_file("a.txt")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestAsyncClient:
    """Test the asyncio client's object operations."""

    @pytest.mark.asyncio
    async def test_put_head_get(self, async_client: AsyncUFileClient, fake_service: FakeUFile) -> None:
        async with async_client:
            await async_client.put_file("a.txt", b"async")
            head = await async_client.head_file("a.txt")
            data = await async_client.get_file("a.txt")

        assert head.content_length == 5
        assert data == b"async"

    @pytest.mark.asyncio
    async def test_streamed_put_and_get(self, async_client: AsyncUFileClient, fake_service: FakeUFile) -> None:
        async def chunks() -> AsyncIterator[bytes]:
            yield b"async-"
            yield b"stream"

        async with async_client:
            await async_client.put_file("a.bin", chunks())
            received = [chunk async for chunk in async_client.get_file_stream("a.bin", chunk_size=6)]

        assert fake_service.objects["a.bin"] == b"async-stream"
        assert received == [b"async-", b"stream"]

    @pytest.mark.asyncio
    async def test_upload_file(
        self, async_client: AsyncUFileClient, fake_service: FakeUFile, tmp_path: Path
    ) -> None:
        source = tmp_path / "notes.txt"
        source.write_bytes(b"x" * 200000)

        async with async_client:
            await async_client.upload_file("notes.txt", source)

        assert fake_service.objects["notes.txt"] == b"x" * 200000
        assert fake_service.content_types["notes.txt"] == "text/plain"
        assert fake_service.requests[-1].headers["content-length"] == "200000"

    @pytest.mark.asyncio
    async def test_get_file_stream_missing_object(self, async_client: AsyncUFileClient) -> None:
        async with async_client:
            with pytest.raises(RemoteError):
                async for _ in async_client.get_file_stream("missing.bin"):
                    pass

    @pytest.mark.asyncio
    async def test_error_mapping(self, async_client: AsyncUFileClient) -> None:
        async with async_client:
            with pytest.raises(RemoteError):
                await async_client.get_file("missing.txt")
