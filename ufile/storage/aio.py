"""Asyncio UFile storage client.

AsyncUFileClient mirrors UFileClient method for method on top of
httpx.AsyncClient. Parts of a multipart upload may be uploaded concurrently
with asyncio.gather; restore waits suspend the task between polls.
"""

import asyncio
import itertools
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, BinaryIO, Dict, List, Optional, Sequence, Union

import httpx
from loguru import logger

from ufile.auth.signer import Signer, UFileAuth
from ufile.core.config import ClientConfig, Settings
from ufile.core.errors import WaitTimeoutError
from ufile.core.models import (
    FinishResult,
    ObjectHead,
    PartResult,
    StorageClass,
    UploadListing,
    UploadSession,
)
from ufile.core.polling import RetryPolicy, apoll_until
from ufile.storage import operations as ops
from ufile.storage.multipart import DEFAULT_PART_SIZE, PartRef, iter_chunks
from ufile.storage.restore import RestoreStatus, check_poll, classify


class AsyncUFileClient:
    """Asyncio client for one UFile bucket.

    Attributes:
        config: Validated client configuration
        signer: Request signer bound to the configured bucket
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.signer = Signer(config.credentials, config.bucket_name)
        self._http = httpx.AsyncClient(
            base_url=config.endpoint.base_url,
            auth=UFileAuth(self.signer),
            timeout=config.timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AsyncUFileClient":
        settings = settings or Settings()
        return cls(settings.to_client_config())

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncUFileClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _send(self, op: ops.Operation) -> httpx.Response:
        try:
            response = await self._http.request(**op.request_kwargs())
        except httpx.HTTPError as e:
            raise ops.transport_error(op, e) from e
        return ops.check_response(op, response)

    def get_authorization(
        self,
        method: str,
        key: str,
        content_md5: str = "",
        content_type: str = "multipart/form-data",
    ) -> str:
        return self.signer.get_authorization(method, key, content_md5, content_type)

    # Objects

    async def put_file(
        self,
        key: str,
        data: Union[bytes, str, AsyncIterable[bytes]],
        mime_type: Optional[str] = None,
    ) -> None:
        """Upload an object; async byte iterators are streamed, not buffered."""
        await self._send(ops.put_file(key, data, mime_type))

    async def upload_file(self, key: str, path: Union[str, Path], mime_type: Optional[str] = None) -> None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        op = ops.put_file(key, _aiter_file(path), mime_type, content_length=path.stat().st_size)
        await self._send(op)

    async def upload_hit(self, file_hash: str, file_name: str, file_size: Union[int, str]) -> bool:
        response = await self._send(ops.upload_hit(file_hash, file_name, file_size))
        return response.status_code == 200

    async def get_file(
        self,
        key: str,
        byte_range: Optional[str] = None,
        if_modified_since: Optional[str] = None,
    ) -> bytes:
        response = await self._send(ops.get_file(key, byte_range, if_modified_since))
        return response.content

    async def get_file_stream(
        self,
        key: str,
        byte_range: Optional[str] = None,
        if_modified_since: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ) -> AsyncIterator[bytes]:
        """Download an object as an async stream of byte chunks.

        Raises:
            RemoteError: On a failed response or network error (at first iteration)
        """
        op = ops.get_file(key, byte_range, if_modified_since)
        try:
            async with self._http.stream(**op.request_kwargs()) as response:
                if not response.is_success:
                    await response.aread()
                ops.check_response(op, response)
                async for chunk in response.aiter_bytes(chunk_size):
                    yield chunk
        except httpx.HTTPError as e:
            raise ops.transport_error(op, e) from e

    async def head_file(self, key: str) -> ObjectHead:
        return ops.parse_head(await self._send(ops.head_file(key)))

    async def delete_file(self, key: str) -> None:
        await self._send(ops.delete_file(key))

    async def prefix_file_list(self, prefix: str = "", marker: str = "", limit: int = 20) -> Dict[str, Any]:
        return ops.parse_json(await self._send(ops.prefix_file_list(prefix, marker, limit)))

    async def list_objects(
        self,
        prefix: str,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
        delimiter: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = await self._send(ops.list_objects(prefix, marker, max_keys, delimiter))
        return ops.parse_json(response)

    async def class_switch(self, key: str, storage_class: Union[StorageClass, str]) -> None:
        await self._send(ops.class_switch(key, storage_class))

    async def op_meta(self, key: str, mime_type: str) -> None:
        await self._send(ops.op_meta(key, mime_type))

    # Multipart upload

    async def initiate_multipart_upload(self, key: str) -> UploadSession:
        response = await self._send(ops.initiate_multipart_upload(key))
        session = ops.parse_session(key, response)
        logger.info(f"Initiated multipart upload {session.upload_id} for {session.key}")
        return session

    async def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> PartResult:
        response = await self._send(ops.upload_part(key, upload_id, part_number, data))
        return ops.parse_part(part_number, response)

    async def upload_parts(
        self,
        session: UploadSession,
        stream: BinaryIO,
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = 4,
    ) -> List[PartResult]:
        """Upload ``stream`` with up to ``concurrency`` parts in flight.

        Workers pull the next chunk from the stream only once their previous
        part is sent, so at most ``concurrency`` parts are held in memory. If
        any part fails, the remaining workers are cancelled before the error
        propagates.

        Returns:
            The uploaded parts in part-number order
        """
        chunks = iter_chunks(stream, part_size)

        async def worker() -> None:
            for part_number, data in chunks:
                part = await self.upload_part(session.key, session.upload_id, part_number, data)
                session.add(part)

        tasks = [asyncio.ensure_future(worker()) for _ in range(max(concurrency, 1))]
        try:
            await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        session.parts.sort(key=lambda part: part.part_number)
        return list(session.parts)

    async def finish_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[PartRef],
        new_key: Optional[str] = None,
    ) -> FinishResult:
        response = await self._send(ops.finish_multipart_upload(key, upload_id, parts, new_key))
        logger.info(f"Finished multipart upload {upload_id} ({len(parts)} parts)")
        return ops.parse_finish(response)

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._send(ops.abort_multipart_upload(key, upload_id))
        logger.info(f"Aborted multipart upload {upload_id}")

    async def list_multipart_uploads(
        self,
        prefix: Optional[str] = None,
        marker: Optional[str] = None,
        limit: int = 20,
    ) -> UploadListing:
        response = await self._send(ops.list_multipart_uploads(prefix, marker, limit))
        return ops.parse_listing(response)

    # Archive restore

    async def restore(self, key: str) -> None:
        await self._send(ops.restore(key))
        logger.info(f"Requested restore of {key}")

    async def restore_status(self, key: str) -> RestoreStatus:
        response = await self._send(ops.head_file(key))
        return classify(response.headers)

    async def is_need_restore(self, key: str) -> bool:
        status = await self.restore_status(key)
        return status.needs_restore

    async def wait_for_restore(
        self,
        key: str,
        interval: float = 10.0,
        max_retry: int = 30,
    ) -> RestoreStatus:
        """Wait until the service reports the restore of ``key`` as finished.

        Same contract as UFileClient.wait_for_restore; the task is suspended
        with asyncio.sleep between polls.
        """
        policy = RetryPolicy(interval=interval, max_retry=max_retry)
        attempts = itertools.count(1)

        async def probe() -> RestoreStatus:
            return check_poll(key, await self.restore_status(key), next(attempts))

        try:
            return await apoll_until(probe, lambda status: status.is_finished, policy)
        except WaitTimeoutError as e:
            logger.warning(f"Restore of {key} still running after {e.attempts} polls")
            raise WaitTimeoutError(f"restore of {key} timed out", attempts=e.attempts) from e


async def _aiter_file(path: Path, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                return
            yield chunk
