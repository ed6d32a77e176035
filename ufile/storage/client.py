"""Synchronous UFile storage client.

This module provides UFileClient, a blocking client for the UFile object
storage HTTP API built on httpx. Every request is signed by UFileAuth just
before it is sent.

Key features:
- Object upload, download, HEAD, delete and listing
- Multipart uploads (initiate, upload parts, finish, abort, list)
- Archive restore: trigger, classify, and wait for completion
- Typed errors: non-2xx responses and network failures raise RemoteError
"""

import itertools
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional, Sequence, Union

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
from ufile.core.polling import RetryPolicy, poll_until
from ufile.storage import operations as ops
from ufile.storage.multipart import DEFAULT_PART_SIZE, PartRef, iter_chunks
from ufile.storage.restore import RestoreStatus, check_poll, classify


class UFileClient:
    """Blocking client for one UFile bucket.

    The client holds an httpx.Client; use it as a context manager or call
    close() when done. It keeps no per-upload state: multipart sessions are
    plain UploadSession records owned by the caller.

    Attributes:
        config: Validated client configuration
        signer: Request signer bound to the configured bucket
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Configuration built by build_client_config()
            transport: Optional httpx transport (used by tests to fake the service)
        """
        self.config = config
        self.signer = Signer(config.credentials, config.bucket_name)
        self._http = httpx.Client(
            base_url=config.endpoint.base_url,
            auth=UFileAuth(self.signer),
            timeout=config.timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "UFileClient":
        """Build a client from environment settings."""
        settings = settings or Settings()
        return cls(settings.to_client_config())

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "UFileClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _send(self, op: ops.Operation) -> httpx.Response:
        try:
            response = self._http.request(**op.request_kwargs())
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
        """Authorization header value for a request sent outside this client."""
        return self.signer.get_authorization(method, key, content_md5, content_type)

    # Objects

    def put_file(
        self,
        key: str,
        data: Union[bytes, str, BinaryIO, Iterable[bytes]],
        mime_type: Optional[str] = None,
    ) -> None:
        """Upload an object in a single request.

        Args:
            key: Object key
            data: Object content: bytes, a binary file object or an iterator
                of byte chunks (streamed, not buffered)
            mime_type: Content type; guessed from the key's extension if omitted
        """
        self._send(ops.put_file(key, data, mime_type))

    def upload_file(self, key: str, path: Union[str, Path], mime_type: Optional[str] = None) -> None:
        """Stream a local file to ``key`` in a single request.

        Raises:
            FileNotFoundError: If path doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        with open(path, "rb") as f:
            self._send(ops.put_file(key, f, mime_type, content_length=path.stat().st_size))

    def upload_hit(self, file_hash: str, file_name: str, file_size: Union[int, str]) -> bool:
        """Try to store a file by hash alone; True if the service already has it."""
        response = self._send(ops.upload_hit(file_hash, file_name, file_size))
        return response.status_code == 200

    def get_file(
        self,
        key: str,
        byte_range: Optional[str] = None,
        if_modified_since: Optional[str] = None,
    ) -> bytes:
        return self._send(ops.get_file(key, byte_range, if_modified_since)).content

    def get_file_stream(
        self,
        key: str,
        byte_range: Optional[str] = None,
        if_modified_since: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ) -> Iterator[bytes]:
        """Download an object as a stream of byte chunks.

        The request is sent when iteration starts, and the connection is
        released when the iterator is exhausted or closed.

        Raises:
            RemoteError: On a failed response or network error (at first iteration)
        """
        op = ops.get_file(key, byte_range, if_modified_since)
        try:
            with self._http.stream(**op.request_kwargs()) as response:
                if not response.is_success:
                    response.read()
                ops.check_response(op, response)
                yield from response.iter_bytes(chunk_size)
        except httpx.HTTPError as e:
            raise ops.transport_error(op, e) from e

    def download_file(self, key: str, path: Union[str, Path], chunk_size: Optional[int] = None) -> int:
        """Stream an object into a local file.

        Returns:
            Number of bytes written
        """
        written = 0
        with open(path, "wb") as f:
            for chunk in self.get_file_stream(key, chunk_size=chunk_size):
                f.write(chunk)
                written += len(chunk)
        logger.info(f"Downloaded {key} to {path} ({written} bytes)")
        return written

    def head_file(self, key: str) -> ObjectHead:
        return ops.parse_head(self._send(ops.head_file(key)))

    def delete_file(self, key: str) -> None:
        self._send(ops.delete_file(key))

    def prefix_file_list(self, prefix: str = "", marker: str = "", limit: int = 20) -> Dict[str, Any]:
        return ops.parse_json(self._send(ops.prefix_file_list(prefix, marker, limit)))

    def list_objects(
        self,
        prefix: str,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
        delimiter: Optional[str] = None,
    ) -> Dict[str, Any]:
        return ops.parse_json(self._send(ops.list_objects(prefix, marker, max_keys, delimiter)))

    def class_switch(self, key: str, storage_class: Union[StorageClass, str]) -> None:
        self._send(ops.class_switch(key, storage_class))

    def op_meta(self, key: str, mime_type: str) -> None:
        self._send(ops.op_meta(key, mime_type))

    # Multipart upload

    def initiate_multipart_upload(self, key: str) -> UploadSession:
        """Start a multipart upload.

        Returns:
            A new UploadSession with no parts

        Raises:
            RemoteError: If the service rejects the key
        """
        session = ops.parse_session(key, self._send(ops.initiate_multipart_upload(key)))
        logger.info(f"Initiated multipart upload {session.upload_id} for {session.key}")
        return session

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> PartResult:
        """Upload one part. Re-sending the same part number overwrites it.

        Raises:
            ValueError: If part_number is less than 1
            RemoteError: If the upload fails
        """
        response = self._send(ops.upload_part(key, upload_id, part_number, data))
        return ops.parse_part(part_number, response)

    def upload_parts(
        self,
        session: UploadSession,
        stream: BinaryIO,
        part_size: int = DEFAULT_PART_SIZE,
    ) -> List[PartResult]:
        """Upload ``stream`` part by part, holding one part in memory at a time.

        Each uploaded part is recorded on ``session``.

        Returns:
            The uploaded parts in part-number order
        """
        for part_number, data in iter_chunks(stream, part_size):
            session.add(self.upload_part(session.key, session.upload_id, part_number, data))
        return list(session.parts)

    def finish_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[PartRef],
        new_key: Optional[str] = None,
    ) -> FinishResult:
        """Assemble uploaded parts into the final object.

        Args:
            key: Object key used at initiate time
            upload_id: Upload identifier
            parts: PartResults or ETags, in upload order
            new_key: Key to use instead if ``key`` has been taken meanwhile

        Raises:
            ConflictError: If the service reports a key collision
            RemoteError: If the request fails
        """
        result = ops.parse_finish(
            self._send(ops.finish_multipart_upload(key, upload_id, parts, new_key))
        )
        logger.info(f"Finished multipart upload {upload_id} ({len(parts)} parts)")
        return result

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._send(ops.abort_multipart_upload(key, upload_id))
        logger.info(f"Aborted multipart upload {upload_id}")

    def list_multipart_uploads(
        self,
        prefix: Optional[str] = None,
        marker: Optional[str] = None,
        limit: int = 20,
    ) -> UploadListing:
        return ops.parse_listing(self._send(ops.list_multipart_uploads(prefix, marker, limit)))

    # Archive restore

    def restore(self, key: str) -> None:
        """Request a restore of an archived object. Does not wait for it."""
        self._send(ops.restore(key))
        logger.info(f"Requested restore of {key}")

    def restore_status(self, key: str) -> RestoreStatus:
        return classify(self._send(ops.head_file(key)).headers)

    def is_need_restore(self, key: str) -> bool:
        return self.restore_status(key).needs_restore

    def wait_for_restore(self, key: str, interval: float = 10.0, max_retry: int = 30) -> RestoreStatus:
        """Block until the service reports the restore of ``key`` as finished.

        Polls the object's metadata up to ``max_retry + 1`` times, sleeping
        ``interval`` seconds between polls.

        Returns:
            The status observed when the restore finished

        Raises:
            NotArchivedError: If the object is not in the archive class
            WaitTimeoutError: If the restore did not finish within the budget
            RemoteError: If a poll request fails
        """
        policy = RetryPolicy(interval=interval, max_retry=max_retry)
        attempts = itertools.count(1)

        def probe() -> RestoreStatus:
            return check_poll(key, self.restore_status(key), next(attempts))

        try:
            return poll_until(probe, lambda status: status.is_finished, policy)
        except WaitTimeoutError as e:
            logger.warning(f"Restore of {key} still running after {e.attempts} polls")
            raise WaitTimeoutError(f"restore of {key} timed out", attempts=e.attempts) from e
