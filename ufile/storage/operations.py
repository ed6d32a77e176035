"""Request descriptions and response parsing shared by both clients.

Each public client method is a pair: a builder that describes the HTTP
request as an Operation, and a parser that turns the checked response into a
typed result. The sync and async clients differ only in how they send.
"""

import mimetypes
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, BinaryIO, Dict, Iterable, Optional, Sequence, Union

import httpx

from ufile.auth.keys import normalize_key, url_path
from ufile.core.errors import ConflictError, RemoteError
from ufile.core.models import (
    FinishResult,
    InProgressUpload,
    ObjectHead,
    PartResult,
    StorageClass,
    UploadListing,
    UploadSession,
)
from ufile.storage.multipart import PartRef, finish_body, validate_part_number
from ufile.storage.restore import RESTORE_HEADER, STORAGE_CLASS_HEADER

DEFAULT_MIME_TYPE = "application/octet-stream"

# Request content httpx can stream: file objects and (async) byte iterators
Content = Union[bytes, str, BinaryIO, Iterable[bytes], AsyncIterable[bytes]]


@dataclass(frozen=True)
class Operation:
    """One HTTP request against the bucket.

    Attributes:
        method: HTTP method
        key: Object key, or "" for bucket-level requests
        params: Query parameters; None values are dropped
        headers: Extra request headers; None values are dropped
        content: Raw request body
        json: JSON request body
        conflict_on_409: Map HTTP 409 to ConflictError
        check_status: Raise RemoteError on non-2xx responses
    """

    method: str
    key: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Optional[str]] = field(default_factory=dict)
    content: Optional[Content] = None
    json: Optional[Dict[str, Any]] = None
    conflict_on_409: bool = False
    check_status: bool = True

    @property
    def path(self) -> str:
        return url_path(self.key)

    def request_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "method": self.method,
            "url": self.path,
            "params": {k: v for k, v in self.params.items() if v is not None},
            "headers": {k: v for k, v in self.headers.items() if v is not None},
        }
        if self.content is not None:
            kwargs["content"] = self.content
        if self.json is not None:
            kwargs["json"] = self.json
        return kwargs

    def describe(self) -> str:
        return f"{self.method} {self.path}"


def check_response(op: Operation, response: httpx.Response) -> httpx.Response:
    """Raise a typed error for a failed response.

    Raises:
        ConflictError: On 409 for operations that map conflicts
        RemoteError: On any other non-2xx status
    """
    if not op.check_status or response.is_success:
        return response
    error_cls = ConflictError if op.conflict_on_409 and response.status_code == 409 else RemoteError
    raise error_cls(
        f"{op.describe()} failed",
        status_code=response.status_code,
        body=response.text,
    )


def transport_error(op: Operation, exc: httpx.HTTPError) -> RemoteError:
    return RemoteError(f"{op.describe()} failed: {exc}")


def _json(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError as e:
        raise RemoteError(
            "service returned a non-JSON body",
            status_code=response.status_code,
            body=response.text,
        ) from e
    return payload if isinstance(payload, dict) else {}


def guess_mime_type(key: str) -> str:
    mime_type, _ = mimetypes.guess_type(normalize_key(key))
    return mime_type or DEFAULT_MIME_TYPE


# Object operations


def put_file(
    key: str,
    data: Content,
    mime_type: Optional[str] = None,
    content_length: Optional[int] = None,
) -> Operation:
    """Single-request upload.

    ``data`` may be bytes, a binary file object or an iterator of byte
    chunks; streamed bodies are sent without being buffered. Without a
    ``content_length`` httpx derives it from files and falls back to chunked
    transfer for iterators.
    """
    return Operation(
        "PUT",
        key,
        headers={
            "content-type": mime_type or guess_mime_type(key),
            "content-length": str(content_length) if content_length is not None else None,
        },
        content=data,
    )


def upload_hit(file_hash: str, file_name: str, file_size: Union[int, str]) -> Operation:
    return Operation(
        "POST",
        "uploadhit",
        params={"Hash": file_hash, "FileName": file_name, "FileSize": str(file_size)},
        check_status=False,
    )


def get_file(
    key: str,
    byte_range: Optional[str] = None,
    if_modified_since: Optional[str] = None,
) -> Operation:
    return Operation(
        "GET",
        key,
        headers={"range": byte_range, "if-modified-since": if_modified_since},
    )


def head_file(key: str) -> Operation:
    return Operation("HEAD", key)


def parse_head(response: httpx.Response) -> ObjectHead:
    headers = response.headers
    length = headers.get("content-length")
    return ObjectHead(
        content_type=headers.get("content-type"),
        content_length=int(length) if length and length.isdigit() else None,
        etag=headers.get("etag"),
        storage_class=headers.get(STORAGE_CLASS_HEADER),
        restore=headers.get(RESTORE_HEADER),
        headers=dict(headers.items()),
    )


def delete_file(key: str) -> Operation:
    return Operation("DELETE", key)


def prefix_file_list(prefix: str = "", marker: str = "", limit: int = 20) -> Operation:
    return Operation(
        "GET",
        params={"list": "", "prefix": prefix, "marker": marker, "limit": limit},
    )


def list_objects(
    prefix: str,
    marker: Optional[str] = None,
    max_keys: Optional[int] = None,
    delimiter: Optional[str] = None,
) -> Operation:
    return Operation(
        "GET",
        params={
            "listobjects": "",
            "prefix": prefix,
            "marker": marker,
            "max-keys": max_keys,
            "delimiter": delimiter,
        },
    )


def class_switch(key: str, storage_class: Union[StorageClass, str]) -> Operation:
    value = storage_class.value if isinstance(storage_class, StorageClass) else storage_class
    return Operation("PUT", key, params={"storageClass": value})


def op_meta(key: str, mime_type: str) -> Operation:
    return Operation(
        "POST",
        key,
        params={"opmeta": ""},
        json={"op": "set", "metak": "mimetype", "metav": mime_type},
    )


def parse_json(response: httpx.Response) -> Dict[str, Any]:
    return _json(response)


# Multipart upload


def initiate_multipart_upload(key: str) -> Operation:
    return Operation("POST", key, params={"uploads": ""})


def parse_session(key: str, response: httpx.Response) -> UploadSession:
    payload = _json(response)
    upload_id = payload.get("UploadId")
    if not upload_id:
        raise RemoteError(
            "initiate response is missing UploadId",
            status_code=response.status_code,
            body=response.text,
        )
    return UploadSession(
        key=normalize_key(key),
        upload_id=upload_id,
        block_size=int(payload.get("BlkSize") or 0),
    )


def upload_part(key: str, upload_id: str, part_number: int, data: bytes) -> Operation:
    validate_part_number(part_number)
    return Operation(
        "PUT",
        key,
        params={"uploadId": upload_id, "partNumber": part_number},
        headers={"content-type": DEFAULT_MIME_TYPE},
        content=data,
    )


def parse_part(part_number: int, response: httpx.Response) -> PartResult:
    etag = response.headers.get("etag")
    if not etag:
        raise RemoteError(
            f"upload of part {part_number} returned no ETag",
            status_code=response.status_code,
            body=response.text,
        )
    return PartResult(part_number=part_number, etag=etag)


def finish_multipart_upload(
    key: str,
    upload_id: str,
    parts: Sequence[PartRef],
    new_key: Optional[str] = None,
) -> Operation:
    return Operation(
        "POST",
        key,
        params={"uploadId": upload_id, "newKey": new_key},
        headers={"content-type": "text/plain"},
        content=finish_body(parts),
        conflict_on_409=True,
    )


def parse_finish(response: httpx.Response) -> FinishResult:
    payload = _json(response)
    size = payload.get("FileSize")
    return FinishResult(
        etag=response.headers.get("etag"),
        bucket=payload.get("Bucket"),
        key=payload.get("Key"),
        file_size=int(size) if size is not None else None,
        raw=payload,
    )


def abort_multipart_upload(key: str, upload_id: str) -> Operation:
    return Operation("DELETE", key, params={"uploadId": upload_id})


def list_multipart_uploads(
    prefix: Optional[str] = None,
    marker: Optional[str] = None,
    limit: int = 20,
) -> Operation:
    return Operation(
        "GET",
        params={"muploadid": "", "prefix": prefix, "marker": marker, "limit": limit},
    )


def parse_listing(response: httpx.Response) -> UploadListing:
    payload = _json(response)
    uploads = [
        InProgressUpload(
            upload_id=item.get("UploadId", ""),
            file_name=item.get("FileName", ""),
            timestamp=item.get("TimeStamp"),
        )
        for item in payload.get("DataSet") or []
    ]
    return UploadListing(uploads=uploads, next_marker=payload.get("NextMarker") or None)


# Archive restore


def restore(key: str) -> Operation:
    return Operation("PUT", key, params={"restore": ""})
