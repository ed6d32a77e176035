"""
Value types shared by the UFile clients.

Credentials and endpoints are immutable once built. Upload sessions are plain
records owned by the caller; the clients never keep session state between
calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_PROVIDER_SUFFIX = "ufileos.com"


class StorageClass(str, Enum):
    """Storage tiers understood by the service."""

    STANDARD = "STANDARD"
    IA = "IA"
    ARCHIVE = "ARCHIVE"


@dataclass(frozen=True)
class Credentials:
    """API key pair. The private key is kept out of repr output."""

    public_key: str
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class Endpoint:
    """Where a bucket lives and how to reach it."""

    bucket_name: str
    domain: str
    scheme: str = "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.domain}"


@dataclass(frozen=True)
class PartResult:
    """One uploaded chunk of a multipart upload.

    Attributes:
        part_number: 1-based part index chosen by the caller
        etag: ETag issued by the service for this part
    """

    part_number: int
    etag: str


@dataclass
class UploadSession:
    """A multipart upload in progress.

    Attributes:
        key: Object key the upload will be stored under
        upload_id: Service-issued upload identifier
        block_size: Part size suggested by the service (0 if not reported)
        parts: Uploaded parts, in upload order
    """

    key: str
    upload_id: str
    block_size: int = 0
    parts: List[PartResult] = field(default_factory=list)

    def add(self, part: PartResult) -> PartResult:
        """Record an uploaded part, replacing an earlier upload of the same number."""
        for index, existing in enumerate(self.parts):
            if existing.part_number == part.part_number:
                self.parts[index] = part
                return part
        self.parts.append(part)
        return part

    @property
    def etags(self) -> List[str]:
        return [part.etag for part in self.parts]


@dataclass(frozen=True)
class FinishResult:
    """Outcome of finishing a multipart upload.

    Attributes:
        etag: ETag of the assembled object, taken from the response header
        bucket: Bucket reported by the service
        key: Final key (differs from the requested key when newKey was used)
        file_size: Size of the assembled object in bytes
        raw: Full JSON body returned by the service
    """

    etag: Optional[str]
    bucket: Optional[str] = None
    key: Optional[str] = None
    file_size: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InProgressUpload:
    upload_id: str
    file_name: str
    timestamp: Optional[int] = None


@dataclass(frozen=True)
class UploadListing:
    """One page of in-progress multipart uploads.

    ``next_marker`` is None once the listing is exhausted.
    """

    uploads: List[InProgressUpload]
    next_marker: Optional[str] = None


@dataclass(frozen=True)
class ObjectHead:
    """Metadata returned by a HEAD request on an object."""

    content_type: Optional[str]
    content_length: Optional[int]
    etag: Optional[str]
    storage_class: Optional[str]
    restore: Optional[str]
    headers: Dict[str, str] = field(default_factory=dict)
