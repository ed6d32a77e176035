"""Python SDK for the UFile object storage service."""

from ufile.auth import Signer, normalize_key
from ufile.core import (
    ClientConfig,
    ConfigurationError,
    ConflictError,
    NotArchivedError,
    RemoteError,
    RetryPolicy,
    Settings,
    UFileError,
    WaitTimeoutError,
    build_client_config,
)
from ufile.core.models import (
    FinishResult,
    ObjectHead,
    PartResult,
    StorageClass,
    UploadListing,
    UploadSession,
)
from ufile.storage import AsyncUFileClient, RestoreState, RestoreStatus, UFileClient, classify

__version__ = "0.1.0"

__all__ = [
    "AsyncUFileClient",
    "ClientConfig",
    "ConfigurationError",
    "ConflictError",
    "FinishResult",
    "NotArchivedError",
    "ObjectHead",
    "PartResult",
    "RemoteError",
    "RestoreState",
    "RestoreStatus",
    "RetryPolicy",
    "Settings",
    "Signer",
    "StorageClass",
    "UFileClient",
    "UFileError",
    "UploadListing",
    "UploadSession",
    "WaitTimeoutError",
    "build_client_config",
    "classify",
    "normalize_key",
]
