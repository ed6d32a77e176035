"""Storage package for the UFile object storage service.

This package provides blocking and asyncio clients that sign every request,
plus the multipart upload and archive restore helpers they build on.
"""

from ufile.storage.aio import AsyncUFileClient
from ufile.storage.client import UFileClient
from ufile.storage.restore import RestoreState, RestoreStatus, classify

__all__ = [
    "AsyncUFileClient",
    "RestoreState",
    "RestoreStatus",
    "UFileClient",
    "classify",
]
