"""Archive restore state machine.

Objects in the ARCHIVE storage class must be restored (thawed) before they
can be read. The service reports progress in two HEAD response headers:

- ``x-ufile-storage-class``: the object's storage class
- ``x-ufile-restore``: absent until a restore is requested, then
  ``ongoing-request="true"`` while thawing, and
  ``ongoing-request="false", expiry-date="<date>"`` once the thawed copy is
  readable until ``<date>``

classify() turns those headers into a RestoreStatus; the clients use it for
is_need_restore() and wait_for_restore().
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Optional

from loguru import logger

from ufile.auth.headers import HeaderMap, HeaderSource
from ufile.core.errors import NotArchivedError
from ufile.core.models import StorageClass

STORAGE_CLASS_HEADER = "x-ufile-storage-class"
RESTORE_HEADER = "x-ufile-restore"

_ONGOING_TRUE = 'ongoing-request="true"'
_ONGOING_FALSE = 'ongoing-request="false"'
_EXPIRY_RE = re.compile(r'expiry-date="(?P<date>[^"]*)"')


class RestoreState(str, Enum):
    NOT_ARCHIVED = "not-archived"
    RESTORE_NOT_REQUESTED = "restore-not-requested"
    RESTORE_IN_PROGRESS = "restore-in-progress"
    RESTORE_COMPLETE = "restore-complete-unexpired"
    RESTORE_EXPIRED = "restore-complete-expired"
    # finished, but the expiry date is missing or unreadable
    RESTORE_UNKNOWN = "restore-complete-unknown-expiry"


_NEEDS_RESTORE = {
    RestoreState.RESTORE_NOT_REQUESTED,
    RestoreState.RESTORE_EXPIRED,
    RestoreState.RESTORE_UNKNOWN,
}
_FINISHED = {
    RestoreState.RESTORE_COMPLETE,
    RestoreState.RESTORE_EXPIRED,
    RestoreState.RESTORE_UNKNOWN,
}


@dataclass(frozen=True)
class RestoreStatus:
    """Restore state of one object.

    Attributes:
        state: Classified state
        expiry: When the restored copy expires, if reported and parseable
    """

    state: RestoreState
    expiry: Optional[datetime] = None

    @property
    def needs_restore(self) -> bool:
        """Whether a restore must be requested before the object is readable."""
        return self.state in _NEEDS_RESTORE

    @property
    def is_finished(self) -> bool:
        """Whether the service reports the restore job as no longer running."""
        return self.state in _FINISHED


def parse_expiry(value: str) -> Optional[datetime]:
    """Parse an expiry date in RFC 1123 or ISO 8601 form.

    Returns None if the value cannot be parsed. Naive values are taken as UTC.
    """
    value = value.strip()
    if not value:
        return None
    parsed: Optional[datetime]
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def classify(headers: HeaderSource, now: Optional[datetime] = None) -> RestoreStatus:
    """Derive the restore status of an object from its HEAD response headers.

    Args:
        headers: HEAD response headers (any case)
        now: Reference time for expiry checks, defaults to the current UTC time

    Returns:
        RestoreStatus for the object
    """
    header_map = headers if isinstance(headers, HeaderMap) else HeaderMap(headers)

    if header_map.value(STORAGE_CLASS_HEADER) != StorageClass.ARCHIVE.value:
        return RestoreStatus(RestoreState.NOT_ARCHIVED)

    restore = header_map.value(RESTORE_HEADER)
    if not restore:
        return RestoreStatus(RestoreState.RESTORE_NOT_REQUESTED)
    if _ONGOING_TRUE in restore:
        return RestoreStatus(RestoreState.RESTORE_IN_PROGRESS)
    if _ONGOING_FALSE not in restore:
        return RestoreStatus(RestoreState.RESTORE_NOT_REQUESTED)

    match = _EXPIRY_RE.search(restore)
    expiry = parse_expiry(match.group("date")) if match else None
    if expiry is None:
        return RestoreStatus(RestoreState.RESTORE_UNKNOWN)

    now = now or datetime.now(timezone.utc)
    if now < expiry:
        return RestoreStatus(RestoreState.RESTORE_COMPLETE, expiry)
    return RestoreStatus(RestoreState.RESTORE_EXPIRED, expiry)


def check_poll(key: str, status: RestoreStatus, attempt: int) -> RestoreStatus:
    """Validate one restore poll result.

    Raises:
        NotArchivedError: If the object is no longer in the archive class
    """
    if status.state is RestoreState.NOT_ARCHIVED:
        raise NotArchivedError(f"{key} is not in the {StorageClass.ARCHIVE.value} storage class")
    logger.debug(f"Restore poll #{attempt} for {key}: {status.state.value}")
    return status
