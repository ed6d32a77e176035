"""Multipart upload helpers.

The service assembles a multipart object from the ETags of its parts, sent
as a comma-joined list in upload order. These helpers turn caller-side part
records into that body and split local data into parts.
"""

from typing import BinaryIO, Iterator, Sequence, Tuple, Union

from ufile.core.models import PartResult

DEFAULT_PART_SIZE = 4 * 1024 * 1024

PartRef = Union[PartResult, str]


def part_etag(part: PartRef) -> str:
    return part.etag if isinstance(part, PartResult) else part


def finish_body(parts: Sequence[PartRef]) -> str:
    """Comma-joined ETags in the order given.

    Raises:
        ValueError: If no parts are given
    """
    if not parts:
        raise ValueError("at least one part is required to finish an upload")
    return ",".join(part_etag(part) for part in parts)


def validate_part_number(part_number: int) -> None:
    if part_number < 1:
        raise ValueError(f"part_number must be >= 1, got {part_number}")


def iter_chunks(stream: BinaryIO, part_size: int = DEFAULT_PART_SIZE) -> Iterator[Tuple[int, bytes]]:
    """Yield ``(part_number, data)`` pairs read from a binary stream.

    Part numbers start at 1. An empty stream yields a single empty part so
    that empty objects can still be uploaded.
    """
    if part_size <= 0:
        raise ValueError("part_size must be greater than 0")
    part_number = 1
    while True:
        chunk = stream.read(part_size)
        if not chunk:
            if part_number == 1:
                yield part_number, b""
            return
        yield part_number, chunk
        part_number += 1
