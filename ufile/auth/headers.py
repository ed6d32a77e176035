"""Case-insensitive header mapping shared by the signer and the HTTP layer."""

from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

HeaderValue = Union[str, Sequence[str]]
HeaderSource = Union["HeaderMap", httpx.Headers, Mapping[str, HeaderValue], None]


class HeaderMap(Mapping[str, str]):
    """Read-only header view with case-insensitive lookup.

    Names are stored lower-cased. A header given several times (a list value,
    or repeated entries in httpx.Headers) is joined with no separator, which
    is the form the canonical string expects.
    """

    def __init__(self, source: HeaderSource = None) -> None:
        grouped: Dict[str, List[str]] = {}
        for name, value in _iter_pairs(source):
            grouped.setdefault(name.lower(), []).append(value)
        self._values = {name: "".join(values) for name, values in grouped.items()}

    def __getitem__(self, name: str) -> str:
        return self._values[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(name.lower(), default)

    def value(self, name: str) -> str:
        """Header value, or an empty string when absent."""
        return self._values.get(name.lower(), "")

    def with_prefix(self, prefix: str) -> List[Tuple[str, str]]:
        """Headers whose name starts with ``prefix``, sorted by name."""
        prefix = prefix.lower()
        return sorted(
            (name, value) for name, value in self._values.items() if name.startswith(prefix)
        )

    def __repr__(self) -> str:
        return f"HeaderMap({self._values!r})"


def _iter_pairs(source: HeaderSource) -> Iterator[Tuple[str, str]]:
    if source is None:
        return
    if isinstance(source, HeaderMap):
        yield from source.items()
    elif isinstance(source, httpx.Headers):
        yield from source.multi_items()
    else:
        for name, value in source.items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                for item in value:
                    yield name, str(item)
            else:
                yield name, str(value)
