"""Object key normalization.

Users may pass keys with or without a leading slash ("/a/b.txt" or
"a/b.txt"). The wire form used by the HTTP layer and the signer is always the
bucket-relative key without the leading separator.
"""

from urllib.parse import quote


def normalize_key(key: str) -> str:
    """Strip the leading separator from an object key.

    Args:
        key: User supplied key

    Returns:
        Key without leading slashes

    Example:
        >>> normalize_key("/photos/cat.jpg")
        'photos/cat.jpg'
    """
    return key.lstrip("/")


def resource_path(bucket_name: str, key: str) -> str:
    """Bucket-qualified path used in the canonical string."""
    return f"/{bucket_name}/{normalize_key(key)}"


def url_path(key: str) -> str:
    """Percent-encoded request path for a key, relative to the bucket host."""
    return "/" + quote(normalize_key(key), safe="/~")
