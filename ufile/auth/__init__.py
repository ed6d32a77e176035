"""Request authentication: key normalization, header lookup and signing."""

from ufile.auth.headers import HeaderMap
from ufile.auth.keys import normalize_key, resource_path, url_path
from ufile.auth.signer import Signer, UFileAuth

__all__ = [
    "HeaderMap",
    "Signer",
    "UFileAuth",
    "normalize_key",
    "resource_path",
    "url_path",
]
