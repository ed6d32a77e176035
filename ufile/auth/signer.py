"""UFile request signing.

The service authenticates each request with an HMAC-SHA1 signature over a
canonical string built from the request::

    <METHOD>
    <content-md5>
    <content-type>
    <date>
    <x-ucloud-* headers, one "name:value" line each, sorted by name>
    /<bucket>/<key>

The signature is Base64 encoded and sent as
``Authorization: UCloud <public_key>:<signature>``.
"""

import base64
import hashlib
import hmac
import re
from typing import Generator, Union
from urllib.parse import unquote, urlsplit

import httpx
from loguru import logger

from ufile.auth.headers import HeaderMap, HeaderSource
from ufile.auth.keys import normalize_key
from ufile.core.models import Credentials

AUTH_SCHEME = "UCloud"
VENDOR_HEADER_PREFIX = "x-ucloud"
DEFAULT_FORM_CONTENT_TYPE = "multipart/form-data"

_ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

Target = Union[str, httpx.URL]


class Signer:
    """Builds canonical strings and signatures for one bucket.

    Attributes:
        bucket_name: Bucket whose name prefixes every canonical resource
        vendor_prefix: Header prefix of vendor headers covered by the signature
    """

    def __init__(
        self,
        credentials: Credentials,
        bucket_name: str,
        vendor_prefix: str = VENDOR_HEADER_PREFIX,
    ) -> None:
        self._credentials = credentials
        self.bucket_name = bucket_name
        self.vendor_prefix = vendor_prefix.lower()

    @property
    def public_key(self) -> str:
        return self._credentials.public_key

    def canonical_resource(self, target: Target) -> str:
        """Resolve a URL or a key into ``/<bucket>/<key>``.

        Full URLs contribute their percent-decoded path; anything else is
        treated as a literal key.
        """
        if isinstance(target, httpx.URL):
            path = target.path
        elif _ABSOLUTE_URL_RE.match(target):
            path = unquote(urlsplit(target).path)
        else:
            path = "/" + normalize_key(target)
        return f"/{self.bucket_name}{path}"

    def string_to_sign(self, method: str, headers: HeaderSource, target: Target) -> str:
        header_map = headers if isinstance(headers, HeaderMap) else HeaderMap(headers)
        lines = [
            method.upper(),
            header_map.value("content-md5"),
            header_map.value("content-type"),
            header_map.value("date"),
        ]
        for name, value in header_map.with_prefix(self.vendor_prefix):
            lines.append(f"{name}:{value}")
        lines.append(self.canonical_resource(target))
        return "\n".join(lines)

    def sign(self, method: str, headers: HeaderSource, target: Target) -> str:
        """Base64 HMAC-SHA1 signature of the request's canonical string."""
        string_to_sign = self.string_to_sign(method, headers, target)
        digest = hmac.new(
            self._credentials.private_key.encode("utf-8"),
            string_to_sign.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def authorization(self, method: str, headers: HeaderSource, target: Target) -> str:
        """Authorization header value for a request."""
        return f"{AUTH_SCHEME} {self.public_key}:{self.sign(method, headers, target)}"

    def get_authorization(
        self,
        method: str,
        key: str,
        content_md5: str = "",
        content_type: str = DEFAULT_FORM_CONTENT_TYPE,
    ) -> str:
        """Pre-compute an Authorization header outside the request path.

        Useful for form uploads and other flows where the request is sent by
        someone else. The result equals authorization() for a request with the
        same method, key, content-md5 and content-type and no other signed
        headers.

        Args:
            method: HTTP method
            key: Object key
            content_md5: Content-MD5 the request will carry
            content_type: Content-Type the request will carry

        Returns:
            ``UCloud <public_key>:<signature>``
        """
        headers = {"content-md5": content_md5, "content-type": content_type}
        return self.authorization(method, headers, key)


class UFileAuth(httpx.Auth):
    """httpx auth hook that signs every outgoing request."""

    def __init__(self, signer: Signer) -> None:
        self.signer = signer

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = self.signer.authorization(
            request.method, request.headers, request.url
        )
        logger.debug(
            f"Signed {request.method} {self.signer.canonical_resource(request.url)}"
        )
        yield request
