"""
Source URL Codec

Source URLs travel in the request path as URL-safe base64 tokens. This module
turns tokens back into URLs and checks that the result is something the proxy
is willing to fetch.
"""

import base64
import binascii
import ipaddress
import logging
from typing import Iterable
from urllib.parse import urlparse

from .errors import ClientError

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid encoded url"
URL_NOT_ALLOWED_MESSAGE = "Url not allowed"


def encode(url: str) -> str:
    """Encode a URL as an unpadded URL-safe base64 token."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode(token: str) -> str:
    """
    Decode a URL-safe base64 token back to the source URL.

    Raises:
        ClientError: if the token is not valid base64 or not UTF-8 text.
    """
    if not token:
        raise ClientError(INVALID_TOKEN_MESSAGE, "Empty url token")

    standard = token.replace("-", "+").replace("_", "/")
    while len(standard) % 4:
        standard += "="

    try:
        raw = base64.b64decode(standard, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ClientError(INVALID_TOKEN_MESSAGE, f"Undecodable url token {token[:40]!r}: {e}")


def _host_allowed(host: str, allowed_hosts: Iterable[str]) -> bool:
    for allowed in allowed_hosts:
        if host == allowed or host.endswith("." + allowed):
            return True
    return False


def validate_source_url(url: str, allowed_hosts: Iterable[str] = ()) -> str:
    """
    Check that a decoded URL is an absolute http(s) URL pointing at a public host.

    Returns the URL unchanged when it passes.
    """
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError as e:
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, f"Unparseable url: {e}")

    if parsed.scheme not in ("http", "https"):
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, f"Invalid URL scheme: {parsed.scheme!r}")
    if not host:
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, "Invalid URL host")
    if host == "localhost" or host.endswith(".localhost"):
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, f"Local host refused: {host}")

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None

    if address is not None and (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    ):
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, f"Non-public address refused: {host}")

    allowed = tuple(allowed_hosts)
    if allowed and not _host_allowed(host, allowed):
        raise ClientError(URL_NOT_ALLOWED_MESSAGE, f"Host not in allowlist: {host}")

    return url


def decode_source_url(token: str, allowed_hosts: Iterable[str] = ()) -> str:
    """Decode a token and validate the URL it carries."""
    url = decode(token)
    validate_source_url(url, allowed_hosts)
    logger.debug(f"[ImageProxy] Decoded source url: {url[:80]}")
    return url
