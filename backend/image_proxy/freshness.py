"""
Conditional-GET freshness for cached images.

The ETag is the md5 hex digest of the stored bytes, recomputed on every read.
Last-Modified is the file mtime as an HTTP date. A client copy is fresh when
If-None-Match equals the ETag or If-Modified-Since equals the Last-Modified
string exactly.
"""

import hashlib
from dataclasses import dataclass
from email.utils import formatdate
from typing import Dict, Optional


def generate_etag(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def format_http_date(timestamp: float) -> str:
    """Format a unix timestamp like ``Mon, 19 Oct 2026 11:10:00 GMT``."""
    return formatdate(timestamp, usegmt=True)


@dataclass(frozen=True)
class Freshness:
    etag: str
    last_modified: str
    fresh: bool

    def headers(self) -> Dict[str, str]:
        return {"ETag": self.etag, "Last-Modified": self.last_modified}


def evaluate(
    data: bytes,
    modified_at: float,
    if_none_match: Optional[str] = None,
    if_modified_since: Optional[str] = None,
) -> Freshness:
    etag = generate_etag(data)
    last_modified = format_http_date(modified_at)
    fresh = (if_none_match is not None and if_none_match == etag) or (
        if_modified_since is not None and if_modified_since == last_modified
    )
    return Freshness(etag=etag, last_modified=last_modified, fresh=fresh)
