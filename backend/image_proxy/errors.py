"""
Image Proxy Errors

Tagged failure types raised by the proxy components. Each variant knows its
HTTP status and the short text returned to the client; ``detail`` stays in the
logs only.
"""

from typing import Optional

SERVER_ERROR_MESSAGE = "Server error"


class ImageProxyError(Exception):
    """Base class for every failure the request handlers can report."""

    status_code: int = 500
    kind: str = "internal"

    def __init__(self, message: str = SERVER_ERROR_MESSAGE, detail: Optional[str] = None):
        super().__init__(detail or message)
        self.message = message
        self.detail = detail or message


class ClientError(ImageProxyError):
    """Bad request: malformed size parameter or url token."""

    status_code = 400
    kind = "client"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message, detail)


class UpstreamFetchError(ImageProxyError):
    """Source image unreachable, timed out or answered with an error status."""

    kind = "upstream"

    def __init__(self, detail: str):
        super().__init__(SERVER_ERROR_MESSAGE, detail)


class TransformError(ImageProxyError):
    """The engine could not decode or re-encode the fetched bytes."""

    kind = "transform"

    def __init__(self, detail: str):
        super().__init__(SERVER_ERROR_MESSAGE, detail)


class StorageError(ImageProxyError):
    """Cache directory unwritable or unreadable."""

    kind = "storage"

    def __init__(self, detail: str):
        super().__init__(SERVER_ERROR_MESSAGE, detail)


class EntryNotFound(StorageError):
    """Read of a key that is not (or no longer) in the cache."""

    def __init__(self, key: str):
        super().__init__(f"Cache entry not found: {key}")
        self.key = key
