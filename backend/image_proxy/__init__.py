"""
Image Proxy Module

On-demand transformation proxy for remote images. The source URL travels in
the request path as a URL-safe base64 token; the image is fetched, cover-cropped
(fit) or proportionally resized (resize), re-encoded to WebP and served with
HTTP caching headers.

Features:
- Flat on-disk cache keyed by operation, geometry and source url
- Atomic cache writes and single-flight coalescing of identical misses
- ETag / Last-Modified conditional GET (304 Not Modified)
- Cache can be switched off entirely
"""

from .routes_fastapi import router, install_exception_handlers
from .config import ImageProxySettings
from .service import ImageProxyService

__all__ = ["router", "install_exception_handlers", "ImageProxySettings", "ImageProxyService"]
