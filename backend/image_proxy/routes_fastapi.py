"""
Image Proxy API Routes

Provides endpoints for:
- Cover-cropping a remote image to WxH (fit)
- Proportionally resizing a remote image to a width (resize)
- Health check

The source URL is carried in the path as a URL-safe base64 token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Header, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .errors import SERVER_ERROR_MESSAGE, ImageProxyError
from .handler import ImageRequestHandler
from .transform import Operation

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class HealthResponse(BaseModel):
    """Response model for health endpoint."""
    status: str
    service: str
    cache_enabled: bool


# ============================================
# Router
# ============================================

router = APIRouter(tags=["Image Proxy"])


def _handler(request: Request, operation: Operation) -> ImageRequestHandler:
    return request.app.state.image_proxy.handlers[operation]


# ============================================
# Endpoints
# ============================================

@router.get("/img/{encoded_url}/fit")
async def fit_image(
    request: Request,
    encoded_url: str,
    size: Optional[str] = Query(None, description="Target size as WxH, e.g. 300x200"),
    if_none_match: Optional[str] = Header(None),
    if_modified_since: Optional[str] = Header(None),
):
    """
    Crop-resize a remote image so it exactly fills WxH.

    Example:
        GET /img/aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw/fit?size=300x200
    """
    return await _handler(request, Operation.FIT).handle(
        encoded_url, size, if_none_match, if_modified_since
    )


@router.get("/img/{encoded_url}/resize")
async def resize_image(
    request: Request,
    encoded_url: str,
    size: Optional[str] = Query(None, description="Target width, e.g. 640"),
    if_none_match: Optional[str] = Header(None),
    if_modified_since: Optional[str] = Header(None),
):
    """
    Resize a remote image to the given width, keeping its aspect ratio.

    Example:
        GET /img/aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw/resize?size=640
    """
    return await _handler(request, Operation.RESIZE).handle(
        encoded_url, size, if_none_match, if_modified_since
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        service="image-proxy",
        cache_enabled=request.app.state.image_proxy.store.enabled,
    )


# ============================================
# Error Handling
# ============================================

async def _proxy_error_handler(request: Request, exc: ImageProxyError):
    if exc.status_code >= 500:
        logger.error(f"[ImageProxy] {exc.kind} error on {request.url.path[:80]}: {exc.detail}")
    else:
        logger.info(f"[ImageProxy] Rejected {request.url.path[:80]}: {exc.detail}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def _unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"[ImageProxy] Unexpected error on {request.url.path[:80]}: {exc}")
    return PlainTextResponse(SERVER_ERROR_MESSAGE, status_code=500)


def install_exception_handlers(app: FastAPI) -> None:
    """Map proxy errors to flat status codes with short text bodies."""
    app.add_exception_handler(ImageProxyError, _proxy_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
