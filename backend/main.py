"""
Image Proxy Server

Entry point. Builds the FastAPI application from environment settings and
serves it with uvicorn.

Usage:
    cd backend
    python main.py
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from image_proxy import ImageProxyService, ImageProxySettings, install_exception_handlers, router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ImageProxySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Service settings (read from the environment when omitted)
        transport: Optional httpx transport for outbound fetches
    """
    settings = settings or ImageProxySettings.from_env()
    service = ImageProxyService(settings, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"App running on port {settings.port}")
        logger.info(f"Caching is {'enabled' if settings.use_cache else 'disabled'}")
        yield
        await service.close()

    app = FastAPI(title="Image Proxy", lifespan=lifespan)
    app.state.image_proxy = service
    install_exception_handlers(app)
    app.include_router(router)

    # Raw cached artifacts, only when there is a cache to serve
    if settings.use_cache:
        app.mount("/cache", StaticFiles(directory=settings.cache_dir), name="cache")

    return app


def main() -> None:
    settings = ImageProxySettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
