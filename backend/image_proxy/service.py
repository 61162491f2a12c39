"""
Image Proxy Service

Wires the components together from one settings object: a cache store
(disk or null), the source fetcher, the transform dispatcher, a shared
single-flight group and one request handler per operation.
"""

import logging
from typing import Dict, Optional

import httpx

from .cache_store import CacheStore, build_cache_store
from .config import ImageProxySettings
from .fetcher import SourceFetcher
from .handler import ImageRequestHandler
from .single_flight import SingleFlight
from .transform import Operation, PillowEngine, TransformDispatcher

logger = logging.getLogger(__name__)


class ImageProxyService:

    def __init__(
        self,
        settings: ImageProxySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.store: CacheStore = build_cache_store(settings)
        self.fetcher = SourceFetcher(
            timeout=settings.fetch_timeout,
            max_size_bytes=settings.max_source_size_bytes,
            allowed_hosts=settings.allowed_hosts,
            transport=transport,
        )
        self.dispatcher = TransformDispatcher(PillowEngine(quality=settings.webp_quality))
        self.flight = SingleFlight()

        self.handlers: Dict[Operation, ImageRequestHandler] = {
            operation: ImageRequestHandler(
                operation=operation,
                store=self.store,
                fetcher=self.fetcher,
                dispatcher=self.dispatcher,
                flight=self.flight,
                allowed_hosts=settings.allowed_hosts,
                max_dimension=settings.max_dimension,
            )
            for operation in Operation
        }

    async def close(self) -> None:
        await self.fetcher.close()
