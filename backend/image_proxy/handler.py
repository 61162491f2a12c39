"""
Image Request Handler

One handler per operation (fit, resize). Each request runs:
1. Decode the url token and validate the url
2. Parse the size parameter
3. Build the cache key
4. Serve a cache hit (304 or cached bytes), or
5. Fetch, transform and store the image once per key, then serve it
"""

import logging
from typing import Iterable, Optional, Tuple

from fastapi.responses import Response

from . import freshness
from .cache_store import CachedEntry, CacheStore, cache_key
from .config import CACHE_CONTROL, OUTPUT_CONTENT_TYPE, OUTPUT_FORMAT
from .fetcher import SourceFetcher
from .single_flight import SingleFlight
from .transform import GeometrySpec, Operation, TransformDispatcher, parse_geometry
from .url_codec import decode_source_url

logger = logging.getLogger(__name__)

# Result of a miss: the transformed bytes and, when cached, the stored entry
MissResult = Tuple[bytes, Optional[CachedEntry]]


class ImageRequestHandler:

    def __init__(
        self,
        operation: Operation,
        store: CacheStore,
        fetcher: SourceFetcher,
        dispatcher: TransformDispatcher,
        flight: SingleFlight,
        allowed_hosts: Iterable[str] = (),
        max_dimension: int = 5000,
    ):
        self.operation = operation
        self.store = store
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.flight = flight
        self.allowed_hosts = tuple(allowed_hosts)
        self.max_dimension = max_dimension

    @staticmethod
    def _base_headers() -> dict:
        return {"Cache-Control": CACHE_CONTROL, "Content-Type": OUTPUT_CONTENT_TYPE}

    def key_for(self, geometry: GeometrySpec, encoded_url: str) -> str:
        return cache_key(self.operation.value, geometry.encode(), encoded_url, OUTPUT_FORMAT)

    async def handle(
        self,
        encoded_url: str,
        size: Optional[str],
        if_none_match: Optional[str] = None,
        if_modified_since: Optional[str] = None,
    ) -> Response:
        source_url = decode_source_url(encoded_url, self.allowed_hosts)
        geometry = parse_geometry(self.operation, size, self.max_dimension)
        key = self.key_for(geometry, encoded_url)
        headers = self._base_headers()

        entry = await self.store.load(key)
        if entry is not None:
            state = freshness.evaluate(entry.data, entry.modified_at, if_none_match, if_modified_since)
            headers.update(state.headers())
            if state.fresh:
                logger.debug(f"[ImageProxy] Not modified: {key[:60]}")
                return Response(status_code=304, headers=headers)
            logger.debug(f"[ImageProxy] Cache hit: {key[:60]}")
            return Response(content=entry.data, status_code=200, headers=headers)

        data, stored = await self.flight.do(key, lambda: self._produce(key, source_url, geometry))

        if stored is not None:
            state = freshness.evaluate(stored.data, stored.modified_at)
            headers.update(state.headers())
        return Response(content=data, status_code=200, headers=headers)

    async def _produce(self, key: str, source_url: str, geometry: GeometrySpec) -> MissResult:
        # Another flight may have stored the entry between our lookup and now
        entry = await self.store.load(key)
        if entry is not None:
            return entry.data, entry

        source = await self.fetcher.fetch(source_url)
        output = await self.dispatcher.transform(source, self.operation, geometry)
        stored = await self.store.commit(key, output)

        logger.info(
            f"[ImageProxy] {self.operation.value} {geometry.encode()} "
            f"{'stored' if stored is not None else 'served'}: {source_url[:60]}..."
        )
        return output, stored
