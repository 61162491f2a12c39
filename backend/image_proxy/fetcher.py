"""
Source Image Fetcher

Downloads the original image bytes over HTTP with a bounded timeout and a
size limit. Redirects are followed by hand so every hop passes the same url
policy as the original request. Every failure becomes an UpstreamFetchError.
"""

import logging
from typing import Iterable, Optional, Tuple

import httpx

from .errors import ClientError, UpstreamFetchError
from .url_codec import validate_source_url

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}

MAX_REDIRECTS = 5


class SourceFetcher:
    """
    Fetches source images for transformation.

    Usage:
        fetcher = SourceFetcher(timeout=30.0)
        data = await fetcher.fetch("https://example.com/a.jpg")
        await fetcher.close()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_size_bytes: int = 10 * 1024 * 1024,
        allowed_hosts: Iterable[str] = (),
        max_redirects: int = MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_size_bytes = max_size_bytes
        self.allowed_hosts = tuple(allowed_hosts)
        self.max_redirects = max_redirects
        self.http_client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            headers=BROWSER_HEADERS,
            transport=transport,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    async def fetch(self, url: str) -> bytes:
        logger.info(f"[Fetcher] Fetching: {url[:80]}...")
        current = url

        for _ in range(self.max_redirects + 1):
            data, location = await self._get(current)
            if location is None:
                logger.debug(f"[Fetcher] Fetched {len(data)} bytes from {current[:60]}")
                return data

            try:
                validate_source_url(location, self.allowed_hosts)
            except ClientError as e:
                raise UpstreamFetchError(f"Redirect from {current[:80]} refused: {e.detail}")

            logger.info(f"[Fetcher] Redirected: {current[:60]} -> {location[:60]}")
            current = location

        raise UpstreamFetchError(f"Too many redirects fetching {url[:80]}")

    def _declared_length(self, response: httpx.Response) -> Optional[int]:
        raw = response.headers.get("content-length", "").strip()
        if not raw.isdigit() or len(raw) > 20:
            return None
        return int(raw)

    async def _get(self, url: str) -> Tuple[bytes, Optional[str]]:
        """
        GET one hop.

        Returns (body, None) for a final response or (b"", absolute location)
        for a redirect. The body is read in chunks and abandoned as soon as it
        exceeds the size limit.
        """
        try:
            async with self.http_client.stream("GET", url) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    return b"", str(response.url.join(location))

                response.raise_for_status()

                declared = self._declared_length(response)
                if declared is not None and declared > self.max_size_bytes:
                    raise UpstreamFetchError(
                        f"Source too large (declared {declared} bytes, max {self.max_size_bytes}): {url[:80]}"
                    )

                chunks = []
                total = 0
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    if total > self.max_size_bytes:
                        raise UpstreamFetchError(
                            f"Source too large (over {self.max_size_bytes} bytes): {url[:80]}"
                        )
                    chunks.append(chunk)
        except httpx.TimeoutException:
            raise UpstreamFetchError(f"Timeout fetching {url[:80]}")
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(f"HTTP {e.response.status_code} fetching {url[:80]}")
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Fetch error for {url[:80]}: {e}")

        if not total:
            raise UpstreamFetchError(f"Empty response body from {url[:80]}")
        return b"".join(chunks), None
