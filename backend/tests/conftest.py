"""
Image proxy test configuration.

Fixtures build an application against a temporary cache directory, with an
httpx.MockTransport standing in for the remote image host, so no test touches
the network.
"""

import asyncio
import sys
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_proxy.config import ImageProxySettings
from image_proxy.url_codec import encode
from main import create_app


SOURCE_URL = "https://example.com/a.jpg"


def make_image_bytes(width: int = 640, height: int = 480, fmt: str = "JPEG", color=(200, 40, 40)) -> bytes:
    """Render a solid-color image with a contrasting left half."""
    img = Image.new("RGB", (width, height), color)
    img.paste((20, 20, 220), (0, 0, width // 2, height))
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


class FakeImageHost:
    """
    Upstream stand-in: serves registered bytes per URL and counts requests.

    Unregistered URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.delay = 0.0

    def serve(self, url: str, content, status_code: int = 200, headers=None) -> None:
        """Register a response. ``content`` may be bytes or an async byte iterator."""
        self.routes[url] = (status_code, content, headers or {})

    def redirect(self, url: str, location: str, status_code: int = 302) -> None:
        self.serve(url, b"", status_code=status_code, headers={"Location": location})

    def count(self, url: str) -> int:
        return sum(1 for u in self.calls if u == url)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        status_code, content, headers = self.routes.get(url, (404, b"not found", {}))
        return httpx.Response(
            status_code,
            content=content,
            headers={"Content-Type": "image/jpeg", **headers},
        )


@pytest.fixture
def source_bytes():
    return make_image_bytes()


@pytest.fixture
def image_host(source_bytes):
    host = FakeImageHost()
    host.serve(SOURCE_URL, source_bytes)
    return host


@pytest.fixture
def token():
    return encode(SOURCE_URL)


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def settings(cache_dir):
    return ImageProxySettings(use_cache=True, cache_dir=str(cache_dir))


@pytest.fixture
def app(settings, image_host):
    return create_app(settings, transport=httpx.MockTransport(image_host))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def uncached_app(cache_dir, image_host):
    settings = ImageProxySettings(use_cache=False, cache_dir=str(cache_dir))
    return create_app(settings, transport=httpx.MockTransport(image_host))


@pytest.fixture
def uncached_client(uncached_app):
    return TestClient(uncached_app)
