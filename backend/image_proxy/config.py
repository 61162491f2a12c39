"""
Image Proxy Configuration

Settings are read from the environment once at startup and handed to every
component explicitly.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple

OUTPUT_FORMAT = "webp"
OUTPUT_CONTENT_TYPE = "image/webp"
CACHE_CONTROL = "public, max-age=86400"  # Browser cache 24h


def _split_hosts(raw: str) -> Tuple[str, ...]:
    return tuple(h.strip().lower() for h in raw.split(",") if h.strip())


@dataclass(frozen=True)
class ImageProxySettings:
    """Runtime configuration for the image proxy service."""
    # Cache settings
    use_cache: bool = True
    cache_dir: str = "./cache"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Fetch settings
    fetch_timeout: float = 30.0      # Outbound fetch timeout in seconds
    max_source_size_mb: int = 10     # Max source image size in MB
    allowed_hosts: Tuple[str, ...] = field(default_factory=tuple)

    # Transform settings
    max_dimension: int = 5000        # Max requested width/height in pixels
    webp_quality: int = 80           # WebP quality (1-100)

    @property
    def max_source_size_bytes(self) -> int:
        return self.max_source_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "ImageProxySettings":
        """Build settings from environment variables."""
        return cls(
            # Default to enabled unless explicitly turned off
            use_cache=os.getenv("USE_CACHE", "true").strip().lower() != "false",
            cache_dir=os.getenv("IMAGE_CACHE_DIR", "./cache"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            fetch_timeout=float(os.getenv("IMAGE_FETCH_TIMEOUT_SECONDS", "30")),
            max_source_size_mb=int(os.getenv("IMAGE_MAX_SIZE_MB", "10")),
            allowed_hosts=_split_hosts(os.getenv("IMAGE_PROXY_ALLOWED_HOSTS", "")),
            max_dimension=int(os.getenv("IMAGE_MAX_DIMENSION", "5000")),
            webp_quality=int(os.getenv("IMAGE_WEBP_QUALITY", "80")),
        )
