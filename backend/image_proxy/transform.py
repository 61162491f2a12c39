"""
Image Transform Dispatcher

Handles:
- Parsing and validating the ``size`` query parameter per operation
- Cover-crop ("fit") and proportional ("resize") transforms with Pillow
- Re-encoding every result to WebP
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Optional, Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ClientError, TransformError

logger = logging.getLogger(__name__)

_DIMENSION_RE = re.compile(r"^[0-9]+$")
_MAX_DIMENSION_CHARS = 10

FIT_FORMAT_MESSAGE = "Size query param must be like wxh, e.g. 300x200"
FIT_INVALID_MESSAGE = "Invalid size parameters"
RESIZE_REQUIRED_MESSAGE = "Size query param required"
RESIZE_INVALID_MESSAGE = "Invalid size parameter"


class Operation(str, Enum):
    FIT = "fit"
    RESIZE = "resize"


@dataclass(frozen=True)
class GeometrySpec:
    """Requested output geometry. ``height`` is only set for fit."""
    width: int
    height: Optional[int] = None

    def encode(self) -> str:
        """Canonical form used inside cache keys: ``300x200`` or ``640``."""
        if self.height is None:
            return str(self.width)
        return f"{self.width}x{self.height}"


def _parse_dimension(raw: str, max_dimension: int) -> Optional[int]:
    raw = raw.strip()
    # Length bound comes before int(), which refuses very long digit strings
    if len(raw) > _MAX_DIMENSION_CHARS or not _DIMENSION_RE.match(raw):
        return None
    value = int(raw)
    if value <= 0 or value > max_dimension:
        return None
    return value


def parse_geometry(operation: Operation, size: Optional[str], max_dimension: int = 5000) -> GeometrySpec:
    """
    Validate the ``size`` query parameter for ``operation``.

    fit takes ``WxH``, resize takes ``W``. Both dimensions must be positive
    integers no larger than ``max_dimension``.

    Raises:
        ClientError: on a missing, malformed or out-of-range value.
    """
    if operation is Operation.FIT:
        if not size or "x" not in size:
            raise ClientError(FIT_FORMAT_MESSAGE, f"Bad fit size: {size!r}")
        parts = size.split("x")
        if len(parts) != 2:
            raise ClientError(FIT_INVALID_MESSAGE, f"Bad fit size: {size!r}")
        width = _parse_dimension(parts[0], max_dimension)
        height = _parse_dimension(parts[1], max_dimension)
        if width is None or height is None:
            raise ClientError(FIT_INVALID_MESSAGE, f"Bad fit size: {size!r}")
        return GeometrySpec(width=width, height=height)

    if not size:
        raise ClientError(RESIZE_REQUIRED_MESSAGE, "Missing resize size")
    width = _parse_dimension(size, max_dimension)
    if width is None:
        raise ClientError(RESIZE_INVALID_MESSAGE, f"Bad resize size: {size!r}")
    return GeometrySpec(width=width)


class ImageEngine(Protocol):
    """Decode/transform/encode capability."""

    def encode_fit(self, data: bytes, width: int, height: int) -> bytes: ...

    def encode_resize(self, data: bytes, width: int) -> bytes: ...


class PillowEngine:
    """Pillow-backed engine producing WebP output."""

    def __init__(self, quality: int = 80):
        self.quality = quality

    def _open(self, data: bytes) -> Image.Image:
        img = Image.open(BytesIO(data))
        img.load()

        # WebP only takes RGB/RGBA
        if img.mode == "P" and "transparency" in img.info:
            img = img.convert("RGBA")
        elif img.mode == "LA":
            img = img.convert("RGBA")
        elif img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")
        return img

    def _encode(self, img: Image.Image) -> bytes:
        output = BytesIO()
        img.save(output, format="WEBP", quality=self.quality, method=4)
        return output.getvalue()

    def encode_fit(self, data: bytes, width: int, height: int) -> bytes:
        img = self._open(data)
        # Cover semantics: scale to fill, crop the overflow around the center
        fitted = ImageOps.fit(img, (width, height), Image.Resampling.LANCZOS)
        return self._encode(fitted)

    def encode_resize(self, data: bytes, width: int) -> bytes:
        img = self._open(data)
        original_width, original_height = img.size
        height = max(1, round(original_height * width / original_width))
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
        return self._encode(resized)


class TransformDispatcher:
    """
    Routes a validated geometry to the matching engine operation.

    Engine work is CPU-bound and runs in a worker thread.

    Usage:
        dispatcher = TransformDispatcher(PillowEngine(quality=80))
        webp = await dispatcher.transform(source, Operation.FIT, GeometrySpec(300, 200))
    """

    def __init__(self, engine: Optional[ImageEngine] = None):
        self.engine = engine or PillowEngine()

    def _run(self, data: bytes, operation: Operation, geometry: GeometrySpec) -> bytes:
        if operation is Operation.FIT:
            return self.engine.encode_fit(data, geometry.width, geometry.height)
        return self.engine.encode_resize(data, geometry.width)

    async def transform(self, data: bytes, operation: Operation, geometry: GeometrySpec) -> bytes:
        try:
            output = await asyncio.to_thread(self._run, data, operation, geometry)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise TransformError(f"Cannot decode source image: {e}")
        except (OSError, ValueError, SyntaxError) as e:
            # Pillow reports truncated/corrupt data as OSError or SyntaxError
            raise TransformError(f"{operation.value} {geometry.encode()} failed: {e}")

        logger.info(
            f"[Transform] {operation.value} {geometry.encode()}: "
            f"{len(data) // 1024}KB -> {len(output) // 1024}KB"
        )
        return output
