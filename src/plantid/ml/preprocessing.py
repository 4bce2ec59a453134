"""Image preprocessing: decoding, resizing and conversion to model input bytes.

The byte layout produced here is a fixed wire format shared with the model's
training-time preprocessing:

    RGBA8888 raster -> RGB premultiplied by alpha -> alpha dropped
    uint8:   interleaved R,G,B bytes, row-major
    float32: (v - 127.5) / 127.5 per channel, native-endian float32
"""

from __future__ import annotations

import io
import logging

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageOps, UnidentifiedImageError

from plantid.ml.errors import InvalidInputImageError, UnsupportedElementTypeError
from plantid.ml.tensors import ElementType

logger = logging.getLogger(__name__)

FLOAT_INPUT_MEAN: float = 127.5
FLOAT_INPUT_STD: float = 127.5

RESAMPLE_FILTER = Image.Resampling.BILINEAR

_WIDE_MODES = ("I;16", "I;16L", "I;16B", "I;16N", "I", "F")
_WIDE_MAX = 65535


def decode_image(image_bytes: bytes, max_pixels: int | None = None) -> Image.Image:
    """Decode raw image bytes into an upright Pillow image.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Reject images with more pixels than this.

    Returns:
        Decoded image with EXIF orientation applied.

    Raises:
        InvalidInputImageError: If the image cannot be decoded or exceeds size limits.
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        width, height = image.size
        if max_pixels is not None and width * height > max_pixels:
            raise InvalidInputImageError(f"Image too large: {width}x{height} exceeds {max_pixels} pixels")
        image.load()
        decoded = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise InvalidInputImageError(f"Unable to decode image: {exc}") from exc

    logger.debug("Decoded %s image %dx%d (%s)", image.format, decoded.width, decoded.height, decoded.mode)
    return decoded


def _to_rgba(image: Image.Image) -> Image.Image:
    """Convert to 8-bit RGBA, scaling 16-bit and wide samples down instead of clipping them."""
    if image.mode in _WIDE_MODES:
        samples = np.clip(np.asarray(image), 0, _WIDE_MAX).astype(np.uint32)
        image = Image.fromarray((samples >> 8).astype(np.uint8))
    return image.convert("RGBA")


def resize(image: Image.Image, width: int, height: int) -> Image.Image:
    """Stretch an image to exactly ``width`` x ``height``.

    Aspect ratio is not preserved; the source fills the whole target.
    """
    if width <= 0 or height <= 0:
        raise InvalidInputImageError(f"Invalid target size {width}x{height}")
    if image.width <= 0 or image.height <= 0:
        raise InvalidInputImageError(f"Invalid source size {image.width}x{image.height}")

    try:
        return _to_rgba(image).resize((width, height), resample=RESAMPLE_FILTER)
    except (OSError, ValueError) as exc:
        raise InvalidInputImageError(f"Unable to resize image: {exc}") from exc


def rasterize(image: Image.Image) -> NDArray[np.uint8]:
    """Render an image to an HxWx3 RGB array premultiplied by its alpha channel."""
    if image.width <= 0 or image.height <= 0:
        raise InvalidInputImageError("Image has no pixels")

    try:
        rgba = np.asarray(_to_rgba(image), dtype=np.uint8)
    except (OSError, ValueError) as exc:
        raise InvalidInputImageError(f"Unable to rasterize image: {exc}") from exc

    rgb = rgba[..., :3].astype(np.uint16)
    alpha = rgba[..., 3:4].astype(np.uint16)
    # Rounded integer premultiply, exact for opaque pixels.
    premultiplied = (rgb * alpha + 127) // 255
    return premultiplied.astype(np.uint8)


def to_tensor_bytes(image: Image.Image, element_type: ElementType) -> bytes:
    """Convert an image to the input byte layout for ``element_type``.

    Raises:
        UnsupportedElementTypeError: For element types other than uint8 and float32.
        InvalidInputImageError: If the image cannot be rasterized.
    """
    if element_type not in (ElementType.UINT8, ElementType.FLOAT32):
        raise UnsupportedElementTypeError(f"Unsupported input element type: {element_type}")

    rgb = rasterize(image)

    if element_type == ElementType.UINT8:
        return rgb.tobytes()

    normalized = (rgb.astype(np.float32) - FLOAT_INPUT_MEAN) / FLOAT_INPUT_STD
    return normalized.astype(np.float32).tobytes()
