"""Decode compressed preview bytes into RGBA pixel buffers."""

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from bestshot.errors import DecodeFailure
from bestshot.quality import PixelBuffer


def decode_image(data: bytes) -> PixelBuffer:
    """
    Decode JPEG/PNG/WebP bytes into an RGBA PixelBuffer.
    Honours EXIF orientation so metrics see the image the way it is displayed.
    """
    if not data:
        raise DecodeFailure("Empty image payload")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            rgba = img.convert("RGBA")
            width, height = rgba.size
            raw = rgba.tobytes()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e
    return PixelBuffer(width=width, height=height, data=raw)
