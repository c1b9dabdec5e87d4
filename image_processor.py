"""Decode / encode helpers shared by the preprocessors."""
import io

from PIL import Image, ImageOps

# 16-bit grayscale modes produced by most X-ray PNG exports
_WIDE_GRAY_MODES = {"I;16", "I;16L", "I;16B", "I;16N", "I"}


def decode_image(data: bytes) -> Image.Image:
    """Open an image from raw bytes, honouring the EXIF orientation tag.

    Pixel data is loaded eagerly so truncated or corrupt files fail here
    rather than later during resize. The returned image is detached from
    the source file, which is closed before returning.
    """
    with Image.open(io.BytesIO(data)) as source:
        source.load()
        image = ImageOps.exif_transpose(source)
        if image is source:
            image = source.copy()
    return image


def to_rgb(image: Image.Image) -> Image.Image:
    if image.mode in _WIDE_GRAY_MODES:
        image = image.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    return image.convert("RGB")


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()
