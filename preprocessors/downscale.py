"""
Preprocessor: Downscale

Bounds the upload size before a file is forwarded to the analysis API.

Files up to SIZE_THRESHOLD bytes are passed through untouched. Larger files
are decoded, fitted so the longer edge is at most MAX_EDGE pixels, and
re-encoded as JPEG. The re-encode happens even when no resizing is needed,
so every large upload ends up in the same compressed format.

Any failure along the way (undecodable file such as DICOM, decode timeout,
encoder error or empty output) falls back to the original file: preprocessing
must never block an upload. The branch taken is reported through the result
type rather than an exception.
"""
import os
from concurrent.futures import ThreadPoolExecutor, TimeoutError as DecodeTimeout
from dataclasses import dataclass
from typing import NamedTuple, Union

from PIL import Image

from image_processor import decode_image, encode_jpeg, to_rgb
from uploads import UploadedFile

SIZE_THRESHOLD = 1024 * 1024  # 1 MiB
MAX_EDGE       = 800
OUTPUT_MIME    = "image/jpeg"
JPEG_QUALITY   = 80           # 0.8
DECODE_TIMEOUT = 10.0         # seconds, overridable with the DECODE_TIMEOUT env var

# Each submitted decode gets its own Image object; nothing is shared between calls
_decoder = ThreadPoolExecutor(max_workers=2, thread_name_prefix="decode")


def _decode_timeout() -> float:
    try:
        return float(os.environ.get("DECODE_TIMEOUT", DECODE_TIMEOUT))
    except ValueError:
        return DECODE_TIMEOUT


def _close_late_result(future) -> None:
    """Close an image whose decode finished after the caller gave up on it."""
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class TargetDimensions(NamedTuple):
    width:  int
    height: int


@dataclass(frozen=True)
class Original:
    """The input file, returned as-is."""
    file:   UploadedFile
    reason: str   # below_threshold | decode_failed | decode_timeout | encode_failed | encode_empty


@dataclass(frozen=True)
class Reencoded:
    """A JPEG replacement for the input file."""
    file:   UploadedFile
    width:  int
    height: int


PreprocessResult = Union[Original, Reencoded]


def compute_target_dimensions(width: int, height: int, max_edge: int = MAX_EDGE) -> TargetDimensions:
    """
    Fit (width, height) so the longer edge equals max_edge, keeping aspect ratio.
    Images already within the limit keep their size (no upscaling).
    """
    if width > height:
        if width > max_edge:
            return TargetDimensions(max_edge, max(1, int(height * max_edge / width)))
    elif height > max_edge:
        return TargetDimensions(max(1, int(width * max_edge / height)), max_edge)
    return TargetDimensions(width, height)


def process(upload: UploadedFile, timeout: float | None = None) -> PreprocessResult:
    if upload.size <= SIZE_THRESHOLD:
        return Original(upload, "below_threshold")

    future = _decoder.submit(decode_image, upload.data)
    try:
        image = future.result(timeout=_decode_timeout() if timeout is None else timeout)
    except DecodeTimeout:
        if not future.cancel():
            future.add_done_callback(_close_late_result)
        return Original(upload, "decode_timeout")
    except Exception:
        return Original(upload, "decode_failed")

    target = compute_target_dimensions(*image.size)
    try:
        # Always redraw, even at unchanged size
        surface = to_rgb(image).resize(target, Image.LANCZOS)
        data    = encode_jpeg(surface, JPEG_QUALITY)
    except Exception:
        return Original(upload, "encode_failed")
    finally:
        image.close()

    if not data:
        return Original(upload, "encode_empty")

    return Reencoded(
        file=UploadedFile(name=upload.name, content_type=OUTPUT_MIME, data=data),
        width=target.width,
        height=target.height,
    )


def preprocess(upload: UploadedFile) -> UploadedFile:
    """Return the file that should be uploaded in place of `upload`."""
    return process(upload).file
