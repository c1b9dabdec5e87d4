import io
import os
import threading

import pytest
from PIL import Image

from conftest import image_bytes, make_upload
from image_processor import decode_image
from preprocessors import downscale
from preprocessors.downscale import Original, Reencoded, compute_target_dimensions
from uploads import UploadedFile


def _size_of(upload: UploadedFile) -> tuple[int, int]:
    with Image.open(io.BytesIO(upload.data)) as im:
        return im.size


# ── Target dimensions ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("w, h, expected", [
    (2400, 1600, (800, 533)),
    (1600, 2400, (533, 800)),
    (1000, 1000, (800, 800)),
    (801, 10, (800, 9)),
    (4000, 1, (800, 1)),
    (800, 600, (800, 600)),
    (400, 300, (400, 300)),
    (600, 800, (600, 800)),
])
def test_compute_target_dimensions(w, h, expected):
    assert compute_target_dimensions(w, h) == expected


@pytest.mark.parametrize("w, h", [(3000, 2000), (1234, 4321), (999, 998), (5000, 3333)])
def test_longer_edge_is_capped_and_aspect_kept(w, h):
    tw, th = compute_target_dimensions(w, h)
    assert max(tw, th) == 800
    if w > h:
        assert abs(th - h * 800 / w) < 1
    else:
        assert abs(tw - w * 800 / h) < 1


# ── Size gate ─────────────────────────────────────────────────────────────────

def test_small_file_is_returned_untouched(monkeypatch):
    upload = make_upload(400, 300, "PNG")
    assert upload.size <= downscale.SIZE_THRESHOLD

    def fail(_):
        raise AssertionError("decode must not run below the threshold")
    monkeypatch.setattr(downscale, "decode_image", fail)

    result = downscale.process(upload)
    assert isinstance(result, Original)
    assert result.reason == "below_threshold"
    assert result.file is upload


def test_exactly_one_mib_is_below_threshold():
    upload = UploadedFile("blob.bin", "application/octet-stream", b"\0" * (1024 * 1024))
    assert downscale.preprocess(upload) is upload


def test_preprocess_twice_on_small_file_returns_same_object():
    upload = make_upload(400, 300, "PNG")
    once = downscale.preprocess(upload)
    assert downscale.preprocess(once) is once is upload


# ── Re-encoding ───────────────────────────────────────────────────────────────

def test_large_landscape_image_is_downscaled_to_jpeg():
    upload = make_upload(2400, 1600, "JPEG", name="chest.jpg")
    assert upload.size > downscale.SIZE_THRESHOLD

    result = downscale.process(upload)
    assert isinstance(result, Reencoded)
    assert (result.width, result.height) == (800, 533)
    assert result.file.name == "chest.jpg"
    assert result.file.content_type == "image/jpeg"
    assert result.file.last_modified >= upload.last_modified
    assert _size_of(result.file) == (800, 533)
    assert result.file.data[:3] == b"\xff\xd8\xff"


def test_large_portrait_png_becomes_jpeg_with_capped_height():
    upload = make_upload(1000, 1500, "PNG", name="scan.png")
    result = downscale.process(upload)
    assert isinstance(result, Reencoded)
    assert _size_of(result.file) == (533, 800)
    assert result.file.name == "scan.png"
    assert result.file.content_type == "image/jpeg"


def test_large_file_within_edge_limit_is_still_reencoded():
    upload = make_upload(800, 600, "PNG")
    assert upload.size > downscale.SIZE_THRESHOLD

    result = downscale.process(upload)
    assert isinstance(result, Reencoded)
    assert _size_of(result.file) == (800, 600)
    assert result.file.content_type == "image/jpeg"


def test_sixteen_bit_grayscale_is_reencoded():
    image = Image.new("I;16", (1200, 1000))
    image.putdata([(x * 50) % 65536 for x in range(1200 * 1000)])
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    upload = UploadedFile("xray16.png", "image/png", buf.getvalue() + b"\0" * (1024 * 1024))

    result = downscale.process(upload)
    assert isinstance(result, Reencoded)
    assert _size_of(result.file) == (800, 666)


# ── Fallbacks ─────────────────────────────────────────────────────────────────

def test_undecodable_large_file_falls_back_to_original():
    upload = UploadedFile("study.dcm", "application/dicom", b"DICM" + b"\x01" * (2 * 1024 * 1024))
    result = downscale.process(upload)
    assert isinstance(result, Original)
    assert result.reason == "decode_failed"
    assert result.file is upload


def test_empty_encoder_output_falls_back_to_original(monkeypatch):
    monkeypatch.setattr(downscale, "encode_jpeg", lambda image, quality: b"")
    upload = make_upload(1200, 900, "PNG")

    result = downscale.process(upload)
    assert isinstance(result, Original)
    assert result.reason == "encode_empty"
    assert result.file is upload


def test_encoder_error_falls_back_to_original(monkeypatch):
    def broken(image, quality):
        raise OSError("encoder unavailable")
    monkeypatch.setattr(downscale, "encode_jpeg", broken)
    upload = make_upload(1200, 900, "PNG")

    assert downscale.preprocess(upload) is upload
    assert downscale.process(upload).reason == "encode_failed"


def test_stalled_decode_times_out_to_original(monkeypatch):
    release = threading.Event()

    def stalled(data):
        release.wait(5)
        raise OSError("gave up")
    monkeypatch.setattr(downscale, "decode_image", stalled)
    upload = make_upload(1200, 900, "PNG")

    try:
        result = downscale.process(upload, timeout=0.05)
    finally:
        release.set()
    assert isinstance(result, Original)
    assert result.reason == "decode_timeout"
    assert result.file is upload


def test_truncated_image_falls_back_to_original():
    data = image_bytes(1200, 900, "PNG")
    upload = UploadedFile("cut.png", "image/png", data[: len(data) // 2] + b"\0" * (1024 * 1024))
    assert downscale.process(upload).file is upload


# ── Orientation and decode settings ──────────────────────────────────────────

def _rotated_jpeg(width: int, height: int, orientation: int) -> bytes:
    image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    exif = Image.Exif()
    exif[0x0112] = orientation
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=95, exif=exif)
    return buf.getvalue()


def test_exif_orientation_is_applied_before_measuring():
    upload = UploadedFile("phone.jpg", "image/jpeg", _rotated_jpeg(2400, 1600, orientation=6))
    assert upload.size > downscale.SIZE_THRESHOLD

    result = downscale.process(upload)
    assert isinstance(result, Reencoded)
    assert (result.width, result.height) == (533, 800)
    assert _size_of(result.file) == (533, 800)


def test_decode_image_returns_displayed_dimensions():
    image = decode_image(_rotated_jpeg(300, 200, orientation=8))
    assert image.size == (200, 300)


def test_decode_timeout_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("DECODE_TIMEOUT", "2.5")
    assert downscale._decode_timeout() == 2.5

    monkeypatch.setenv("DECODE_TIMEOUT", "ten seconds")
    assert downscale._decode_timeout() == downscale.DECODE_TIMEOUT

    monkeypatch.delenv("DECODE_TIMEOUT")
    assert downscale._decode_timeout() == downscale.DECODE_TIMEOUT


def test_image_decoded_after_timeout_is_closed(monkeypatch):
    release = threading.Event()
    finished = threading.Event()

    class LateImage:
        closed = False

        def close(self):
            self.closed = True
            finished.set()

    late = LateImage()

    def slow(data):
        release.wait(5)
        return late
    monkeypatch.setattr(downscale, "decode_image", slow)

    result = downscale.process(make_upload(1200, 900, "PNG"), timeout=0.5)
    release.set()

    assert result.reason == "decode_timeout"
    assert finished.wait(5)
    assert late.closed
