import io
import os

import pytest
from PIL import Image

import app as app_module
from uploads import UploadedFile


def image_bytes(width: int, height: int, fmt: str = "PNG", noise: bool = True, mode: str = "RGB") -> bytes:
    """Encode a test image. Noise defeats compression so the byte size stays large."""
    if noise:
        channels = len(mode)
        image = Image.frombytes(mode, (width, height), os.urandom(width * height * channels))
    else:
        image = Image.new(mode, (width, height), "gray")
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def make_upload(width: int, height: int, fmt: str = "PNG", noise: bool = True, name: str | None = None) -> UploadedFile:
    mime = {"PNG": "image/png", "JPEG": "image/jpeg"}[fmt]
    return UploadedFile(
        name=name or f"xray.{fmt.lower()}",
        content_type=mime,
        data=image_bytes(width, height, fmt, noise),
    )


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "ERROR_LOG", str(tmp_path / "last_error.log"))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


@pytest.fixture
def analyze_payload() -> dict:
    return {
        "success": True,
        "stage":   "done",
        "message": "ok",
        "data": {
            "clinical_info": {"initial_diagnosis": "Pneumonia", "symptoms": ["fever", "cough"]},
            "binaryProbabilities": {"Normal": 0.1234, "Pneumonia": 0.8766},
            "predictedClass": "Pneumonia",
            "classLabels": ["Normal", "Pneumonia"],
            "multiLabelTop": {"1": {"label": "Infiltration", "score": 0.42}},
            "allMultiLabelScores": [
                {"label": "Infiltration", "score": 0.42},
                {"label": "Effusion", "score": 0.05},
            ],
            "warnings": ["low contrast"],
            "cloudinaryId": "xray/abc123",
            "modelName": "densenet121",
        },
    }
