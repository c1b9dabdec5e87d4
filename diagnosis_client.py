"""
Diagnosis client dispatcher.
Selects the active backend based on the DIAGNOSIS_API environment variable
and delegates all calls to it.

Supported backends (diagnosis_backends/<name>.py, each must expose
analyze() and eigencam()):
  xray_api            — /api/analyze + /eigencam (default)
  xray_api_optimized  — /api/analyze-optimized + /v2/eigencam

To add a new backend:
  1. Create diagnosis_backends/my_backend.py with analyze() and eigencam()
     functions matching the signatures below.
  2. Set DIAGNOSIS_API=my_backend in .env.
"""
import os
import importlib

from dotenv import load_dotenv

from diagnosis_models import AnalyzeData, AnalyzeResponse, ClinicalInfo
from uploads import UploadedFile

load_dotenv()


class DiagnosisAPIError(RuntimeError):
    """A remote call failed; the message is safe to show to the user."""


class MissingHeatmapPrerequisites(RuntimeError):
    """No stored image id / model name from a successful analysis."""


def _backend():
    load_dotenv(override=True)  # re-read .env so changes apply without server restart
    name = os.environ.get("DIAGNOSIS_API", "xray_api")
    try:
        return importlib.import_module(f"diagnosis_backends.{name}")
    except ModuleNotFoundError:
        raise DiagnosisAPIError(
            f"Diagnosis backend '{name}' not found. "
            f"Create diagnosis_backends/{name}.py or change DIAGNOSIS_API in .env."
        )


def analyze(upload: UploadedFile, clinical_info: ClinicalInfo) -> AnalyzeResponse:
    """Send an X-ray image + clinical info to the classification service.

    Raises:
        DiagnosisAPIError: on HTTP failure or an unsuccessful analysis.
    """
    return _backend().analyze(upload, clinical_info)


def generate_eigencam(data: AnalyzeData | None) -> str:
    """Request the heat-map explanation for an analysis result and return its URL.

    The identifiers are checked locally first, so no request is made for a
    result that cannot be explained.

    Raises:
        MissingHeatmapPrerequisites: if `data` lacks cloudinaryId or modelName.
        DiagnosisAPIError:           on HTTP failure or an unsuccessful generation.
    """
    if data is None or not data.can_explain:
        raise MissingHeatmapPrerequisites(
            "No Cloudinary ID or model name from the analysis result to generate Eigencam."
        )
    return _backend().eigencam(data.cloudinaryId, data.modelName)
