"""
Diagnosis backend: X-ray diagnosis API (standard endpoints)

  POST {XRAY_API_URL}/api/analyze        multipart: image, clinical_info (JSON)
  POST {EIGENCAM_API_URL}/eigencam       JSON: cloudinary_id, model_name

No retries: a failed call is reported to the user, who can submit again.
"""
import os
import json

import requests
from pydantic import ValidationError

from diagnosis_client import DiagnosisAPIError
from diagnosis_models import AnalyzeResponse, ClinicalInfo, EigencamResponse
from uploads import UploadedFile

DEFAULT_XRAY_API_URL     = "https://xray-diagnosis-ai.onrender.com"
DEFAULT_EIGENCAM_API_URL = "https://xray-diagnosis-cam.onrender.com"

ANALYZE_PATH  = "/api/analyze"
EIGENCAM_PATH = "/eigencam"


def _url(env_key: str, default: str, path: str) -> str:
    return os.environ.get(env_key, default).rstrip("/") + path


def _timeout() -> float:
    return float(os.environ.get("REQUEST_TIMEOUT", "120"))


def _post(url: str, **kwargs) -> requests.Response:
    try:
        return requests.post(url, timeout=_timeout(), **kwargs)
    except requests.exceptions.Timeout:
        raise DiagnosisAPIError("The analysis service did not respond in time. Please try again.")
    except requests.exceptions.RequestException as e:
        raise DiagnosisAPIError(f"Could not reach the analysis service: {e}") from e


def _json(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        raise DiagnosisAPIError("The analysis service returned an unreadable response.")
    if not isinstance(body, dict):
        raise DiagnosisAPIError("The analysis service returned an unreadable response.")
    return body


def post_analyze(path: str, upload: UploadedFile, clinical_info: ClinicalInfo) -> AnalyzeResponse:
    """Send the image and clinical info to the classification endpoint at `path`."""
    url   = _url("XRAY_API_URL", DEFAULT_XRAY_API_URL, path)
    files = {"image": (upload.name, upload.data, upload.content_type)}
    data  = {"clinical_info": json.dumps(clinical_info.model_dump())}

    response = _post(url, files=files, data=data)
    if not response.ok:
        raise DiagnosisAPIError("API request failed")

    try:
        result = AnalyzeResponse.model_validate(_json(response))
    except ValidationError as e:
        raise DiagnosisAPIError(f"Unexpected response from the analysis service: {e.error_count()} invalid field(s).") from e

    if not result.success:
        raise DiagnosisAPIError(result.message or "Analysis was not successful")
    if result.data is None:
        raise DiagnosisAPIError("The analysis service returned no result data.")
    return result


def post_eigencam(path: str, cloudinary_id: str, model_name: str) -> str:
    """Request a heat-map for a previously analysed image; returns the image URL."""
    url = _url("EIGENCAM_API_URL", DEFAULT_EIGENCAM_API_URL, path)

    response = _post(url, json={"cloudinary_id": cloudinary_id, "model_name": model_name})
    if not response.ok:
        try:
            detail = _json(response).get("detail")
        except DiagnosisAPIError:
            detail = None
        raise DiagnosisAPIError(detail if isinstance(detail, str) and detail else "Eigencam API request failed")

    try:
        result = EigencamResponse.model_validate(_json(response))
    except ValidationError as e:
        raise DiagnosisAPIError("Unexpected response from the Eigencam service.") from e

    if result.success and result.eigencam_url:
        return result.eigencam_url
    raise DiagnosisAPIError(result.error or "Eigencam generation was not successful")


def analyze(upload: UploadedFile, clinical_info: ClinicalInfo) -> AnalyzeResponse:
    return post_analyze(ANALYZE_PATH, upload, clinical_info)


def eigencam(cloudinary_id: str, model_name: str) -> str:
    return post_eigencam(EIGENCAM_PATH, cloudinary_id, model_name)
