"""
Diagnosis backend: X-ray diagnosis API (optimized endpoints)

Same services as xray_api, but uses the optimized classification pipeline,
whose response additionally carries an `enhanced_analysis` object, and the
v2 heat-map endpoint.
"""
from diagnosis_backends.xray_api import post_analyze, post_eigencam

ANALYZE_PATH  = "/api/analyze-optimized"
EIGENCAM_PATH = "/v2/eigencam"


def analyze(upload, clinical_info):
    return post_analyze(ANALYZE_PATH, upload, clinical_info)


def eigencam(cloudinary_id: str, model_name: str) -> str:
    return post_eigencam(EIGENCAM_PATH, cloudinary_id, model_name)
