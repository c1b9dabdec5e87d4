import traceback
from datetime import datetime

from flask import Flask, request, render_template, Response
from dotenv import load_dotenv

import diagnosis_client
import view_state
from clinical_options import (
    DEFAULT_PREDICTION_TEXT, POSITIVE_CLASSES, PREDICTION_TEXT, SYMPTOM_OPTIONS, VALID_LABELS,
    clean_diagnosis, clean_symptoms, symptom_name,
)
from diagnosis_client import DiagnosisAPIError, MissingHeatmapPrerequisites
from preprocessors import downscale
from site_config import SITE_CONFIG
from uploads import UploadedFile

load_dotenv()

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 32 * 1024 * 1024  # 32 MB

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "dcm", "dicom"}
ERROR_LOG          = "last_error.log"


# ── Inject site config and form options into every template ──────────────────
@app.context_processor
def inject_globals():
    return {
        "site":            SITE_CONFIG,
        "valid_labels":    VALID_LABELS,
        "symptom_options": SYMPTOM_OPTIONS,
        "symptom_name":    symptom_name,
        "prediction_text": lambda cls: PREDICTION_TEXT.get(cls, DEFAULT_PREDICTION_TEXT),
        "is_positive":     lambda cls: cls in POSITIVE_CLASSES,
    }


@app.template_filter("percent")
def percent(value) -> str:
    return f"{float(value) * 100:.2f}%"


# ── Helpers ───────────────────────────────────────────────────────────────────

def _log_error(context: str, exc: Exception) -> None:
    """Write the last error with timestamp to last_error.log (no user data)."""
    with open(ERROR_LOG, "w", encoding="utf-8") as f:
        f.write(f"[{datetime.now().isoformat(timespec='seconds')}] {context}\n\n")
        if exc.__traceback__:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=f)
        else:
            f.write(f"{type(exc).__name__}: {exc}\n")


def _allowed(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _state_from_form() -> view_state.FormState:
    """Apply the submitted form fields to a fresh state, one action per field."""
    state = view_state.INITIAL_STATE
    diagnosis = clean_diagnosis(request.form.get("initial_diagnosis"))
    if diagnosis:
        state = view_state.reduce(state, "diagnosis_changed", diagnosis)
    for symptom in clean_symptoms(request.form.getlist("symptoms")):
        state = view_state.reduce(state, "symptom_toggled", symptom)
    return state


def _render(state: view_state.FormState, status: int = 200):
    return render_template("index.html", state=state, state_json=view_state.dumps(state)), status


# ── Routes ────────────────────────────────────────────────────────────────────

@app.route("/robots.txt")
def robots_txt():
    return Response("User-agent: *\nDisallow: /\n", mimetype="text/plain")


@app.route("/")
def index():
    return _render(view_state.INITIAL_STATE)


@app.route("/analyze", methods=["POST"])
def analyze():
    state = _state_from_form()

    file = request.files.get("image")
    if not file or not file.filename:
        return _render(view_state.reduce(state, "submit_failed", "Please choose an X-ray image file!"), 400)
    state = view_state.reduce(state, "file_selected", file.filename)
    if not _allowed(file.filename):
        return _render(
            view_state.reduce(
                state, "submit_failed",
                "Unsupported file type. Please upload a JPG, PNG or DICOM file.",
            ),
            400,
        )

    upload = downscale.preprocess(UploadedFile.from_storage(file))

    state = view_state.reduce(state, "submit_started")
    try:
        result = diagnosis_client.analyze(upload, state.clinical_info)
    except DiagnosisAPIError as e:
        _log_error("analyze", e)
        return _render(view_state.reduce(state, "submit_failed", str(e)), 502)

    return _render(view_state.reduce(state, "submit_succeeded", result))


@app.route("/eigencam", methods=["POST"])
def eigencam():
    state = view_state.loads(request.form.get("state"))
    if state is None:
        state = view_state.reduce(
            view_state.INITIAL_STATE, "submit_failed",
            "The analysis result has expired. Please submit the image again.",
        )
        return _render(state, 400)

    state = view_state.reduce(state, "eigencam_started")
    data  = state.result.data if state.result else None
    try:
        url = diagnosis_client.generate_eigencam(data)
    except MissingHeatmapPrerequisites as e:
        return _render(view_state.reduce(state, "eigencam_failed", str(e)), 400)
    except DiagnosisAPIError as e:
        _log_error("eigencam", e)
        return _render(view_state.reduce(state, "eigencam_failed", str(e)), 502)

    return _render(view_state.reduce(state, "eigencam_succeeded", url))


if __name__ == "__main__":
    print("Starting on http://localhost:5000")
    app.run(debug=True, port=5000)
