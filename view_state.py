"""
Form view-model.

Everything the page shows is derived from one FormState value. User actions
produce a new state through reduce(); the state is never mutated in place.
The state is JSON-serialisable so a rendered page can hand it back on the
next request (the heat-map button posts it in a hidden field).
"""
from pydantic import BaseModel, Field, ValidationError

from diagnosis_models import AnalyzeResponse, ClinicalInfo


class FormState(BaseModel):
    file_name:        str | None             = None
    clinical_info:    ClinicalInfo           = Field(default_factory=ClinicalInfo)
    result:           AnalyzeResponse | None = None
    loading:          bool                   = False
    error:            str | None             = None
    eigencam_url:     str | None             = None
    loading_eigencam: bool                   = False
    eigencam_error:   str | None             = None


INITIAL_STATE = FormState()

_CLEARED_EIGENCAM = {"eigencam_url": None, "eigencam_error": None}


# ── Transitions ───────────────────────────────────────────────────────────────

def _file_selected(state: FormState, file_name: str) -> dict:
    return {"file_name": file_name, "result": None, "error": None, **_CLEARED_EIGENCAM}


def _diagnosis_changed(state: FormState, diagnosis: str) -> dict:
    info = state.clinical_info.model_copy(update={"initial_diagnosis": diagnosis})
    return {"clinical_info": info}


def _symptom_toggled(state: FormState, symptom: str) -> dict:
    current = state.clinical_info.symptoms
    if symptom in current:
        symptoms = [s for s in current if s != symptom]
    else:
        symptoms = [*current, symptom]
    return {"clinical_info": state.clinical_info.model_copy(update={"symptoms": symptoms})}


def _submit_started(state: FormState, _=None) -> dict:
    return {"loading": True, "error": None, "result": None, **_CLEARED_EIGENCAM}


def _submit_succeeded(state: FormState, result: AnalyzeResponse) -> dict:
    return {"loading": False, "result": result}


def _submit_failed(state: FormState, message: str) -> dict:
    return {"loading": False, "error": message}


def _eigencam_started(state: FormState, _=None) -> dict:
    return {"loading_eigencam": True, **_CLEARED_EIGENCAM}


def _eigencam_succeeded(state: FormState, url: str) -> dict:
    return {"loading_eigencam": False, "eigencam_url": url}


def _eigencam_failed(state: FormState, message: str) -> dict:
    return {"loading_eigencam": False, "eigencam_error": message}


_REDUCERS = {
    "file_selected":      _file_selected,
    "diagnosis_changed":  _diagnosis_changed,
    "symptom_toggled":    _symptom_toggled,
    "submit_started":     _submit_started,
    "submit_succeeded":   _submit_succeeded,
    "submit_failed":      _submit_failed,
    "eigencam_started":   _eigencam_started,
    "eigencam_succeeded": _eigencam_succeeded,
    "eigencam_failed":    _eigencam_failed,
}


def reduce(state: FormState, action: str, payload=None) -> FormState:
    """Return the state that follows `state` after `action`."""
    if action == "reset":
        return INITIAL_STATE.model_copy(deep=True)
    try:
        reducer = _REDUCERS[action]
    except KeyError:
        raise ValueError(f"Unknown form action: {action}")
    return state.model_copy(update=reducer(state, payload))


# ── Serialisation ─────────────────────────────────────────────────────────────

def dumps(state: FormState) -> str:
    return state.model_dump_json()


def loads(raw: str | None) -> FormState | None:
    """Parse a serialised state; None if missing or malformed."""
    if not raw:
        return None
    try:
        return FormState.model_validate_json(raw)
    except ValidationError:
        return None
