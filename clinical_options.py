# ─────────────────────────────────────────────────────────────────────────────
#  Clinical form options
#
#  Choices offered on the upload form and the text used to display them.
#  The keys are sent to the analysis API as-is, so they must match the
#  values the service expects.
#
#    VALID_LABELS     — allowed values of the "initial diagnosis" select
#    SYMPTOM_OPTIONS  — checkbox key → display name, in display order
#    PREDICTION_TEXT  — predicted class → sentence shown on the result card
# ─────────────────────────────────────────────────────────────────────────────

VALID_LABELS: list[str] = ["Normal", "Pneumonia"]

SYMPTOM_OPTIONS: dict[str, str] = {
    "fever":    "Fever",
    "dyspnea":  "Shortness of breath",
    "cough":    "Cough",
    "wheezing": "Wheezing",
}

PREDICTION_TEXT: dict[str, str] = {
    "Pneumonia": "The patient shows signs of pneumonia.",
}
DEFAULT_PREDICTION_TEXT = "The lungs appear normal."

# Classes highlighted as findings on the result card
POSITIVE_CLASSES = {"Pneumonia"}


def symptom_name(key: str) -> str:
    return SYMPTOM_OPTIONS.get(key, key)


def clean_diagnosis(value: str | None) -> str:
    value = (value or "").strip()
    return value if value in VALID_LABELS else ""


def clean_symptoms(values: list[str]) -> list[str]:
    """Keep known symptoms only, in form order, without duplicates."""
    chosen = set(values)
    return [key for key in SYMPTOM_OPTIONS if key in chosen]
