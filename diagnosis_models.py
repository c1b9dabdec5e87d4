"""
Response schemas of the remote X-ray services.

Field names follow the wire format (camelCase from the classification API).
Unknown fields are kept so newer API versions do not break parsing.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MultiLabel(BaseModel):
    label: str
    score: float


class ClinicalInfo(BaseModel):
    initial_diagnosis: str       = ""
    symptoms:          list[str] = Field(default_factory=list)


class AnalyzeData(BaseModel):
    model_config = ConfigDict(extra="allow")

    clinical_info:       ClinicalInfo | None       = None
    binaryProbabilities: dict[str, float]
    predictedClass:      str
    classLabels:         list[str]                 = Field(default_factory=list)
    multiLabelTop:       dict[str, MultiLabel]     = Field(default_factory=dict)
    allMultiLabelScores: list[MultiLabel]          = Field(default_factory=list)
    confidence:          float | None              = None
    warnings:            list[str]                 = Field(default_factory=list)
    cloudinaryId:        str | None                = None
    modelName:           str | None                = None
    enhanced_analysis:   dict[str, Any] | None     = None   # optimized endpoint only

    @property
    def can_explain(self) -> bool:
        """Both identifiers needed by the heat-map service are present."""
        return bool(self.cloudinaryId and self.modelName)


class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool
    stage:   str | None         = None
    message: str                = ""
    data:    AnalyzeData | None = None


class EigencamResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success:      bool       = False
    eigencam_url: str | None = None
    error:        str | None = None
    detail:       Any        = None   # string, or a list of validation errors
