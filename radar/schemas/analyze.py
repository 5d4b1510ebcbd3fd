"""Request and response models for the analysis API."""

import base64
import binascii
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from radar.schemas.radar import Attachment


class AttachmentPayload(BaseModel):
    """A file sent inline with an analysis request.

    The content arrives either as ``bytes`` (a list of byte values or a
    base64 string) or as ``data`` (base64, optionally as a ``data:`` URL).
    """

    name: str = Field(..., description="Original file name")
    type: str = Field(default="application/octet-stream", description="MIME type")
    data: Optional[str] = Field(default=None, description="Base64 content or data URL")
    bytes_: Optional[Union[List[int], str]] = Field(
        default=None, alias="bytes", description="Raw byte values or base64 content"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _require_content(self) -> "AttachmentPayload":
        if self.data is None and self.bytes_ is None:
            raise ValueError(f"File '{self.name}' has no content")
        # Decode eagerly so malformed content fails validation
        self.content()
        return self

    def content(self) -> bytes:
        """Decoded file content."""
        if isinstance(self.bytes_, list):
            try:
                return bytes(self.bytes_)
            except ValueError as e:
                raise ValueError(f"File '{self.name}' has invalid byte values") from e

        encoded = self.bytes_ if isinstance(self.bytes_, str) else self.data or ""
        if encoded.startswith("data:"):
            _, _, encoded = encoded.partition(",")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"File '{self.name}' is not valid base64") from e

    def to_attachment(self) -> Attachment:
        return Attachment(name=self.name, type=self.type, data=self.content())


class AnalyzeRequest(BaseModel):
    """Body of ``POST /api/analyze``.

    Required fields are optional here so that missing values surface as the
    endpoint's own 400 response rather than a schema error.
    """

    input_text: Optional[str] = Field(default=None, alias="inputText", description="Text to analyze")
    user_id: Optional[str] = Field(default=None, alias="userId", description="Owning user id")
    user_email: Optional[str] = Field(default=None, alias="userEmail", description="Owning user email")
    job_id: Optional[str] = Field(default=None, alias="jobId", description="Client-generated job id")
    query_id: Optional[str] = Field(default=None, alias="queryId", description="Client query id")
    files: List[AttachmentPayload] = Field(default_factory=list, description="Inline attachments")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "inputText": "My manager keeps moving the goalposts on my promotion.",
                    "userId": "u1",
                    "userEmail": "a@b.com",
                }
            ]
        },
    )


class AnalyzeSuccessResponse(BaseModel):
    ok: Literal[True] = True
    job_id: str = Field(..., alias="jobId")
    analysis_id: str = Field(..., alias="analysisId")
    data: Dict[str, Any] = Field(..., description="Flattened analysis result")

    model_config = ConfigDict(populate_by_name=True)


class AnalyzeErrorResponse(BaseModel):
    ok: Literal[False] = False
    error: str = Field(..., description="Error message")
    job_id: Optional[str] = Field(default=None, alias="jobId")
    analysis_id: Optional[str] = Field(default=None, alias="analysisId")

    model_config = ConfigDict(populate_by_name=True)


class AnalysisResponse(BaseModel):
    """Stored analysis row."""

    id: UUID
    user_id: str
    job_id: str
    query_id: Optional[str] = None
    input_text: str
    status: str
    is_ready: bool
    power_score: Optional[float] = None
    gravity_score: Optional[float] = None
    risk_score: Optional[float] = None
    confidence_level: Optional[float] = None
    tl_dr: Optional[str] = None
    whats_happening: Optional[str] = None
    why_it_matters: Optional[str] = None
    narrative_summary: Optional[str] = None
    immediate_move: Optional[str] = None
    strategic_tool: Optional[str] = None
    analytical_check: Optional[str] = None
    long_term_fix: Optional[str] = None
    power_explanation: Optional[str] = None
    gravity_explanation: Optional[str] = None
    risk_explanation: Optional[str] = None
    issue_type: Optional[str] = None
    issue_category: Optional[str] = None
    issue_layer: Optional[str] = None
    diagnostic_state: Optional[str] = None
    diagnostic_so_what: Optional[str] = None
    diagnosis_primary: Optional[str] = None
    diagnosis_secondary: Optional[str] = None
    diagnosis_tertiary: Optional[str] = None
    radar_control: Optional[float] = None
    radar_gravity: Optional[float] = None
    radar_confidence: Optional[float] = None
    radar_stability: Optional[float] = None
    radar_strategy: Optional[float] = None
    radar_red_1: Optional[str] = None
    radar_red_2: Optional[str] = None
    radar_red_3: Optional[str] = None
    psychological_profile: Optional[Dict[str, Any]] = None
    references: Optional[Any] = None
    sources_confirmed: Optional[bool] = None
    latency_ms: Optional[int] = None
    overall_completion: int = 0
    strategy: Optional[str] = None
    error_json: Optional[Dict[str, Any]] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AnalysisSummaryResponse(BaseModel):
    """History list entry."""

    id: UUID
    job_id: str
    status: str
    is_ready: bool
    tl_dr: Optional[str] = None
    power_score: Optional[float] = None
    gravity_score: Optional[float] = None
    risk_score: Optional[float] = None
    overall_completion: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AnalysisListResponse(BaseModel):
    items: List[AnalysisSummaryResponse]
    limit: int
    offset: int


class JobStatusResponse(BaseModel):
    """Submission status for a client job id."""

    job_id: str
    status: str
    analysis_id: Optional[UUID] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActionItemResponse(BaseModel):
    id: UUID
    analysis_id: UUID
    section: str
    step_index: int
    step_text: str
    completed: bool
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SectionCompletion(BaseModel):
    section: str
    total: int
    completed: int
    percentage: int


class ActionItemListResponse(BaseModel):
    items: List[ActionItemResponse]
    completion: Dict[str, int] = Field(..., description="Percentage per section")
    sections: List[SectionCompletion]
    overall: int


class ToggleActionItemRequest(BaseModel):
    completed: bool
