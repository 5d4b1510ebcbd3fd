"""Contracts passed between the analysis pipeline stages."""

import base64
import mimetypes
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


@dataclass
class RadarAxes:
    """Five-axis radar chart values."""
    control: Optional[float] = None
    gravity: Optional[float] = None
    confidence: Optional[float] = None
    stability: Optional[float] = None
    strategy: Optional[float] = None


@dataclass
class RadarResult:
    """Canonical analysis result.

    Every field is optional except ``radar``, which is always present even
    when all five axes are unknown.
    """
    power_score: Optional[float] = None
    gravity_score: Optional[float] = None
    risk_score: Optional[float] = None
    confidence: Optional[float] = None

    tldr: Optional[str] = None
    whats_happening: Optional[str] = None
    why_it_matters: Optional[str] = None
    narrative_summary: Optional[str] = None

    immediate_move: Optional[Any] = None
    strategic_tool: Optional[Any] = None
    analytical_check: Optional[Any] = None
    long_term_fix: Optional[Any] = None

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

    radar: RadarAxes = field(default_factory=RadarAxes)
    radar_red_1: Optional[Any] = None
    radar_red_2: Optional[Any] = None
    radar_red_3: Optional[Any] = None

    radar_url: Optional[str] = None
    chart_html: Optional[str] = None
    tug_of_war_html: Optional[str] = None
    radar_html: Optional[str] = None
    risk_html: Optional[str] = None

    psychological_profile: Optional[Dict[str, Any]] = None
    action_items: Optional[List[Any]] = None
    sources_confirmed: Optional[bool] = None
    references: Optional[Any] = None
    latency_ms: Optional[int] = None

    @classmethod
    def field_names(cls) -> List[str]:
        """Canonical field names in declaration order."""
        return [f.name for f in fields(cls)]


@dataclass
class Attachment:
    """A user-supplied file: display name, MIME type and raw bytes."""
    name: str
    type: str
    data: bytes

    def as_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "data": self.data}

    @property
    def is_image(self) -> bool:
        """Whether the file goes to the vision model rather than file search."""
        return self.type in IMAGE_TYPES or self.name.lower().endswith(IMAGE_EXTENSIONS)

    def as_data_url(self) -> str:
        mime_type = self.type or ""
        if not mime_type.startswith("image/"):
            mime_type = mimetypes.guess_type(self.name)[0] or "application/octet-stream"
        return f"data:{mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass
class UploadReference:
    """Handle returned by the upload stage.

    ``file_ids`` is set when an uploader returned provider file ids and
    ``vector_store_id`` when the built-in path created a per-request store.
    ``visual_context`` carries the vision model's description of any images.
    """
    file_ids: Optional[List[str]] = None
    vector_store_id: Optional[str] = None
    visual_context: Optional[str] = None


@dataclass
class InvocationResult:
    """Raw provider output plus how it was produced."""
    raw: Any
    strategy: str  # delegated | assistant | direct
    latency_ms: int
    builtin: bool
    assistant_id: Optional[str] = None
    thread_id: Optional[str] = None
    run_id: Optional[str] = None
    vector_store_id: Optional[str] = None
