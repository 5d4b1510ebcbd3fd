from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from radar.database.models import Analysis
from radar.repositories.base_repository import BaseRepository
from radar.schemas.radar import InvocationResult, RadarResult
from radar.utils.formatting import clamp_score, coerce_number, join_with_bullets

# Result field -> analyses column, grouped by how the value is shaped
SCORE_COLUMNS = {
    "power_score": "power_score",
    "gravity_score": "gravity_score",
    "risk_score": "risk_score",
    "confidence": "confidence_level",
}

TEXT_COLUMNS = {
    "tldr": "tl_dr",
    "whats_happening": "whats_happening",
    "why_it_matters": "why_it_matters",
    "narrative_summary": "narrative_summary",
    "immediate_move": "immediate_move",
    "strategic_tool": "strategic_tool",
    "analytical_check": "analytical_check",
    "long_term_fix": "long_term_fix",
    "power_explanation": "power_explanation",
    "gravity_explanation": "gravity_explanation",
    "risk_explanation": "risk_explanation",
    "issue_type": "issue_type",
    "issue_category": "issue_category",
    "issue_layer": "issue_layer",
    "diagnostic_state": "diagnostic_state",
    "diagnostic_so_what": "diagnostic_so_what",
    "diagnosis_primary": "diagnosis_primary",
    "diagnosis_secondary": "diagnosis_secondary",
    "diagnosis_tertiary": "diagnosis_tertiary",
    "radar_red_1": "radar_red_1",
    "radar_red_2": "radar_red_2",
    "radar_red_3": "radar_red_3",
    "radar_url": "radar_url",
    "chart_html": "chart_html",
    "tug_of_war_html": "tug_of_war_html",
    "radar_html": "radar_html",
    "risk_html": "risk_html",
}

RADAR_COLUMNS = {
    "control": "radar_control",
    "gravity": "radar_gravity",
    "confidence": "radar_confidence",
    "stability": "radar_stability",
    "strategy": "radar_strategy",
}


def result_to_columns(result: RadarResult, invocation: Optional[InvocationResult] = None) -> Dict[str, Any]:
    """Map a canonical result onto ``analyses`` column values.

    The four core scores are written as 0 when absent so that a ready row
    always carries numeric scores. Scores and radar axes are clamped to
    0-100, which also keeps them inside the ``Numeric(6, 2)`` columns.
    """
    columns: Dict[str, Any] = {}

    for attr, column in SCORE_COLUMNS.items():
        score = clamp_score(getattr(result, attr))
        columns[column] = score if score is not None else 0

    for attr, column in TEXT_COLUMNS.items():
        columns[column] = join_with_bullets(getattr(result, attr))

    for axis, column in RADAR_COLUMNS.items():
        columns[column] = clamp_score(getattr(result.radar, axis))

    columns["psychological_profile"] = (
        result.psychological_profile if isinstance(result.psychological_profile, dict) else None
    )
    columns["references"] = result.references
    columns["sources_confirmed"] = result.sources_confirmed
    latency = coerce_number(result.latency_ms)
    columns["latency_ms"] = int(latency) if latency is not None else None

    if invocation is not None:
        columns["strategy"] = invocation.strategy
        columns["assistant_id"] = invocation.assistant_id
        columns["thread_id"] = invocation.thread_id
        columns["run_id"] = invocation.run_id
        columns["vector_store_id"] = invocation.vector_store_id

    return columns


class AnalysisRepository(BaseRepository[Analysis]):
    """Repository for analysis rows and their lifecycle transitions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Analysis)

    async def create_placeholder(
        self,
        user_id: str,
        email: str,
        job_id: str,
        input_text: str,
        query_id: Optional[str] = None,
    ) -> Analysis:
        """Insert the ``processing`` row whose id identifies the analysis."""
        return await self.create(
            user_id=user_id,
            email=email,
            job_id=job_id,
            query_id=query_id,
            input_text=input_text,
            status="processing",
            is_ready=False,
            processing_started_at=datetime.now(timezone.utc),
        )

    async def mark_completed(
        self,
        analysis_id: UUID,
        result: RadarResult,
        invocation: Optional[InvocationResult] = None,
    ) -> Optional[Analysis]:
        """Write the mapped result and flip the row to ready."""
        return await self.update(
            analysis_id,
            status="completed",
            is_ready=True,
            processing_completed_at=datetime.now(timezone.utc),
            error_json=None,
            **result_to_columns(result, invocation),
        )

    async def mark_failed(self, analysis_id: UUID, error_json: Dict[str, Any]) -> Optional[Analysis]:
        return await self.update(
            analysis_id,
            status="error",
            is_ready=False,
            error_json=error_json,
            processing_completed_at=datetime.now(timezone.utc),
        )

    async def set_overall_completion(self, analysis_id: UUID, percentage: int) -> Optional[Analysis]:
        return await self.update(analysis_id, overall_completion=percentage)

    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> List[Analysis]:
        """Newest-first analyses for one user."""
        query = (
            select(Analysis)
            .where(Analysis.user_id == user_id)
            .order_by(Analysis.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
