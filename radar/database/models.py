"""SQLAlchemy models for submissions, analyses and action items."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radar.core.database import Base


class Submission(Base):
    """A user's request to run an analysis, tracked by client job id."""

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False)
    input_querytext: Mapped[str] = mapped_column(Text, nullable=False)
    job_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    query_id: Mapped[str | None] = mapped_column(String, nullable=True)
    analysis_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("analyses.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | error
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    analysis: Mapped[Optional["Analysis"]] = relationship("Analysis", lazy="noload")


class Analysis(Base):
    """The structured result row for one submission."""

    __tablename__ = "analyses"
    __table_args__ = (
        Index("ix_analyses_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    job_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    query_id: Mapped[str | None] = mapped_column(String, nullable=True)
    input_text: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="processing"
    )  # processing | completed | error
    is_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Core scores
    power_score: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    gravity_score: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    risk_score: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    confidence_level: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)

    # Narrative
    tl_dr: Mapped[str | None] = mapped_column(Text, nullable=True)
    whats_happening: Mapped[str | None] = mapped_column(Text, nullable=True)
    why_it_matters: Mapped[str | None] = mapped_column(Text, nullable=True)
    narrative_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Moves
    immediate_move: Mapped[str | None] = mapped_column(Text, nullable=True)
    strategic_tool: Mapped[str | None] = mapped_column(Text, nullable=True)
    analytical_check: Mapped[str | None] = mapped_column(Text, nullable=True)
    long_term_fix: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Explanations
    power_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    gravity_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Classification and diagnostics
    issue_type: Mapped[str | None] = mapped_column(String, nullable=True)
    issue_category: Mapped[str | None] = mapped_column(String, nullable=True)
    issue_layer: Mapped[str | None] = mapped_column(String, nullable=True)
    diagnostic_state: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnostic_so_what: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis_primary: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis_secondary: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis_tertiary: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Radar axes and red flags
    radar_control: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    radar_gravity: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    radar_confidence: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    radar_stability: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    radar_strategy: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    radar_red_1: Mapped[str | None] = mapped_column(Text, nullable=True)
    radar_red_2: Mapped[str | None] = mapped_column(Text, nullable=True)
    radar_red_3: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Visual payloads produced upstream
    radar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    chart_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    tug_of_war_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    radar_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_html: Mapped[str | None] = mapped_column(Text, nullable=True)

    psychological_profile: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    references: Mapped[Any | None] = mapped_column(JSONB, nullable=True)
    sources_confirmed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    latency_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overall_completion: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Provider trace
    strategy: Mapped[str | None] = mapped_column(
        String, nullable=True
    )  # delegated | assistant | direct
    assistant_id: Mapped[str | None] = mapped_column(String, nullable=True)
    thread_id: Mapped[str | None] = mapped_column(String, nullable=True)
    run_id: Mapped[str | None] = mapped_column(String, nullable=True)
    vector_store_id: Mapped[str | None] = mapped_column(String, nullable=True)

    error_json: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    processing_started_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    processing_completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    action_items: Mapped[list["ActionItem"]] = relationship(
        "ActionItem",
        back_populates="analysis",
        cascade="all, delete-orphan",
        lazy="noload",
    )


class ActionItem(Base):
    """One checklist step derived from an analysis move."""

    __tablename__ = "action_items"
    __table_args__ = (
        Index("ix_action_items_analysis_section_step", "analysis_id", "section", "step_index"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    section: Mapped[str] = mapped_column(
        String, nullable=False
    )  # immediate_move | strategic_tool | analytical_check | long_term_fix
    step_index: Mapped[int] = mapped_column(Integer, nullable=False)
    step_text: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    analysis: Mapped["Analysis"] = relationship("Analysis", back_populates="action_items")
