"""create submissions, analyses and action items

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-19 09:12:44.218301

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _score() -> sa.Numeric:
    return sa.Numeric(precision=6, scale=2)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('analyses',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=True),
    sa.Column('job_id', sa.String(), nullable=False),
    sa.Column('query_id', sa.String(), nullable=True),
    sa.Column('input_text', sa.Text(), nullable=False),
    sa.Column('status', sa.String(), nullable=False, comment='processing | completed | error'),
    sa.Column('is_ready', sa.Boolean(), nullable=False),
    sa.Column('power_score', _score(), nullable=True),
    sa.Column('gravity_score', _score(), nullable=True),
    sa.Column('risk_score', _score(), nullable=True),
    sa.Column('confidence_level', _score(), nullable=True),
    sa.Column('tl_dr', sa.Text(), nullable=True),
    sa.Column('whats_happening', sa.Text(), nullable=True),
    sa.Column('why_it_matters', sa.Text(), nullable=True),
    sa.Column('narrative_summary', sa.Text(), nullable=True),
    sa.Column('immediate_move', sa.Text(), nullable=True),
    sa.Column('strategic_tool', sa.Text(), nullable=True),
    sa.Column('analytical_check', sa.Text(), nullable=True),
    sa.Column('long_term_fix', sa.Text(), nullable=True),
    sa.Column('power_explanation', sa.Text(), nullable=True),
    sa.Column('gravity_explanation', sa.Text(), nullable=True),
    sa.Column('risk_explanation', sa.Text(), nullable=True),
    sa.Column('issue_type', sa.String(), nullable=True),
    sa.Column('issue_category', sa.String(), nullable=True),
    sa.Column('issue_layer', sa.String(), nullable=True),
    sa.Column('diagnostic_state', sa.Text(), nullable=True),
    sa.Column('diagnostic_so_what', sa.Text(), nullable=True),
    sa.Column('diagnosis_primary', sa.Text(), nullable=True),
    sa.Column('diagnosis_secondary', sa.Text(), nullable=True),
    sa.Column('diagnosis_tertiary', sa.Text(), nullable=True),
    sa.Column('radar_control', _score(), nullable=True),
    sa.Column('radar_gravity', _score(), nullable=True),
    sa.Column('radar_confidence', _score(), nullable=True),
    sa.Column('radar_stability', _score(), nullable=True),
    sa.Column('radar_strategy', _score(), nullable=True),
    sa.Column('radar_red_1', sa.Text(), nullable=True),
    sa.Column('radar_red_2', sa.Text(), nullable=True),
    sa.Column('radar_red_3', sa.Text(), nullable=True),
    sa.Column('radar_url', sa.String(), nullable=True),
    sa.Column('chart_html', sa.Text(), nullable=True),
    sa.Column('tug_of_war_html', sa.Text(), nullable=True),
    sa.Column('radar_html', sa.Text(), nullable=True),
    sa.Column('risk_html', sa.Text(), nullable=True),
    sa.Column('psychological_profile', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('references', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('sources_confirmed', sa.Boolean(), nullable=True),
    sa.Column('latency_ms', sa.Integer(), nullable=True),
    sa.Column('overall_completion', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('strategy', sa.String(), nullable=True, comment='delegated | assistant | direct'),
    sa.Column('assistant_id', sa.String(), nullable=True),
    sa.Column('thread_id', sa.String(), nullable=True),
    sa.Column('run_id', sa.String(), nullable=True),
    sa.Column('vector_store_id', sa.String(), nullable=True),
    sa.Column('error_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('processing_started_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('processing_completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    comment='One stored analysis result per submission'
    )
    op.create_index('ix_analyses_job_id', 'analyses', ['job_id'], unique=False)
    op.create_index('ix_analyses_user_created', 'analyses', ['user_id', 'created_at'], unique=False)

    op.create_table('submissions',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('input_querytext', sa.Text(), nullable=False),
    sa.Column('job_id', sa.String(), nullable=False),
    sa.Column('query_id', sa.String(), nullable=True),
    sa.Column('analysis_id', sa.UUID(), nullable=True),
    sa.Column('status', sa.String(), nullable=False, comment='pending | processing | completed | error'),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_submissions_job_id', 'submissions', ['job_id'], unique=False)
    op.create_index('ix_submissions_user_id', 'submissions', ['user_id'], unique=False)

    op.create_table('action_items',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('analysis_id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.String(), nullable=False),
    sa.Column('section', sa.String(), nullable=False, comment='immediate_move | strategic_tool | analytical_check | long_term_fix'),
    sa.Column('step_index', sa.Integer(), nullable=False),
    sa.Column('step_text', sa.Text(), nullable=False),
    sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_action_items_analysis_section_step', 'action_items', ['analysis_id', 'section', 'step_index'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_action_items_analysis_section_step', table_name='action_items')
    op.drop_table('action_items')
    op.drop_index('ix_submissions_user_id', table_name='submissions')
    op.drop_index('ix_submissions_job_id', table_name='submissions')
    op.drop_table('submissions')
    op.drop_index('ix_analyses_user_created', table_name='analyses')
    op.drop_index('ix_analyses_job_id', table_name='analyses')
    op.drop_table('analyses')
