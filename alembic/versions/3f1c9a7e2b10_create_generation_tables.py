"""create generation tables

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-18 09:12:44.120318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('clients',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('full_name', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('industry_niche', sa.String(), nullable=False),
    sa.Column('vision_for_venture', sa.Text(), nullable=False),
    sa.Column('target_audience', sa.Text(), nullable=False),
    sa.Column('demographic_profile', sa.Text(), nullable=False),
    sa.Column('key_pain_points', sa.Text(), nullable=False),
    sa.Column('unique_value_props', sa.Text(), nullable=False),
    sa.Column('target_demographic_age', sa.String(), nullable=False),
    sa.Column('ideal_brand_image', sa.Text(), nullable=False),
    sa.Column('brand_personality', sa.Text(), nullable=False),
    sa.Column('preferred_font', sa.String(), nullable=False),
    sa.Column('hope_to_achieve', sa.Text(), nullable=True),
    sa.Column('social_handles', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('scaling_goals', sa.Text(), nullable=True),
    sa.Column('competitors', sa.Text(), nullable=True),
    sa.Column('competitive_advantages', sa.Text(), nullable=True),
    sa.Column('products_services', sa.Text(), nullable=True),
    sa.Column('work_life_balance', sa.Text(), nullable=True),
    sa.Column('team_structure', sa.Text(), nullable=True),
    sa.Column('archived', sa.Boolean(), nullable=False),
    sa.Column('onboarded_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    comment='Onboarded creator profiles (read-only to generation)'
    )
    op.create_table('prompt_templates',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('type', sa.String(), nullable=False, comment='BUSINESS_PLAN, DELIVERABLE_M1..M8, CUSTOM'),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('system_prompt', sa.Text(), nullable=True),
    sa.Column('content', sa.Text(), nullable=False, comment='Template body with {{variable}} placeholders'),
    sa.Column('variables', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('is_default', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_prompt_templates_type'), 'prompt_templates', ['type'], unique=False)
    op.create_table('business_plans',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('client_id', sa.UUID(), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(), nullable=False, comment='DRAFT, PENDING_REVIEW, APPROVED, DELIVERED, REJECTED'),
    sa.Column('content_markdown', sa.Text(), nullable=False),
    sa.Column('generated_by', sa.String(), nullable=True),
    sa.Column('generated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id')
    )
    op.create_table('deliverables',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('client_id', sa.UUID(), nullable=False),
    sa.Column('month', sa.Integer(), nullable=False),
    sa.Column('title', sa.String(), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('content_markdown', sa.Text(), nullable=False),
    sa.Column('generated_by', sa.String(), nullable=True),
    sa.Column('generated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id', 'month', name='uq_deliverable_client_month')
    )
    op.create_table('document_sections',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('document_id', sa.UUID(), nullable=False),
    sa.Column('document_type', sa.String(), nullable=False, comment='BUSINESS_PLAN or DELIVERABLE'),
    sa.Column('section_name', sa.String(), nullable=False),
    sa.Column('section_order', sa.Integer(), nullable=False),
    sa.Column('content', sa.Text(), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('tokens_used', sa.Integer(), nullable=True),
    sa.Column('generated_by', sa.String(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('document_id', 'document_type', 'section_name', name='uq_document_section_name')
    )
    op.create_index(op.f('ix_document_sections_document_id'), 'document_sections', ['document_id'], unique=False)
    op.create_table('generation_checkpoints',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('job_id', sa.String(), nullable=False),
    sa.Column('job_type', sa.String(), nullable=False),
    sa.Column('client_id', sa.UUID(), nullable=False),
    sa.Column('status', sa.String(), nullable=False, comment='IN_PROGRESS, COMPLETED, FAILED'),
    sa.Column('total_sections', sa.Integer(), nullable=False),
    sa.Column('completed_sections', sa.Integer(), nullable=False),
    sa.Column('current_section', sa.Integer(), nullable=False),
    sa.Column('document_id', sa.UUID(), nullable=True),
    sa.Column('generated_content', sa.Text(), nullable=False, comment='Serialized generated sections'),
    sa.Column('prompt_context', sa.Text(), nullable=False, comment='Serialized prompt context'),
    sa.Column('job_metadata', sa.Text(), nullable=True),
    sa.Column('can_resume', sa.Boolean(), nullable=False),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('job_id')
    )
    op.create_index(op.f('ix_generation_checkpoints_client_id'), 'generation_checkpoints', ['client_id'], unique=False)
    op.create_table('token_budgets',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('period', sa.String(), nullable=False, comment='DAILY, WEEKLY, MONTHLY'),
    sa.Column('token_limit', sa.Integer(), nullable=False),
    sa.Column('cost_limit', sa.Float(), nullable=False),
    sa.Column('tokens_used', sa.Integer(), nullable=False),
    sa.Column('cost_used', sa.Float(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('is_paused', sa.Boolean(), nullable=False),
    sa.Column('alert_at_50', sa.Boolean(), nullable=False),
    sa.Column('alert_at_75', sa.Boolean(), nullable=False),
    sa.Column('alert_at_90', sa.Boolean(), nullable=False),
    sa.Column('alert_at_100', sa.Boolean(), nullable=False),
    sa.Column('auto_pause_at_limit', sa.Boolean(), nullable=False),
    sa.Column('last_alert_threshold', sa.Integer(), nullable=False, comment='Highest alert threshold already emitted'),
    sa.Column('start_date', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_token_budgets_period'), 'token_budgets', ['period'], unique=False)
    op.create_table('token_usage',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('operation', sa.String(), nullable=False),
    sa.Column('model', sa.String(), nullable=False),
    sa.Column('prompt_tokens', sa.Integer(), nullable=False),
    sa.Column('completion_tokens', sa.Integer(), nullable=False),
    sa.Column('total_tokens', sa.Integer(), nullable=False),
    sa.Column('estimated_cost', sa.Float(), nullable=False),
    sa.Column('cache_hit', sa.Boolean(), nullable=False),
    sa.Column('cache_key', sa.String(), nullable=True),
    sa.Column('client_id', sa.String(), nullable=True),
    sa.Column('user_id', sa.String(), nullable=True),
    sa.Column('usage_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_token_usage_operation'), 'token_usage', ['operation'], unique=False)
    op.create_table('prompt_cache',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('cache_key', sa.String(length=64), nullable=False),
    sa.Column('prompt_hash', sa.String(length=64), nullable=False),
    sa.Column('response', sa.Text(), nullable=False),
    sa.Column('model', sa.String(), nullable=False),
    sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('hit_count', sa.Integer(), nullable=False),
    sa.Column('tokens_saved', sa.Integer(), nullable=False),
    sa.Column('last_used_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('cache_key')
    )
    op.create_table('activities',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('client_id', sa.UUID(), nullable=True),
    sa.Column('type', sa.String(), nullable=False),
    sa.Column('description', sa.Text(), nullable=False),
    sa.Column('user_id', sa.String(), nullable=True),
    sa.Column('activity_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default='NOW()', nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_activities_client_id'), 'activities', ['client_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_activities_client_id'), table_name='activities')
    op.drop_table('activities')
    op.drop_table('prompt_cache')
    op.drop_index(op.f('ix_token_usage_operation'), table_name='token_usage')
    op.drop_table('token_usage')
    op.drop_index(op.f('ix_token_budgets_period'), table_name='token_budgets')
    op.drop_table('token_budgets')
    op.drop_index(op.f('ix_generation_checkpoints_client_id'), table_name='generation_checkpoints')
    op.drop_table('generation_checkpoints')
    op.drop_index(op.f('ix_document_sections_document_id'), table_name='document_sections')
    op.drop_table('document_sections')
    op.drop_table('deliverables')
    op.drop_table('business_plans')
    op.drop_index(op.f('ix_prompt_templates_type'), table_name='prompt_templates')
    op.drop_table('prompt_templates')
    op.drop_table('clients')
