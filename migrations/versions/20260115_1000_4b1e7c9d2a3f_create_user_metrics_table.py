"""create_user_metrics_table

Revision ID: 4b1e7c9d2a3f
Revises:
Create Date: 2026-01-15 10:00:12.418093

Creates the user_metrics table: one row per (user, calendar day) of AI coding
assistant usage, written by the ingestion job and read by the metrics engine.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision = '4b1e7c9d2a3f'
down_revision = None
branch_labels = None
depends_on = None

COUNTER_COLUMNS = (
    'user_initiated_interaction_count',
    'code_generation_activity_count',
    'code_acceptance_activity_count',
    'loc_suggested_to_add_sum',
    'loc_suggested_to_delete_sum',
    'loc_added_sum',
    'loc_deleted_sum',
)

COLLECTION_COLUMNS = (
    'totals_by_ide',
    'totals_by_feature',
    'totals_by_language_model',
    'totals_by_language_feature',
    'totals_by_model_feature',
)


def upgrade() -> None:
    op.create_table(
        'user_metrics',
        sa.Column('id', sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger, nullable=False),
        sa.Column('user_login', sa.String(255), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=True),
        sa.Column('enterprise_id', sa.String(100), nullable=True),
        sa.Column('day', sa.Date, nullable=False),
        *[
            sa.Column(name, sa.Integer, nullable=False, server_default='0')
            for name in COUNTER_COLUMNS
        ],
        sa.Column('used_agent', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('used_chat', sa.Boolean, nullable=False, server_default=sa.false()),
        *[
            sa.Column(name, JSONB, nullable=False, server_default=sa.text("'[]'::jsonb"))
            for name in COLLECTION_COLUMNS
        ],
    )

    # At most one record per user per day
    op.create_index(
        'ix_user_metrics_user_id_day',
        'user_metrics',
        ['user_id', 'day'],
        unique=True,
    )
    op.create_index('ix_user_metrics_user_id', 'user_metrics', ['user_id'])
    op.create_index('ix_user_metrics_user_login', 'user_metrics', ['user_login'])
    op.create_index('ix_user_metrics_day', 'user_metrics', ['day'])

    # Segment filter and discovery scan feature keys
    op.create_index(
        'idx_user_metrics_totals_by_feature_gin',
        'user_metrics',
        ['totals_by_feature'],
        postgresql_using='gin'
    )


def downgrade() -> None:
    op.drop_table('user_metrics')
