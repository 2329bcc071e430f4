"""monthly ISO 9001 quality metrics

Revision ID: 000002_quality_metrics
Revises: 000001_ims_registers
Create Date: 2026-10-19 00:00:02

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '000002_quality_metrics'
down_revision = '000001_ims_registers'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'quality_metrics',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('prevention_cost', sa.Float(), nullable=False),
        sa.Column('appraisal_cost', sa.Float(), nullable=False),
        sa.Column('internal_failure_cost', sa.Float(), nullable=False),
        sa.Column('external_failure_cost', sa.Float(), nullable=False),
        sa.Column('total_units', sa.Integer(), nullable=False),
        sa.Column('defective_units', sa.Integer(), nullable=False),
        sa.Column('defect_opportunities', sa.Integer(), nullable=False),
        sa.Column('total_copq', sa.Float(), nullable=False),
        sa.Column('dpmo', sa.Integer(), nullable=False),
        sa.Column('first_pass_yield', sa.Float(), nullable=False),
        sa.Column('process_sigma', sa.Float(), nullable=False),
        sa.Column('defect_rate', sa.Float(), nullable=False),
        sa.Column('created_at', sa.String(), nullable=False),
        sa.Column('updated_at', sa.String(), nullable=False),
        sa.UniqueConstraint('year', 'month', name='uq_quality_metrics_year_month'),
    )


def downgrade() -> None:
    op.drop_table('quality_metrics')
