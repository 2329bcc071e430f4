"""ims registers, safety metrics and stored compliance scores

Revision ID: 000001_ims_registers
Revises: 
Create Date: 2026-10-19 00:00:01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '000001_ims_registers'
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column('created_at', sa.String(), nullable=False),
        sa.Column('updated_at', sa.String(), nullable=False),
        sa.Column('created_by', sa.String()),
        sa.Column('updated_by', sa.String()),
        sa.Column('request_id', sa.String()),
    ]


def upgrade() -> None:
    op.create_table(
        'risks',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('standard', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('category', sa.String()),
        sa.Column('likelihood', sa.Integer(), nullable=False),
        sa.Column('severity', sa.Integer(), nullable=False),
        sa.Column('detectability', sa.Integer(), nullable=False),
        sa.Column('risk_score', sa.Integer(), nullable=False),
        sa.Column('risk_level', sa.String(), nullable=False),
        sa.Column('control_effectiveness', sa.Integer()),
        sa.Column('residual_score', sa.Integer()),
        sa.Column('existing_controls', sa.String()),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('review_date', sa.String()),
        sa.Column('last_reviewed_at', sa.String()),
        *_audit_columns(),
    )
    op.create_table(
        'aspects',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('aspect_type', sa.String()),
        sa.Column('environmental_impact', sa.String()),
        sa.Column('likelihood', sa.Integer(), nullable=False),
        sa.Column('severity', sa.Integer(), nullable=False),
        sa.Column('frequency', sa.Integer(), nullable=False),
        sa.Column('significance_score', sa.Integer(), nullable=False),
        sa.Column('significance_level', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('review_date', sa.String()),
        sa.Column('last_reviewed_at', sa.String()),
        *_audit_columns(),
    )
    op.create_table(
        'incidents',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('standard', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('type', sa.String()),
        sa.Column('severity', sa.String()),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('date_occurred', sa.String(), nullable=False),
        sa.Column('closed_at', sa.String()),
        *_audit_columns(),
    )
    op.create_table(
        'actions',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('standard', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('type', sa.String()),
        sa.Column('priority', sa.String()),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('due_date', sa.String()),
        sa.Column('completed_at', sa.String()),
        sa.Column('risk_id', sa.String()),
        sa.Column('incident_id', sa.String()),
        *_audit_columns(),
    )
    op.create_table(
        'legal_requirements',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('standard', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('type', sa.String()),
        sa.Column('compliance_status', sa.String(), nullable=False),
        sa.Column('last_assessed_at', sa.String()),
        *_audit_columns(),
    )
    op.create_table(
        'safety_metrics',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('hours_worked', sa.Float(), nullable=False),
        sa.Column('lost_time_injuries', sa.Integer(), nullable=False),
        sa.Column('total_recordable_injuries', sa.Integer(), nullable=False),
        sa.Column('days_lost', sa.Integer(), nullable=False),
        sa.Column('near_misses', sa.Integer(), nullable=False),
        sa.Column('first_aid_cases', sa.Integer(), nullable=False),
        sa.Column('ltifr', sa.Float(), nullable=False),
        sa.Column('trir', sa.Float(), nullable=False),
        sa.Column('severity_rate', sa.Float(), nullable=False),
        sa.Column('created_at', sa.String(), nullable=False),
        sa.Column('updated_at', sa.String(), nullable=False),
        sa.UniqueConstraint('year', 'month', name='uq_safety_metrics_year_month'),
    )
    op.create_table(
        'ai_analyses',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('source_type', sa.String()),
        sa.Column('source_id', sa.String()),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('suggested_root_cause', sa.String()),
        sa.Column('created_at', sa.String(), nullable=False),
        sa.Column('updated_at', sa.String(), nullable=False),
    )
    op.create_table(
        'compliance_scores',
        sa.Column('standard', sa.String(), primary_key=True),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('incident_score', sa.Float(), nullable=False),
        sa.Column('action_score', sa.Float(), nullable=False),
        sa.Column('legal_score', sa.Float(), nullable=False),
        sa.Column('risk_score', sa.Float(), nullable=False),
        sa.Column('total_items', sa.Integer(), nullable=False),
        sa.Column('compliant_items', sa.Integer(), nullable=False),
        sa.Column('calculated_at', sa.String(), nullable=False),
    )

    for tbl in ['risks', 'incidents', 'actions', 'legal_requirements']:
        op.create_index(f'ix_{tbl}_standard', tbl, ['standard'])
    op.create_index('ix_risks_status_score', 'risks', ['status', 'risk_score'])
    op.create_index('ix_actions_status_due', 'actions', ['status', 'due_date'])
    op.create_index('ix_incidents_date_occurred', 'incidents', ['date_occurred'])


def downgrade() -> None:
    op.drop_index('ix_incidents_date_occurred', table_name='incidents')
    op.drop_index('ix_actions_status_due', table_name='actions')
    op.drop_index('ix_risks_status_score', table_name='risks')
    for tbl in ['legal_requirements', 'actions', 'incidents', 'risks']:
        op.drop_index(f'ix_{tbl}_standard', table_name=tbl)
    for tbl in ['compliance_scores', 'ai_analyses', 'safety_metrics', 'legal_requirements', 'actions', 'incidents', 'aspects', 'risks']:
        op.drop_table(tbl)
