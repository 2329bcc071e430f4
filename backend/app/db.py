from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    String,
    Integer,
    Float,
    UniqueConstraint,
)

from . import config


DEFAULT_DB_URL = config.database_url()

engine = create_engine(DEFAULT_DB_URL, future=True)
metadata = MetaData()


def _audit_columns():
    return [
        Column("created_at", String, nullable=False),
        Column("updated_at", String, nullable=False),
        Column("created_by", String),
        Column("updated_by", String),
        Column("request_id", String),
    ]


risks_table = Table(
    "risks",
    metadata,
    Column("id", String, primary_key=True),
    Column("standard", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("description", String),
    Column("category", String),
    Column("likelihood", Integer, nullable=False),
    Column("severity", Integer, nullable=False),
    Column("detectability", Integer, nullable=False),
    Column("risk_score", Integer, nullable=False),
    Column("risk_level", String, nullable=False),
    Column("control_effectiveness", Integer),
    Column("residual_score", Integer),
    Column("existing_controls", String),
    Column("status", String, nullable=False),
    Column("review_date", String),
    Column("last_reviewed_at", String),
    *_audit_columns(),
)

aspects_table = Table(
    "aspects",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("description", String),
    Column("aspect_type", String),
    Column("environmental_impact", String),
    Column("likelihood", Integer, nullable=False),
    Column("severity", Integer, nullable=False),
    Column("frequency", Integer, nullable=False),
    Column("significance_score", Integer, nullable=False),
    Column("significance_level", String, nullable=False),
    Column("status", String, nullable=False),
    Column("review_date", String),
    Column("last_reviewed_at", String),
    *_audit_columns(),
)

incidents_table = Table(
    "incidents",
    metadata,
    Column("id", String, primary_key=True),
    Column("standard", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("description", String),
    Column("type", String),
    Column("severity", String),
    Column("status", String, nullable=False),
    Column("date_occurred", String, nullable=False),
    Column("closed_at", String),
    *_audit_columns(),
)

actions_table = Table(
    "actions",
    metadata,
    Column("id", String, primary_key=True),
    Column("standard", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("description", String),
    Column("type", String),
    Column("priority", String),
    Column("status", String, nullable=False),
    Column("due_date", String),
    Column("completed_at", String),
    Column("risk_id", String),
    Column("incident_id", String),
    *_audit_columns(),
)

legal_requirements_table = Table(
    "legal_requirements",
    metadata,
    Column("id", String, primary_key=True),
    Column("standard", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("type", String),
    Column("compliance_status", String, nullable=False),
    Column("last_assessed_at", String),
    *_audit_columns(),
)

safety_metrics_table = Table(
    "safety_metrics",
    metadata,
    Column("id", String, primary_key=True),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("hours_worked", Float, nullable=False),
    Column("lost_time_injuries", Integer, nullable=False),
    Column("total_recordable_injuries", Integer, nullable=False),
    Column("days_lost", Integer, nullable=False),
    Column("near_misses", Integer, nullable=False),
    Column("first_aid_cases", Integer, nullable=False),
    Column("ltifr", Float, nullable=False),
    Column("trir", Float, nullable=False),
    Column("severity_rate", Float, nullable=False),
    Column("created_at", String, nullable=False),
    Column("updated_at", String, nullable=False),
    UniqueConstraint("year", "month", name="uq_safety_metrics_year_month"),
)

quality_metrics_table = Table(
    "quality_metrics",
    metadata,
    Column("id", String, primary_key=True),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("prevention_cost", Float, nullable=False),
    Column("appraisal_cost", Float, nullable=False),
    Column("internal_failure_cost", Float, nullable=False),
    Column("external_failure_cost", Float, nullable=False),
    Column("total_units", Integer, nullable=False),
    Column("defective_units", Integer, nullable=False),
    Column("defect_opportunities", Integer, nullable=False),
    Column("total_copq", Float, nullable=False),
    Column("dpmo", Integer, nullable=False),
    Column("first_pass_yield", Float, nullable=False),
    Column("process_sigma", Float, nullable=False),
    Column("defect_rate", Float, nullable=False),
    Column("created_at", String, nullable=False),
    Column("updated_at", String, nullable=False),
    UniqueConstraint("year", "month", name="uq_quality_metrics_year_month"),
)

ai_analyses_table = Table(
    "ai_analyses",
    metadata,
    Column("id", String, primary_key=True),
    Column("source_type", String),
    Column("source_id", String),
    Column("status", String, nullable=False),
    Column("suggested_root_cause", String),
    Column("created_at", String, nullable=False),
    Column("updated_at", String, nullable=False),
)

compliance_scores_table = Table(
    "compliance_scores",
    metadata,
    Column("standard", String, primary_key=True),
    Column("overall_score", Integer, nullable=False),
    Column("incident_score", Float, nullable=False),
    Column("action_score", Float, nullable=False),
    Column("legal_score", Float, nullable=False),
    Column("risk_score", Float, nullable=False),
    Column("total_items", Integer, nullable=False),
    Column("compliant_items", Integer, nullable=False),
    Column("calculated_at", String, nullable=False),
)


def init_db():
    metadata.create_all(engine)
