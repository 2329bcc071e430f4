"""Row <-> record plumbing between the register tables and the scoring core."""
import time
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import text

from .logging_config import log_event
from .scoring import aggregate_compliance
from .scoring.compliance import ComplianceScore
from .scoring.dashboard import RegisterView
from .scoring.records import (
    AIAnalysis,
    Action,
    ActionStatus,
    AnalysisStatus,
    ComplianceStatus,
    EnvironmentalAspect,
    Incident,
    IncidentStatus,
    LegalRequirement,
    QualityMetricPeriod,
    Risk,
    RiskStatus,
    SafetyMetricPeriod,
    Standard,
    as_datetime,
)


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return as_datetime(date.fromisoformat(value[:10]))


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def risk_from_row(row) -> Risk:
    return Risk(
        id=row["id"],
        standard=Standard(row["standard"]),
        likelihood=int(row["likelihood"]),
        severity=int(row["severity"]),
        detectability=int(row["detectability"]),
        status=RiskStatus(row["status"]),
        created_at=parse_ts(row["created_at"]),
        title=row["title"],
    )


def aspect_from_row(row) -> EnvironmentalAspect:
    return EnvironmentalAspect(
        id=row["id"],
        likelihood=int(row["likelihood"]),
        severity=int(row["severity"]),
        frequency=int(row["frequency"]),
        status=RiskStatus(row["status"]),
        created_at=parse_ts(row["created_at"]),
        title=row["title"],
    )


def incident_from_row(row) -> Incident:
    return Incident(
        id=row["id"],
        standard=Standard(row["standard"]),
        status=IncidentStatus(row["status"]),
        date_occurred=parse_ts(row["date_occurred"]),
        created_at=parse_ts(row["created_at"]),
        title=row["title"],
    )


def action_from_row(row) -> Action:
    return Action(
        id=row["id"],
        standard=Standard(row["standard"]),
        status=ActionStatus(row["status"]),
        due_date=parse_ts(row["due_date"]),
        title=row["title"],
    )


def legal_from_row(row) -> LegalRequirement:
    return LegalRequirement(
        id=row["id"],
        standard=Standard(row["standard"]),
        compliance_status=ComplianceStatus(row["compliance_status"]),
    )


def analysis_from_row(row) -> AIAnalysis:
    return AIAnalysis(
        id=row["id"],
        status=AnalysisStatus(row["status"]),
        created_at=parse_ts(row["created_at"]),
        source_type=row["source_type"],
        source_id=row["source_id"],
        suggested_root_cause=row["suggested_root_cause"],
    )


def period_from_row(row) -> SafetyMetricPeriod:
    return SafetyMetricPeriod(
        year=int(row["year"]),
        month=int(row["month"]),
        hours_worked=float(row["hours_worked"]),
        lost_time_injuries=int(row["lost_time_injuries"]),
        total_recordable_injuries=int(row["total_recordable_injuries"]),
        days_lost=int(row["days_lost"]),
        near_misses=int(row["near_misses"]),
    )


def quality_period_from_row(row) -> QualityMetricPeriod:
    return QualityMetricPeriod(
        year=int(row["year"]),
        month=int(row["month"]),
        total_units=int(row["total_units"]),
        defective_units=int(row["defective_units"]),
        defect_opportunities=int(row["defect_opportunities"]),
        prevention_cost=float(row["prevention_cost"]),
        appraisal_cost=float(row["appraisal_cost"]),
        internal_failure_cost=float(row["internal_failure_cost"]),
        external_failure_cost=float(row["external_failure_cost"]),
    )


def _rows(conn, sql: str, params: Optional[dict] = None):
    return conn.execute(text(sql), params or {}).mappings().all()


def load_view(conn, standard: Optional[Standard] = None, include_analyses: bool = True) -> RegisterView:
    """Fetch every register the core needs. Each SELECT sees its own point in time."""
    where, params = "", {}
    if standard is not None:
        where, params = " WHERE standard = :standard", {"standard": Standard(standard).value}
    aspects = []
    if standard is None or Standard(standard) == Standard.ISO_14001:
        aspects = [aspect_from_row(r) for r in _rows(conn, "SELECT * FROM aspects")]
    analyses = []
    if include_analyses:
        analyses = [analysis_from_row(r) for r in _rows(conn, "SELECT * FROM ai_analyses")]
    return RegisterView(
        risks=[risk_from_row(r) for r in _rows(conn, "SELECT * FROM risks" + where, params)],
        aspects=aspects,
        incidents=[incident_from_row(r) for r in _rows(conn, "SELECT * FROM incidents" + where, params)],
        actions=[action_from_row(r) for r in _rows(conn, "SELECT * FROM actions" + where, params)],
        legal_requirements=[legal_from_row(r) for r in _rows(conn, "SELECT * FROM legal_requirements" + where, params)],
        analyses=analyses,
    )


def save_compliance(conn, score: ComplianceScore, calculated_at: datetime) -> None:
    values = {
        "standard": score.standard.value,
        "overall_score": score.overall_score,
        "incident_score": score.incident_closure_rate,
        "action_score": score.action_on_time_rate,
        "legal_score": score.legal_compliance_rate,
        "risk_score": score.risk_exposure_rate,
        "total_items": score.total_items,
        "compliant_items": score.compliant_items,
        "calculated_at": calculated_at.isoformat(),
    }
    res = conn.execute(text(
        """
        UPDATE compliance_scores SET overall_score = :overall_score, incident_score = :incident_score,
            action_score = :action_score, legal_score = :legal_score, risk_score = :risk_score,
            total_items = :total_items, compliant_items = :compliant_items, calculated_at = :calculated_at
        WHERE standard = :standard
        """
    ), values)
    if res.rowcount == 0:
        conn.execute(text(
            """
            INSERT INTO compliance_scores (standard, overall_score, incident_score, action_score, legal_score, risk_score, total_items, compliant_items, calculated_at)
            VALUES (:standard, :overall_score, :incident_score, :action_score, :legal_score, :risk_score, :total_items, :compliant_items, :calculated_at)
            """
        ), values)


def refresh_compliance(conn, standards: Iterable[Standard], now: Optional[datetime] = None) -> None:
    """Recompute and store the score of each touched standard, nothing else."""
    now = now or datetime.utcnow()
    for standard in {Standard(s) for s in standards if s}:
        start = time.perf_counter()
        view = load_view(conn, standard=standard, include_analyses=False)
        scored = list(view.risks) + list(view.aspects)
        score = aggregate_compliance(standard, scored, view.incidents, view.actions, view.legal_requirements, now=now)
        save_compliance(conn, score, now)
        log_event(
            "compliance_refreshed",
            standard=standard.value,
            overall_score=score.overall_score,
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
        )
