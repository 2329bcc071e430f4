import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from prometheus_client import Histogram
from sqlalchemy import text

from . import schemas
from .auth import role_required
from .db import engine
from .logging_config import log_event
from .repository import load_view, period_from_row, quality_period_from_row
from .scoring import (
    ScoringContractError,
    carbon_footprint,
    compose_dashboard,
    compute_quality_metrics,
    compute_safety_rates,
    quality_year_to_date,
    summarize_standard,
    waste_diversion_rate,
    year_to_date,
)
from .scoring.base import round_half_up
from .scoring.compliance import ComplianceScore
from .scoring.dashboard import RankedRisk
from .scoring.quality import copq_breakdown, quality_statuses
from .scoring.records import Action, AIAnalysis, Incident, Standard
from .scoring.safety import safety_metric_status

router = APIRouter()

DASHBOARD_COMPOSE = Histogram(
    "dashboard_compose_seconds",
    "Time spent loading registers and composing the dashboard",
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Short keys used by the dashboard client
COMPLIANCE_KEYS = {
    Standard.ISO_45001: "iso45001",
    Standard.ISO_14001: "iso14001",
    Standard.ISO_9001: "iso9001",
}


# --- Safety metrics ---
def _row_to_metric(row) -> schemas.SafetyMetric:
    return schemas.SafetyMetric(**dict(row))


@router.get("/safety-metrics", response_model=List[schemas.SafetyMetric], tags=["Safety"])
def list_safety_metrics(year: Optional[int] = None):
    sql = "SELECT * FROM safety_metrics"
    params = {}
    if year is not None:
        sql += " WHERE year = :year"
        params["year"] = year
    with engine.connect() as conn:
        rows = conn.execute(text(sql + " ORDER BY year DESC, month DESC"), params).mappings().all()
    return [_row_to_metric(r) for r in rows]


@router.post("/safety-metrics", response_model=schemas.SafetyMetric, tags=["Safety"])
def upsert_safety_metric(payload: schemas.SafetyMetricIn, _auth=Depends(role_required("editor"))):
    """Create or replace the figures for one (year, month); rates are always recomputed."""
    rates = compute_safety_rates(
        payload.hours_worked,
        payload.lost_time_injuries,
        payload.total_recordable_injuries,
        payload.days_lost,
    )
    now = datetime.utcnow().isoformat()
    values = {
        **payload.model_dump(),
        "ltifr": rates.ltifr,
        "trir": rates.trir,
        "severity_rate": rates.severity_rate,
        "updated_at": now,
    }
    with engine.begin() as conn:
        res = conn.execute(text(
            """
            UPDATE safety_metrics SET hours_worked = :hours_worked, lost_time_injuries = :lost_time_injuries,
                total_recordable_injuries = :total_recordable_injuries, days_lost = :days_lost,
                near_misses = :near_misses, first_aid_cases = :first_aid_cases,
                ltifr = :ltifr, trir = :trir, severity_rate = :severity_rate, updated_at = :updated_at
            WHERE year = :year AND month = :month
            """
        ), values)
        if res.rowcount == 0:
            conn.execute(text(
                """
                INSERT INTO safety_metrics (id, year, month, hours_worked, lost_time_injuries, total_recordable_injuries,
                    days_lost, near_misses, first_aid_cases, ltifr, trir, severity_rate, created_at, updated_at)
                VALUES (:id, :year, :month, :hours_worked, :lost_time_injuries, :total_recordable_injuries,
                    :days_lost, :near_misses, :first_aid_cases, :ltifr, :trir, :severity_rate, :created_at, :updated_at)
                """
            ), {**values, "id": uuid.uuid4().hex, "created_at": now})
        row = conn.execute(
            text("SELECT * FROM safety_metrics WHERE year = :year AND month = :month"),
            {"year": payload.year, "month": payload.month},
        ).mappings().first()
    log_event(
        "safety_metric_upserted",
        year=payload.year,
        month=payload.month,
        ltifr=rates.ltifr,
        trir=rates.trir,
        severity_rate=rates.severity_rate,
    )
    return _row_to_metric(row)


@router.get("/safety-metrics/summary", response_model=schemas.SafetySummary, tags=["Safety"])
def safety_summary(
    year: Optional[int] = None,
    ltifr_benchmark: Optional[float] = None,
    trir_benchmark: Optional[float] = None,
):
    year = year or datetime.utcnow().year
    for name, value in (("ltifr_benchmark", ltifr_benchmark), ("trir_benchmark", trir_benchmark)):
        if value is not None and value <= 0:
            raise HTTPException(status_code=400, detail=f"{name} must be positive")
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM safety_metrics WHERE year = :year"), {"year": year}).mappings().all()
    totals = year_to_date(year, (period_from_row(r) for r in rows))
    rates = totals.rates
    return schemas.SafetySummary(
        year=year,
        months_reported=totals.months,
        total_hours_worked=totals.hours_worked,
        total_lost_time_injuries=totals.lost_time_injuries,
        total_recordable_injuries=totals.total_recordable_injuries,
        total_days_lost=totals.days_lost,
        total_near_misses=totals.near_misses,
        ltifr=rates.ltifr,
        trir=rates.trir,
        severity_rate=rates.severity_rate,
        near_miss_rate=rates.near_miss_rate,
        ltifr_status=safety_metric_status(rates.ltifr, ltifr_benchmark) if ltifr_benchmark else None,
        trir_status=safety_metric_status(rates.trir, trir_benchmark) if trir_benchmark else None,
    )


# --- Quality metrics ---
def _row_to_quality(row) -> schemas.QualityMetric:
    return schemas.QualityMetric(**dict(row))


@router.get("/quality-metrics", response_model=List[schemas.QualityMetric], tags=["Quality"])
def list_quality_metrics(year: Optional[int] = None):
    sql = "SELECT * FROM quality_metrics"
    params = {}
    if year is not None:
        sql += " WHERE year = :year"
        params["year"] = year
    with engine.connect() as conn:
        rows = conn.execute(text(sql + " ORDER BY year DESC, month DESC"), params).mappings().all()
    return [_row_to_quality(r) for r in rows]


@router.post("/quality-metrics", response_model=schemas.QualityMetric, tags=["Quality"])
def upsert_quality_metric(payload: schemas.QualityMetricIn, _auth=Depends(role_required("editor"))):
    """Create or replace the figures for one (year, month); indicators are always recomputed."""
    if payload.defective_units > payload.total_units:
        raise HTTPException(status_code=422, detail="defective_units cannot exceed total_units")
    metrics = compute_quality_metrics(
        payload.prevention_cost,
        payload.appraisal_cost,
        payload.internal_failure_cost,
        payload.external_failure_cost,
        payload.total_units,
        payload.defective_units,
        payload.defect_opportunities,
    )
    now = datetime.utcnow().isoformat()
    values = {
        **payload.model_dump(),
        "total_copq": metrics.total_copq,
        "dpmo": metrics.dpmo,
        "first_pass_yield": metrics.first_pass_yield,
        "process_sigma": metrics.process_sigma,
        "defect_rate": metrics.defect_rate,
        "updated_at": now,
    }
    with engine.begin() as conn:
        res = conn.execute(text(
            """
            UPDATE quality_metrics SET prevention_cost = :prevention_cost, appraisal_cost = :appraisal_cost,
                internal_failure_cost = :internal_failure_cost, external_failure_cost = :external_failure_cost,
                total_units = :total_units, defective_units = :defective_units,
                defect_opportunities = :defect_opportunities, total_copq = :total_copq, dpmo = :dpmo,
                first_pass_yield = :first_pass_yield, process_sigma = :process_sigma,
                defect_rate = :defect_rate, updated_at = :updated_at
            WHERE year = :year AND month = :month
            """
        ), values)
        if res.rowcount == 0:
            conn.execute(text(
                """
                INSERT INTO quality_metrics (id, year, month, prevention_cost, appraisal_cost, internal_failure_cost,
                    external_failure_cost, total_units, defective_units, defect_opportunities, total_copq, dpmo,
                    first_pass_yield, process_sigma, defect_rate, created_at, updated_at)
                VALUES (:id, :year, :month, :prevention_cost, :appraisal_cost, :internal_failure_cost,
                    :external_failure_cost, :total_units, :defective_units, :defect_opportunities, :total_copq, :dpmo,
                    :first_pass_yield, :process_sigma, :defect_rate, :created_at, :updated_at)
                """
            ), {**values, "id": uuid.uuid4().hex, "created_at": now})
        row = conn.execute(
            text("SELECT * FROM quality_metrics WHERE year = :year AND month = :month"),
            {"year": payload.year, "month": payload.month},
        ).mappings().first()
    log_event(
        "quality_metric_upserted",
        year=payload.year,
        month=payload.month,
        dpmo=metrics.dpmo,
        first_pass_yield=metrics.first_pass_yield,
        process_sigma=metrics.process_sigma,
    )
    return _row_to_quality(row)


@router.get("/quality-metrics/summary", response_model=schemas.QualitySummary, tags=["Quality"])
def quality_summary(
    year: Optional[int] = None,
    dpmo_target: Optional[float] = None,
    first_pass_yield_target: Optional[float] = None,
    process_sigma_target: Optional[float] = None,
    defect_rate_target: Optional[float] = None,
):
    year = year or datetime.utcnow().year
    targets = {
        name: value
        for name, value in (
            ("dpmo", dpmo_target),
            ("first_pass_yield", first_pass_yield_target),
            ("process_sigma", process_sigma_target),
            ("defect_rate", defect_rate_target),
        )
        if value is not None
    }
    for name, value in targets.items():
        if value < 0:
            raise HTTPException(status_code=400, detail=f"{name}_target must be >= 0")
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM quality_metrics WHERE year = :year"), {"year": year}).mappings().all()
    totals = quality_year_to_date(year, (quality_period_from_row(r) for r in rows))
    metrics = totals.metrics
    return schemas.QualitySummary(
        year=year,
        months_reported=totals.months,
        prevention_cost=totals.prevention_cost,
        appraisal_cost=totals.appraisal_cost,
        internal_failure_cost=totals.internal_failure_cost,
        external_failure_cost=totals.external_failure_cost,
        total_units=totals.total_units,
        defective_units=totals.defective_units,
        total_copq=metrics.total_copq,
        copq_breakdown=copq_breakdown(
            totals.prevention_cost,
            totals.appraisal_cost,
            totals.internal_failure_cost,
            totals.external_failure_cost,
        ),
        dpmo=metrics.dpmo,
        first_pass_yield=metrics.first_pass_yield,
        process_sigma=metrics.process_sigma,
        defect_rate=metrics.defect_rate,
        status=quality_statuses(metrics, targets),
    )


# --- Environmental indicators ---
@router.post("/environment/carbon-footprint", response_model=schemas.CarbonFootprintOut, tags=["Environment"])
def compute_carbon_footprint(payload: schemas.CarbonFootprintIn):
    return schemas.CarbonFootprintOut(tonnes_co2e=carbon_footprint(payload.model_dump()))


@router.post("/environment/waste-diversion", response_model=schemas.WasteDiversionOut, tags=["Environment"])
def compute_waste_diversion(payload: schemas.WasteIn):
    diverted = payload.recycled + payload.composted + payload.recovered
    return schemas.WasteDiversionOut(
        total=round_half_up(diverted + payload.landfill, 2),
        diverted=round_half_up(diverted, 2),
        diversion_rate=waste_diversion_rate(payload.recycled, payload.composted, payload.recovered, payload.landfill),
    )


# --- Dashboard ---
def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _compliance_out(score: ComplianceScore, calculated_at: Optional[str] = None) -> schemas.ComplianceOut:
    return schemas.ComplianceOut(
        standard=score.standard,
        overall_score=score.overall_score,
        incident_closure_rate=score.incident_closure_rate,
        action_on_time_rate=score.action_on_time_rate,
        legal_compliance_rate=score.legal_compliance_rate,
        risk_exposure_rate=score.risk_exposure_rate,
        total_items=score.total_items,
        compliant_items=score.compliant_items,
        calculated_at=calculated_at,
    )


def _ranked_out(r: RankedRisk) -> schemas.RankedRiskOut:
    return schemas.RankedRiskOut(
        id=r.id,
        title=r.title,
        standard=r.standard,
        risk_score=r.score,
        risk_level=r.level,
        likelihood=r.likelihood,
        severity=r.severity,
        created_at=r.created_at.isoformat(),
    )


def _action_out(a: Action) -> schemas.OverdueActionOut:
    return schemas.OverdueActionOut(
        id=a.id,
        title=a.title,
        standard=a.standard,
        status=a.status,
        due_date=a.due_date.date().isoformat() if a.due_date else None,
    )


def _insight_out(a: AIAnalysis) -> schemas.AnalysisInsightOut:
    return schemas.AnalysisInsightOut(
        id=a.id,
        source_type=a.source_type,
        source_id=a.source_id,
        suggested_root_cause=a.suggested_root_cause,
        created_at=a.created_at.isoformat(),
    )


def _incident_out(i: Incident) -> dict:
    return {
        "id": i.id,
        "title": i.title,
        "status": i.status.value,
        "date_occurred": i.date_occurred.isoformat(),
    }


@router.get("/dashboard/stats", response_model=schemas.DashboardStats, tags=["Dashboard"])
def dashboard_stats(as_of: Optional[datetime] = None):
    """Compliance, counts and short lists across all three standards."""
    start = time.perf_counter()
    with engine.connect() as conn:
        view = load_view(conn)
    snapshot = compose_dashboard(view, now=_naive_utc(as_of))
    duration = time.perf_counter() - start
    DASHBOARD_COMPOSE.observe(duration)
    log_event(
        "dashboard_composed",
        risks=len(view.risks),
        incidents=len(view.incidents),
        actions=len(view.actions),
        overall_compliance=snapshot.overall_compliance,
        duration_ms=round(duration * 1000.0, 2),
    )

    compliance = {COMPLIANCE_KEYS[s]: score.overall_score for s, score in snapshot.compliance.items()}
    compliance["overall"] = snapshot.overall_compliance
    return schemas.DashboardStats(
        generated_at=snapshot.generated_at.isoformat(),
        compliance=compliance,
        compliance_detail={s.value: _compliance_out(score) for s, score in snapshot.compliance.items()},
        risks=snapshot.risks,
        incidents=snapshot.incidents,
        actions=snapshot.actions,
        aspects=snapshot.aspects,
        top_risks=[_ranked_out(r) for r in snapshot.top_risks],
        overdue_actions=[_action_out(a) for a in snapshot.overdue_actions],
        recent_ai_insights=[_insight_out(a) for a in snapshot.recent_analyses],
    )


@router.get("/dashboard/compliance", response_model=List[schemas.ComplianceOut], tags=["Dashboard"])
def stored_compliance():
    """Last persisted score per standard; standards never written to report zero."""
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM compliance_scores")).mappings().all()
    by_standard = {r["standard"]: r for r in rows}
    out = []
    for standard in Standard:
        row = by_standard.get(standard.value)
        if row is None:
            out.append(schemas.ComplianceOut(
                standard=standard,
                overall_score=0,
                incident_closure_rate=0.0,
                action_on_time_rate=0.0,
                legal_compliance_rate=0.0,
                risk_exposure_rate=0.0,
                total_items=0,
                compliant_items=0,
            ))
            continue
        out.append(schemas.ComplianceOut(
            standard=standard,
            overall_score=int(row["overall_score"]),
            incident_closure_rate=float(row["incident_score"]),
            action_on_time_rate=float(row["action_score"]),
            legal_compliance_rate=float(row["legal_score"]),
            risk_exposure_rate=float(row["risk_score"]),
            total_items=int(row["total_items"]),
            compliant_items=int(row["compliant_items"]),
            calculated_at=row["calculated_at"],
        ))
    return out


@router.get("/dashboard/summary/{standard}", tags=["Dashboard"], responses={400: {"model": schemas.ErrorResponse}})
def standard_summary(standard: str, as_of: Optional[datetime] = None):
    try:
        std = Standard(standard.upper())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid standard. Use ISO_45001, ISO_14001 or ISO_9001")
    with engine.connect() as conn:
        view = load_view(conn, standard=std, include_analyses=False)
    try:
        summary = summarize_standard(view, std, now=_naive_utc(as_of))
    except ScoringContractError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        **summary,
        "standard": std.value,
        "compliance": _compliance_out(summary["compliance"]).model_dump(mode="json"),
        "recent_incidents": [_incident_out(i) for i in summary["recent_incidents"]],
        "top_risks": [_ranked_out(r).model_dump(mode="json") for r in summary["top_risks"]],
    }
