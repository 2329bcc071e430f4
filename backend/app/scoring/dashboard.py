"""Dashboard composition over one in-memory view of the registers.

The caller loads every collection up front; nothing here performs I/O, so
the snapshot reflects whatever the loads returned. Loads are not wrapped in
one transaction, which leaves a short staleness window under concurrent
writes. That is acceptable for an advisory dashboard.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .compliance import ComplianceScore, aggregate_compliance, overall_ims_score
from .levels import RiskLevel, assess, is_significant
from .records import (
    AIAnalysis,
    Action,
    AnalysisStatus,
    EnvironmentalAspect,
    Incident,
    LegalRequirement,
    Risk,
    Standard,
)

TOP_N = 5
DUE_SOON_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class RegisterView:
    risks: Sequence[Risk] = ()
    aspects: Sequence[EnvironmentalAspect] = ()
    incidents: Sequence[Incident] = ()
    actions: Sequence[Action] = ()
    legal_requirements: Sequence[LegalRequirement] = ()
    analyses: Sequence[AIAnalysis] = ()


@dataclass(frozen=True)
class RankedRisk:
    id: str
    title: str
    standard: Standard
    score: int
    level: str
    likelihood: int
    severity: int
    created_at: datetime


@dataclass(frozen=True)
class DashboardSnapshot:
    generated_at: datetime
    compliance: Dict[Standard, ComplianceScore]
    overall_compliance: int
    risks: Dict[str, object]
    incidents: Dict[str, object]
    actions: Dict[str, int]
    aspects: Dict[str, int]
    top_risks: List[RankedRisk] = field(default_factory=list)
    overdue_actions: List[Action] = field(default_factory=list)
    recent_analyses: List[AIAnalysis] = field(default_factory=list)


def _by_standard() -> Dict[str, int]:
    return {s.value: 0 for s in Standard}


def _rank(risk: Risk) -> RankedRisk:
    result = assess(risk)
    return RankedRisk(
        id=risk.id,
        title=risk.title,
        standard=risk.standard,
        score=result.score,
        level=result.level.value,
        likelihood=risk.likelihood,
        severity=risk.severity,
        created_at=risk.created_at,
    )


def top_risks(risks: Sequence[Risk], limit: int = TOP_N) -> List[RankedRisk]:
    """Highest-scored active risks; equal scores go newest first."""
    ranked = [_rank(r) for r in risks if r.is_active]
    ranked.sort(key=lambda r: (r.score, r.created_at), reverse=True)
    return ranked[:limit]


def soonest_overdue(actions: Sequence[Action], now: datetime, limit: int = TOP_N) -> List[Action]:
    overdue = [a for a in actions if a.is_overdue(now)]
    overdue.sort(key=lambda a: (a.due_date is None, a.due_date or now, a.id))
    return overdue[:limit]


def recent_analyses(analyses: Sequence[AIAnalysis], limit: int = TOP_N) -> List[AIAnalysis]:
    done = [a for a in analyses if a.status == AnalysisStatus.COMPLETED]
    done.sort(key=lambda a: a.created_at, reverse=True)
    return done[:limit]


def _month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        return start, datetime(now.year + 1, 1, 1)
    return start, datetime(now.year, now.month + 1, 1)


def compose_dashboard(view: RegisterView, now: Optional[datetime] = None) -> DashboardSnapshot:
    now = now or datetime.utcnow()
    scored_risks = list(view.risks) + list(view.aspects)

    compliance = {
        s: aggregate_compliance(s, scored_risks, view.incidents, view.actions, view.legal_requirements, now=now)
        for s in Standard
    }

    risk_counts = {"total": 0, "high": 0, "critical": 0, "by_standard": _by_standard()}
    for r in view.risks:
        if not r.is_active:
            continue
        level = assess(r).level
        risk_counts["total"] += 1
        risk_counts["by_standard"][r.standard.value] += 1
        if level == RiskLevel.HIGH:
            risk_counts["high"] += 1
        elif level == RiskLevel.CRITICAL:
            risk_counts["critical"] += 1

    month_start, next_month = _month_bounds(now)
    incident_counts = {"total": 0, "open": 0, "this_month": 0, "by_standard": _by_standard()}
    for i in view.incidents:
        incident_counts["total"] += 1
        incident_counts["by_standard"][i.standard.value] += 1
        if not i.is_closed:
            incident_counts["open"] += 1
        if month_start <= i.date_occurred < next_month:
            incident_counts["this_month"] += 1

    week_end = now + DUE_SOON_WINDOW
    action_counts = {"total": 0, "open": 0, "overdue": 0, "due_this_week": 0}
    for a in view.actions:
        action_counts["total"] += 1
        if not a.is_open:
            continue
        action_counts["open"] += 1
        if a.is_overdue(now):
            action_counts["overdue"] += 1
        elif a.due_date is not None and now <= a.due_date <= week_end:
            action_counts["due_this_week"] += 1

    active_aspects = [a for a in view.aspects if a.is_active]
    aspect_counts = {
        "active": len(active_aspects),
        "significant": sum(1 for a in active_aspects if is_significant(assess(a))),
    }

    return DashboardSnapshot(
        generated_at=now,
        compliance=compliance,
        overall_compliance=overall_ims_score(compliance.values()),
        risks=risk_counts,
        incidents=incident_counts,
        actions=action_counts,
        aspects=aspect_counts,
        top_risks=top_risks(view.risks),
        overdue_actions=soonest_overdue(view.actions, now),
        recent_analyses=recent_analyses(view.analyses),
    )


def summarize_standard(view: RegisterView, standard: Standard, now: Optional[datetime] = None) -> dict:
    """Counts, rates and short lists for a single standard."""
    now = now or datetime.utcnow()
    standard = Standard(standard)
    risks = [r for r in view.risks if r.standard == standard]
    if standard == Standard.ISO_14001:
        scored = risks + [a for a in view.aspects if a.standard == standard]
    else:
        scored = risks
    score = aggregate_compliance(standard, scored, view.incidents, view.actions, view.legal_requirements, now=now)

    high_critical = [r for r in top_risks(risks, limit=len(risks)) if r.level in (RiskLevel.HIGH.value, RiskLevel.CRITICAL.value)]
    incidents = [i for i in view.incidents if i.standard == standard]
    incidents.sort(key=lambda i: i.date_occurred, reverse=True)
    open_actions = [a for a in view.actions if a.standard == standard and a.is_open]

    return {
        "standard": standard,
        "compliance": score,
        "risks": {"active": sum(1 for r in risks if r.is_active), "high_critical": len(high_critical)},
        "incidents": {
            "total": score.total_incidents,
            "open": score.total_incidents - score.closed_incidents,
            "closure_rate": score.incident_closure_rate,
        },
        "actions": {"total": score.total_actions, "open": len(open_actions), "overdue": score.overdue_actions},
        "legal": {
            "total": score.total_requirements,
            "compliant": score.compliant_requirements,
            "compliance_rate": score.legal_compliance_rate,
        },
        "recent_incidents": incidents[:TOP_N],
        "top_risks": high_critical[:TOP_N],
    }
