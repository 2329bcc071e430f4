"""Per-standard compliance percentages and the cross-standard IMS score."""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from .. import config
from .base import round_half_up
from .levels import assess
from .records import Action, Incident, LegalRequirement, Standard

EXPOSURE_WEIGHTS: Dict[str, float] = config.risk_exposure_weights()

FULLY_COMPLIANT = 100.0


@dataclass(frozen=True)
class ComplianceScore:
    standard: Standard
    incident_closure_rate: float
    action_on_time_rate: float
    legal_compliance_rate: float
    risk_exposure_rate: float
    overall_score: int
    total_incidents: int = 0
    closed_incidents: int = 0
    total_actions: int = 0
    overdue_actions: int = 0
    total_requirements: int = 0
    compliant_requirements: int = 0
    active_risks: int = 0
    total_risks: int = 0

    @property
    def total_items(self) -> int:
        return self.total_incidents + self.total_actions + self.total_requirements + self.total_risks

    @property
    def compliant_items(self) -> int:
        return self.closed_incidents + (self.total_actions - self.overdue_actions) + self.compliant_requirements

    @property
    def has_records(self) -> bool:
        return self.total_items > 0


def _share(part: float, whole: int) -> float:
    # Within a standard that has records, an empty register owes nothing.
    if whole == 0:
        return FULLY_COMPLIANT
    return part / whole * 100


def aggregate_compliance(
    standard: Standard,
    risks: Iterable,
    incidents: Iterable[Incident],
    actions: Iterable[Action],
    legal_requirements: Iterable[LegalRequirement],
    now: Optional[datetime] = None,
    weights: Optional[Mapping[str, float]] = None,
) -> ComplianceScore:
    """Score one standard from the current register contents.

    ``risks`` may mix risk-register entries and environmental aspects; each
    is re-scored from its factors and weighted by level. Records tagged with
    another standard are ignored, so full collections can be passed in.
    A standard with no records at all scores 0 on every rate and is left
    out of :func:`overall_ims_score`.
    """
    now = now or datetime.utcnow()
    weights = EXPOSURE_WEIGHTS if weights is None else weights
    standard = Standard(standard)

    total_risks = 0
    active = 0
    exposure = 0.0
    for r in risks:
        if r.standard != standard:
            continue
        total_risks += 1
        if not r.is_active:
            continue
        active += 1
        exposure += weights.get(assess(r).level.value, 0.0)

    total_incidents = closed = 0
    for i in incidents:
        if i.standard != standard:
            continue
        total_incidents += 1
        if i.is_closed:
            closed += 1

    total_actions = overdue = 0
    for a in actions:
        if a.standard != standard:
            continue
        total_actions += 1
        if a.is_overdue(now):
            overdue += 1

    total_reqs = satisfied = 0
    for req in legal_requirements:
        if req.standard != standard:
            continue
        total_reqs += 1
        if req.is_satisfied:
            satisfied += 1

    if total_risks + total_incidents + total_actions + total_reqs == 0:
        # Nothing recorded yet: the standard has not been started, so it scores 0
        return ComplianceScore(
            standard=standard,
            incident_closure_rate=0.0,
            action_on_time_rate=0.0,
            legal_compliance_rate=0.0,
            risk_exposure_rate=0.0,
            overall_score=0,
        )

    closure_rate = _share(closed, total_incidents)
    on_time_rate = _share(total_actions - overdue, total_actions)
    legal_rate = _share(satisfied, total_reqs)
    exposure_rate = FULLY_COMPLIANT - (_share(exposure, active) if active else 0.0)

    overall = round_half_up((closure_rate + on_time_rate + legal_rate + exposure_rate) / 4)
    return ComplianceScore(
        standard=standard,
        incident_closure_rate=round_half_up(closure_rate, 2),
        action_on_time_rate=round_half_up(on_time_rate, 2),
        legal_compliance_rate=round_half_up(legal_rate, 2),
        risk_exposure_rate=round_half_up(exposure_rate, 2),
        overall_score=overall,
        total_incidents=total_incidents,
        closed_incidents=closed,
        total_actions=total_actions,
        overdue_actions=overdue,
        total_requirements=total_reqs,
        compliant_requirements=satisfied,
        active_risks=active,
        total_risks=total_risks,
    )


def overall_ims_score(scores: Iterable[ComplianceScore]) -> int:
    """Unweighted mean over the standards that have any records at all."""
    recorded = [s.overall_score for s in scores if s.has_records]
    if not recorded:
        return 0
    return round_half_up(sum(recorded) / len(recorded))
