"""Pure scoring core: risk/aspect levels, safety, quality and environmental indicators, compliance, dashboards."""
from .base import ScoringContractError
from .compliance import ComplianceScore, aggregate_compliance, overall_ims_score
from .dashboard import DashboardSnapshot, RegisterView, compose_dashboard, summarize_standard
from .environment import carbon_footprint, waste_diversion_rate
from .levels import (
    ASPECT_SCORER,
    RISK_SCORER,
    OrdinalRiskScorer,
    RiskLevel,
    ScoreResult,
    SignificanceLevel,
    ThresholdTable,
    assess,
    residual_risk,
    risk_matrix,
    score_aspect,
    score_risk,
)
from .quality import QualityMetrics, QualityTotals, compute_quality_metrics, quality_year_to_date
from .safety import SafetyRates, SafetyTotals, compute_safety_rates, year_to_date

__all__ = [
    "ASPECT_SCORER",
    "ComplianceScore",
    "DashboardSnapshot",
    "OrdinalRiskScorer",
    "QualityMetrics",
    "QualityTotals",
    "RISK_SCORER",
    "RegisterView",
    "RiskLevel",
    "SafetyRates",
    "SafetyTotals",
    "ScoreResult",
    "ScoringContractError",
    "SignificanceLevel",
    "ThresholdTable",
    "aggregate_compliance",
    "assess",
    "carbon_footprint",
    "compose_dashboard",
    "compute_quality_metrics",
    "compute_safety_rates",
    "overall_ims_score",
    "quality_year_to_date",
    "residual_risk",
    "risk_matrix",
    "score_aspect",
    "score_risk",
    "summarize_standard",
    "waste_diversion_rate",
    "year_to_date",
]
