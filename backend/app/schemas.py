from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from .scoring.levels import DEFAULT_FACTOR, FACTOR_MAX, FACTOR_MIN
from .scoring.records import (
    ActionStatus,
    AnalysisStatus,
    ComplianceStatus,
    IncidentStatus,
    RiskStatus,
    Standard,
)


def _factor(default=DEFAULT_FACTOR):
    return Field(default, ge=FACTOR_MIN, le=FACTOR_MAX)


# --- API helpers ---
class ErrorResponse(BaseModel):
    detail: str


T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int


# --- Risks ---
class RiskCreate(BaseModel):
    standard: Standard = Standard.ISO_45001
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    likelihood: int = _factor()
    severity: int = _factor()
    detectability: int = _factor()
    control_effectiveness: Optional[int] = Field(None, ge=0, le=100)
    existing_controls: Optional[str] = None
    review_date: Optional[date] = None
    model_config = {"json_schema_extra": {"examples": [{
        "standard": "ISO_45001",
        "title": "Working at height on mezzanine",
        "likelihood": 4,
        "severity": 5,
        "detectability": 3,
    }]}}


class RiskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    likelihood: Optional[int] = _factor(None)
    severity: Optional[int] = _factor(None)
    detectability: Optional[int] = _factor(None)
    control_effectiveness: Optional[int] = Field(None, ge=0, le=100)
    existing_controls: Optional[str] = None
    status: Optional[RiskStatus] = None
    review_date: Optional[date] = None
    model_config = {"json_schema_extra": {"examples": [{"detectability": 5}]}}


class Risk(BaseModel):
    id: str
    standard: Standard
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    likelihood: int
    severity: int
    detectability: int
    risk_score: int
    risk_level: str
    control_effectiveness: Optional[int] = None
    residual_score: Optional[int] = None
    existing_controls: Optional[str] = None
    status: RiskStatus
    review_date: Optional[date] = None
    last_reviewed_at: Optional[str] = None
    created_at: str
    updated_at: str


class MatrixCell(BaseModel):
    likelihood: int
    severity: int
    score: int
    level: str
    risks: List[Dict[str, Any]] = []


# --- Environmental aspects ---
class AspectCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    aspect_type: Optional[str] = None
    environmental_impact: Optional[str] = None
    likelihood: int = _factor()
    severity: int = _factor()
    frequency: int = _factor()
    review_date: Optional[date] = None


class AspectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    aspect_type: Optional[str] = None
    environmental_impact: Optional[str] = None
    likelihood: Optional[int] = _factor(None)
    severity: Optional[int] = _factor(None)
    frequency: Optional[int] = _factor(None)
    status: Optional[RiskStatus] = None
    review_date: Optional[date] = None


class Aspect(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    aspect_type: Optional[str] = None
    environmental_impact: Optional[str] = None
    likelihood: int
    severity: int
    frequency: int
    significance_score: int
    significance_level: str
    significant: bool
    status: RiskStatus
    review_date: Optional[date] = None
    last_reviewed_at: Optional[str] = None
    created_at: str
    updated_at: str


# --- Incidents ---
class IncidentCreate(BaseModel):
    standard: Standard = Standard.ISO_45001
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = "MODERATE"
    date_occurred: datetime


class IncidentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    status: Optional[IncidentStatus] = None
    date_occurred: Optional[datetime] = None


class Incident(BaseModel):
    id: str
    standard: Standard
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    status: IncidentStatus
    date_occurred: str
    closed_at: Optional[str] = None
    created_at: str
    updated_at: str


# --- Actions ---
class ActionCreate(BaseModel):
    standard: Standard
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: Optional[str] = "CORRECTIVE"
    priority: Optional[str] = "MEDIUM"
    due_date: Optional[date] = None
    risk_id: Optional[str] = None
    incident_id: Optional[str] = None


class ActionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[ActionStatus] = None
    due_date: Optional[date] = None


class Action(BaseModel):
    id: str
    standard: Standard
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    status: ActionStatus
    due_date: Optional[date] = None
    completed_at: Optional[str] = None
    risk_id: Optional[str] = None
    incident_id: Optional[str] = None
    created_at: str
    updated_at: str


# --- Legal requirements ---
class LegalRequirementCreate(BaseModel):
    standard: Standard = Standard.ISO_14001
    title: str = Field(..., min_length=1)
    type: Optional[str] = None
    compliance_status: ComplianceStatus = ComplianceStatus.PENDING


class LegalRequirementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = None
    compliance_status: Optional[ComplianceStatus] = None


class LegalRequirement(BaseModel):
    id: str
    standard: Standard
    title: str
    type: Optional[str] = None
    compliance_status: ComplianceStatus
    last_assessed_at: Optional[str] = None
    created_at: str
    updated_at: str


# --- AI analyses ---
class AnalysisCreate(BaseModel):
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    status: AnalysisStatus = AnalysisStatus.PENDING
    suggested_root_cause: Optional[str] = None


class AnalysisUpdate(BaseModel):
    status: Optional[AnalysisStatus] = None
    suggested_root_cause: Optional[str] = None


class Analysis(BaseModel):
    id: str
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    status: AnalysisStatus
    suggested_root_cause: Optional[str] = None
    created_at: str
    updated_at: str


# --- Safety metrics ---
class SafetyMetricIn(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    hours_worked: float = Field(..., ge=0)
    lost_time_injuries: int = Field(0, ge=0)
    total_recordable_injuries: int = Field(0, ge=0)
    days_lost: int = Field(0, ge=0)
    near_misses: int = Field(0, ge=0)
    first_aid_cases: int = Field(0, ge=0)
    model_config = {"json_schema_extra": {"examples": [{
        "year": 2026, "month": 3, "hours_worked": 200000, "lost_time_injuries": 2,
    }]}}


class SafetyMetric(BaseModel):
    id: str
    year: int
    month: int
    hours_worked: float
    lost_time_injuries: int
    total_recordable_injuries: int
    days_lost: int
    near_misses: int
    first_aid_cases: int
    ltifr: float
    trir: float
    severity_rate: float
    created_at: str
    updated_at: str


class SafetySummary(BaseModel):
    year: int
    months_reported: int
    total_hours_worked: float
    total_lost_time_injuries: int
    total_recordable_injuries: int
    total_days_lost: int
    total_near_misses: int
    ltifr: float
    trir: float
    severity_rate: float
    near_miss_rate: Optional[float] = None
    ltifr_status: Optional[str] = None
    trir_status: Optional[str] = None


# --- Quality metrics ---
class QualityMetricIn(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    prevention_cost: float = Field(0, ge=0)
    appraisal_cost: float = Field(0, ge=0)
    internal_failure_cost: float = Field(0, ge=0)
    external_failure_cost: float = Field(0, ge=0)
    total_units: int = Field(0, ge=0)
    defective_units: int = Field(0, ge=0)
    defect_opportunities: int = Field(1, ge=1)
    model_config = {"json_schema_extra": {"examples": [{
        "year": 2026, "month": 3, "total_units": 10000, "defective_units": 35, "defect_opportunities": 5,
        "internal_failure_cost": 4200,
    }]}}


class QualityMetric(BaseModel):
    id: str
    year: int
    month: int
    prevention_cost: float
    appraisal_cost: float
    internal_failure_cost: float
    external_failure_cost: float
    total_units: int
    defective_units: int
    defect_opportunities: int
    total_copq: float
    dpmo: int
    first_pass_yield: float
    process_sigma: float
    defect_rate: float
    created_at: str
    updated_at: str


class QualitySummary(BaseModel):
    year: int
    months_reported: int
    prevention_cost: float
    appraisal_cost: float
    internal_failure_cost: float
    external_failure_cost: float
    total_units: int
    defective_units: int
    total_copq: float
    copq_breakdown: Dict[str, float]
    dpmo: int
    first_pass_yield: float
    process_sigma: float
    defect_rate: float
    status: Dict[str, str] = {}


# --- Environmental indicators ---
class CarbonFootprintIn(BaseModel):
    co2: float = Field(0, ge=0)
    methane: float = Field(0, ge=0)
    nitrous_oxide: float = Field(0, ge=0)
    electricity: float = Field(0, ge=0)
    gas: float = Field(0, ge=0)
    diesel: float = Field(0, ge=0)
    petrol: float = Field(0, ge=0)


class CarbonFootprintOut(BaseModel):
    tonnes_co2e: float


class WasteIn(BaseModel):
    recycled: float = Field(0, ge=0)
    composted: float = Field(0, ge=0)
    recovered: float = Field(0, ge=0)
    landfill: float = Field(0, ge=0)


class WasteDiversionOut(BaseModel):
    total: float
    diverted: float
    diversion_rate: float


# --- Dashboard ---
class ComplianceOut(BaseModel):
    standard: Standard
    overall_score: int
    incident_closure_rate: float
    action_on_time_rate: float
    legal_compliance_rate: float
    risk_exposure_rate: float
    total_items: int
    compliant_items: int
    calculated_at: Optional[str] = None


class RankedRiskOut(BaseModel):
    id: str
    title: str
    standard: Standard
    risk_score: int
    risk_level: str
    likelihood: int
    severity: int
    created_at: str


class OverdueActionOut(BaseModel):
    id: str
    title: str
    standard: Standard
    status: ActionStatus
    due_date: Optional[str] = None


class AnalysisInsightOut(BaseModel):
    id: str
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    suggested_root_cause: Optional[str] = None
    created_at: str


class DashboardStats(BaseModel):
    generated_at: str
    compliance: Dict[str, int]
    compliance_detail: Dict[str, ComplianceOut]
    risks: Dict[str, Any]
    incidents: Dict[str, Any]
    actions: Dict[str, int]
    aspects: Dict[str, int]
    top_risks: List[RankedRiskOut]
    overdue_actions: List[OverdueActionOut]
    recent_ai_insights: List[AnalysisInsightOut]
