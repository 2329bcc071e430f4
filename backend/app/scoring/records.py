"""Read-only register records consumed by the scoring core.

The route layer builds these from database rows; the core never touches
storage itself.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Standard(str, Enum):
    ISO_45001 = "ISO_45001"
    ISO_14001 = "ISO_14001"
    ISO_9001 = "ISO_9001"


class RiskStatus(str, Enum):
    ACTIVE = "ACTIVE"
    UNDER_REVIEW = "UNDER_REVIEW"
    MITIGATED = "MITIGATED"
    CLOSED = "CLOSED"
    ACCEPTED = "ACCEPTED"


class IncidentStatus(str, Enum):
    OPEN = "OPEN"
    UNDER_INVESTIGATION = "UNDER_INVESTIGATION"
    AWAITING_ACTIONS = "AWAITING_ACTIONS"
    ACTIONS_IN_PROGRESS = "ACTIONS_IN_PROGRESS"
    VERIFICATION = "VERIFICATION"
    CLOSED = "CLOSED"


class ActionStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    VERIFIED = "VERIFIED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class ComplianceStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    PENDING = "PENDING"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class AnalysisStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


# Actions still owed by someone; OVERDUE is set by the sweep and stays open.
OPEN_ACTION_STATUSES = frozenset({ActionStatus.OPEN, ActionStatus.IN_PROGRESS, ActionStatus.OVERDUE})

# NOT_APPLICABLE counts as satisfied: nothing is owed against it.
SATISFIED_COMPLIANCE_STATUSES = frozenset({ComplianceStatus.COMPLIANT, ComplianceStatus.NOT_APPLICABLE})


@dataclass(frozen=True)
class Risk:
    id: str
    standard: Standard
    likelihood: int
    severity: int
    detectability: int
    status: RiskStatus
    created_at: datetime
    title: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == RiskStatus.ACTIVE


@dataclass(frozen=True)
class EnvironmentalAspect:
    id: str
    likelihood: int
    severity: int
    frequency: int
    status: RiskStatus = RiskStatus.ACTIVE
    created_at: Optional[datetime] = None
    title: str = ""
    standard: Standard = field(default=Standard.ISO_14001)

    @property
    def is_active(self) -> bool:
        return self.status == RiskStatus.ACTIVE


@dataclass(frozen=True)
class Incident:
    id: str
    standard: Standard
    status: IncidentStatus
    date_occurred: datetime
    created_at: datetime
    title: str = ""

    @property
    def is_closed(self) -> bool:
        return self.status == IncidentStatus.CLOSED


@dataclass(frozen=True)
class Action:
    id: str
    standard: Standard
    status: ActionStatus
    due_date: Optional[datetime]
    title: str = ""

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ACTION_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        if not self.is_open:
            return False
        if self.status == ActionStatus.OVERDUE:
            return True
        return self.due_date is not None and self.due_date < now


@dataclass(frozen=True)
class LegalRequirement:
    id: str
    standard: Standard
    compliance_status: ComplianceStatus

    @property
    def is_satisfied(self) -> bool:
        return self.compliance_status in SATISFIED_COMPLIANCE_STATUSES


@dataclass(frozen=True)
class SafetyMetricPeriod:
    year: int
    month: int
    hours_worked: float
    lost_time_injuries: int = 0
    total_recordable_injuries: int = 0
    days_lost: int = 0
    near_misses: int = 0


@dataclass(frozen=True)
class QualityMetricPeriod:
    year: int
    month: int
    total_units: int = 0
    defective_units: int = 0
    defect_opportunities: int = 1
    prevention_cost: float = 0.0
    appraisal_cost: float = 0.0
    internal_failure_cost: float = 0.0
    external_failure_cost: float = 0.0


@dataclass(frozen=True)
class AIAnalysis:
    id: str
    status: AnalysisStatus
    created_at: datetime
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    suggested_root_cause: Optional[str] = None


def as_datetime(value: Optional[date]) -> Optional[datetime]:
    """Promote a bare date to midnight so it compares with datetimes."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)
