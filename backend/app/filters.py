"""Typed list filters, one per register.

Each filter only knows the columns it declares, so a query string can never
reach SQL as an arbitrary column name or an unchecked enum value.
"""
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

from .scoring.levels import RiskLevel, SignificanceLevel
from .scoring.records import (
    ActionStatus,
    AnalysisStatus,
    ComplianceStatus,
    IncidentStatus,
    RiskStatus,
    Standard,
)


@dataclass
class ListFilter:
    # field name -> column name, for fields that map to a plain equality test
    columns: ClassVar[Dict[str, str]] = {}

    def clauses(self) -> Tuple[List[str], dict]:
        where: List[str] = []
        params: dict = {}
        for f in fields(self):
            column = self.columns.get(f.name)
            value = getattr(self, f.name)
            if column is None or value is None:
                continue
            where.append(f"{column} = :{f.name}")
            params[f.name] = value.value if isinstance(value, Enum) else value
        return where, params

    def where_sql(self) -> Tuple[str, dict]:
        where, params = self.clauses()
        return (" WHERE " + " AND ".join(where)) if where else "", params


@dataclass
class RiskFilter(ListFilter):
    standard: Optional[Standard] = None
    status: Optional[RiskStatus] = None
    level: Optional[RiskLevel] = None
    category: Optional[str] = None

    columns: ClassVar[Dict[str, str]] = {
        "standard": "standard",
        "status": "status",
        "level": "risk_level",
        "category": "category",
    }


@dataclass
class AspectFilter(ListFilter):
    status: Optional[RiskStatus] = None
    level: Optional[SignificanceLevel] = None
    aspect_type: Optional[str] = None

    columns: ClassVar[Dict[str, str]] = {
        "status": "status",
        "level": "significance_level",
        "aspect_type": "aspect_type",
    }


@dataclass
class IncidentFilter(ListFilter):
    standard: Optional[Standard] = None
    status: Optional[IncidentStatus] = None

    columns: ClassVar[Dict[str, str]] = {"standard": "standard", "status": "status"}


@dataclass
class ActionFilter(ListFilter):
    standard: Optional[Standard] = None
    status: Optional[ActionStatus] = None
    overdue: bool = False
    as_of: Optional[datetime] = None

    columns: ClassVar[Dict[str, str]] = {"standard": "standard", "status": "status"}

    def clauses(self) -> Tuple[List[str], dict]:
        where, params = super().clauses()
        if self.overdue:
            now = self.as_of or datetime.utcnow()
            # due dates are stored as naive UTC
            if now.tzinfo is not None:
                now = now.astimezone(timezone.utc).replace(tzinfo=None)
            where.append(
                "(status = 'OVERDUE' OR (status IN ('OPEN', 'IN_PROGRESS') AND due_date IS NOT NULL AND due_date < :as_of))"
            )
            params["as_of"] = now.isoformat()
        return where, params


@dataclass
class LegalRequirementFilter(ListFilter):
    standard: Optional[Standard] = None
    compliance_status: Optional[ComplianceStatus] = None

    columns: ClassVar[Dict[str, str]] = {"standard": "standard", "compliance_status": "compliance_status"}


@dataclass
class AnalysisFilter(ListFilter):
    status: Optional[AnalysisStatus] = None
    source_type: Optional[str] = None

    columns: ClassVar[Dict[str, str]] = {"status": "status", "source_type": "source_type"}
