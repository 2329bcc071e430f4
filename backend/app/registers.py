"""CRUD routes for the scored registers.

Every write that touches factors or status rescores in the same transaction
and refreshes the stored compliance score of the affected standard.
"""
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text

from . import schemas
from .auth import role_required
from .db import engine
from .filters import (
    ActionFilter,
    AnalysisFilter,
    AspectFilter,
    IncidentFilter,
    LegalRequirementFilter,
    ListFilter,
    RiskFilter,
)
from .logging_config import log_event
from .repository import parse_date, refresh_compliance, risk_from_row
from .scoring import RiskLevel, SignificanceLevel, residual_risk, risk_matrix, score_aspect, score_risk
from .scoring.records import (
    ActionStatus,
    AnalysisStatus,
    ComplianceStatus,
    IncidentStatus,
    RiskStatus,
    Standard,
)

router = APIRouter()

NOT_FOUND = {404: {"model": schemas.ErrorResponse}}
BAD_REQUEST = {400: {"model": schemas.ErrorResponse}}


def _check_page(limit: int, offset: int) -> None:
    if limit < 1 or limit > 200:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 200")
    if offset < 0:
        raise HTTPException(status_code=400, detail="offset must be >= 0")


def _changes(payload, not_null=()) -> dict:
    """Fields the client actually sent; null is refused for NOT NULL columns."""
    data = payload.model_dump(exclude_unset=True)
    nulled = sorted(k for k in not_null if k in data and data[k] is None)
    if nulled:
        raise HTTPException(status_code=422, detail=f"{', '.join(nulled)} cannot be null")
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    return data


def _list(table: str, flt: ListFilter, order: str, to_model: Callable, limit: int, offset: int):
    _check_page(limit, offset)
    where, params = flt.where_sql()
    with engine.connect() as conn:
        total = conn.execute(text(f"SELECT COUNT(*) FROM {table}{where}"), params).scalar_one()
        rows = conn.execute(
            text(f"SELECT * FROM {table}{where} ORDER BY {order} LIMIT :limit OFFSET :offset"),
            {**params, "limit": limit, "offset": offset},
        ).mappings().all()
    return {"items": [to_model(r) for r in rows], "total": int(total or 0), "limit": limit, "offset": offset}


def _fetch(conn, table: str, row_id: str, label: str):
    row = conn.execute(text(f"SELECT * FROM {table} WHERE id = :id"), {"id": row_id}).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def _insert(conn, table: str, values: dict) -> None:
    cols = ", ".join(values.keys())
    binds = ", ".join(f":{k}" for k in values.keys())
    conn.execute(text(f"INSERT INTO {table} ({cols}) VALUES ({binds})"), values)


def _update(conn, table: str, row_id: str, updates: dict) -> None:
    set_clause = ", ".join(f"{k} = :{k}" for k in updates.keys())
    conn.execute(text(f"UPDATE {table} SET {set_clause} WHERE id = :id"), {**updates, "id": row_id})


def _stamp(request: Request, auth: Optional[dict], created: bool) -> dict:
    now = datetime.utcnow().isoformat()
    values = {
        "updated_at": now,
        "updated_by": (auth or {}).get("sub"),
        "request_id": getattr(request.state, "request_id", None),
    }
    if created:
        values.update({"id": uuid.uuid4().hex, "created_at": now, "created_by": (auth or {}).get("sub")})
    return values


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _naive_utc(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def _enum(value):
    return value.value if hasattr(value, "value") else value


# --- Risks ---
def _row_to_risk(row) -> schemas.Risk:
    d = dict(row)
    d["review_date"] = parse_date(d.get("review_date"))
    return schemas.Risk(**d)


def _score_risk_values(likelihood: int, severity: int, detectability: int, effectiveness: Optional[int]) -> dict:
    result = score_risk(likelihood, severity, detectability)
    return {
        "likelihood": likelihood,
        "severity": severity,
        "detectability": detectability,
        "risk_score": result.score,
        "risk_level": result.level.value,
        "control_effectiveness": effectiveness,
        "residual_score": residual_risk(result.score, effectiveness) if effectiveness is not None else None,
    }


@router.get("/risks", response_model=schemas.Envelope[schemas.Risk], tags=["Risks"], responses=BAD_REQUEST)
def list_risks(
    standard: Optional[Standard] = None,
    status: Optional[RiskStatus] = None,
    level: Optional[RiskLevel] = None,
    category: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = RiskFilter(standard=standard, status=status, level=level, category=category)
    return _list("risks", flt, "risk_score DESC, created_at DESC, id DESC", _row_to_risk, limit, offset)


@router.get("/risks/matrix", response_model=List[schemas.MatrixCell], tags=["Risks"])
def get_risk_matrix(standard: Standard = Standard.ISO_45001):
    with engine.connect() as conn:
        rows = conn.execute(
            text("SELECT * FROM risks WHERE standard = :standard AND status = :status"),
            {"standard": standard.value, "status": RiskStatus.ACTIVE.value},
        ).mappings().all()
    grouped = {}
    for row in rows:
        risk = risk_from_row(row)
        grouped.setdefault((risk.likelihood, risk.severity), []).append(
            {"id": risk.id, "title": risk.title, "risk_score": score_risk(risk.likelihood, risk.severity, risk.detectability).score}
        )
    return [
        schemas.MatrixCell(**cell, risks=grouped.get((cell["likelihood"], cell["severity"]), []))
        for cell in risk_matrix()
    ]


@router.get("/risks/{risk_id}", response_model=schemas.Risk, tags=["Risks"], responses=NOT_FOUND)
def get_risk(risk_id: str):
    with engine.connect() as conn:
        return _row_to_risk(_fetch(conn, "risks", risk_id, "Risk"))


@router.post("/risks", response_model=schemas.Risk, status_code=201, tags=["Risks"])
def create_risk(payload: schemas.RiskCreate, request: Request, _auth=Depends(role_required("editor"))):
    values = {
        **_stamp(request, _auth, created=True),
        "standard": payload.standard.value,
        "title": payload.title,
        "description": payload.description,
        "category": payload.category,
        "existing_controls": payload.existing_controls,
        "status": RiskStatus.ACTIVE.value,
        "review_date": _iso(payload.review_date),
        **_score_risk_values(payload.likelihood, payload.severity, payload.detectability, payload.control_effectiveness),
    }
    with engine.begin() as conn:
        _insert(conn, "risks", values)
        refresh_compliance(conn, [payload.standard])
        row = _fetch(conn, "risks", values["id"], "Risk")
    log_event("risk_scored", risk_id=values["id"], score=values["risk_score"], risk_level=values["risk_level"])
    return _row_to_risk(row)


@router.patch("/risks/{risk_id}", response_model=schemas.Risk, tags=["Risks"], responses=NOT_FOUND)
def update_risk(risk_id: str, payload: schemas.RiskUpdate, request: Request, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("title", "status", "likelihood", "severity", "detectability"))
    with engine.begin() as conn:
        existing = _fetch(conn, "risks", risk_id, "Risk")
        updates = {k: _enum(v) for k, v in data.items() if k not in ("likelihood", "severity", "detectability", "control_effectiveness", "review_date")}
        if "review_date" in data:
            updates["review_date"] = _iso(data["review_date"])
        # Score and level are always rebuilt from the merged factors
        updates.update(_score_risk_values(
            data.get("likelihood") or existing["likelihood"],
            data.get("severity") or existing["severity"],
            data.get("detectability") or existing["detectability"],
            data["control_effectiveness"] if "control_effectiveness" in data else existing["control_effectiveness"],
        ))
        updates.update(_stamp(request, _auth, created=False))
        updates["last_reviewed_at"] = updates["updated_at"]
        _update(conn, "risks", risk_id, updates)
        refresh_compliance(conn, [existing["standard"]])
        row = _fetch(conn, "risks", risk_id, "Risk")
    log_event("risk_scored", risk_id=risk_id, score=row["risk_score"], risk_level=row["risk_level"])
    return _row_to_risk(row)


@router.delete("/risks/{risk_id}", status_code=204, tags=["Risks"], responses=NOT_FOUND)
def delete_risk(risk_id: str, _auth=Depends(role_required("admin"))):
    with engine.begin() as conn:
        existing = _fetch(conn, "risks", risk_id, "Risk")
        conn.execute(text("DELETE FROM risks WHERE id = :id"), {"id": risk_id})
        refresh_compliance(conn, [existing["standard"]])


# --- Environmental aspects ---
def _row_to_aspect(row) -> schemas.Aspect:
    d = dict(row)
    d["review_date"] = parse_date(d.get("review_date"))
    d["significant"] = d["significance_level"] == SignificanceLevel.SIGNIFICANT.value
    return schemas.Aspect(**d)


def _score_aspect_values(likelihood: int, severity: int, frequency: int) -> dict:
    result = score_aspect(likelihood, severity, frequency)
    return {
        "likelihood": likelihood,
        "severity": severity,
        "frequency": frequency,
        "significance_score": result.score,
        "significance_level": result.level.value,
    }


@router.get("/aspects", response_model=schemas.Envelope[schemas.Aspect], tags=["Aspects"], responses=BAD_REQUEST)
def list_aspects(
    status: Optional[RiskStatus] = None,
    level: Optional[SignificanceLevel] = None,
    aspect_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = AspectFilter(status=status, level=level, aspect_type=aspect_type)
    return _list("aspects", flt, "significance_score DESC, created_at DESC, id DESC", _row_to_aspect, limit, offset)


@router.get("/aspects/{aspect_id}", response_model=schemas.Aspect, tags=["Aspects"], responses=NOT_FOUND)
def get_aspect(aspect_id: str):
    with engine.connect() as conn:
        return _row_to_aspect(_fetch(conn, "aspects", aspect_id, "Aspect"))


@router.post("/aspects", response_model=schemas.Aspect, status_code=201, tags=["Aspects"])
def create_aspect(payload: schemas.AspectCreate, request: Request, _auth=Depends(role_required("editor"))):
    values = {
        **_stamp(request, _auth, created=True),
        "title": payload.title,
        "description": payload.description,
        "aspect_type": payload.aspect_type,
        "environmental_impact": payload.environmental_impact,
        "status": RiskStatus.ACTIVE.value,
        "review_date": _iso(payload.review_date),
        **_score_aspect_values(payload.likelihood, payload.severity, payload.frequency),
    }
    with engine.begin() as conn:
        _insert(conn, "aspects", values)
        refresh_compliance(conn, [Standard.ISO_14001])
        row = _fetch(conn, "aspects", values["id"], "Aspect")
    log_event("aspect_scored", aspect_id=values["id"], score=values["significance_score"], significance_level=values["significance_level"])
    return _row_to_aspect(row)


@router.patch("/aspects/{aspect_id}", response_model=schemas.Aspect, tags=["Aspects"], responses=NOT_FOUND)
def update_aspect(aspect_id: str, payload: schemas.AspectUpdate, request: Request, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("title", "status", "likelihood", "severity", "frequency"))
    with engine.begin() as conn:
        existing = _fetch(conn, "aspects", aspect_id, "Aspect")
        updates = {k: _enum(v) for k, v in data.items() if k not in ("likelihood", "severity", "frequency", "review_date")}
        if "review_date" in data:
            updates["review_date"] = _iso(data["review_date"])
        updates.update(_score_aspect_values(
            data.get("likelihood") or existing["likelihood"],
            data.get("severity") or existing["severity"],
            data.get("frequency") or existing["frequency"],
        ))
        updates.update(_stamp(request, _auth, created=False))
        updates["last_reviewed_at"] = updates["updated_at"]
        _update(conn, "aspects", aspect_id, updates)
        refresh_compliance(conn, [Standard.ISO_14001])
        row = _fetch(conn, "aspects", aspect_id, "Aspect")
    log_event("aspect_scored", aspect_id=aspect_id, score=row["significance_score"], significance_level=row["significance_level"])
    return _row_to_aspect(row)


@router.delete("/aspects/{aspect_id}", status_code=204, tags=["Aspects"], responses=NOT_FOUND)
def delete_aspect(aspect_id: str, _auth=Depends(role_required("admin"))):
    with engine.begin() as conn:
        _fetch(conn, "aspects", aspect_id, "Aspect")
        conn.execute(text("DELETE FROM aspects WHERE id = :id"), {"id": aspect_id})
        refresh_compliance(conn, [Standard.ISO_14001])


# --- Incidents ---
def _row_to_incident(row) -> schemas.Incident:
    return schemas.Incident(**dict(row))


@router.get("/incidents", response_model=schemas.Envelope[schemas.Incident], tags=["Incidents"], responses=BAD_REQUEST)
def list_incidents(
    standard: Optional[Standard] = None,
    status: Optional[IncidentStatus] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = IncidentFilter(standard=standard, status=status)
    return _list("incidents", flt, "date_occurred DESC, id DESC", _row_to_incident, limit, offset)


@router.get("/incidents/{incident_id}", response_model=schemas.Incident, tags=["Incidents"], responses=NOT_FOUND)
def get_incident(incident_id: str):
    with engine.connect() as conn:
        return _row_to_incident(_fetch(conn, "incidents", incident_id, "Incident"))


@router.post("/incidents", response_model=schemas.Incident, status_code=201, tags=["Incidents"])
def create_incident(payload: schemas.IncidentCreate, request: Request, _auth=Depends(role_required("editor"))):
    values = {
        **_stamp(request, _auth, created=True),
        "standard": payload.standard.value,
        "title": payload.title,
        "description": payload.description,
        "type": payload.type,
        "severity": payload.severity,
        "status": IncidentStatus.OPEN.value,
        "date_occurred": _naive_utc(payload.date_occurred),
    }
    with engine.begin() as conn:
        _insert(conn, "incidents", values)
        refresh_compliance(conn, [payload.standard])
        row = _fetch(conn, "incidents", values["id"], "Incident")
    return _row_to_incident(row)


@router.patch("/incidents/{incident_id}", response_model=schemas.Incident, tags=["Incidents"], responses=NOT_FOUND)
def update_incident(incident_id: str, payload: schemas.IncidentUpdate, request: Request, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("title", "status", "date_occurred"))
    with engine.begin() as conn:
        existing = _fetch(conn, "incidents", incident_id, "Incident")
        updates = {k: _enum(v) for k, v in data.items() if k != "date_occurred"}
        if data.get("date_occurred") is not None:
            updates["date_occurred"] = _naive_utc(data["date_occurred"])
        updates.update(_stamp(request, _auth, created=False))
        if "status" in data:
            if data["status"] == IncidentStatus.CLOSED:
                updates["closed_at"] = existing["closed_at"] or updates["updated_at"]
            else:
                updates["closed_at"] = None
        _update(conn, "incidents", incident_id, updates)
        refresh_compliance(conn, [existing["standard"]])
        row = _fetch(conn, "incidents", incident_id, "Incident")
    return _row_to_incident(row)


# --- Actions ---
def _row_to_action(row) -> schemas.Action:
    d = dict(row)
    d["due_date"] = parse_date(d.get("due_date"))
    return schemas.Action(**d)


@router.get("/actions", response_model=schemas.Envelope[schemas.Action], tags=["Actions"], responses=BAD_REQUEST)
def list_actions(
    standard: Optional[Standard] = None,
    status: Optional[ActionStatus] = None,
    overdue: bool = False,
    as_of: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = ActionFilter(standard=standard, status=status, overdue=overdue, as_of=as_of)
    return _list("actions", flt, "due_date ASC, id ASC", _row_to_action, limit, offset)


@router.get("/actions/{action_id}", response_model=schemas.Action, tags=["Actions"], responses=NOT_FOUND)
def get_action(action_id: str):
    with engine.connect() as conn:
        return _row_to_action(_fetch(conn, "actions", action_id, "Action"))


@router.post("/actions", response_model=schemas.Action, status_code=201, tags=["Actions"])
def create_action(payload: schemas.ActionCreate, request: Request, _auth=Depends(role_required("editor"))):
    values = {
        **_stamp(request, _auth, created=True),
        "standard": payload.standard.value,
        "title": payload.title,
        "description": payload.description,
        "type": payload.type,
        "priority": payload.priority,
        "status": ActionStatus.OPEN.value,
        "due_date": _iso(payload.due_date),
        "risk_id": payload.risk_id,
        "incident_id": payload.incident_id,
    }
    with engine.begin() as conn:
        if payload.risk_id is not None:
            if not conn.execute(text("SELECT 1 FROM risks WHERE id = :id"), {"id": payload.risk_id}).first():
                raise HTTPException(status_code=400, detail="Unknown risk_id")
        if payload.incident_id is not None:
            if not conn.execute(text("SELECT 1 FROM incidents WHERE id = :id"), {"id": payload.incident_id}).first():
                raise HTTPException(status_code=400, detail="Unknown incident_id")
        _insert(conn, "actions", values)
        refresh_compliance(conn, [payload.standard])
        row = _fetch(conn, "actions", values["id"], "Action")
    return _row_to_action(row)


@router.patch("/actions/{action_id}", response_model=schemas.Action, tags=["Actions"], responses=NOT_FOUND)
def update_action(action_id: str, payload: schemas.ActionUpdate, request: Request, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("title", "status"))
    with engine.begin() as conn:
        existing = _fetch(conn, "actions", action_id, "Action")
        updates = {k: _enum(v) for k, v in data.items() if k != "due_date"}
        if "due_date" in data:
            updates["due_date"] = _iso(data["due_date"])
        updates.update(_stamp(request, _auth, created=False))
        if data.get("status") == ActionStatus.COMPLETED:
            updates["completed_at"] = updates["updated_at"]
        _update(conn, "actions", action_id, updates)
        refresh_compliance(conn, [existing["standard"]])
        row = _fetch(conn, "actions", action_id, "Action")
    return _row_to_action(row)


# --- Legal requirements ---
def _row_to_legal(row) -> schemas.LegalRequirement:
    return schemas.LegalRequirement(**dict(row))


@router.get("/legal-requirements", response_model=schemas.Envelope[schemas.LegalRequirement], tags=["Legal"], responses=BAD_REQUEST)
def list_legal_requirements(
    standard: Optional[Standard] = None,
    compliance_status: Optional[ComplianceStatus] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = LegalRequirementFilter(standard=standard, compliance_status=compliance_status)
    return _list("legal_requirements", flt, "created_at DESC, id DESC", _row_to_legal, limit, offset)


@router.post("/legal-requirements", response_model=schemas.LegalRequirement, status_code=201, tags=["Legal"])
def create_legal_requirement(payload: schemas.LegalRequirementCreate, request: Request, _auth=Depends(role_required("editor"))):
    values = {
        **_stamp(request, _auth, created=True),
        "standard": payload.standard.value,
        "title": payload.title,
        "type": payload.type,
        "compliance_status": payload.compliance_status.value,
    }
    values["last_assessed_at"] = values["created_at"]
    with engine.begin() as conn:
        _insert(conn, "legal_requirements", values)
        refresh_compliance(conn, [payload.standard])
        row = _fetch(conn, "legal_requirements", values["id"], "Legal requirement")
    return _row_to_legal(row)


@router.patch("/legal-requirements/{req_id}", response_model=schemas.LegalRequirement, tags=["Legal"], responses=NOT_FOUND)
def update_legal_requirement(req_id: str, payload: schemas.LegalRequirementUpdate, request: Request, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("title", "compliance_status"))
    with engine.begin() as conn:
        existing = _fetch(conn, "legal_requirements", req_id, "Legal requirement")
        updates = {k: _enum(v) for k, v in data.items()}
        updates.update(_stamp(request, _auth, created=False))
        if "compliance_status" in data:
            updates["last_assessed_at"] = updates["updated_at"]
        _update(conn, "legal_requirements", req_id, updates)
        refresh_compliance(conn, [existing["standard"]])
        row = _fetch(conn, "legal_requirements", req_id, "Legal requirement")
    return _row_to_legal(row)


# --- AI analyses ---
def _row_to_analysis(row) -> schemas.Analysis:
    return schemas.Analysis(**dict(row))


@router.get("/analyses", response_model=schemas.Envelope[schemas.Analysis], tags=["Analyses"], responses=BAD_REQUEST)
def list_analyses(
    status: Optional[AnalysisStatus] = None,
    source_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
):
    flt = AnalysisFilter(status=status, source_type=source_type)
    return _list("ai_analyses", flt, "created_at DESC, id DESC", _row_to_analysis, limit, offset)


@router.post("/analyses", response_model=schemas.Analysis, status_code=201, tags=["Analyses"])
def create_analysis(payload: schemas.AnalysisCreate, _auth=Depends(role_required("editor"))):
    now = datetime.utcnow().isoformat()
    values = {
        "id": uuid.uuid4().hex,
        "source_type": payload.source_type,
        "source_id": payload.source_id,
        "status": payload.status.value,
        "suggested_root_cause": payload.suggested_root_cause,
        "created_at": now,
        "updated_at": now,
    }
    with engine.begin() as conn:
        _insert(conn, "ai_analyses", values)
        row = _fetch(conn, "ai_analyses", values["id"], "Analysis")
    return _row_to_analysis(row)


@router.patch("/analyses/{analysis_id}", response_model=schemas.Analysis, tags=["Analyses"], responses=NOT_FOUND)
def update_analysis(analysis_id: str, payload: schemas.AnalysisUpdate, _auth=Depends(role_required("editor"))):
    data = _changes(payload, ("status",))
    updates = {k: _enum(v) for k, v in data.items()}
    updates["updated_at"] = datetime.utcnow().isoformat()
    with engine.begin() as conn:
        _fetch(conn, "ai_analyses", analysis_id, "Analysis")
        _update(conn, "ai_analyses", analysis_id, updates)
        row = _fetch(conn, "ai_analyses", analysis_id, "Analysis")
    return _row_to_analysis(row)
