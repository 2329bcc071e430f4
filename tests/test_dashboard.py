import random
from datetime import datetime, timedelta

from backend.app.scoring import RegisterView, compose_dashboard, summarize_standard
from backend.app.scoring.dashboard import top_risks
from backend.app.scoring.records import (
    AIAnalysis,
    Action,
    ActionStatus,
    AnalysisStatus,
    ComplianceStatus,
    EnvironmentalAspect,
    Incident,
    IncidentStatus,
    LegalRequirement,
    Risk,
    RiskStatus,
    Standard,
)

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _risk(i, factors, created_at, status=RiskStatus.ACTIVE, standard=Standard.ISO_45001):
    l, s, d = factors
    return Risk(id=f"r{i}", standard=standard, likelihood=l, severity=s, detectability=d,
                status=status, created_at=created_at, title=f"risk {i}")


def test_top_risks_sorted_capped_and_newest_first_on_ties():
    risks = [
        _risk(1, (5, 5, 5), NOW - timedelta(days=10)),
        _risk(2, (4, 5, 3), NOW - timedelta(days=5)),
        _risk(3, (4, 5, 3), NOW - timedelta(days=1)),
        _risk(4, (3, 3, 3), NOW - timedelta(days=2)),
        _risk(5, (2, 2, 2), NOW - timedelta(days=3)),
        _risk(6, (1, 1, 1), NOW - timedelta(days=4)),
        _risk(7, (5, 5, 5), NOW, status=RiskStatus.CLOSED),
    ]
    ranked = top_risks(risks)
    assert [r.id for r in ranked] == ["r1", "r3", "r2", "r4", "r5"]
    assert ranked[0].level == "CRITICAL"


def test_top_risks_property_over_random_registers():
    rng = random.Random(42)
    for _ in range(25):
        risks = [
            _risk(n, (rng.randint(1, 5), rng.randint(1, 5), rng.randint(1, 5)), NOW - timedelta(minutes=rng.randint(0, 500)))
            for n in range(rng.randint(0, 12))
        ]
        ranked = top_risks(risks)
        assert len(ranked) <= 5
        keys = [(r.score, r.created_at) for r in ranked]
        assert keys == sorted(keys, reverse=True)


def test_action_counts_and_overdue_ordering():
    actions = [
        Action(id="a1", standard=Standard.ISO_45001, status=ActionStatus.OPEN, due_date=NOW - timedelta(days=2)),
        Action(id="a2", standard=Standard.ISO_9001, status=ActionStatus.IN_PROGRESS, due_date=NOW - timedelta(days=9)),
        Action(id="a3", standard=Standard.ISO_45001, status=ActionStatus.OPEN, due_date=NOW + timedelta(days=7)),
        Action(id="a4", standard=Standard.ISO_45001, status=ActionStatus.OPEN, due_date=NOW + timedelta(days=8)),
        Action(id="a5", standard=Standard.ISO_14001, status=ActionStatus.COMPLETED, due_date=NOW - timedelta(days=1)),
        Action(id="a6", standard=Standard.ISO_14001, status=ActionStatus.OPEN, due_date=NOW),
    ]
    snap = compose_dashboard(RegisterView(actions=actions), now=NOW)
    assert snap.actions == {"total": 6, "open": 5, "overdue": 2, "due_this_week": 2}
    assert [a.id for a in snap.overdue_actions] == ["a2", "a1"]


def test_incident_counts_this_month():
    incidents = [
        Incident(id="i1", standard=Standard.ISO_45001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2026, 10, 1), created_at=NOW),
        Incident(id="i2", standard=Standard.ISO_45001, status=IncidentStatus.CLOSED,
                 date_occurred=datetime(2026, 9, 30, 23, 59), created_at=NOW),
        Incident(id="i3", standard=Standard.ISO_9001, status=IncidentStatus.UNDER_INVESTIGATION,
                 date_occurred=datetime(2026, 10, 18), created_at=NOW),
    ]
    snap = compose_dashboard(RegisterView(incidents=incidents), now=NOW)
    assert snap.incidents["total"] == 3
    assert snap.incidents["open"] == 2
    assert snap.incidents["this_month"] == 2
    assert snap.incidents["by_standard"] == {"ISO_45001": 2, "ISO_14001": 0, "ISO_9001": 1}


def test_incidents_this_month_ignores_later_months_for_a_past_as_of():
    incidents = [
        Incident(id="i1", standard=Standard.ISO_45001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2026, 8, 14), created_at=NOW),
        Incident(id="i2", standard=Standard.ISO_45001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2026, 9, 1), created_at=NOW),
        Incident(id="i3", standard=Standard.ISO_45001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2026, 10, 3), created_at=NOW),
    ]
    snap = compose_dashboard(RegisterView(incidents=incidents), now=datetime(2026, 8, 20))
    assert snap.incidents["this_month"] == 1
    december = compose_dashboard(RegisterView(incidents=[
        Incident(id="d1", standard=Standard.ISO_9001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2026, 12, 31, 23, 0), created_at=NOW),
        Incident(id="d2", standard=Standard.ISO_9001, status=IncidentStatus.OPEN,
                 date_occurred=datetime(2027, 1, 1), created_at=NOW),
    ]), now=datetime(2026, 12, 5))
    assert december.incidents["this_month"] == 1


def test_standards_without_records_show_zero_and_leave_the_mean():
    snap = compose_dashboard(RegisterView(), now=NOW)
    assert {s: c.overall_score for s, c in snap.compliance.items()} == {s: 0 for s in Standard}
    assert snap.overall_compliance == 0


def test_risk_and_aspect_counts():
    risks = [
        _risk(1, (4, 5, 3), NOW),
        _risk(2, (5, 5, 5), NOW, standard=Standard.ISO_9001),
        _risk(3, (1, 1, 1), NOW),
        _risk(4, (5, 5, 5), NOW, status=RiskStatus.MITIGATED),
    ]
    aspects = [
        EnvironmentalAspect(id="e1", likelihood=5, severity=5, frequency=5),
        EnvironmentalAspect(id="e2", likelihood=2, severity=2, frequency=2),
        EnvironmentalAspect(id="e3", likelihood=5, severity=5, frequency=5, status=RiskStatus.CLOSED),
    ]
    snap = compose_dashboard(RegisterView(risks=risks, aspects=aspects), now=NOW)
    assert snap.risks["total"] == 3
    assert snap.risks["high"] == 1
    assert snap.risks["critical"] == 1
    assert snap.aspects == {"active": 2, "significant": 1}


def test_recent_analyses_only_completed_newest_first():
    analyses = [
        AIAnalysis(id=f"x{n}", status=AnalysisStatus.COMPLETED, created_at=NOW - timedelta(hours=n))
        for n in range(7)
    ]
    analyses.append(AIAnalysis(id="pending", status=AnalysisStatus.PENDING, created_at=NOW))
    snap = compose_dashboard(RegisterView(analyses=analyses), now=NOW)
    assert [a.id for a in snap.recent_analyses] == ["x0", "x1", "x2", "x3", "x4"]


def test_overall_compliance_averages_recorded_standards_only():
    reqs = [LegalRequirement(id="l1", standard=Standard.ISO_14001, compliance_status=ComplianceStatus.NON_COMPLIANT)]
    snap = compose_dashboard(RegisterView(legal_requirements=reqs), now=NOW)
    assert snap.compliance[Standard.ISO_14001].overall_score == 75
    assert snap.compliance[Standard.ISO_45001].overall_score == 0
    assert snap.overall_compliance == 75


def test_summarize_standard():
    view = RegisterView(
        risks=[_risk(1, (4, 5, 3), NOW), _risk(2, (1, 1, 1), NOW), _risk(3, (5, 5, 5), NOW, standard=Standard.ISO_9001)],
        incidents=[
            Incident(id="i1", standard=Standard.ISO_45001, status=IncidentStatus.CLOSED,
                     date_occurred=NOW - timedelta(days=3), created_at=NOW),
            Incident(id="i2", standard=Standard.ISO_45001, status=IncidentStatus.OPEN,
                     date_occurred=NOW - timedelta(days=1), created_at=NOW),
        ],
        actions=[Action(id="a1", standard=Standard.ISO_45001, status=ActionStatus.OVERDUE, due_date=None)],
    )
    summary = summarize_standard(view, Standard.ISO_45001, now=NOW)
    assert summary["risks"] == {"active": 2, "high_critical": 1}
    assert summary["incidents"] == {"total": 2, "open": 1, "closure_rate": 50.0}
    assert summary["actions"] == {"total": 1, "open": 1, "overdue": 1}
    assert [i.id for i in summary["recent_incidents"]] == ["i2", "i1"]
    assert [r.id for r in summary["top_risks"]] == ["r1"]
