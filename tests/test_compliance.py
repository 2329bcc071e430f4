import random
from datetime import datetime, timedelta

from backend.app.scoring import aggregate_compliance, overall_ims_score
from backend.app.scoring.records import (
    Action,
    ActionStatus,
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
H = Standard.ISO_45001


def _incident(i, status, standard=H):
    return Incident(id=f"i{i}", standard=standard, status=status, date_occurred=NOW, created_at=NOW)


def _action(i, status=ActionStatus.OPEN, due=None, standard=H):
    return Action(id=f"a{i}", standard=standard, status=status, due_date=due)


def _risk(i, factors, status=RiskStatus.ACTIVE, standard=H):
    l, s, d = factors
    return Risk(id=f"r{i}", standard=standard, likelihood=l, severity=s, detectability=d, status=status, created_at=NOW)


def test_worked_example_scores_ninety():
    incidents = [_incident(n, IncidentStatus.CLOSED if n < 8 else IncidentStatus.OPEN) for n in range(10)]
    actions = [_action(n, due=NOW + timedelta(days=3)) for n in range(4)]
    actions.append(_action(4, due=NOW - timedelta(days=1)))
    reqs = [LegalRequirement(id=f"l{n}", standard=H, compliance_status=ComplianceStatus.COMPLIANT) for n in range(4)]

    score = aggregate_compliance(H, [], incidents, actions, reqs, now=NOW)

    assert score.incident_closure_rate == 80.0
    assert score.action_on_time_rate == 80.0
    assert score.legal_compliance_rate == 100.0
    assert score.risk_exposure_rate == 100.0
    assert score.overall_score == 90


def test_standard_with_no_records_scores_zero():
    score = aggregate_compliance(Standard.ISO_9001, [], [], [], [], now=NOW)
    for rate in (score.incident_closure_rate, score.action_on_time_rate, score.legal_compliance_rate, score.risk_exposure_rate):
        assert rate == 0.0
    assert score.overall_score == 0
    assert not score.has_records


def test_empty_registers_within_a_recorded_standard_are_fully_compliant():
    reqs = [LegalRequirement(id="l1", standard=H, compliance_status=ComplianceStatus.COMPLIANT)]
    score = aggregate_compliance(H, [], [], [], reqs, now=NOW)
    assert score.incident_closure_rate == 100.0
    assert score.action_on_time_rate == 100.0
    assert score.risk_exposure_rate == 100.0
    assert score.overall_score == 100


def test_records_of_other_standards_are_ignored():
    incidents = [_incident(1, IncidentStatus.OPEN, standard=Standard.ISO_9001)]
    reqs = [LegalRequirement(id="l1", standard=H, compliance_status=ComplianceStatus.COMPLIANT)]
    score = aggregate_compliance(H, [], incidents, [], reqs, now=NOW)
    assert score.total_incidents == 0
    assert score.incident_closure_rate == 100.0


def test_overdue_status_and_past_due_date_both_count():
    actions = [
        _action(1, status=ActionStatus.OVERDUE, due=NOW + timedelta(days=5)),
        _action(2, due=NOW - timedelta(hours=1)),
        _action(3, status=ActionStatus.COMPLETED, due=NOW - timedelta(days=30)),
        _action(4, status=ActionStatus.IN_PROGRESS, due=None),
    ]
    score = aggregate_compliance(H, [], [], actions, [], now=NOW)
    assert score.overdue_actions == 2
    assert score.action_on_time_rate == 50.0


def test_not_applicable_requirements_are_satisfied():
    reqs = [
        LegalRequirement(id="l1", standard=H, compliance_status=ComplianceStatus.NOT_APPLICABLE),
        LegalRequirement(id="l2", standard=H, compliance_status=ComplianceStatus.PARTIALLY_COMPLIANT),
        LegalRequirement(id="l3", standard=H, compliance_status=ComplianceStatus.PENDING),
        LegalRequirement(id="l4", standard=H, compliance_status=ComplianceStatus.COMPLIANT),
    ]
    assert aggregate_compliance(H, [], [], [], reqs, now=NOW).legal_compliance_rate == 50.0


def test_risk_exposure_weights_high_and_critical():
    risks = [
        _risk(1, (1, 1, 1)),  # LOW
        _risk(2, (4, 5, 3)),  # HIGH, weight 0.5
        _risk(3, (5, 5, 5)),  # CRITICAL, weight 1
        _risk(4, (3, 3, 3)),  # MEDIUM
        _risk(5, (5, 5, 5), status=RiskStatus.CLOSED),
    ]
    score = aggregate_compliance(H, risks, [], [], [], now=NOW)
    assert score.active_risks == 4
    assert score.total_risks == 5
    # 100 - (1.5 / 4 * 100)
    assert score.risk_exposure_rate == 62.5


def test_significant_aspects_weigh_on_environmental_exposure():
    aspects = [
        EnvironmentalAspect(id="e1", likelihood=5, severity=5, frequency=2),
        EnvironmentalAspect(id="e2", likelihood=1, severity=2, frequency=2),
    ]
    score = aggregate_compliance(Standard.ISO_14001, aspects, [], [], [], now=NOW)
    assert score.risk_exposure_rate == 50.0


def test_custom_weights():
    risks = [_risk(1, (4, 5, 3)), _risk(2, (1, 1, 1))]
    score = aggregate_compliance(H, risks, [], [], [], now=NOW, weights={"HIGH": 1.0})
    assert score.risk_exposure_rate == 50.0


def test_overall_ims_excludes_standards_without_records():
    with_records = aggregate_compliance(H, [], [_incident(1, IncidentStatus.OPEN)], [], [], now=NOW)
    empty = aggregate_compliance(Standard.ISO_9001, [], [], [], [], now=NOW)
    # closure 0 and the other three at 100 give 75
    assert with_records.overall_score == 75
    assert overall_ims_score([with_records, empty]) == 75


def test_overall_ims_with_nothing_recorded_is_zero():
    empty = [aggregate_compliance(s, [], [], [], [], now=NOW) for s in Standard]
    assert overall_ims_score(empty) == 0
    assert overall_ims_score([]) == 0


def test_rates_stay_in_range_for_random_registers():
    rng = random.Random(7)
    incident_states = list(IncidentStatus)
    action_states = list(ActionStatus)
    legal_states = list(ComplianceStatus)
    risk_states = list(RiskStatus)
    for _ in range(200):
        incidents = [_incident(n, rng.choice(incident_states)) for n in range(rng.randint(0, 15))]
        actions = [
            _action(n, status=rng.choice(action_states), due=rng.choice([None, NOW + timedelta(days=rng.randint(-20, 20))]))
            for n in range(rng.randint(0, 15))
        ]
        reqs = [
            LegalRequirement(id=f"l{n}", standard=H, compliance_status=rng.choice(legal_states))
            for n in range(rng.randint(0, 15))
        ]
        risks = [
            _risk(n, (rng.randint(1, 5), rng.randint(1, 5), rng.randint(1, 5)), status=rng.choice(risk_states))
            for n in range(rng.randint(0, 15))
        ]
        score = aggregate_compliance(H, risks, incidents, actions, reqs, now=NOW)
        for rate in (score.incident_closure_rate, score.action_on_time_rate, score.legal_compliance_rate, score.risk_exposure_rate):
            assert 0 <= rate <= 100
        assert 0 <= score.overall_score <= 100
        assert 0 <= overall_ims_score([score]) <= 100
