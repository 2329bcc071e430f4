import pytest

from backend.app.scoring import ScoringContractError, compute_safety_rates, year_to_date
from backend.app.scoring.records import SafetyMetricPeriod
from backend.app.scoring.safety import predict_incident_pyramid, safety_metric_status


def test_two_lost_time_injuries_over_base_hours():
    rates = compute_safety_rates(200000, 2, 0, 0)
    assert rates.ltifr == 2.0
    assert rates.trir == 0.0
    assert rates.severity_rate == 0.0
    assert rates.near_miss_rate is None


def test_zero_hours_means_zero_rates():
    rates = compute_safety_rates(0, 7, 3, 40, near_misses=12)
    assert (rates.ltifr, rates.trir, rates.severity_rate, rates.near_miss_rate) == (0.0, 0.0, 0.0, 0.0)


def test_rates_are_rounded_to_two_places():
    rates = compute_safety_rates(150000, 1, 2, 5)
    assert rates.ltifr == 1.33
    assert rates.trir == 2.67
    assert rates.severity_rate == 6.67


@pytest.mark.parametrize("args", [(-1, 0, 0, 0), (100, -1, 0, 0), (100, 0, 0, -2)])
def test_negative_counts_are_contract_errors(args):
    with pytest.raises(ScoringContractError):
        compute_safety_rates(*args)


def test_year_to_date_sums_counts_before_applying_formula():
    periods = [
        SafetyMetricPeriod(2026, 1, 10000, lost_time_injuries=1),
        SafetyMetricPeriod(2026, 2, 190000, lost_time_injuries=1),
        SafetyMetricPeriod(2025, 12, 50000, lost_time_injuries=9),
    ]
    totals = year_to_date(2026, periods)
    assert totals.months == 2
    assert totals.hours_worked == 200000
    assert totals.lost_time_injuries == 2
    assert totals.rates.ltifr == 2.0

    monthly = [compute_safety_rates(p.hours_worked, p.lost_time_injuries, 0, 0).ltifr for p in periods[:2]]
    averaged = sum(monthly) / len(monthly)
    # 20.0 and 1.05 average to about 10.5, far from the true 2.0
    assert averaged != pytest.approx(totals.rates.ltifr)


def test_year_to_date_with_no_periods():
    totals = year_to_date(2026, [])
    assert totals.months == 0
    assert totals.rates.ltifr == 0.0
    assert totals.rates.near_miss_rate == 0.0


@pytest.mark.parametrize(
    "value,benchmark,status",
    [(0.5, 1.0, "GREEN"), (0.75, 1.0, "GREEN"), (1.0, 1.0, "AMBER"), (1.25, 1.0, "AMBER"), (1.3, 1.0, "RED")],
)
def test_safety_metric_status(value, benchmark, status):
    assert safety_metric_status(value, benchmark) == status


def test_safety_metric_status_needs_positive_benchmark():
    with pytest.raises(ScoringContractError):
        safety_metric_status(1.0, 0)


def test_incident_pyramid():
    assert predict_incident_pyramid(2) == {"major_injuries": 2, "minor_injuries": 58, "near_misses": 600}
