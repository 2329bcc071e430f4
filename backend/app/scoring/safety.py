"""Occupational safety rates (ISO 45001).

All rates are normalised to 200,000 exposure hours, i.e. 100 full-time
workers over a year. Year-to-date figures are computed from summed raw
counts; averaging monthly rates gives the wrong answer whenever monthly
hours differ, so it is never done here.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from .base import ScoringContractError, require_count, round_half_up
from .records import SafetyMetricPeriod

RATE_BASE_HOURS = 200_000

HEINRICH_RATIOS = {"major_injury": 1, "minor_injury": 29, "near_miss": 300}


@dataclass(frozen=True)
class SafetyRates:
    ltifr: float
    trir: float
    severity_rate: float
    near_miss_rate: Optional[float] = None


@dataclass(frozen=True)
class SafetyTotals:
    year: int
    months: int
    hours_worked: float
    lost_time_injuries: int
    total_recordable_injuries: int
    days_lost: int
    near_misses: int
    rates: SafetyRates


def _rate(count: float, hours_worked: float) -> float:
    # No exposure means no incidence, not an undefined rate.
    if hours_worked == 0:
        return 0.0
    return round_half_up(count * RATE_BASE_HOURS / hours_worked, 2)


def compute_safety_rates(
    hours_worked: float,
    lost_time_injuries: int,
    total_recordable_injuries: int,
    days_lost: int,
    near_misses: Optional[int] = None,
) -> SafetyRates:
    require_count("hours_worked", hours_worked)
    require_count("lost_time_injuries", lost_time_injuries)
    require_count("total_recordable_injuries", total_recordable_injuries)
    require_count("days_lost", days_lost)
    if near_misses is not None:
        require_count("near_misses", near_misses)
    return SafetyRates(
        ltifr=_rate(lost_time_injuries, hours_worked),
        trir=_rate(total_recordable_injuries, hours_worked),
        severity_rate=_rate(days_lost, hours_worked),
        near_miss_rate=_rate(near_misses, hours_worked) if near_misses is not None else None,
    )


def year_to_date(year: int, periods: Iterable[SafetyMetricPeriod]) -> SafetyTotals:
    hours = 0.0
    lti = tri = days = near = 0
    months = 0
    for p in periods:
        if p.year != year:
            continue
        months += 1
        hours += p.hours_worked
        lti += p.lost_time_injuries
        tri += p.total_recordable_injuries
        days += p.days_lost
        near += p.near_misses
    return SafetyTotals(
        year=year,
        months=months,
        hours_worked=hours,
        lost_time_injuries=lti,
        total_recordable_injuries=tri,
        days_lost=days,
        near_misses=near,
        rates=compute_safety_rates(hours, lti, tri, days, near),
    )


def safety_metric_status(value: float, benchmark: float) -> str:
    """RAG rating of a rate against an industry benchmark."""
    if benchmark <= 0:
        raise ScoringContractError(f"benchmark must be positive, got {benchmark!r}")
    ratio = value / benchmark
    if ratio <= 0.75:
        return "GREEN"
    if ratio <= 1.25:
        return "AMBER"
    return "RED"


def predict_incident_pyramid(major_injuries: int) -> dict:
    require_count("major_injuries", major_injuries)
    return {
        "major_injuries": major_injuries,
        "minor_injuries": major_injuries * HEINRICH_RATIOS["minor_injury"],
        "near_misses": major_injuries * HEINRICH_RATIOS["near_miss"],
    }
