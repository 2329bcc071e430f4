"""Process quality indicators (ISO 9001).

DPMO, yields and process sigma are computed from unit and defect counts;
cost of poor quality is the plain sum of the four cost categories. As with
the safety rates, year-to-date figures come from summed raw counts and never
from averaging monthly indicators.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

from .base import Number, ScoringContractError, require_count, round_half_up
from .records import QualityMetricPeriod

PER_MILLION = 1_000_000

# (DPMO, sigma) pairs from the long-term table (1.5 sigma shift), DPMO descending
SIGMA_TABLE = (
    (933193.0, 0.0),
    (691462.0, 0.5),
    (500000.0, 1.0),
    (308538.0, 1.5),
    (158655.0, 2.0),
    (66807.0, 2.5),
    (22750.0, 3.0),
    (6210.0, 3.5),
    (1350.0, 4.0),
    (233.0, 4.5),
    (32.0, 5.0),
    (3.4, 5.5),
    (0.29, 6.0),
)

LOWER_IS_BETTER = frozenset({"dpmo", "defect_rate"})
HIGHER_IS_BETTER = frozenset({"first_pass_yield", "process_sigma"})


@dataclass(frozen=True)
class QualityMetrics:
    total_copq: float
    dpmo: int
    first_pass_yield: float
    process_sigma: float
    defect_rate: float


@dataclass(frozen=True)
class QualityTotals:
    year: int
    months: int
    prevention_cost: float
    appraisal_cost: float
    internal_failure_cost: float
    external_failure_cost: float
    total_units: int
    defective_units: int
    opportunities: int
    metrics: QualityMetrics


def cost_of_poor_quality(prevention: Number, appraisal: Number, internal_failure: Number, external_failure: Number) -> float:
    for name, value in (
        ("prevention", prevention),
        ("appraisal", appraisal),
        ("internal_failure", internal_failure),
        ("external_failure", external_failure),
    ):
        require_count(name, value)
    return round_half_up(prevention + appraisal + internal_failure + external_failure, 2)


def copq_breakdown(prevention: Number, appraisal: Number, internal_failure: Number, external_failure: Number) -> dict:
    """Share of each cost category in percent, plus conformance and failure totals."""
    total = cost_of_poor_quality(prevention, appraisal, internal_failure, external_failure)

    def share(part):
        return round_half_up(part / total * 100, 1) if total > 0 else 0.0

    return {
        "prevention": share(prevention),
        "appraisal": share(appraisal),
        "internal_failure": share(internal_failure),
        "external_failure": share(external_failure),
        "total": total,
        "conformance_cost": round_half_up(prevention + appraisal, 2),
        "non_conformance_cost": round_half_up(internal_failure + external_failure, 2),
    }


def _per_million(defects: int, opportunities: Number) -> int:
    if opportunities == 0:
        return 0
    return round_half_up(defects * PER_MILLION / opportunities)


def dpmo(defects: int, units: int, opportunities_per_unit: int) -> int:
    require_count("defects", defects)
    require_count("units", units)
    require_count("opportunities_per_unit", opportunities_per_unit)
    return _per_million(defects, units * opportunities_per_unit)


def first_pass_yield(total_units: int, defective_units: int) -> float:
    require_count("total_units", total_units)
    require_count("defective_units", defective_units)
    if defective_units > total_units:
        raise ScoringContractError("defective_units cannot exceed total_units")
    if total_units == 0:
        return 0.0
    return round_half_up((total_units - defective_units) / total_units * 100, 2)


def defect_rate(defective_units: int, total_units: int) -> float:
    require_count("defective_units", defective_units)
    require_count("total_units", total_units)
    if defective_units > total_units:
        raise ScoringContractError("defective_units cannot exceed total_units")
    if total_units == 0:
        return 0.0
    return round_half_up(defective_units / total_units * 100, 2)


def rolled_throughput_yield(yields: Sequence[Number]) -> float:
    """Product of the step yields, each given in percent."""
    if not yields:
        return 0.0
    product = 1.0
    for y in yields:
        require_count("yield", y)
        if y > 100:
            raise ScoringContractError(f"yield must be at most 100, got {y!r}")
        product *= y / 100
    return round_half_up(product * 100, 2)


def process_sigma(dpmo_value: Number) -> float:
    """Sigma level for a DPMO, interpolated linearly inside the table."""
    require_count("dpmo", dpmo_value)
    if dpmo_value >= SIGMA_TABLE[0][0]:
        return SIGMA_TABLE[0][1]
    if dpmo_value <= SIGMA_TABLE[-1][0]:
        return SIGMA_TABLE[-1][1]
    for (upper_dpmo, upper_sigma), (lower_dpmo, lower_sigma) in zip(SIGMA_TABLE, SIGMA_TABLE[1:]):
        if lower_dpmo <= dpmo_value <= upper_dpmo:
            ratio = (upper_dpmo - dpmo_value) / (upper_dpmo - lower_dpmo)
            return round_half_up(upper_sigma + ratio * (lower_sigma - upper_sigma), 2)
    raise ScoringContractError(f"dpmo is not a comparable number: {dpmo_value!r}")


def compute_quality_metrics(
    prevention_cost: Number,
    appraisal_cost: Number,
    internal_failure_cost: Number,
    external_failure_cost: Number,
    total_units: int,
    defective_units: int,
    opportunities_per_unit: int = 1,
) -> QualityMetrics:
    value = dpmo(defective_units, total_units, opportunities_per_unit)
    # nothing produced means nothing measured, not six sigma
    measured = total_units * opportunities_per_unit > 0
    return QualityMetrics(
        total_copq=cost_of_poor_quality(prevention_cost, appraisal_cost, internal_failure_cost, external_failure_cost),
        dpmo=value,
        first_pass_yield=first_pass_yield(total_units, defective_units),
        process_sigma=process_sigma(value) if measured else 0.0,
        defect_rate=defect_rate(defective_units, total_units),
    )


def quality_year_to_date(year: int, periods: Iterable[QualityMetricPeriod]) -> QualityTotals:
    costs = [0.0, 0.0, 0.0, 0.0]
    units = defective = opportunities = 0
    months = 0
    for p in periods:
        if p.year != year:
            continue
        months += 1
        costs[0] += p.prevention_cost
        costs[1] += p.appraisal_cost
        costs[2] += p.internal_failure_cost
        costs[3] += p.external_failure_cost
        units += p.total_units
        defective += p.defective_units
        # opportunities per unit can change month to month
        opportunities += p.total_units * p.defect_opportunities
    value = _per_million(defective, opportunities)
    measured = opportunities > 0
    metrics = QualityMetrics(
        total_copq=cost_of_poor_quality(*costs),
        dpmo=value,
        first_pass_yield=first_pass_yield(units, defective),
        process_sigma=process_sigma(value) if measured else 0.0,
        defect_rate=defect_rate(defective, units),
    )
    return QualityTotals(
        year=year,
        months=months,
        prevention_cost=round_half_up(costs[0], 2),
        appraisal_cost=round_half_up(costs[1], 2),
        internal_failure_cost=round_half_up(costs[2], 2),
        external_failure_cost=round_half_up(costs[3], 2),
        total_units=units,
        defective_units=defective,
        opportunities=opportunities,
        metrics=metrics,
    )


def quality_metric_status(metric: str, value: Number, target: Number) -> str:
    """RAG rating against a target; DPMO and defect rate are better when lower."""
    require_count("target", target)
    if metric in LOWER_IS_BETTER:
        if value <= target:
            return "GREEN"
        if value <= target * 1.5:
            return "AMBER"
        return "RED"
    if metric in HIGHER_IS_BETTER:
        if value >= target:
            return "GREEN"
        if value >= target * 0.9:
            return "AMBER"
        return "RED"
    raise ScoringContractError(f"unknown quality metric {metric!r}")


def quality_statuses(metrics: QualityMetrics, targets: Dict[str, Number]) -> Dict[str, str]:
    return {name: quality_metric_status(name, getattr(metrics, name), target) for name, target in targets.items()}
