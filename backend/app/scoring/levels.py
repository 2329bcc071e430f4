"""Ordinal risk scoring.

A score is the product of three 1..5 factors, so it always lands in
[1, 125]. A ``ThresholdTable`` partitions that range into named levels;
the same ``OrdinalRiskScorer`` serves both the risk register (H&S and
Quality) and environmental aspect significance, each with its own table.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, NamedTuple, Sequence, Tuple, Type

from .. import config
from .base import ScoringContractError, require_count, round_half_up
from .records import EnvironmentalAspect

FACTOR_MIN = 1
FACTOR_MAX = 5
SCORE_MIN = FACTOR_MIN ** 3
SCORE_MAX = FACTOR_MAX ** 3
DEFAULT_FACTOR = 3


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class SignificanceLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    SIGNIFICANT = "SIGNIFICANT"


class ScoreResult(NamedTuple):
    score: int
    level: Enum


@dataclass(frozen=True)
class Band:
    lower: int
    upper: int
    level: Enum

    def __contains__(self, score: int) -> bool:
        return self.lower <= score <= self.upper


class ThresholdTable:
    """Inclusive, gap-free bands covering [SCORE_MIN, SCORE_MAX].

    ``upper_bounds`` lists the inclusive upper bound of every level except
    the last, which always ends at SCORE_MAX.
    """

    def __init__(self, levels: Type[Enum], upper_bounds: Sequence[int]):
        members = list(levels)
        if len(upper_bounds) != len(members) - 1:
            raise ValueError(
                f"{levels.__name__} needs {len(members) - 1} upper bounds, got {len(upper_bounds)}"
            )
        bounds = list(upper_bounds) + [SCORE_MAX]
        bands: List[Band] = []
        lower = SCORE_MIN
        for level, upper in zip(members, bounds):
            if upper < lower or upper > SCORE_MAX:
                raise ValueError(f"Band bounds for {levels.__name__} must strictly increase within [1, 125]: {list(upper_bounds)}")
            bands.append(Band(lower, upper, level))
            lower = upper + 1
        self.levels = levels
        self.bands: Tuple[Band, ...] = tuple(bands)

    def level_for(self, score: int) -> Enum:
        for band in self.bands:
            if score in band:
                return band.level
        raise ScoringContractError(f"score {score!r} is outside [{SCORE_MIN}, {SCORE_MAX}]")

    def as_dict(self) -> Dict[str, Tuple[int, int]]:
        return {b.level.value: (b.lower, b.upper) for b in self.bands}


def _require_factor(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ScoringContractError(f"{name} must be an int, got {value!r}")
    if not FACTOR_MIN <= value <= FACTOR_MAX:
        raise ScoringContractError(f"{name} must be within [{FACTOR_MIN}, {FACTOR_MAX}], got {value}")


class OrdinalRiskScorer:
    def __init__(self, table: ThresholdTable, factor_names: Tuple[str, str, str]):
        self.table = table
        self.factor_names = factor_names

    def score(self, a: int, b: int, c: int) -> ScoreResult:
        for name, value in zip(self.factor_names, (a, b, c)):
            _require_factor(name, value)
        score = a * b * c
        return ScoreResult(score, self.table.level_for(score))


def build_risk_scorer(upper_bounds: Sequence[int]) -> OrdinalRiskScorer:
    return OrdinalRiskScorer(ThresholdTable(RiskLevel, upper_bounds), ("likelihood", "severity", "detectability"))


def build_aspect_scorer(upper_bounds: Sequence[int]) -> OrdinalRiskScorer:
    return OrdinalRiskScorer(ThresholdTable(SignificanceLevel, upper_bounds), ("likelihood", "severity", "frequency"))


RISK_SCORER = build_risk_scorer(config.risk_level_bands())
ASPECT_SCORER = build_aspect_scorer(config.aspect_level_bands())


def score_risk(likelihood: int, severity: int, detectability: int) -> ScoreResult:
    return RISK_SCORER.score(likelihood, severity, detectability)


def score_aspect(likelihood: int, severity: int, frequency: int) -> ScoreResult:
    return ASPECT_SCORER.score(likelihood, severity, frequency)


def is_significant(result: ScoreResult) -> bool:
    return result.level == SignificanceLevel.SIGNIFICANT


def residual_risk(initial_score: int, control_effectiveness: float) -> int:
    """Score left over once controls of the given effectiveness (0-100 %) apply."""
    require_count("initial_score", initial_score)
    if isinstance(control_effectiveness, bool) or not 0 <= control_effectiveness <= 100:
        raise ScoringContractError(f"control_effectiveness must be within [0, 100], got {control_effectiveness!r}")
    return round_half_up(initial_score * (1 - control_effectiveness / 100))


def matrix_level(likelihood: int, severity: int) -> RiskLevel:
    """Level on the plain 5x5 likelihood/severity matrix."""
    _require_factor("likelihood", likelihood)
    _require_factor("severity", severity)
    score = likelihood * severity
    if score <= 4:
        return RiskLevel.LOW
    if score <= 9:
        return RiskLevel.MEDIUM
    if score <= 15:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def risk_matrix() -> List[dict]:
    cells = []
    for likelihood in range(FACTOR_MIN, FACTOR_MAX + 1):
        for severity in range(FACTOR_MIN, FACTOR_MAX + 1):
            cells.append({
                "likelihood": likelihood,
                "severity": severity,
                "score": likelihood * severity,
                "level": matrix_level(likelihood, severity).value,
            })
    return cells


def assess(record) -> ScoreResult:
    """Score a register record from its stored factors, never its stored score."""
    if isinstance(record, EnvironmentalAspect):
        return score_aspect(record.likelihood, record.severity, record.frequency)
    return score_risk(record.likelihood, record.severity, record.detectability)
