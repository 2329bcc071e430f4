import itertools

import pytest

from backend.app.scoring import (
    RiskLevel,
    ScoringContractError,
    SignificanceLevel,
    ThresholdTable,
    residual_risk,
    risk_matrix,
    score_aspect,
    score_risk,
)
from backend.app.scoring.base import round_half_up
from backend.app.scoring.levels import RISK_SCORER, assess, build_risk_scorer, is_significant, matrix_level
from backend.app.scoring.records import EnvironmentalAspect, Risk, RiskStatus, Standard

FACTORS = range(1, 6)


def test_score_is_product_and_exactly_one_band_contains_it():
    for l, s, d in itertools.product(FACTORS, repeat=3):
        result = score_risk(l, s, d)
        assert result.score == l * s * d
        containing = [b for b in RISK_SCORER.table.bands if result.score in b]
        assert len(containing) == 1
        assert containing[0].level == result.level


def test_bands_partition_full_range():
    bands = RISK_SCORER.table.bands
    assert bands[0].lower == 1
    assert bands[-1].upper == 125
    for prev, nxt in zip(bands, bands[1:]):
        assert nxt.lower == prev.upper + 1
    assert RISK_SCORER.table.as_dict() == {
        "LOW": (1, 8),
        "MEDIUM": (9, 27),
        "HIGH": (28, 64),
        "CRITICAL": (65, 125),
    }


def test_increasing_any_factor_never_decreases_score():
    for l, s, d in itertools.product(FACTORS, repeat=3):
        base = score_risk(l, s, d).score
        if l < 5:
            assert score_risk(l + 1, s, d).score >= base
        if s < 5:
            assert score_risk(l, s + 1, d).score >= base
        if d < 5:
            assert score_risk(l, s, d + 1).score >= base


@pytest.mark.parametrize(
    "factors,score,level",
    [
        ((1, 1, 1), 1, RiskLevel.LOW),
        ((2, 2, 2), 8, RiskLevel.LOW),
        ((3, 3, 1), 9, RiskLevel.MEDIUM),
        ((3, 3, 3), 27, RiskLevel.MEDIUM),
        ((4, 5, 3), 60, RiskLevel.HIGH),
        ((4, 4, 4), 64, RiskLevel.HIGH),
        ((5, 5, 3), 75, RiskLevel.CRITICAL),
        ((4, 5, 5), 100, RiskLevel.CRITICAL),
        ((5, 5, 5), 125, RiskLevel.CRITICAL),
    ],
)
def test_band_edges(factors, score, level):
    assert score_risk(*factors) == (score, level)


@pytest.mark.parametrize("bad", [0, 6, -1, 2.5, True, "3", None])
def test_out_of_domain_factor_is_a_contract_error(bad):
    with pytest.raises(ScoringContractError):
        score_risk(bad, 3, 3)
    with pytest.raises(ScoringContractError):
        score_aspect(3, 3, bad)


def test_contract_error_is_a_value_error():
    assert issubclass(ScoringContractError, ValueError)


@pytest.mark.parametrize(
    "factors,level",
    [
        ((2, 2, 2), SignificanceLevel.LOW),
        ((3, 3, 1), SignificanceLevel.MODERATE),
        ((3, 3, 3), SignificanceLevel.MODERATE),
        ((4, 4, 2), SignificanceLevel.SIGNIFICANT),
        ((5, 5, 5), SignificanceLevel.SIGNIFICANT),
    ],
)
def test_aspect_significance_levels(factors, level):
    result = score_aspect(*factors)
    assert result.level == level
    assert is_significant(result) == (level == SignificanceLevel.SIGNIFICANT)


def test_assess_picks_table_by_record_type():
    risk = Risk(id="r", standard=Standard.ISO_45001, likelihood=3, severity=3, detectability=4,
                status=RiskStatus.ACTIVE, created_at=None)
    aspect = EnvironmentalAspect(id="a", likelihood=3, severity=3, frequency=4)
    assert assess(risk).level == RiskLevel.HIGH
    assert assess(aspect).level == SignificanceLevel.SIGNIFICANT


@pytest.mark.parametrize("bounds", [(8, 27), (27, 8, 64), (8, 8, 64), (8, 27, 125), (0, 27, 64)])
def test_threshold_table_rejects_bad_bounds(bounds):
    with pytest.raises(ValueError):
        ThresholdTable(RiskLevel, bounds)


def test_custom_bands():
    scorer = build_risk_scorer((4, 16, 50))
    assert scorer.score(2, 2, 1).level == RiskLevel.LOW
    assert scorer.score(2, 2, 2).level == RiskLevel.MEDIUM
    assert scorer.score(5, 5, 3).level == RiskLevel.CRITICAL


def test_round_half_up_is_not_bankers_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(89.5) == 90


def test_residual_risk():
    assert residual_risk(60, 0) == 60
    assert residual_risk(60, 50) == 30
    assert residual_risk(75, 70) == 23  # 22.5 rounds up
    assert residual_risk(60, 100) == 0
    with pytest.raises(ScoringContractError):
        residual_risk(60, 101)
    with pytest.raises(ScoringContractError):
        residual_risk(-1, 10)


def test_risk_matrix_cells():
    cells = risk_matrix()
    assert len(cells) == 25
    by_pos = {(c["likelihood"], c["severity"]): c for c in cells}
    assert by_pos[(2, 2)]["level"] == "LOW"
    assert by_pos[(3, 3)]["level"] == "MEDIUM"
    assert by_pos[(3, 5)]["level"] == "HIGH"
    assert by_pos[(4, 4)]["level"] == "CRITICAL"
    assert by_pos[(5, 5)]["score"] == 25
    with pytest.raises(ScoringContractError):
        matrix_level(0, 3)
