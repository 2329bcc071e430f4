import pytest

from backend.app.scoring import ScoringContractError, carbon_footprint, waste_diversion_rate


def test_carbon_footprint_in_tonnes():
    assert carbon_footprint({"co2": 1000, "electricity": 1000}) == 1.23
    assert carbon_footprint({"methane": 10}) == 0.28
    assert carbon_footprint({"diesel": 100, "petrol": 100}) == 0.5
    assert carbon_footprint({}) == 0.0


def test_carbon_footprint_rejects_unknown_or_negative_sources():
    with pytest.raises(ScoringContractError):
        carbon_footprint({"coal": 1})
    with pytest.raises(ScoringContractError):
        carbon_footprint({"gas": -3})


@pytest.mark.parametrize(
    "amounts,rate",
    [((300, 100, 100, 500), 50.0), ((1, 1, 1, 0), 100.0), ((0, 0, 0, 0), 0.0), ((1, 0, 0, 2), 33.3), ((2, 0, 0, 1), 66.7)],
)
def test_waste_diversion_rate(amounts, rate):
    assert waste_diversion_rate(*amounts) == rate
