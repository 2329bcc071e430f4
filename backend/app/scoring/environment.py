"""Environmental performance indicators (ISO 14001)."""
from typing import Dict, Mapping

from .base import Number, ScoringContractError, require_count, round_half_up

# kg CO2e per unit of each source; gases use 100-year GWP
EMISSION_FACTORS: Dict[str, float] = {
    "co2": 1.0,             # kg
    "methane": 28.0,        # kg
    "nitrous_oxide": 298.0, # kg
    "electricity": 0.233,   # kWh, UK grid average
    "gas": 2.02,            # m3
    "diesel": 2.68,         # litres
    "petrol": 2.31,         # litres
}


def carbon_footprint(emissions: Mapping[str, Number], factors: Mapping[str, float] = EMISSION_FACTORS) -> float:
    """Total tonnes of CO2 equivalent for the given source quantities."""
    total_kg = 0.0
    for source, quantity in emissions.items():
        if source not in factors:
            raise ScoringContractError(f"unknown emission source {source!r}")
        require_count(source, quantity)
        total_kg += quantity * factors[source]
    return round_half_up(total_kg / 1000, 2)


def waste_diversion_rate(recycled: Number, composted: Number, recovered: Number, landfill: Number) -> float:
    """Percentage of waste kept out of landfill, to one decimal."""
    for name, value in (("recycled", recycled), ("composted", composted), ("recovered", recovered), ("landfill", landfill)):
        require_count(name, value)
    total = recycled + composted + recovered + landfill
    if total == 0:
        return 0.0
    return round_half_up((recycled + composted + recovered) / total * 100, 1)
