from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float]


class ScoringContractError(ValueError):
    """Raised when a caller hands the core input outside its documented domain.

    The route layer validates requests before they reach the core, so this
    signals an upstream validation bug rather than bad user input.
    """


def round_half_up(value: Number, digits: int = 0) -> Number:
    # Python's round() is banker's rounding; dashboards expect 2.5 -> 3.
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def require_count(name: str, value: Number) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ScoringContractError(f"{name} must be a non-negative number, got {value!r}")
