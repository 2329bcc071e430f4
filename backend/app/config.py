import os
from pathlib import Path
from typing import Dict, Tuple


ROOT_DIR = Path(__file__).resolve().parents[2]


def database_url() -> str:
    return os.getenv("DATABASE_URL", f"sqlite:///{ROOT_DIR}/backend/ims.db")


def _int_list(raw: str) -> Tuple[int, ...]:
    try:
        return tuple(int(p.strip()) for p in raw.split(",") if p.strip())
    except ValueError:
        raise ValueError(f"Invalid band list: {raw!r}")


def risk_level_bands() -> Tuple[int, ...]:
    """Upper bounds for LOW, MEDIUM and HIGH; CRITICAL takes the rest."""
    return _int_list(os.getenv("RISK_LEVEL_BANDS", "8,27,64"))


def aspect_level_bands() -> Tuple[int, ...]:
    """Upper bounds for LOW and MODERATE; SIGNIFICANT takes the rest."""
    return _int_list(os.getenv("ASPECT_LEVEL_BANDS", "8,27"))


def risk_exposure_weights() -> Dict[str, float]:
    raw = os.getenv("RISK_EXPOSURE_WEIGHTS", "HIGH=0.5,CRITICAL=1,SIGNIFICANT=1")
    weights: Dict[str, float] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        level, _, value = part.partition("=")
        try:
            weight = float(value)
        except ValueError:
            raise ValueError(f"Invalid exposure weight: {part!r}")
        if weight < 0 or weight > 1:
            raise ValueError(f"Exposure weight must be within [0, 1]: {part!r}")
        weights[level.strip().upper()] = weight
    return weights


def cors_origins():
    raw = os.getenv("CORS_ALLOWED_ORIGINS")
    return raw.split(",") if raw else ["*"]


def env_mode() -> str:
    return os.getenv("ENV", "dev").lower()
