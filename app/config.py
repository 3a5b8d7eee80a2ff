# app/config.py

import os
from typing import List


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------------------------------------------------------
# Calculation defaults (overridable through .env)
# -------------------------------------------------------------------
DEFAULT_CARBON_EMISSION_FACTOR = _float_env("TCO_DEFAULT_CARBON_FACTOR", 0.4)  # kg CO2 / kWh
LONG_ANALYSIS_YEARS = _int_env("TCO_LONG_ANALYSIS_YEARS", 15)

# -------------------------------------------------------------------
# Result cache
# -------------------------------------------------------------------
CACHE_TTL_SECONDS = _float_env("TCO_CACHE_TTL_SECONDS", 300.0)
CACHE_MAX_ENTRIES = _int_env("TCO_CACHE_MAX_ENTRIES", 256)

# -------------------------------------------------------------------
# HTTP / logging
# -------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def cors_allow_origins() -> List[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]
