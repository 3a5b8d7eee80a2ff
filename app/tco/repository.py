# app/tco/repository.py
"""
Static reference data for the calculator.

The regional emission-factor table ships as a CSV next to this module and is
read once per process. Callers get copies / plain values, never the cached
frame itself.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

REGIONAL_FACTORS_PATH = Path(__file__).resolve().parent / "data" / "regional_factors.csv"

REQUIRED_COLUMNS = {
    "region",
    "name",
    "carbon_factor_kg_per_kwh",
    "water_factor_gal_per_kwh",
    "typical_energy_cost_per_kwh",
}


@dataclass(frozen=True)
class RegionFactors:
    code: str
    name: str
    carbon_factor_kg_per_kwh: float
    water_factor_gal_per_kwh: float
    typical_energy_cost_per_kwh: float


@lru_cache(maxsize=1)
def _read_regional_table() -> pd.DataFrame:
    df = pd.read_csv(REGIONAL_FACTORS_PATH)

    # Normalise column names: lowercase + trimmed
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Regional factor table missing columns: {sorted(missing)}")

    df["region"] = df["region"].astype(str).str.strip().str.upper()
    for col in ("carbon_factor_kg_per_kwh", "water_factor_gal_per_kwh", "typical_energy_cost_per_kwh"):
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)

    return df.set_index("region", drop=False)


def load_regional_factors() -> pd.DataFrame:
    return _read_regional_table().copy()


def get_region_factors(code: Optional[str]) -> Optional[RegionFactors]:
    if not code:
        return None

    df = _read_regional_table()
    key = str(code).strip().upper()
    if key not in df.index:
        return None

    row = df.loc[key]
    return RegionFactors(
        code=key,
        name=str(row["name"]),
        carbon_factor_kg_per_kwh=float(row["carbon_factor_kg_per_kwh"]),
        water_factor_gal_per_kwh=float(row["water_factor_gal_per_kwh"]),
        typical_energy_cost_per_kwh=float(row["typical_energy_cost_per_kwh"]),
    )


def list_regions() -> List[Dict[str, object]]:
    df = load_regional_factors()
    return [
        {
            "code": str(row["region"]),
            "name": str(row["name"]),
            "carbon_factor_kg_per_kwh": float(row["carbon_factor_kg_per_kwh"]),
            "water_factor_gal_per_kwh": float(row["water_factor_gal_per_kwh"]),
            "typical_energy_cost_per_kwh": float(row["typical_energy_cost_per_kwh"]),
        }
        for _, row in df.iterrows()
    ]
