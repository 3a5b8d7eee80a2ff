import math
from typing import Any, Dict

import pytest

from app.tco.schemas import ValidatedParameters


@pytest.fixture
def reference_input() -> Dict[str, Any]:
    """100 air racks @ 12 kW vs 25 immersion tanks @ 40 kW over five years."""
    return {
        "air_racks": 100,
        "air_power_per_rack_kw": 12,
        "air_pue": 1.8,
        "immersion_tanks": 25,
        "immersion_power_per_tank_kw": 40,
        "immersion_pue": 1.1,
        "analysis_years": 5,
        "electricity_price": 0.12,
        "discount_rate": 8,
        "maintenance_cost_pct": 3,
    }


@pytest.fixture
def base_params() -> ValidatedParameters:
    return ValidatedParameters(
        air_racks=100,
        air_power_per_rack_kw=12.0,
        air_rack_cost=50_000.0,
        air_pue=1.8,
        immersion_tanks=25,
        immersion_power_per_tank_kw=40.0,
        immersion_tank_cost=80_000.0,
        immersion_pue=1.1,
        analysis_years=5,
        electricity_price=0.12,
        discount_rate=8.0,
        maintenance_cost_pct=3.0,
        carbon_emission_factor=0.4,
        water_factor_gal_per_kwh=0.5,
    )


def iter_numbers(value):
    """Yield every int/float leaf of a dumped model."""
    if isinstance(value, dict):
        for item in value.values():
            yield from iter_numbers(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_numbers(item)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        yield value


def assert_all_finite(model) -> None:
    for number in iter_numbers(model.model_dump()):
        assert math.isfinite(number)
