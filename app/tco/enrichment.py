# app/tco/enrichment.py
"""
Turns the environmental block of a CalculationResult into something people
can picture: homes, cars, trees, a multi-year projection and display strings.

The enricher sits at the end of the pipeline and is also called on results
coming back from session storage, so it has to cope with partial payloads.
It never raises; anything it cannot read becomes zero and the output is
flagged as a fallback.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from pydantic import ValidationError

from .constants import (
    DEFAULT_PROJECTION_GROWTH,
    DEFAULT_PROJECTION_YEARS,
    PUE_PERCENTILE_BREAKPOINTS,
    SUPPORTED_CURRENCIES,
)
from .schemas import (
    CalculationResult,
    EnrichedEnvironmentalData,
    EnvironmentalBlock,
    EnvironmentalEquivalents,
    ProjectionPoint,
)

logger = logging.getLogger(__name__)

FALLBACK_NOTE = "Calculation used simplified method: upstream result was incomplete."


@dataclass(frozen=True)
class EquivalenceFactors:
    """Published conversion constants; override per report if needed."""

    home_kwh_per_year: float = 10_800.0  # average US household
    car_tons_co2_per_year: float = 4.6  # typical passenger vehicle
    trees_per_ton_co2: float = 16.5  # urban tree seedlings grown 10 years
    kg_co2_per_gasoline_gallon: float = 8.887


DEFAULT_FACTORS = EquivalenceFactors()

# -------------------------------------------------
# Helpers
# -------------------------------------------------


def _num(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return _num(numerator / denominator)


def _zero_environmental() -> EnvironmentalBlock:
    return EnvironmentalBlock(
        air_pue=0.0,
        immersion_pue=0.0,
        improvement_percent=0.0,
        annual_energy_savings_kwh=0.0,
        annual_energy_savings_mwh=0.0,
        lifetime_energy_savings_mwh=0.0,
        annual_carbon_reduction_tons=0.0,
        lifetime_carbon_reduction_tons=0.0,
        carbon_emission_factor=0.0,
        annual_water_savings_gallons=0.0,
        facility_energy_difference_kwh=0.0,
    )


def _salvage_environmental(payload: Any) -> EnvironmentalBlock:
    """Best-effort read of whatever environmental numbers a partial payload has."""
    env = payload.get("environmental") if isinstance(payload, Mapping) else None
    if not isinstance(env, Mapping):
        return _zero_environmental()

    fields = EnvironmentalBlock.model_fields.keys()
    return EnvironmentalBlock(**{name: _num(env.get(name)) for name in fields})


def _finite_environmental(env: EnvironmentalBlock) -> Tuple[EnvironmentalBlock, List[str]]:
    """Zero out NaN/inf values a stored result may carry; report which fields."""
    raw = env.model_dump()
    bad = sorted(name for name, value in raw.items() if not math.isfinite(float(value)))
    if not bad:
        return env, []
    return EnvironmentalBlock(**{name: _num(value) for name, value in raw.items()}), bad


def _salvage_annual_savings(payload: Any) -> float:
    comparison = payload.get("comparison") if isinstance(payload, Mapping) else None
    if not isinstance(comparison, Mapping):
        return 0.0
    return _num(comparison.get("annual_savings"))


def _coerce_result(result: Any) -> Tuple[Optional[CalculationResult], List[str]]:
    if isinstance(result, CalculationResult):
        return result, []
    if result is None:
        return None, ["No calculation result was provided."]
    if not isinstance(result, Mapping):
        return None, [f"Unsupported result type: {type(result).__name__}."]
    try:
        return CalculationResult.model_validate(dict(result)), []
    except ValidationError as exc:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        logger.warning("Enriching incomplete calculation result; bad fields: %s", missing[:10])
        return None, [f"Incomplete result fields: {', '.join(missing[:10])}."]

# -------------------------------------------------
# Public pieces
# -------------------------------------------------


def compute_equivalents(
    env: EnvironmentalBlock,
    factors: EquivalenceFactors = DEFAULT_FACTORS,
) -> EnvironmentalEquivalents:
    kwh = max(_num(env.annual_energy_savings_kwh), 0.0)
    tons = max(_num(env.annual_carbon_reduction_tons), 0.0)

    return EnvironmentalEquivalents(
        homes_powered=round(_ratio(kwh, factors.home_kwh_per_year), 1),
        cars_removed=round(_ratio(tons, factors.car_tons_co2_per_year), 1),
        trees_planted=round(tons * max(factors.trees_per_ton_co2, 0.0), 0),
        gasoline_gallons_avoided=round(_ratio(tons * 1000.0, factors.kg_co2_per_gasoline_gallon), 0),
    )


def build_projection(
    annual_kwh: float,
    annual_tons: float,
    annual_cost_savings: float,
    years: int = DEFAULT_PROJECTION_YEARS,
    growth_rate: float = DEFAULT_PROJECTION_GROWTH,
) -> List[ProjectionPoint]:
    """Geometric series: year k = base * (1 + growth)^(k-1)."""
    n = max(int(years), 0)
    base = 1.0 + _num(growth_rate)
    if base <= 0:
        base = 1.0
    multipliers = np.power(base, np.arange(n, dtype=float))

    energy = _num(annual_kwh) * multipliers
    carbon = _num(annual_tons) * multipliers
    cost = _num(annual_cost_savings) * multipliers
    cumulative_carbon = np.cumsum(carbon)

    return [
        ProjectionPoint(
            year=k + 1,
            energy_savings_kwh=round(_num(energy[k]), 2),
            carbon_reduction_tons=round(_num(carbon[k]), 2),
            cost_savings=round(_num(cost[k]), 2),
            cumulative_carbon_reduction_tons=round(_num(cumulative_carbon[k]), 2),
        )
        for k in range(n)
    ]


def industry_percentile(immersion_pue: float) -> float:
    """Share of facilities (in %) with a worse PUE than ``immersion_pue``."""
    pue = _num(immersion_pue)
    if pue <= 0:
        return 0.0
    xs = [p for p, _ in PUE_PERCENTILE_BREAKPOINTS]
    ys = [pct for _, pct in PUE_PERCENTILE_BREAKPOINTS]
    return round(float(np.interp(pue, xs, ys)), 1)


def format_number(value: float, unit: str = "", decimals: int = 0) -> str:
    text = f"{_num(value):,.{decimals}f}"
    return f"{text} {unit}".strip()


def format_money(value: float, currency: str = "USD") -> str:
    symbol = SUPPORTED_CURRENCIES.get((currency or "").upper(), "$")
    amount = _num(value)
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    if amount >= 1_000_000_000:
        return f"{sign}{symbol}{amount / 1_000_000_000:.2f}B"
    if amount >= 1_000_000:
        return f"{sign}{symbol}{amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"{sign}{symbol}{amount / 1_000:.1f}K"
    return f"{sign}{symbol}{amount:,.2f}"


def format_environmental(
    env: EnvironmentalBlock,
    equivalents: EnvironmentalEquivalents,
    annual_cost_savings: float,
    currency: str,
) -> Dict[str, str]:
    return {
        "pue_improvement": f"{_num(env.improvement_percent):.1f}%",
        "annual_energy_savings": format_number(env.annual_energy_savings_mwh, "MWh", 1),
        "lifetime_energy_savings": format_number(env.lifetime_energy_savings_mwh, "MWh", 1),
        "annual_carbon_reduction": format_number(env.annual_carbon_reduction_tons, "t CO2", 1),
        "lifetime_carbon_reduction": format_number(env.lifetime_carbon_reduction_tons, "t CO2", 1),
        "annual_water_savings": format_number(env.annual_water_savings_gallons, "gallons"),
        "annual_cost_savings": format_money(annual_cost_savings, currency),
        "homes_powered": format_number(equivalents.homes_powered, "homes"),
        "cars_removed": format_number(equivalents.cars_removed, "cars"),
        "trees_planted": format_number(equivalents.trees_planted, "trees"),
        "gasoline_gallons_avoided": format_number(equivalents.gasoline_gallons_avoided, "gallons"),
    }

# -------------------------------------------------
# Entry point
# -------------------------------------------------


def enrich(
    result: Any,
    factors: Optional[EquivalenceFactors] = None,
    projection_years: int = DEFAULT_PROJECTION_YEARS,
    growth_rate: float = DEFAULT_PROJECTION_GROWTH,
) -> EnrichedEnvironmentalData:
    factors = factors or DEFAULT_FACTORS
    parsed, notes = _coerce_result(result)

    if parsed is not None:
        env, bad = _finite_environmental(parsed.environmental)
        if not math.isfinite(parsed.comparison.annual_savings):
            bad.append("comparison.annual_savings")
        annual_cost_savings = _num(parsed.comparison.annual_savings)
        currency = parsed.currency
        is_fallback = bool(bad)
        if bad:
            logger.warning("Enriching calculation result with non-finite fields: %s", bad)
            notes = [FALLBACK_NOTE, f"Non-finite result fields: {', '.join(bad)}."]
    else:
        env = _salvage_environmental(result)
        annual_cost_savings = _salvage_annual_savings(result)
        currency = result.get("currency", "USD") if isinstance(result, Mapping) else "USD"
        currency = currency if isinstance(currency, str) else "USD"
        is_fallback = True
        notes = [FALLBACK_NOTE] + notes

    equivalents = compute_equivalents(env, factors)
    projection = build_projection(
        env.annual_energy_savings_kwh,
        env.annual_carbon_reduction_tons,
        max(annual_cost_savings, 0.0),
        years=projection_years,
        growth_rate=growth_rate,
    )

    return EnrichedEnvironmentalData(
        environmental=env,
        equivalents=equivalents,
        industry_percentile=industry_percentile(env.immersion_pue),
        projection=projection,
        formatted=format_environmental(env, equivalents, annual_cost_savings, currency),
        is_fallback=is_fallback,
        notes=notes,
    )
