# app/tco/engine.py

import hashlib
import math
from typing import Dict, List

import numpy as np

from .constants import HOURS_PER_YEAR
from .schemas import (
    CalculationResult,
    ComparisonBlock,
    EnvironmentalBlock,
    PowerMetrics,
    SystemBreakdown,
    SystemCosts,
    ValidatedParameters,
    YearlyCashflow,
)

# -------------------------------------------------
# Numeric guards
# -------------------------------------------------


def _finite(value, fallback: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def _safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    numerator = _finite(numerator)
    denominator = _finite(denominator)
    if denominator <= 0:
        return fallback
    return _finite(numerator / denominator, fallback)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(_finite(value), low), high)


def _money(value) -> float:
    return round(_finite(value), 2)


def _pct(value) -> float:
    return round(_finite(value), 1)


def _qty(value) -> float:
    return round(_finite(value), 2)


def parameters_hash(params: ValidatedParameters) -> str:
    """Stable fingerprint of the validated inputs (cache key / audit trail)."""
    return hashlib.sha256(params.model_dump_json().encode("utf-8")).hexdigest()

# -------------------------------------------------
# Building blocks
# -------------------------------------------------


def _year_vectors(years: int, discount_rate_pct: float, escalation_pct: float):
    """
    Return (growth, discount) arrays for years 1..N.

    growth[y-1]   = (1 + escalation)^(y-1)   -> OPEX multiplier
    discount[y-1] = (1 + rate)^y              -> end-of-year divisor
    """
    n = max(int(years), 0)
    periods = np.arange(1, n + 1, dtype=float)

    rate_base = 1.0 + _finite(discount_rate_pct) / 100.0
    if rate_base <= 0:
        rate_base = 1.0
    growth_base = 1.0 + _finite(escalation_pct) / 100.0
    if growth_base <= 0:
        growth_base = 1.0

    growth = np.power(growth_base, periods - 1.0)
    discount = np.power(rate_base, periods)
    return growth, discount


def _system_figures(
    count: int,
    power_per_unit_kw: float,
    unit_cost: float,
    installation_cost_per_unit: float,
    pue: float,
    utilization: float,
    params: ValidatedParameters,
    growth: np.ndarray,
    discount: np.ndarray,
) -> Dict[str, object]:
    count = max(_finite(count), 0.0)

    # --- 1. POWER ---
    it_kw = count * max(_finite(power_per_unit_kw), 0.0)
    facility_kw = it_kw * max(_finite(pue), 0.0)
    effective_it_kw = it_kw * max(_finite(utilization), 0.0)
    effective_facility_kw = facility_kw * max(_finite(utilization), 0.0)
    annual_energy_kwh = effective_facility_kw * HOURS_PER_YEAR

    # --- 2. CAPEX ---
    equipment_cost = count * max(_finite(unit_cost), 0.0)
    installation_cost = count * max(_finite(installation_cost_per_unit), 0.0)
    capex = equipment_cost + installation_cost

    # --- 3. OPEX (year 1) ---
    electricity_cost = annual_energy_kwh * max(_finite(params.electricity_price), 0.0)
    maintenance_cost = capex * max(_finite(params.maintenance_cost_pct), 0.0) / 100.0
    annual_opex = electricity_cost + maintenance_cost

    # --- 4. MULTI-YEAR ---
    opex_stream = annual_opex * growth
    discounted = opex_stream / discount
    opex_npv = float(discounted.sum())

    return {
        "count": int(count),
        "pue": _finite(pue),
        "it_kw": it_kw,
        "facility_kw": facility_kw,
        "effective_it_kw": effective_it_kw,
        "effective_facility_kw": effective_facility_kw,
        "annual_energy_kwh": annual_energy_kwh,
        "equipment_cost": equipment_cost,
        "installation_cost": installation_cost,
        "capex": capex,
        "electricity_cost": electricity_cost,
        "maintenance_cost": maintenance_cost,
        "annual_opex": annual_opex,
        "opex_stream": opex_stream,
        "discounted_stream": discounted,
        "lifetime_opex": float(opex_stream.sum()),
        "opex_npv": opex_npv,
        "total_tco": capex + opex_npv,
    }


def _breakdown(fig: Dict[str, object]) -> SystemBreakdown:
    return SystemBreakdown(
        unit_count=fig["count"],
        pue=round(_finite(fig["pue"]), 3),
        power=PowerMetrics(
            it_power_kw=_qty(fig["it_kw"]),
            facility_power_kw=_qty(fig["facility_kw"]),
            effective_it_power_kw=_qty(fig["effective_it_kw"]),
            effective_facility_power_kw=_qty(fig["effective_facility_kw"]),
            annual_energy_kwh=_qty(fig["annual_energy_kwh"]),
        ),
        costs=SystemCosts(
            capex=_money(fig["capex"]),
            equipment_cost=_money(fig["equipment_cost"]),
            installation_cost=_money(fig["installation_cost"]),
            annual_electricity_cost=_money(fig["electricity_cost"]),
            annual_maintenance_cost=_money(fig["maintenance_cost"]),
            annual_opex=_money(fig["annual_opex"]),
            lifetime_opex=_money(fig["lifetime_opex"]),
            opex_npv=_money(fig["opex_npv"]),
            total_tco=_money(fig["total_tco"]),
        ),
    )


def _comparison(air: Dict[str, object], imm: Dict[str, object]) -> ComparisonBlock:
    total_savings = _finite(air["total_tco"]) - _finite(imm["total_tco"])
    annual_savings = _finite(air["annual_opex"]) - _finite(imm["annual_opex"])
    capex_difference = _finite(imm["capex"]) - _finite(air["capex"])
    opex_npv_savings = _finite(air["opex_npv"]) - _finite(imm["opex_npv"])

    roi_percent = _safe_divide(total_savings, imm["capex"]) * 100.0

    # Payback: never negative, never infinite
    if annual_savings <= 0:
        payback_years, payback_status = None, "not_applicable"
    elif capex_difference <= 0:
        payback_years, payback_status = 0.0, "immediate"
    else:
        payback_years = round(max(_safe_divide(capex_difference, annual_savings), 0.0), 1)
        payback_status = "years"

    total_savings = _money(total_savings)
    return ComparisonBlock(
        total_savings=total_savings,
        is_positive=bool(total_savings >= 0),
        annual_savings=_money(annual_savings),
        capex_difference=_money(capex_difference),
        opex_npv_savings=_money(opex_npv_savings),
        net_present_value=total_savings,
        roi_percent=_pct(roi_percent),
        payback_years=payback_years,
        payback_status=payback_status,
    )


def _environmental(
    params: ValidatedParameters,
    air: Dict[str, object],
    imm: Dict[str, object],
) -> EnvironmentalBlock:
    air_pue = _finite(params.air_pue)
    immersion_pue = _finite(params.immersion_pue)

    improvement = _clamp(_safe_divide(air_pue - immersion_pue, air_pue) * 100.0, 0.0, 100.0)

    # PUE-derived: same IT load, two overheads
    pue_delta = max(air_pue - immersion_pue, 0.0)
    annual_kwh = _finite(air["effective_it_kw"]) * pue_delta * HOURS_PER_YEAR
    years = max(int(params.analysis_years), 0)

    factor = max(_finite(params.carbon_emission_factor), 0.0)
    annual_tons = annual_kwh * factor / 1000.0

    return EnvironmentalBlock(
        air_pue=round(air_pue, 3),
        immersion_pue=round(immersion_pue, 3),
        improvement_percent=_pct(improvement),
        annual_energy_savings_kwh=_qty(annual_kwh),
        annual_energy_savings_mwh=_qty(annual_kwh / 1000.0),
        lifetime_energy_savings_mwh=_qty(annual_kwh * years / 1000.0),
        annual_carbon_reduction_tons=_qty(annual_tons),
        lifetime_carbon_reduction_tons=_qty(annual_tons * years),
        carbon_emission_factor=round(factor, 4),
        annual_water_savings_gallons=_qty(annual_kwh * max(_finite(params.water_factor_gal_per_kwh), 0.0)),
        facility_energy_difference_kwh=_qty(
            _finite(air["annual_energy_kwh"]) - _finite(imm["annual_energy_kwh"])
        ),
    )


def _timeline(
    air: Dict[str, object],
    imm: Dict[str, object],
    discount: np.ndarray,
) -> List[YearlyCashflow]:
    air_cumulative = _finite(air["capex"]) + np.cumsum(air["discounted_stream"])
    imm_cumulative = _finite(imm["capex"]) + np.cumsum(imm["discounted_stream"])

    rows: List[YearlyCashflow] = []
    for idx, divisor in enumerate(discount.tolist()):
        air_opex = float(air["opex_stream"][idx])
        imm_opex = float(imm["opex_stream"][idx])
        rows.append(YearlyCashflow(
            year=idx + 1,
            air_opex=_money(air_opex),
            immersion_opex=_money(imm_opex),
            annual_savings=_money(air_opex - imm_opex),
            discount_factor=round(_safe_divide(1.0, divisor, 1.0), 6),
            air_cumulative_cost=_money(air_cumulative[idx]),
            immersion_cumulative_cost=_money(imm_cumulative[idx]),
            cumulative_savings=_money(air_cumulative[idx] - imm_cumulative[idx]),
        ))
    return rows


def _run(
    params: ValidatedParameters,
    method: str,
    utilization: float,
    discount_rate_pct: float,
    escalation_pct: float,
) -> CalculationResult:
    growth, discount = _year_vectors(params.analysis_years, discount_rate_pct, escalation_pct)

    air = _system_figures(
        params.air_racks,
        params.air_power_per_rack_kw,
        params.air_rack_cost,
        params.air_infrastructure_cost_per_rack,
        params.air_pue,
        utilization,
        params,
        growth,
        discount,
    )
    imm = _system_figures(
        params.immersion_tanks,
        params.immersion_power_per_tank_kw,
        params.immersion_tank_cost,
        params.immersion_fluid_cost_per_tank,
        params.immersion_pue,
        utilization,
        params,
        growth,
        discount,
    )

    return CalculationResult(
        method=method,
        analysis_years=max(int(params.analysis_years), 0),
        currency=params.currency,
        region=params.region,
        load_scenario=params.load_scenario,
        input_hash=parameters_hash(params),
        air_cooling=_breakdown(air),
        immersion_cooling=_breakdown(imm),
        comparison=_comparison(air, imm),
        environmental=_environmental(params, air, imm),
        yearly_cashflows=_timeline(air, imm, discount),
    )

# -------------------------------------------------
# Public calculators
# -------------------------------------------------


def calculate(params: ValidatedParameters) -> CalculationResult:
    """
    Full TCO comparison: load-scenario utilisation, escalating OPEX and a
    discounted (end-of-year) cash-flow stream over the analysis horizon.

    Does not raise on degenerate parameters (zero units, zero price); every
    returned number is finite.
    """
    return _run(
        params,
        method="detailed",
        utilization=params.utilization_factor,
        discount_rate_pct=params.discount_rate,
        escalation_pct=params.energy_escalation_rate,
    )


def calculate_simplified(params: ValidatedParameters) -> CalculationResult:
    """
    Undiscounted, flat-OPEX comparison at full nameplate load.

    Used when the inputs the discounted model depends on could not be trusted.
    """
    return _run(
        params,
        method="simplified",
        utilization=1.0,
        discount_rate_pct=0.0,
        escalation_pct=0.0,
    )
