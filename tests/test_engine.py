import math

import pytest

from app.tco.engine import calculate, calculate_simplified, parameters_hash
from app.tco.schemas import ValidatedParameters

from conftest import assert_all_finite

HOURS = 8760


def _annuity(rate_pct: float, years: int) -> float:
    r = rate_pct / 100.0
    return sum(1.0 / (1.0 + r) ** y for y in range(1, years + 1))


def test_calculate_matches_discounted_cash_flow(base_params: ValidatedParameters) -> None:
    result = calculate(base_params)

    air_opex = 1200 * 1.8 * HOURS * 0.12 + 5_000_000 * 0.03
    imm_opex = 1000 * 1.1 * HOURS * 0.12 + 2_000_000 * 0.03
    factor = _annuity(8.0, 5)
    air_tco = 5_000_000 + air_opex * factor
    imm_tco = 2_000_000 + imm_opex * factor

    assert result.method == "detailed"
    assert result.air_cooling.power.it_power_kw == pytest.approx(1200)
    assert result.air_cooling.power.facility_power_kw == pytest.approx(2160)
    assert result.immersion_cooling.power.facility_power_kw == pytest.approx(1100)
    assert result.air_cooling.costs.capex == pytest.approx(5_000_000)
    assert result.air_cooling.costs.annual_opex == pytest.approx(air_opex, abs=0.01)
    assert result.immersion_cooling.costs.annual_opex == pytest.approx(imm_opex, abs=0.01)
    assert result.air_cooling.costs.total_tco == pytest.approx(air_tco, abs=0.01)
    assert result.immersion_cooling.costs.total_tco == pytest.approx(imm_tco, abs=0.01)

    comparison = result.comparison
    assert comparison.total_savings == pytest.approx(air_tco - imm_tco, abs=0.02)
    assert comparison.is_positive is True
    assert comparison.net_present_value == comparison.total_savings
    assert comparison.roi_percent == pytest.approx(round((air_tco - imm_tco) / 2_000_000 * 100, 1))
    # Immersion is cheaper up front here, so it pays back immediately
    assert comparison.payback_years == 0.0
    assert comparison.payback_status == "immediate"


def test_environmental_block_for_reference_scenario(base_params: ValidatedParameters) -> None:
    env = calculate(base_params).environmental

    expected_kwh = 1200 * (1.8 - 1.1) * HOURS
    assert env.improvement_percent == pytest.approx(38.9)
    assert env.annual_energy_savings_kwh == pytest.approx(expected_kwh, abs=0.01)
    assert env.annual_energy_savings_mwh == pytest.approx(expected_kwh / 1000, abs=0.01)
    assert env.annual_carbon_reduction_tons == pytest.approx(expected_kwh * 0.4 / 1000, abs=0.01)
    assert env.lifetime_carbon_reduction_tons == pytest.approx(expected_kwh * 0.4 / 1000 * 5, abs=0.01)
    assert env.annual_water_savings_gallons == pytest.approx(expected_kwh * 0.5, abs=0.01)


def test_payback_in_years_when_immersion_costs_more_up_front(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={
        "air_rack_cost": 10_000.0,
        "immersion_power_per_tank_kw": 48.0,
        "immersion_tank_cost": 200_000.0,
    })
    comparison = calculate(params).comparison

    capex_diff = 5_000_000 - 1_000_000
    annual_savings = 1200 * 0.7 * HOURS * 0.12 - capex_diff * 0.03
    assert comparison.capex_difference == pytest.approx(capex_diff)
    assert comparison.payback_status == "years"
    assert comparison.payback_years == pytest.approx(round(capex_diff / annual_savings, 1))


def test_payback_not_applicable_without_annual_savings(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={
        "air_racks": 10,
        "air_power_per_rack_kw": 10.0,
        "immersion_tanks": 50,
        "immersion_power_per_tank_kw": 20.0,
    })
    comparison = calculate(params).comparison

    assert comparison.annual_savings < 0
    assert comparison.payback_years is None
    assert comparison.payback_status == "not_applicable"


def test_zero_air_racks_yields_zero_air_fields(base_params: ValidatedParameters) -> None:
    result = calculate(base_params.model_copy(update={"air_racks": 0}))

    air = result.air_cooling
    assert air.unit_count == 0
    assert air.power.it_power_kw == 0
    assert air.power.annual_energy_kwh == 0
    assert air.costs.capex == 0
    assert air.costs.annual_opex == 0
    assert air.costs.total_tco == 0
    assert result.environmental.annual_energy_savings_kwh == 0
    assert result.comparison.is_positive is (result.comparison.total_savings >= 0)
    assert_all_finite(result)


@pytest.mark.parametrize(
    "overrides",
    [
        {"air_racks": 0, "immersion_tanks": 0},
        {"electricity_price": 0.0},
        {"electricity_price": 0.0, "air_rack_cost": 0.0, "immersion_tank_cost": 0.0},
        {"immersion_tank_cost": 0.0, "maintenance_cost_pct": 0.0},
        {"air_pue": 0.0, "immersion_pue": 0.0},
        {"discount_rate": -100.0},
        {"analysis_years": 0},
    ],
)
def test_degenerate_inputs_stay_finite(base_params: ValidatedParameters, overrides) -> None:
    result = calculate(base_params.model_copy(update=overrides))

    assert_all_finite(result)
    assert isinstance(result.comparison.is_positive, bool)
    assert result.comparison.is_positive == (result.comparison.total_savings >= 0)
    assert 0.0 <= result.environmental.improvement_percent <= 100.0
    payback = result.comparison.payback_years
    assert payback is None or (payback >= 0 and math.isfinite(payback))


def test_nan_parameters_do_not_leak(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={"electricity_price": float("nan"), "air_pue": float("inf")})
    assert_all_finite(calculate(params))


def test_improvement_and_carbon_fall_as_immersion_pue_rises(base_params: ValidatedParameters) -> None:
    pues = [1.1, 1.3, 1.5, 1.7, 1.8]
    envs = [calculate(base_params.model_copy(update={"immersion_pue": p})).environmental for p in pues]

    improvements = [e.improvement_percent for e in envs]
    carbon = [e.annual_carbon_reduction_tons for e in envs]
    assert all(a > b for a, b in zip(improvements, improvements[1:]))
    assert all(a > b for a, b in zip(carbon, carbon[1:]))
    assert improvements[-1] == 0
    assert carbon[-1] == 0


def test_improvement_is_clamped_when_immersion_is_worse(base_params: ValidatedParameters) -> None:
    env = calculate(base_params.model_copy(update={"immersion_pue": 2.5})).environmental

    assert env.improvement_percent == 0
    assert env.annual_energy_savings_kwh == 0
    assert env.annual_carbon_reduction_tons == 0


def test_calculate_is_deterministic(base_params: ValidatedParameters) -> None:
    first = calculate(base_params).model_dump_json()
    second = calculate(base_params).model_dump_json()
    assert first == second
    assert calculate(base_params).input_hash == parameters_hash(base_params)


def test_escalation_grows_opex_each_year(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={"energy_escalation_rate": 3.0})
    flows = calculate(params).yearly_cashflows

    assert [f.year for f in flows] == [1, 2, 3, 4, 5]
    assert flows[1].air_opex == pytest.approx(flows[0].air_opex * 1.03, abs=0.02)
    assert flows[-1].immersion_opex == pytest.approx(flows[0].immersion_opex * 1.03 ** 4, abs=0.02)


def test_timeline_ends_at_total_tco(base_params: ValidatedParameters) -> None:
    result = calculate(base_params)
    last = result.yearly_cashflows[-1]

    assert len(result.yearly_cashflows) == 5
    assert last.air_cumulative_cost == pytest.approx(result.air_cooling.costs.total_tco, abs=0.02)
    assert last.immersion_cumulative_cost == pytest.approx(result.immersion_cooling.costs.total_tco, abs=0.02)
    assert last.cumulative_savings == pytest.approx(result.comparison.total_savings, abs=0.05)
    assert last.discount_factor == pytest.approx(1 / 1.08 ** 5, rel=1e-5)


def test_load_scenario_scales_energy_not_capex(base_params: ValidatedParameters) -> None:
    full = calculate(base_params)
    business = calculate(base_params.model_copy(update={"load_scenario": "business", "utilization_factor": 0.65}))

    assert business.air_cooling.costs.capex == full.air_cooling.costs.capex
    assert business.air_cooling.power.effective_it_power_kw == pytest.approx(1200 * 0.65)
    assert business.air_cooling.power.annual_energy_kwh == pytest.approx(
        full.air_cooling.power.annual_energy_kwh * 0.65, abs=0.01
    )
    assert business.load_scenario == "business"


def test_installation_costs_are_part_of_capex(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={
        "air_infrastructure_cost_per_rack": 15_000.0,
        "immersion_fluid_cost_per_tank": 5_000.0,
    })
    result = calculate(params)

    assert result.air_cooling.costs.installation_cost == pytest.approx(1_500_000)
    assert result.air_cooling.costs.capex == pytest.approx(6_500_000)
    assert result.immersion_cooling.costs.capex == pytest.approx(2_125_000)


def test_simplified_is_undiscounted_at_full_load(base_params: ValidatedParameters) -> None:
    params = base_params.model_copy(update={"utilization_factor": 0.5, "energy_escalation_rate": 5.0})
    result = calculate_simplified(params)

    air = result.air_cooling.costs
    assert result.method == "simplified"
    assert result.air_cooling.power.effective_it_power_kw == pytest.approx(1200)
    assert air.opex_npv == pytest.approx(air.annual_opex * 5, abs=0.05)
    assert air.total_tco == pytest.approx(air.capex + air.annual_opex * 5, abs=0.05)
    assert all(flow.discount_factor == 1.0 for flow in result.yearly_cashflows)
