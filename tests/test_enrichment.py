import pytest

from app.tco.engine import calculate
from app.tco.enrichment import (
    FALLBACK_NOTE,
    EquivalenceFactors,
    build_projection,
    compute_equivalents,
    enrich,
    format_money,
    industry_percentile,
)

from conftest import assert_all_finite


def test_enrich_full_result(base_params) -> None:
    result = calculate(base_params)
    data = enrich(result)

    env = result.environmental
    assert data.is_fallback is False
    assert data.notes == []
    assert data.environmental == env
    assert data.equivalents.homes_powered == pytest.approx(round(env.annual_energy_savings_kwh / 10_800, 1))
    assert data.equivalents.cars_removed == pytest.approx(round(env.annual_carbon_reduction_tons / 4.6, 1))
    assert data.equivalents.trees_planted == pytest.approx(round(env.annual_carbon_reduction_tons * 16.5))
    assert data.equivalents.gasoline_gallons_avoided == pytest.approx(
        round(env.annual_carbon_reduction_tons * 1000 / 8.887)
    )
    assert len(data.projection) == 5
    assert data.formatted["pue_improvement"] == "38.9%"
    assert data.formatted["annual_cost_savings"].startswith("$")
    assert_all_finite(data)


def test_equivalence_factors_are_overridable(base_params) -> None:
    env = calculate(base_params).environmental
    custom = EquivalenceFactors(home_kwh_per_year=11_000.0, car_tons_co2_per_year=4.0)

    equivalents = compute_equivalents(env, custom)
    assert equivalents.homes_powered == pytest.approx(round(env.annual_energy_savings_kwh / 11_000, 1))
    assert equivalents.cars_removed == pytest.approx(round(env.annual_carbon_reduction_tons / 4.0, 1))


def test_projection_is_a_geometric_series() -> None:
    points = build_projection(1000.0, 10.0, 500.0, years=5, growth_rate=0.02)

    assert [p.year for p in points] == [1, 2, 3, 4, 5]
    assert points[0].energy_savings_kwh == pytest.approx(1000.0)
    assert points[1].energy_savings_kwh == pytest.approx(1020.0)
    assert points[4].carbon_reduction_tons == pytest.approx(round(10.0 * 1.02 ** 4, 2))
    assert points[2].cost_savings == pytest.approx(round(500.0 * 1.02 ** 2, 2))
    assert points[-1].cumulative_carbon_reduction_tons == pytest.approx(
        round(sum(10.0 * 1.02 ** k for k in range(5)), 2)
    )


def test_projection_length_follows_years() -> None:
    assert len(build_projection(1.0, 1.0, 1.0, years=10)) == 10
    assert build_projection(1.0, 1.0, 1.0, years=0) == []


def test_projection_ignores_negative_cost_savings(base_params) -> None:
    params = base_params.model_copy(update={
        "air_racks": 10,
        "air_power_per_rack_kw": 10.0,
        "immersion_tanks": 50,
        "immersion_power_per_tank_kw": 20.0,
    })
    data = enrich(calculate(params))
    assert all(point.cost_savings == 0 for point in data.projection)


def test_industry_percentile_rewards_lower_pue() -> None:
    assert industry_percentile(1.03) == pytest.approx(99.0)
    assert industry_percentile(1.1) > industry_percentile(1.3) > industry_percentile(1.8)
    assert industry_percentile(4.0) == 0.0
    assert industry_percentile(0) == 0.0


@pytest.mark.parametrize("upstream", [None, {}, {"environmental": "broken"}, 17, "result"])
def test_enrich_falls_back_on_missing_result(upstream) -> None:
    data = enrich(upstream)

    assert data.is_fallback is True
    assert data.notes[0] == FALLBACK_NOTE
    assert data.environmental.annual_energy_savings_kwh == 0
    assert data.equivalents.homes_powered == 0
    assert data.industry_percentile == 0
    assert all(point.energy_savings_kwh == 0 for point in data.projection)
    assert_all_finite(data)


def test_enrich_salvages_partial_payload() -> None:
    partial = {
        "currency": "EUR",
        "comparison": {"annual_savings": 1000.0},
        "environmental": {
            "improvement_percent": 38.9,
            "annual_energy_savings_kwh": 108_000,
            "annual_carbon_reduction_tons": "46",
            "immersion_pue": 1.1,
            "air_pue": None,
        },
    }
    data = enrich(partial)

    assert data.is_fallback is True
    assert data.environmental.annual_energy_savings_kwh == 108_000
    assert data.environmental.annual_carbon_reduction_tons == 46
    assert data.environmental.air_pue == 0
    assert data.equivalents.homes_powered == pytest.approx(10.0)
    assert data.equivalents.cars_removed == pytest.approx(10.0)
    assert data.formatted["annual_cost_savings"].startswith("€")
    assert any("Incomplete result fields" in note for note in data.notes)


def test_enrich_accepts_serialised_result(base_params) -> None:
    result = calculate(base_params)
    data = enrich(result.model_dump(mode="json"))

    assert data.is_fallback is False
    assert data.environmental == result.environmental


def test_format_money_scales() -> None:
    assert format_money(1_234_567.0) == "$1.23M"
    assert format_money(-2_500.0, "EUR") == "-€2.5K"
    assert format_money(12.5, "XXX") == "$12.50"
    assert format_money(float("nan")) == "$0.00"


def test_enrich_zeroes_non_finite_stored_values(base_params) -> None:
    stored = calculate(base_params).model_dump()
    stored["environmental"]["annual_energy_savings_kwh"] = float("nan")
    stored["environmental"]["improvement_percent"] = float("inf")
    stored["comparison"]["annual_savings"] = float("-inf")

    data = enrich(stored)

    assert data.is_fallback is True
    assert data.notes[0] == FALLBACK_NOTE
    assert "annual_energy_savings_kwh" in data.notes[1]
    assert "comparison.annual_savings" in data.notes[1]
    assert data.environmental.annual_energy_savings_kwh == 0
    assert data.environmental.improvement_percent == 0
    assert data.environmental.annual_carbon_reduction_tons > 0
    assert data.formatted["annual_cost_savings"] == "$0.00"
    assert_all_finite(data)
