# app/tco/constants.py

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.config import DEFAULT_CARBON_EMISSION_FACTOR, LONG_ANALYSIS_YEARS

HOURS_PER_YEAR = 8760

# -------------------------------------------------
# Input fields: bounds + documented defaults
# -------------------------------------------------


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    minimum: float
    maximum: float
    integer: bool = False
    required: bool = False
    default: Optional[float] = None
    unit: str = ""


FIELD_SPECS: Tuple[FieldSpec, ...] = (
    # Air cooling
    FieldSpec("air_racks", "Air-cooled racks", 0, 1000, integer=True, required=True, unit="racks"),
    FieldSpec("air_power_per_rack_kw", "Air power per rack", 1, 100, default=20.0, unit="kW"),
    FieldSpec("air_rack_cost", "Air rack cost", 0, 500_000, default=50_000.0, unit="$"),
    FieldSpec("air_infrastructure_cost_per_rack", "Air cooling infrastructure per rack", 0, 500_000, default=0.0, unit="$"),
    FieldSpec("air_pue", "Air cooling PUE", 1.0, 3.5, default=1.8),
    # Immersion cooling
    FieldSpec("immersion_tanks", "Immersion tanks", 0, 500, integer=True, required=True, unit="tanks"),
    FieldSpec("immersion_power_per_tank_kw", "Immersion power per tank", 1, 200, default=23.0, unit="kW"),
    FieldSpec("immersion_tank_cost", "Immersion tank cost", 0, 1_000_000, default=80_000.0, unit="$"),
    FieldSpec("immersion_fluid_cost_per_tank", "Immersion fluid fill per tank", 0, 500_000, default=0.0, unit="$"),
    FieldSpec("immersion_pue", "Immersion cooling PUE", 1.0, 3.5, default=1.1),
    # Financial
    FieldSpec("analysis_years", "Analysis period", 1, 25, integer=True, required=True, unit="years"),
    FieldSpec("electricity_price", "Electricity price", 0, 1.0, default=0.12, unit="$/kWh"),
    FieldSpec("discount_rate", "Discount rate", 0, 30, default=5.0, unit="%"),
    FieldSpec("maintenance_cost_pct", "Maintenance cost", 0, 15, default=3.0, unit="% of CAPEX"),
    FieldSpec("energy_escalation_rate", "OPEX escalation", 0, 15, default=0.0, unit="%/year"),
    # Environmental (None = resolve from region table)
    FieldSpec("carbon_emission_factor", "Carbon emission factor", 0, 2.0, default=None, unit="kg CO2/kWh"),
)


# Inputs the discounted cash-flow model depends on; if any had to be
# defaulted, "auto" mode falls back to the simplified calculator.
DISCOUNTING_FIELDS = ("discount_rate", "energy_escalation_rate")

# -------------------------------------------------
# Business-rule thresholds
# -------------------------------------------------
MAX_REALISTIC_PUE_IMPROVEMENT = 0.60
CAPACITY_MISMATCH_THRESHOLD = 0.30
DEFAULT_LONG_ANALYSIS_YEARS = LONG_ANALYSIS_YEARS
DEFAULT_EMISSION_FACTOR = DEFAULT_CARBON_EMISSION_FACTOR
DEFAULT_WATER_FACTOR = 0.5  # gallons / kWh

# -------------------------------------------------
# Categorical inputs
# -------------------------------------------------
SUPPORTED_CURRENCIES: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "SAR": "﷼",
    "AED": "د.إ",
}
DEFAULT_CURRENCY = "USD"

CALCULATION_MODES = ("auto", "detailed", "simplified")
DEFAULT_CALCULATION_MODE = "auto"


@dataclass(frozen=True)
class LoadScenario:
    key: str
    name: str
    description: str
    utilization: float


LOAD_SCENARIOS: Dict[str, LoadScenario] = {
    s.key: s
    for s in (
        LoadScenario("constant", "Constant Load (24/7)", "Steady workload throughout the day", 1.0),
        LoadScenario("business", "Business Hours", "Peak during 9-5, reduced nights/weekends", 0.65),
        LoadScenario("ai_training", "AI/ML Training", "Intensive compute cycles with cooling breaks", 0.92),
        LoadScenario("batch", "Batch Processing", "Heavy night processing, light day usage", 0.58),
        LoadScenario("web_hosting", "Web Hosting", "Variable load with traffic peaks", 0.65),
    )
}
DEFAULT_LOAD_SCENARIO = "constant"

# -------------------------------------------------
# Enrichment
# -------------------------------------------------
DEFAULT_PROJECTION_YEARS = 5
DEFAULT_PROJECTION_GROWTH = 0.02

# Immersion PUE -> share of facilities it outperforms (ascending PUE).
PUE_PERCENTILE_BREAKPOINTS: Tuple[Tuple[float, float], ...] = (
    (1.03, 99.0),
    (1.10, 97.0),
    (1.20, 92.0),
    (1.30, 85.0),
    (1.40, 72.0),
    (1.50, 58.0),
    (1.58, 50.0),
    (1.70, 35.0),
    (1.80, 25.0),
    (2.00, 12.0),
    (2.50, 3.0),
    (3.50, 0.0),
)
