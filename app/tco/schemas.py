# app/tco/schemas.py

from typing import Any, Dict, List, Literal, Optional, Tuple
from datetime import datetime
from pydantic import BaseModel, Field

Severity = Literal["error", "warning"]
CalculationMethod = Literal["detailed", "simplified"]
PaybackStatus = Literal["immediate", "years", "not_applicable"]

# ============================================================
# INPUT
# ============================================================

class CalculationInput(BaseModel):
    """
    Raw request as sent by the UI / API clients.

    Every field is loose on purpose: malformed values must reach the
    validator (which defaults or rejects them with a structured issue)
    instead of being bounced by the framework.
    """
    # Air cooling
    air_racks: Any = Field(None, description="Number of air-cooled racks (required)")
    air_power_per_rack_kw: Any = Field(None, description="IT power per rack in kW")
    air_rack_cost: Any = Field(None, description="Equipment cost per rack")
    air_infrastructure_cost_per_rack: Any = Field(None, description="CRAC / containment cost per rack")
    air_pue: Any = Field(None, description="Air cooling PUE")

    # Immersion cooling
    immersion_tanks: Any = Field(None, description="Number of immersion tanks (required)")
    immersion_power_per_tank_kw: Any = Field(None, description="IT power per tank in kW")
    immersion_tank_cost: Any = Field(None, description="Equipment cost per tank")
    immersion_fluid_cost_per_tank: Any = Field(None, description="Initial dielectric fluid fill per tank")
    immersion_pue: Any = Field(None, description="Immersion cooling PUE")

    # Financial
    analysis_years: Any = Field(None, description="Analysis horizon in years (required)")
    electricity_price: Any = Field(None, description="Electricity price per kWh")
    discount_rate: Any = Field(None, description="Discount rate in %")
    maintenance_cost_pct: Any = Field(None, description="Annual maintenance as % of CAPEX")
    energy_escalation_rate: Any = Field(None, description="Annual OPEX escalation in %")

    # Context
    carbon_emission_factor: Any = Field(None, description="kg CO2 per kWh; overrides the region table")
    region: Any = None
    currency: Any = None
    load_scenario: Any = None
    calculation_mode: Any = None


class ValidatedParameters(BaseModel):
    air_racks: int
    air_power_per_rack_kw: float
    air_rack_cost: float
    air_infrastructure_cost_per_rack: float = 0.0
    air_pue: float

    immersion_tanks: int
    immersion_power_per_tank_kw: float
    immersion_tank_cost: float
    immersion_fluid_cost_per_tank: float = 0.0
    immersion_pue: float

    analysis_years: int
    electricity_price: float
    discount_rate: float
    maintenance_cost_pct: float
    energy_escalation_rate: float = 0.0

    carbon_emission_factor: float
    water_factor_gal_per_kwh: float
    region: Optional[str] = None
    currency: str = "USD"
    load_scenario: str = "constant"
    utilization_factor: float = 1.0
    calculation_mode: Literal["auto", "detailed", "simplified"] = "auto"

    # Fields whose malformed input was replaced by the documented default
    defaulted_fields: Tuple[str, ...] = ()

    class Config:
        frozen = True

# ============================================================
# VALIDATION
# ============================================================

class ValidationIssue(BaseModel):
    field: str
    code: str
    message: str
    severity: Severity = "error"
    value: Optional[Any] = None


class ValidationReport(BaseModel):
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)


class ValidationOutcome(BaseModel):
    """Either validated parameters or a blocking report (never both)."""
    params: Optional[ValidatedParameters] = None
    report: ValidationReport

    @property
    def ok(self) -> bool:
        return self.params is not None

# ============================================================
# CALCULATION RESULT
# ============================================================

class PowerMetrics(BaseModel):
    it_power_kw: float
    facility_power_kw: float
    effective_it_power_kw: float
    effective_facility_power_kw: float
    annual_energy_kwh: float


class SystemCosts(BaseModel):
    capex: float
    equipment_cost: float
    installation_cost: float
    annual_electricity_cost: float
    annual_maintenance_cost: float
    annual_opex: float
    lifetime_opex: float
    opex_npv: float
    total_tco: float


class SystemBreakdown(BaseModel):
    unit_count: int
    pue: float
    power: PowerMetrics
    costs: SystemCosts


class YearlyCashflow(BaseModel):
    year: int
    air_opex: float
    immersion_opex: float
    annual_savings: float
    discount_factor: float
    air_cumulative_cost: float
    immersion_cumulative_cost: float
    cumulative_savings: float


class ComparisonBlock(BaseModel):
    total_savings: float
    is_positive: bool
    annual_savings: float
    capex_difference: float
    opex_npv_savings: float
    net_present_value: float
    roi_percent: float
    payback_years: Optional[float] = None
    payback_status: PaybackStatus = "not_applicable"


class EnvironmentalBlock(BaseModel):
    air_pue: float
    immersion_pue: float
    improvement_percent: float
    annual_energy_savings_kwh: float
    annual_energy_savings_mwh: float
    lifetime_energy_savings_mwh: float
    annual_carbon_reduction_tons: float
    lifetime_carbon_reduction_tons: float
    carbon_emission_factor: float
    annual_water_savings_gallons: float
    facility_energy_difference_kwh: float


class CalculationResult(BaseModel):
    method: CalculationMethod
    analysis_years: int
    currency: str
    region: Optional[str] = None
    load_scenario: str
    input_hash: str

    air_cooling: SystemBreakdown
    immersion_cooling: SystemBreakdown
    comparison: ComparisonBlock
    environmental: EnvironmentalBlock

    # Time Series Data (for charts)
    yearly_cashflows: List[YearlyCashflow]

# ============================================================
# ENRICHMENT
# ============================================================

class EnvironmentalEquivalents(BaseModel):
    homes_powered: float = 0.0
    cars_removed: float = 0.0
    trees_planted: float = 0.0
    gasoline_gallons_avoided: float = 0.0


class ProjectionPoint(BaseModel):
    year: int
    energy_savings_kwh: float
    carbon_reduction_tons: float
    cost_savings: float
    cumulative_carbon_reduction_tons: float


class EnrichedEnvironmentalData(BaseModel):
    environmental: EnvironmentalBlock
    equivalents: EnvironmentalEquivalents
    industry_percentile: float
    projection: List[ProjectionPoint]
    formatted: Dict[str, str]
    is_fallback: bool = False
    notes: List[str] = Field(default_factory=list)

# ============================================================
# API ENVELOPE
# ============================================================

class CalculationResponse(BaseModel):
    status: Literal["ok", "invalid"]
    calculation_id: str
    generated_at: datetime
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    used_simplified_method: bool = False
    cached: bool = False

    # Present only when status == "ok"
    result: Optional[CalculationResult] = None
    environmental: Optional[EnrichedEnvironmentalData] = None
