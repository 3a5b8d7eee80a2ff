# app/tco/validation.py
from typing import Any, Dict, List, Mapping, Optional, Tuple
import math

from pydantic import BaseModel

from .constants import (
    CALCULATION_MODES,
    CAPACITY_MISMATCH_THRESHOLD,
    DEFAULT_CALCULATION_MODE,
    DEFAULT_CURRENCY,
    DEFAULT_EMISSION_FACTOR,
    DEFAULT_LOAD_SCENARIO,
    DEFAULT_LONG_ANALYSIS_YEARS,
    DEFAULT_WATER_FACTOR,
    FIELD_SPECS,
    LOAD_SCENARIOS,
    MAX_REALISTIC_PUE_IMPROVEMENT,
    SUPPORTED_CURRENCIES,
    FieldSpec,
)
from .repository import get_region_factors
from .schemas import (
    ValidatedParameters,
    ValidationIssue,
    ValidationOutcome,
    ValidationReport,
)

# -------------------------------------------------
# Coercion helpers
# -------------------------------------------------

_MISSING = object()
_MALFORMED = object()


def _coerce_number(value: Any) -> Any:
    """
    Return a finite float, _MISSING (None / blank string) or _MALFORMED.
    Booleans are not numbers here, even though Python says they are.
    """
    if value is None:
        return _MISSING
    if isinstance(value, bool):
        return _MALFORMED
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return _MISSING
        try:
            number = float(text)
        except ValueError:
            return _MALFORMED
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        return _MALFORMED

    if not math.isfinite(number):
        return _MALFORMED
    return number


def _safe_value(value: Any) -> Any:
    """Keep issue payloads JSON-serialisable (no NaN / Infinity / objects)."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    return repr(value)


def _issue(field: str, code: str, message: str, severity: str = "error", value: Any = None) -> ValidationIssue:
    return ValidationIssue(field=field, code=code, message=message, severity=severity, value=_safe_value(value))


def _raw_mapping(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if isinstance(raw, Mapping):
        return dict(raw)
    return None

# -------------------------------------------------
# Per-field checks
# -------------------------------------------------


def _validate_field(
    spec: FieldSpec,
    raw_value: Any,
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
    defaulted: List[str],
) -> Optional[float]:
    number = _coerce_number(raw_value)

    if number is _MISSING:
        if spec.required:
            errors.append(_issue(spec.name, "REQUIRED_FIELD_MISSING", f"{spec.label} is required."))
        return spec.default

    if number is _MALFORMED:
        if spec.required:
            errors.append(
                _issue(spec.name, "INVALID_NUMBER", f"{spec.label} must be a valid number.", value=raw_value)
            )
            return None
        defaulted.append(spec.name)
        default_label = "the regional default" if spec.default is None else f"{spec.default:g}"
        warnings.append(
            _issue(
                spec.name,
                "VALUE_DEFAULTED",
                f"{spec.label} was not a valid number; using {default_label}.",
                severity="warning",
                value=raw_value,
            )
        )
        return spec.default

    if spec.integer and not float(number).is_integer():
        # halves round up: 2.5 racks -> 3
        rounded = float(math.floor(number + 0.5))
        warnings.append(
            _issue(
                spec.name,
                "VALUE_ROUNDED",
                f"{spec.label} must be a whole number; rounded to {rounded:g}.",
                severity="warning",
                value=raw_value,
            )
        )
        number = rounded

    if number < spec.minimum or number > spec.maximum:
        errors.append(
            _issue(
                spec.name,
                "OUT_OF_RANGE",
                f"{spec.label} must be between {spec.minimum:g} and {spec.maximum:g}"
                + (f" {spec.unit}." if spec.unit else "."),
                value=raw_value,
            )
        )
        return None

    return number


def _validate_choice(
    field: str,
    raw_value: Any,
    allowed: Tuple[str, ...],
    default: Optional[str],
    code: str,
    warnings: List[ValidationIssue],
    upper: bool = False,
) -> Optional[str]:
    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        return default

    text = str(raw_value).strip()
    text = text.upper() if upper else text.lower()
    if text in allowed:
        return text

    fallback = default if default is not None else "none"
    warnings.append(
        _issue(
            field,
            code,
            f"Unknown {field.replace('_', ' ')} '{raw_value}'; using {fallback}.",
            severity="warning",
            value=raw_value,
        )
    )
    return default

# -------------------------------------------------
# Cross-field business rules
# -------------------------------------------------


def _check_business_rules(
    values: Dict[str, Optional[float]],
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
    long_analysis_years: int,
) -> None:
    air_pue = values.get("air_pue")
    immersion_pue = values.get("immersion_pue")

    if air_pue is not None and immersion_pue is not None:
        if immersion_pue >= air_pue:
            errors.append(
                _issue(
                    "immersion_pue",
                    "PUE_IMMERSION_NOT_EFFICIENT",
                    "Immersion cooling PUE must be lower than air cooling PUE for a meaningful comparison.",
                    value=immersion_pue,
                )
            )
        else:
            improvement = (air_pue - immersion_pue) / air_pue
            if improvement > MAX_REALISTIC_PUE_IMPROVEMENT:
                warnings.append(
                    _issue(
                        "immersion_pue",
                        "UNREALISTIC_PUE_IMPROVEMENT",
                        f"PUE improvement of {improvement * 100:.1f}% exceeds "
                        f"{MAX_REALISTIC_PUE_IMPROVEMENT * 100:.0f}%; results may be optimistic.",
                        severity="warning",
                        value=round(improvement * 100, 1),
                    )
                )

    air_parts = (values.get("air_racks"), values.get("air_power_per_rack_kw"))
    imm_parts = (values.get("immersion_tanks"), values.get("immersion_power_per_tank_kw"))
    if None not in air_parts and None not in imm_parts:
        air_kw = air_parts[0] * air_parts[1]
        imm_kw = imm_parts[0] * imm_parts[1]
        larger = max(air_kw, imm_kw)
        if larger > 0:
            mismatch = abs(air_kw - imm_kw) / larger
            if mismatch > CAPACITY_MISMATCH_THRESHOLD:
                warnings.append(
                    _issue(
                        "capacity",
                        "CAPACITY_MISMATCH",
                        f"IT capacities differ by {mismatch * 100:.0f}% "
                        f"({air_kw:g} kW air vs {imm_kw:g} kW immersion); comparison may be misleading.",
                        severity="warning",
                        value=round(mismatch * 100, 1),
                    )
                )

    years = values.get("analysis_years")
    if years is not None and years > long_analysis_years:
        warnings.append(
            _issue(
                "analysis_years",
                "LONG_ANALYSIS_PERIOD",
                f"Analysis periods beyond {long_analysis_years} years carry growing assumption uncertainty.",
                severity="warning",
                value=int(years),
            )
        )

# -------------------------------------------------
# Public API
# -------------------------------------------------


def validate_calculation_input(
    raw: Any,
    long_analysis_years: Optional[int] = None,
) -> ValidationOutcome:
    """
    Turn a raw request into ValidatedParameters, or a blocking report.

    Never raises for malformed input: problems come back as issues.
    """
    threshold = DEFAULT_LONG_ANALYSIS_YEARS if long_analysis_years is None else long_analysis_years

    data = _raw_mapping(raw)
    if data is None:
        report = ValidationReport(
            is_valid=False,
            errors=[_issue("payload", "INVALID_PAYLOAD", "Calculation input must be an object.")],
        )
        return ValidationOutcome(params=None, report=report)

    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    defaulted: List[str] = []

    values: Dict[str, Optional[float]] = {}
    for spec in FIELD_SPECS:
        values[spec.name] = _validate_field(spec, data.get(spec.name), errors, warnings, defaulted)

    region: Optional[str] = None
    region_factors = None
    raw_region = data.get("region")
    if raw_region is not None and str(raw_region).strip():
        region_factors = get_region_factors(str(raw_region))
        if region_factors is None:
            warnings.append(
                _issue(
                    "region",
                    "UNKNOWN_REGION",
                    f"Unknown region '{raw_region}'; using default emission factors.",
                    severity="warning",
                    value=raw_region,
                )
            )
        else:
            region = region_factors.code

    currency = _validate_choice(
        "currency", data.get("currency"), tuple(SUPPORTED_CURRENCIES), DEFAULT_CURRENCY,
        "UNKNOWN_CURRENCY", warnings, upper=True,
    )
    load_scenario = _validate_choice(
        "load_scenario", data.get("load_scenario"), tuple(LOAD_SCENARIOS), DEFAULT_LOAD_SCENARIO,
        "UNKNOWN_LOAD_SCENARIO", warnings,
    )
    calculation_mode = _validate_choice(
        "calculation_mode", data.get("calculation_mode"), CALCULATION_MODES, DEFAULT_CALCULATION_MODE,
        "UNKNOWN_CALCULATION_MODE", warnings,
    )

    _check_business_rules(values, errors, warnings, threshold)

    if errors:
        return ValidationOutcome(
            params=None,
            report=ValidationReport(is_valid=False, errors=errors, warnings=warnings),
        )

    # Emission factor: explicit > region table > documented default
    carbon_factor = values["carbon_emission_factor"]
    if carbon_factor is None:
        carbon_factor = (
            region_factors.carbon_factor_kg_per_kwh if region_factors else DEFAULT_EMISSION_FACTOR
        )
    water_factor = region_factors.water_factor_gal_per_kwh if region_factors else DEFAULT_WATER_FACTOR

    params = ValidatedParameters(
        air_racks=int(values["air_racks"]),
        air_power_per_rack_kw=values["air_power_per_rack_kw"],
        air_rack_cost=values["air_rack_cost"],
        air_infrastructure_cost_per_rack=values["air_infrastructure_cost_per_rack"],
        air_pue=values["air_pue"],
        immersion_tanks=int(values["immersion_tanks"]),
        immersion_power_per_tank_kw=values["immersion_power_per_tank_kw"],
        immersion_tank_cost=values["immersion_tank_cost"],
        immersion_fluid_cost_per_tank=values["immersion_fluid_cost_per_tank"],
        immersion_pue=values["immersion_pue"],
        analysis_years=int(values["analysis_years"]),
        electricity_price=values["electricity_price"],
        discount_rate=values["discount_rate"],
        maintenance_cost_pct=values["maintenance_cost_pct"],
        energy_escalation_rate=values["energy_escalation_rate"],
        carbon_emission_factor=carbon_factor,
        water_factor_gal_per_kwh=water_factor,
        region=region,
        currency=currency,
        load_scenario=load_scenario,
        utilization_factor=LOAD_SCENARIOS[load_scenario].utilization,
        calculation_mode=calculation_mode,
        defaulted_fields=tuple(defaulted),
    )
    return ValidationOutcome(
        params=params,
        report=ValidationReport(is_valid=True, errors=[], warnings=warnings),
    )
