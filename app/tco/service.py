# app/tco/service.py

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple
from uuid import uuid4

from .cache import ResultCache
from .constants import DISCOUNTING_FIELDS
from .engine import calculate, calculate_simplified, parameters_hash
from .enrichment import enrich
from .schemas import (
    CalculationResponse,
    CalculationResult,
    ValidatedParameters,
    ValidationReport,
)
from .validation import validate_calculation_input

logger = logging.getLogger(__name__)

Calculator = Callable[[ValidatedParameters], CalculationResult]


def select_calculator(params: ValidatedParameters) -> Tuple[str, Calculator]:
    """
    Pick the calculator whose preconditions hold.

    The discounted model needs trustworthy discount / escalation inputs; when
    the validator had to substitute defaults for them, "auto" mode uses the
    undiscounted method instead.
    """
    if params.calculation_mode == "simplified":
        return "simplified", calculate_simplified
    if params.calculation_mode == "detailed":
        return "detailed", calculate

    if any(field in params.defaulted_fields for field in DISCOUNTING_FIELDS):
        return "simplified", calculate_simplified
    return "detailed", calculate


def validate_only(raw: Any, long_analysis_years: Optional[int] = None) -> ValidationReport:
    return validate_calculation_input(raw, long_analysis_years=long_analysis_years).report


def run_calculation(
    raw: Any,
    cache: Optional[ResultCache] = None,
    long_analysis_years: Optional[int] = None,
) -> CalculationResponse:
    """
    Validate -> calculate -> enrich.

    Bad input comes back as status="invalid" with structured errors; nothing
    here is allowed to raise because of what the caller sent.
    """
    calculation_id = f"calc_{uuid4().hex}"
    generated_at = datetime.now(timezone.utc)

    outcome = validate_calculation_input(raw, long_analysis_years=long_analysis_years)
    report = outcome.report

    if not outcome.ok:
        logger.info(
            "Calculation %s rejected: %s",
            calculation_id,
            ", ".join(f"{e.field}:{e.code}" for e in report.errors),
        )
        return CalculationResponse(
            status="invalid",
            calculation_id=calculation_id,
            generated_at=generated_at,
            errors=report.errors,
            warnings=report.warnings,
        )

    params = outcome.params
    method, calculator = select_calculator(params)
    cache_key = f"{method}:{parameters_hash(params)}"

    result: Optional[CalculationResult] = cache.get(cache_key) if cache is not None else None
    cached = result is not None

    if result is None:
        result = calculator(params)
        if cache is not None:
            cache.set(cache_key, result)

    environmental = enrich(result)

    logger.info(
        "Calculation %s (%s%s): air %s racks, immersion %s tanks, %s years -> savings %.2f, roi %.1f%%",
        calculation_id,
        method,
        ", cached" if cached else "",
        params.air_racks,
        params.immersion_tanks,
        params.analysis_years,
        result.comparison.total_savings,
        result.comparison.roi_percent,
    )

    return CalculationResponse(
        status="ok",
        calculation_id=calculation_id,
        generated_at=generated_at,
        warnings=report.warnings,
        used_simplified_method=(method == "simplified"),
        cached=cached,
        result=result,
        environmental=environmental,
    )
