# app/tco/router.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response

from app.config import LONG_ANALYSIS_YEARS
from . import enrichment, repository, schemas, service
from .cache import ResultCache
from .constants import (
    CALCULATION_MODES,
    DEFAULT_CALCULATION_MODE,
    DEFAULT_CURRENCY,
    DEFAULT_EMISSION_FACTOR,
    DEFAULT_LOAD_SCENARIO,
    FIELD_SPECS,
    LOAD_SCENARIOS,
    SUPPORTED_CURRENCIES,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_result_cache(request: Request) -> Optional[ResultCache]:
    """The cache lives on the app, not in the engine."""
    return getattr(request.app.state, "result_cache", None)


# POST /api/v1/tco/calculate
@router.post(
    "/calculate",
    response_model=schemas.CalculationResponse,
    summary="Run the air vs immersion cooling TCO comparison",
    responses={422: {"model": schemas.CalculationResponse, "description": "Input failed validation"}},
)
def calculate_tco(
    payload: schemas.CalculationInput,
    response: Response,
    cache: Optional[ResultCache] = Depends(get_result_cache),
):
    try:
        result = service.run_calculation(payload, cache=cache, long_analysis_years=LONG_ANALYSIS_YEARS)
    except Exception as e:
        logger.exception("TCO calculation failed")
        raise HTTPException(500, f"Calculation engine failed: {e}")

    if result.status == "invalid":
        response.status_code = 422
    return result


# POST /api/v1/tco/validate
@router.post(
    "/validate",
    response_model=schemas.ValidationReport,
    summary="Validate inputs without running the calculation",
)
def validate_tco_input(payload: schemas.CalculationInput):
    return service.validate_only(payload, long_analysis_years=LONG_ANALYSIS_YEARS)


# POST /api/v1/tco/environmental
@router.post(
    "/environmental",
    response_model=schemas.EnrichedEnvironmentalData,
    summary="Re-derive environmental context from a stored calculation result",
)
def enrich_stored_result(result: Dict[str, Any] = Body(...)):
    return enrichment.enrich(result)


# GET /api/v1/tco/reference
@router.get(
    "/reference",
    summary="Regions, load scenarios, currencies and input bounds for the form",
)
def get_reference_data():
    return {
        "regions": repository.list_regions(),
        "default_carbon_emission_factor": DEFAULT_EMISSION_FACTOR,
        "load_scenarios": [
            {
                "key": s.key,
                "name": s.name,
                "description": s.description,
                "utilization": s.utilization,
            }
            for s in LOAD_SCENARIOS.values()
        ],
        "default_load_scenario": DEFAULT_LOAD_SCENARIO,
        "currencies": [{"code": code, "symbol": symbol} for code, symbol in SUPPORTED_CURRENCIES.items()],
        "default_currency": DEFAULT_CURRENCY,
        "calculation_modes": list(CALCULATION_MODES),
        "default_calculation_mode": DEFAULT_CALCULATION_MODE,
        "long_analysis_years": LONG_ANALYSIS_YEARS,
        "fields": [
            {
                "name": spec.name,
                "label": spec.label,
                "min": spec.minimum,
                "max": spec.maximum,
                "integer": spec.integer,
                "required": spec.required,
                "default": spec.default,
                "unit": spec.unit,
            }
            for spec in FIELD_SPECS
        ],
    }
