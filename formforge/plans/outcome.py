"""Turn raw model output into the plan that gets saved and reported."""

import logging
from typing import Any, Dict, NamedTuple, Optional

from formforge.errors import ExtractionFailure, SchemaValidationFailure
from formforge.plans.extraction import parse_model_json
from formforge.plans.fallback import minimal_plan
from formforge.plans.schema import validate_plan

logger = logging.getLogger(__name__)

GENUINE_MESSAGE = "Workout plan generated and validated successfully."
FALLBACK_MESSAGE = "Workout plan generation had issues (parsing or validation failed), using fallback plan."


class PlanOutcome(NamedTuple):
    plan: Dict[str, Any]
    fallback_used: bool
    message: str
    error: Optional[str] = None


def resolve_plan(text: str) -> PlanOutcome:
    """Extract, validate, and fall back to the minimal plan when either step fails.

    A genuine plan is returned exactly as the model produced it; validation
    only gates it.
    """
    try:
        parsed = parse_model_json(text)
    except ExtractionFailure as e:
        logger.warning("Plan extraction failed, using fallback plan", extra={"details": e.details})
        return PlanOutcome(minimal_plan(), True, FALLBACK_MESSAGE, f"Parsing failed: {e.message}")

    try:
        validate_plan(parsed)
    except SchemaValidationFailure as e:
        logger.warning("Plan failed schema validation, using fallback plan", extra={"details": e.details})
        return PlanOutcome(minimal_plan(), True, FALLBACK_MESSAGE, f"Validation failed: {e.message}")
    except Exception as e:
        logger.exception("Plan validation raised, using fallback plan")
        return PlanOutcome(minimal_plan(), True, FALLBACK_MESSAGE, f"Validation failed: {e}")

    return PlanOutcome(parsed, False, GENUINE_MESSAGE)
