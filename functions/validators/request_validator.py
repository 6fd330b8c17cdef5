"""Request payload parsing and validation.

Deserializes HTTP JSON bodies into typed Pydantic models. The frontend sends
camelCase keys; snake_case keys are accepted too.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError
import structlog

from config.errors import ErrorCode, ValidationError
from models.completed_job import JobOutcome
from models.service_request import ServiceRequest

logger = structlog.get_logger(__name__)

SERVICE_REQUEST_KEYS = {
    "text": "description",
    "description": "description",
    "photos": "photos",
    "urgent": "urgent",
    "address": "address",
    "location": "address",
    "propertyType": "property_type",
    "property_type": "property_type",
}

JOB_OUTCOME_KEYS = {
    "actualManHours": "actual_man_hours",
    "actual_man_hours": "actual_man_hours",
    "actualCost": "actual_cost",
    "actual_cost": "actual_cost",
    "customerRating": "customer_rating",
    "customer_rating": "customer_rating",
    "issuesEncountered": "issues_encountered",
    "issues_encountered": "issues_encountered",
    "materialsUsed": "materials_used",
    "materials_used": "materials_used",
}


@dataclass
class ValidationResult:
    """Result of payload validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    parsed: Optional[BaseModel] = None
    raw_data: Dict[str, Any] = None
    code: str = ErrorCode.INVALID_FIELD


def _remap(data: Dict[str, Any], keys: Dict[str, str]) -> Dict[str, Any]:
    return {keys[key]: value for key, value in data.items() if key in keys and value is not None}


def _validate(model: type, data: Any, keys: Dict[str, str]) -> ValidationResult:
    if not isinstance(data, dict):
        return ValidationResult(is_valid=False, errors=["Request body must be a JSON object"], raw_data=data)
    try:
        parsed = model.model_validate(_remap(data, keys))
        return ValidationResult(is_valid=True, parsed=parsed, raw_data=data)
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        logger.warning("request_validation_failed", model=model.__name__, errors=errors)
        return ValidationResult(is_valid=False, errors=errors, raw_data=data)


def validate_service_request(data: Any) -> ValidationResult:
    """Validate a create-session payload into a ServiceRequest."""
    if isinstance(data, dict):
        text = data.get("text", data.get("description"))
        if text is None or (isinstance(text, str) and not text.strip()):
            return ValidationResult(
                is_valid=False,
                errors=["text: request text must not be empty"],
                raw_data=data,
                code=ErrorCode.EMPTY_REQUEST_TEXT
            )
    return _validate(ServiceRequest, data, SERVICE_REQUEST_KEYS)


def validate_job_outcome(data: Any) -> ValidationResult:
    """Validate a job-completion payload into a JobOutcome."""
    return _validate(JobOutcome, data, JOB_OUTCOME_KEYS)


def require_valid(result: ValidationResult) -> BaseModel:
    """Return the parsed model or raise ValidationError with every problem found."""
    if not result.is_valid:
        raise ValidationError(
            "; ".join(result.errors) or "Invalid request",
            code=result.code,
            details={"errors": result.errors}
        )
    return result.parsed
