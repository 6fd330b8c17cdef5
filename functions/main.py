"""Cloud Function entry points for the scope estimator.

Provides HTTP endpoints for:
- Creating a session from a free-text request
- Polling and answering the dynamic questions
- Generating the structured scope
- Recording job completion and reading learning metrics
"""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional
from datetime import datetime, date

import structlog
from firebase_functions import https_fn, options
from firebase_admin import initialize_app

from config.errors import EstimatorError, ErrorCode, ValidationError
from services.scope_orchestrator import format_scope_summary
from services.session_service import SessionService
from utils.pipeline_logger import log_pipeline_start, log_pipeline_complete, log_pipeline_failed
from validators.request_validator import require_valid, validate_job_outcome, validate_service_request

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

logger = structlog.get_logger()

ENDPOINT_CONFIG = {
    "timeout_sec": 60,
    "memory": options.MemoryOption.MB_512,
    "region": "us-central1"
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}

# ============================================================================
# Helper Functions
# ============================================================================


def success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Build success response."""
    return {"success": True, "data": data}


def error_response(code: str, message: str, details: Dict[str, Any] = None) -> Dict[str, Any]:
    """Build error response."""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {}
        }
    }


def get_request_json(req: https_fn.Request) -> Dict[str, Any]:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        data = req.get_json(force=True) or {}
    except Exception as e:
        raise ValidationError(message=f"Invalid JSON in request body: {str(e)}")
    if not isinstance(data, dict):
        raise ValidationError(message="Request body must be a JSON object")
    return data


def require_field(data: Dict[str, Any], name: str) -> Any:
    """Return a required body field or raise ValidationError."""
    value = data.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(
            message=f"Missing {name} in request",
            field=name,
            code=ErrorCode.MISSING_FIELD
        )
    return value


def status_for_error(error: EstimatorError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(error, ValidationError):
        return 400
    if error.code == ErrorCode.SESSION_NOT_FOUND:
        return 404
    if error.code == ErrorCode.JOB_ALREADY_RECORDED:
        return 409
    return 500


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response("", status=204, headers=CORS_HEADERS)


def _json_default(o: Any):
    """Serialize Firestore timestamps and datetimes."""
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""
    return https_fn.Response(
        json.dumps(data, default=_json_default),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )


def _handle(
    req: https_fn.Request,
    stage: str,
    handler: Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]
) -> https_fn.Response:
    """Run an async stage handler and wrap its result in the response envelope."""
    if req.method == "OPTIONS":
        return _cors_response()

    session_id: Optional[str] = None
    started = time.perf_counter()
    try:
        data = get_request_json(req)
        session_id = data.get("sessionId")
        log_pipeline_start(session_id or "-", stage)

        result = asyncio.run(handler(data))

        log_pipeline_complete(
            result.get("sessionId") or session_id or "-",
            stage,
            int((time.perf_counter() - started) * 1000)
        )
        return _json_response(success_response(result))

    except EstimatorError as e:
        status = status_for_error(e)
        if status >= 500:
            logger.error(f"{stage}_error", error=e.message, code=e.code)
            log_pipeline_failed(session_id, stage, e.message)
        else:
            logger.warning(f"{stage}_rejected", error=e.message, code=e.code)
        return _json_response(error_response(e.code, e.message, e.details), status=status)
    except Exception as e:
        logger.exception(f"{stage}_exception", error=str(e))
        log_pipeline_failed(session_id, stage, str(e))
        return _json_response(
            error_response(ErrorCode.INTERNAL_ERROR, f"{stage} failed: {str(e)}"),
            status=500
        )


# ============================================================================
# Stage handlers
# ============================================================================


async def _create_session_async(data: Dict[str, Any]) -> Dict[str, Any]:
    request = require_valid(validate_service_request(data))
    service = SessionService()
    created = await service.create_session(request)
    first = await service.get_next_question(created["sessionId"])
    return {**created, "next": first.model_dump(mode="json")}


async def _next_question_async(data: Dict[str, Any]) -> Dict[str, Any]:
    session_id = require_field(data, "sessionId")
    result = await SessionService().get_next_question(session_id)
    return {"sessionId": session_id, **result.model_dump(mode="json"),
            "progressPercent": result.progress_percent}


async def _submit_answer_async(data: Dict[str, Any]) -> Dict[str, Any]:
    session_id = require_field(data, "sessionId")
    question_id = require_field(data, "questionId")
    service = SessionService()
    if data.get("skip"):
        result = await service.skip_question(session_id, question_id)
    else:
        result = await service.submit_answer(session_id, question_id, str(require_field(data, "value")))
    return {"sessionId": session_id, **result.model_dump(mode="json"),
            "progressPercent": result.progress_percent}


async def _generate_scope_async(data: Dict[str, Any]) -> Dict[str, Any]:
    session_id = require_field(data, "sessionId")
    scope = await SessionService().generate_scope(session_id)
    return {
        "sessionId": session_id,
        "scope": scope.model_dump(mode="json"),
        "summaryText": format_scope_summary(scope),
    }


async def _complete_job_async(data: Dict[str, Any]) -> Dict[str, Any]:
    session_id = require_field(data, "sessionId")
    outcome = require_valid(validate_job_outcome(data))
    job = await SessionService().record_job_completion(session_id, outcome)
    return {"sessionId": session_id, "job": job.model_dump(mode="json")}


async def _learning_metrics_async(data: Dict[str, Any]) -> Dict[str, Any]:
    return await SessionService().get_learning_metrics(service_type=data.get("serviceType"))


# ============================================================================
# HTTP Endpoints
# ============================================================================


@https_fn.on_request(**ENDPOINT_CONFIG)
def create_session(req: https_fn.Request) -> https_fn.Response:
    """Create a session from a free-text request.

    Request body:
    {
        "text": "I need a plumber to fix a leaking pipe under my kitchen sink",
        "urgent": false,
        "address": "456 Oak Street, Dallas, TX 75201",
        "photos": []
    }

    Response data: sessionId, classification, degradedReason, state and the
    first question poll under "next".
    """
    return _handle(req, "create_session", _create_session_async)


@https_fn.on_request(**ENDPOINT_CONFIG)
def next_question(req: https_fn.Request) -> https_fn.Response:
    """Poll the next dynamic question. Body: {"sessionId": "..."}."""
    return _handle(req, "next_question", _next_question_async)


@https_fn.on_request(**ENDPOINT_CONFIG)
def submit_answer(req: https_fn.Request) -> https_fn.Response:
    """Answer or skip a question.

    Request body:
    {
        "sessionId": "sess-xxx",
        "questionId": "plumbing-leak-location",
        "value": "Kitchen sink",
        "skip": false
    }
    """
    return _handle(req, "submit_answer", _submit_answer_async)


@https_fn.on_request(**ENDPOINT_CONFIG)
def generate_scope(req: https_fn.Request) -> https_fn.Response:
    """Generate the structured scope once required questions are answered."""
    return _handle(req, "generate_scope", _generate_scope_async)


@https_fn.on_request(**ENDPOINT_CONFIG)
def complete_job(req: https_fn.Request) -> https_fn.Response:
    """Record the actual outcome of a finished job.

    Request body:
    {
        "sessionId": "sess-xxx",
        "actualManHours": 2.5,
        "actualCost": 31000,
        "customerRating": 5,
        "issuesEncountered": "Corroded shutoff valve had to be replaced as well"
    }
    """
    return _handle(req, "complete_job", _complete_job_async)


@https_fn.on_request(**ENDPOINT_CONFIG)
def learning_metrics(req: https_fn.Request) -> https_fn.Response:
    """Aggregate estimate accuracy. Body: {"serviceType": "Plumbing"} (optional)."""
    return _handle(req, "learning_metrics", _learning_metrics_async)
