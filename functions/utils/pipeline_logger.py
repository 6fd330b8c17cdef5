"""Estimation pipeline logger.

Prints banner-framed summaries of each pipeline stage so they stand out in
local and emulator log streams, and mirrors every banner as a structured
structlog event for log aggregation.
"""

import json
import structlog
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

logger = structlog.get_logger()

BANNER_WIDTH = 80
PIPELINE_BANNER_CHAR = "█"
STAGE_BANNER_CHAR = "═"
LEARNING_BANNER_CHAR = "─"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _format_json(data: Dict[str, Any], indent: int = 2) -> str:
    try:
        return json.dumps(data, indent=indent, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(data)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _print_block(char: str, title: str, rows: List[str]) -> None:
    print("\n")
    print(char * BANNER_WIDTH)
    print(_create_banner(char, title))
    print(char * BANNER_WIDTH)
    for row in rows:
        print(f"║ {row}")
    print(char * BANNER_WIDTH)


def log_pipeline_start(session_id: str, stage: str) -> None:
    """Log the start of a pipeline request."""
    _print_block(PIPELINE_BANNER_CHAR, "SCOPE ESTIMATION PIPELINE", [
        f"Session ID : {session_id}",
        f"Stage      : {stage}",
        f"Timestamp  : {_now()}",
    ])
    logger.info("pipeline_start_logged", session_id=session_id, stage=stage)


def log_pipeline_complete(session_id: str, stage: str, duration_ms: int) -> None:
    """Log a successfully completed pipeline request."""
    _print_block(PIPELINE_BANNER_CHAR, f"✓ {stage.upper()} COMPLETE", [
        f"Session ID : {session_id}",
        f"Duration   : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)",
    ])
    logger.info("pipeline_complete_logged", session_id=session_id, stage=stage, duration_ms=duration_ms)


def log_pipeline_failed(session_id: Optional[str], stage: str, error: str) -> None:
    """Log a failed pipeline request."""
    _print_block("!", f"✗ {stage.upper()} FAILED", [
        f"Session ID : {session_id or 'n/a'}",
        f"Timestamp  : {_now()}",
        f"Error      : {error}",
    ])
    logger.error("pipeline_failed_logged", session_id=session_id, stage=stage, error=error)


def log_classification(
    session_id: str,
    classification: Dict[str, Any],
    degraded_reason: Optional[str] = None
) -> None:
    """Log the intent classification chosen for a session."""
    rows = [
        f"Session ID : {session_id}",
        f"Intent     : {classification.get('service_intent')}",
        f"Service    : {classification.get('service_type')} / {classification.get('subcategory')}",
        f"Confidence : {classification.get('confidence')}",
    ]
    if degraded_reason:
        rows.append(f"DEGRADED   : {degraded_reason} (default classification used)")
    if classification.get("clarifier"):
        rows.append(f"Clarifier  : {classification['clarifier']}")
    _print_block(STAGE_BANNER_CHAR, "INTENT CLASSIFICATION", rows)
    logger.info(
        "classification_logged",
        session_id=session_id,
        service_type=classification.get("service_type"),
        degraded_reason=degraded_reason
    )


def log_question_selected(
    session_id: str,
    question_id: Optional[str],
    state: str,
    answered_required: int,
    total_required: int
) -> None:
    """Log the selector's decision for one poll."""
    print(f"[QUESTIONS] {session_id}: {state} next={question_id or '-'} "
          f"required={answered_required}/{total_required}")
    logger.info(
        "question_selected_logged",
        session_id=session_id,
        question_id=question_id,
        state=state,
        answered_required=answered_required,
        total_required=total_required
    )


def log_scope_generated(session_id: str, scope: Dict[str, Any]) -> None:
    """Log a generated scope with its cost block."""
    cost = scope.get("cost") or {}
    _print_block(STAGE_BANNER_CHAR, "✓ SCOPE GENERATED", [
        f"Session ID     : {session_id}",
        f"Summary        : {scope.get('summary')}",
        f"Total (cents)  : {cost.get('total', 'unpriced')}",
        f"Clarifications : {len(scope.get('clarifications', []))}",
    ])
    if cost:
        for line in _format_json(cost).split("\n"):
            print(f"  {line}")
    logger.info(
        "scope_generated_logged",
        session_id=session_id,
        total=cost.get("total"),
        data_sources=(scope.get("diagnostics") or {}).get("data_sources_used")
    )


def log_job_recorded(session_id: str, accuracy_score: Optional[float], tags: List[str]) -> None:
    """Log a completed job entering the precedent corpus."""
    _print_block(LEARNING_BANNER_CHAR, "LEARNING LOOP: JOB RECORDED", [
        f"Session ID     : {session_id}",
        f"Accuracy score : {accuracy_score if accuracy_score is not None else 'n/a'}",
        f"Tags           : {', '.join(tags) if tags else 'none'}",
    ])
    logger.info("job_recorded_logged", session_id=session_id, accuracy_score=accuracy_score, tags=tags)
