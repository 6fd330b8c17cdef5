"""Utility modules for the scope estimator."""

from utils.pipeline_logger import (
    log_pipeline_start,
    log_pipeline_complete,
    log_pipeline_failed,
    log_classification,
    log_question_selected,
    log_scope_generated,
    log_job_recorded,
)

__all__ = [
    "log_pipeline_start",
    "log_pipeline_complete",
    "log_pipeline_failed",
    "log_classification",
    "log_question_selected",
    "log_scope_generated",
    "log_job_recorded",
]
