"""Accuracy scoring and tagging for completed jobs.

Turns a completed job's estimate and actual outcome into the training signal
used by precedent matching: a [0, 1] accuracy score, a high-quality flag, and
descriptive tags for retrieval filtering.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import structlog

from models.completed_job import CompletedJob

logger = structlog.get_logger()

HIGH_QUALITY_MIN_ACCURACY = 0.75
HIGH_QUALITY_MIN_RATING = 4
MAX_MINOR_ISSUES_LENGTH = 50

QUICK_FIX_MAX_HOURS = 2
MULTI_DAY_MIN_HOURS = 8
ACCURATE_ESTIMATE_MIN_SCORE = 0.9
ESTIMATION_CHALLENGE_MAX_SCORE = 0.6
SCOPE_CHANGE_RATIO = 0.5

WEATHER_KEYWORDS = ("weather", "rain", "snow")
URGENT_KEYWORDS = ("emergency", "urgent")


@dataclass(frozen=True)
class JobFigures:
    """Hours and cost for one side of an estimate/actual comparison."""

    hours: Optional[float] = None
    cost: Optional[float] = None


def _dimension_score(estimated: Optional[float], actual: Optional[float]) -> Optional[float]:
    """Score one dimension, or None when it cannot be compared."""
    if estimated is None or actual is None:
        return None
    if estimated == 0 and actual == 0:
        return 1.0
    if estimated == 0 and actual > 0:
        return 0.0
    if actual == 0 and estimated > 0:
        return 0.5
    if estimated > 0 and actual > 0:
        relative_error = abs(estimated - actual) / max(estimated, actual)
        return max(0.0, 1.0 - min(1.0, relative_error))
    # Negative figures are not comparable
    return None


def calculate_accuracy_score(estimated: JobFigures, actual: JobFigures) -> Optional[float]:
    """Compare an estimate with the actual outcome.

    Hours and cost are scored independently and the available dimension
    scores are averaged.

    Args:
        estimated: Estimated hours and cost.
        actual: Actual hours and cost.

    Returns:
        Score between 0.0 and 1.0, or None if neither dimension is comparable.
    """
    scores = [
        score
        for score in (
            _dimension_score(estimated.hours, actual.hours),
            _dimension_score(estimated.cost, actual.cost),
        )
        if score is not None
    ]
    if not scores:
        return None
    return sum(scores) / len(scores)


def is_high_quality_training_example(
    accuracy_score: Optional[float],
    customer_rating: Optional[int],
    issues_encountered: Optional[str] = None
) -> bool:
    """Whether a job should be weighted more heavily as a precedent."""
    if accuracy_score is None or accuracy_score < HIGH_QUALITY_MIN_ACCURACY:
        return False
    if customer_rating is None or customer_rating < HIGH_QUALITY_MIN_RATING:
        return False
    if issues_encountered and len(issues_encountered) > MAX_MINOR_ISSUES_LENGTH:
        return False
    return True


def generate_job_tags(
    complexity: Optional[str] = None,
    actual_man_hours: Optional[float] = None,
    estimated_man_hours: Optional[float] = None,
    accuracy_score: Optional[float] = None,
    service_description: Optional[str] = None
) -> List[str]:
    """Derive descriptive retrieval tags. Tags never affect scoring."""
    tags: List[str] = []

    if complexity:
        tags.append(complexity.lower())

    if actual_man_hours:
        if actual_man_hours < QUICK_FIX_MAX_HOURS:
            tags.append("quick_fix")
        elif actual_man_hours > MULTI_DAY_MIN_HOURS:
            tags.append("multi_day")

    if accuracy_score is not None:
        if accuracy_score >= ACCURATE_ESTIMATE_MIN_SCORE:
            tags.append("accurate_estimate")
        elif accuracy_score < ESTIMATION_CHALLENGE_MAX_SCORE:
            tags.append("estimation_challenge")

    if estimated_man_hours and actual_man_hours:
        if abs(actual_man_hours - estimated_man_hours) / estimated_man_hours > SCOPE_CHANGE_RATIO:
            tags.append("scope_change")

    if service_description:
        description = service_description.lower()
        if any(keyword in description for keyword in WEATHER_KEYWORDS):
            tags.append("weather_factor")
        if any(keyword in description for keyword in URGENT_KEYWORDS):
            tags.append("urgent")

    return tags


def score_completed_job(job: CompletedJob) -> CompletedJob:
    """Fill in accuracy score, tags and training flag on a fresh job.

    Jobs that already carry an accuracy score are returned unchanged; the
    learning fields are computed once and never recomputed.
    """
    if job.accuracy_score is not None:
        return job

    accuracy = calculate_accuracy_score(
        JobFigures(hours=job.estimated_man_hours, cost=job.estimated_cost),
        JobFigures(hours=job.actual_man_hours, cost=job.actual_cost),
    )
    tags = generate_job_tags(
        complexity=job.complexity,
        actual_man_hours=job.actual_man_hours,
        estimated_man_hours=job.estimated_man_hours,
        accuracy_score=accuracy,
        service_description=job.service_description,
    )
    training = is_high_quality_training_example(
        accuracy, job.customer_rating, job.issues_encountered
    )

    logger.info(
        "completed_job_scored",
        session_id=job.session_id,
        accuracy_score=accuracy,
        tags=tags,
        is_training_example=training
    )

    return job.model_copy(update={
        "accuracy_score": accuracy,
        "tags": tags,
        "is_training_example": training,
    })


def summarize_learning_metrics(jobs: Iterable[CompletedJob]) -> Dict[str, Any]:
    """Aggregate learning-loop metrics across completed jobs."""
    jobs = list(jobs)
    with_outcomes = [job for job in jobs if job.has_actuals]
    scored = [job.accuracy_score for job in jobs if job.accuracy_score is not None]

    by_service: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"count": 0, "scores": []})
    for job in jobs:
        bucket = by_service[job.service_type]
        bucket["count"] += 1
        if job.accuracy_score is not None:
            bucket["scores"].append(job.accuracy_score)

    return {
        "total_jobs": len(jobs),
        "jobs_with_outcomes": len(with_outcomes),
        "average_accuracy": sum(scored) / len(scored) if scored else None,
        "training_examples_count": sum(1 for job in jobs if job.is_training_example),
        "high_rating_count": sum(
            1 for job in jobs
            if job.customer_rating is not None and job.customer_rating >= HIGH_QUALITY_MIN_RATING
        ),
        "by_service_type": {
            service_type: {
                "count": bucket["count"],
                "average_accuracy": (
                    sum(bucket["scores"]) / len(bucket["scores"]) if bucket["scores"] else None
                ),
            }
            for service_type, bucket in sorted(by_service.items())
        },
    }
