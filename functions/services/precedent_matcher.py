"""Precedent matching over completed jobs.

Ranks completed jobs of the same service type by similarity to the current
request, then by accuracy score, then by recency. Only jobs with recorded
actuals are eligible; they are the ones that carry a real cost basis.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from statistics import median
from typing import Iterable, List, Mapping, Optional, Sequence

import structlog

from models.completed_job import CompletedJob
from utils.money import round_half_up

logger = structlog.get_logger()

SUBCATEGORY_MATCH_WEIGHT = 2.0
ANSWER_OVERLAP_WEIGHT = 1.0
TRAINING_EXAMPLE_BONUS = 0.5


def _normalized_values(answers: Mapping[str, str]) -> set:
    return {value.strip().lower() for value in answers.values() if value and value.strip()}


def similarity(
    job: CompletedJob,
    service_type: str,
    subcategory: str,
    structured_answers: Mapping[str, str]
) -> float:
    """Similarity of a completed job to the current request.

    Subcategory agreement counts most, then the share of the current answer
    values the job shares, plus a bonus for high-quality training examples
    that already share one of those. Jobs of a different service type, or
    sharing neither, score 0.
    """
    if job.service_type.lower() != service_type.lower():
        return 0.0

    score = 0.0
    if job.subcategory.lower() == subcategory.lower():
        score += SUBCATEGORY_MATCH_WEIGHT

    current = _normalized_values(structured_answers)
    if current:
        shared = current & _normalized_values(job.structured_answers)
        score += ANSWER_OVERLAP_WEIGHT * len(shared) / len(current)

    if score > 0 and job.is_training_example:
        score += TRAINING_EXAMPLE_BONUS
    return score


def _recency(job: CompletedJob) -> datetime:
    completed_at = job.completed_at
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    return completed_at


def find_precedents(
    jobs: Iterable[CompletedJob],
    service_type: str,
    subcategory: str,
    structured_answers: Mapping[str, str],
    limit: Optional[int] = None
) -> List[CompletedJob]:
    """Rank completed jobs as precedents for a new estimate."""
    scored = []
    for job in jobs:
        if not job.has_actuals:
            continue
        score = similarity(job, service_type, subcategory, structured_answers)
        if score <= 0:
            continue
        scored.append((score, job))

    scored.sort(
        key=lambda pair: (
            pair[0],
            pair[1].accuracy_score if pair[1].accuracy_score is not None else -1.0,
            _recency(pair[1]),
        ),
        reverse=True,
    )
    ranked = [job for _, job in scored]
    if limit is not None:
        ranked = ranked[:limit]

    logger.debug(
        "precedents_ranked",
        service_type=service_type,
        subcategory=subcategory,
        candidates=len(scored),
        returned=len(ranked)
    )
    return ranked


def blend_weight(precedent_count: int) -> float:
    """How much precedent hours count against standards-derived hours."""
    if precedent_count <= 0:
        return 0.0
    if precedent_count <= 2:
        return 0.3
    if precedent_count <= 4:
        return 0.5
    return 0.7


@dataclass(frozen=True)
class PrecedentSummary:
    job_count: int
    median_hours: Optional[float]
    min_cost: Optional[int]
    median_cost: Optional[int]
    max_cost: Optional[int]


def summarize_precedents(precedents: Sequence[CompletedJob]) -> Optional[PrecedentSummary]:
    """Median hours and actual-cost spread across precedents."""
    if not precedents:
        return None
    hours = [job.actual_man_hours for job in precedents if job.actual_man_hours is not None]
    costs = [job.actual_cost for job in precedents if job.actual_cost is not None]
    return PrecedentSummary(
        job_count=len(precedents),
        median_hours=float(median(hours)) if hours else None,
        min_cost=min(costs) if costs else None,
        median_cost=round_half_up(median(costs)) if costs else None,
        max_cost=max(costs) if costs else None,
    )
