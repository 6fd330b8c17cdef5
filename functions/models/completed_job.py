"""Completed job models.

CompletedJob rows are the precedent corpus. accuracy_score, tags and
is_training_example are computed once when actuals are recorded and never
recomputed.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class JobOutcome(BaseModel):
    """Actuals reported when a job is finished."""

    actual_man_hours: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[int] = Field(default=None, ge=0, description="Actual cost in cents")
    customer_rating: Optional[int] = Field(default=None, ge=1, le=5)
    issues_encountered: Optional[str] = None
    materials_used: List[str] = Field(default_factory=list)


class CompletedJob(BaseModel):
    """A finished job with estimate and actuals side by side."""

    session_id: str
    service_type: str
    subcategory: str
    service_description: str = ""
    original_scope: Optional[Dict] = None
    structured_answers: Dict[str, str] = Field(default_factory=dict)
    estimated_man_hours: Optional[float] = Field(default=None, ge=0)
    estimated_cost: Optional[int] = Field(default=None, ge=0)
    actual_man_hours: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[int] = Field(default=None, ge=0)
    customer_rating: Optional[int] = Field(default=None, ge=1, le=5)
    accuracy_score: Optional[float] = Field(default=None, ge=0, le=1)
    issues_encountered: Optional[str] = None
    materials_used: List[str] = Field(default_factory=list)
    complexity: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_training_example: bool = False
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_actuals(self) -> bool:
        return self.actual_man_hours is not None or self.actual_cost is not None
