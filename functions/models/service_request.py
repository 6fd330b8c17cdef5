"""Service request model.

The free-text job description that starts an estimation session.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceRequest(BaseModel):
    """A customer's request for work, immutable once created."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1, description="Free-text description of the job")
    photos: List[str] = Field(default_factory=list, description="Optional photo URLs")
    urgent: bool = Field(default=False, description="Customer marked the job as urgent")
    address: Optional[str] = Field(default=None, description="Job site address, free text")
    property_type: Optional[str] = Field(default=None, description="e.g. single_family, condo, business")

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        """Reject whitespace-only descriptions."""
        if not v.strip():
            raise ValueError("description must not be blank")
        return v.strip()
