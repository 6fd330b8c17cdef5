"""Location and regional pricing models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LocationInfo(BaseModel):
    """A parsed job-site address."""

    raw: str = ""
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, description="Two-letter state code")

    @property
    def is_parsed(self) -> bool:
        return self.state is not None


class RegionalMultiplier(BaseModel):
    """A curated city-level labor multiplier."""

    model_config = ConfigDict(frozen=True)

    city: str
    state: str
    multiplier: float = Field(..., gt=0)
    label: str


class RegionalPricingResult(BaseModel):
    """The multiplier resolved for a location. Applies to labor only."""

    multiplier: float = Field(..., gt=0)
    label: str
    adjustment_percent: int
    applies_to: str = "labor only"
    source: str = Field(default="default", description="city, state, rural or default")
