"""Production standard model.

A reference labor-hours-per-unit and/or material-cost-per-unit rate for one
service line item.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UnitOfMeasure(str, Enum):
    """Units a production standard can be expressed in."""

    EACH = "each"
    SQUARE_FEET = "square_feet"
    SQUARE_YARDS = "square_yards"
    LINEAR_FEET = "linear_feet"
    CUBIC_FEET = "cubic_feet"
    CUBIC_YARDS = "cubic_yards"
    SQUARES = "squares"
    HOURS = "hours"


class ProductionStandard(BaseModel):
    """(service type, subcategory, line item) -> unit rates."""

    model_config = ConfigDict(frozen=True)

    service_type: str
    subcategory: str
    item_description: str
    unit_of_measure: UnitOfMeasure
    labor_hours_per_unit: Optional[float] = Field(default=None, ge=0)
    material_cost_per_unit: Optional[int] = Field(
        default=None, ge=0, description="Material cost per unit in cents"
    )

    @model_validator(mode="after")
    def require_a_rate(self) -> "ProductionStandard":
        """A row is a labor rate, a material rate, or both."""
        if self.labor_hours_per_unit is None and self.material_cost_per_unit is None:
            raise ValueError(
                f"Production standard '{self.item_description}' needs a labor or material rate"
            )
        return self
