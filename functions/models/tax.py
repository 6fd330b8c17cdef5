"""Sales tax models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TaxRegime(str, Enum):
    """How broadly a jurisdiction taxes services."""

    BROAD = "broad"
    SELECTIVE = "selective"
    NO_TAX = "no_tax"
    UNKNOWN = "unknown"


class ServiceTaxRule(BaseModel):
    """Taxability of one service type in selective-regime states."""

    model_config = ConfigDict(frozen=True)

    service_type: str
    is_commonly_taxable: bool
    override_rate: Optional[float] = Field(default=None, ge=0, le=1)
    notes: str = ""


class SalesTaxInput(BaseModel):
    """Cost figures the tax calculation works from, in cents."""

    state: Optional[str] = None
    service_type: str
    subtotal: int = Field(..., ge=0)
    labor_cost: int = Field(..., ge=0)
    material_cost: int = Field(..., ge=0)


class SalesTaxResult(BaseModel):
    is_taxable: bool
    tax_rate: float = Field(..., ge=0)
    tax_amount: int = Field(..., ge=0)
    taxable_amount: int = Field(..., ge=0)
    regime: TaxRegime
    notes: str = ""
