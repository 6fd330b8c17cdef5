"""Structured scope models.

The StructuredScope is the final output of the estimation pipeline. It is
ephemeral and may be regenerated; cost figures are integer cents.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.intent import ServiceIntent
from models.tax import SalesTaxResult


class DataSource(str, Enum):
    PRODUCTION_STANDARDS = "production_standards"
    HISTORICAL_JOBS = "historical_jobs"


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class LineItem(BaseModel):
    item: str
    qty: float = Field(..., ge=0)
    unit: str
    labor_hours: float = Field(default=0.0, ge=0)
    material_cost: int = Field(default=0, ge=0, description="Material cost in cents")
    notes: str = ""
    vendor_verify: bool = Field(
        default=True, description="Vendor must confirm the quantity on site"
    )


class MaterialEntry(BaseModel):
    item: str
    qty: float = Field(..., ge=0)
    unit: str
    cost: int = Field(..., ge=0, description="Extended material cost in cents")


class LaborEntry(BaseModel):
    role: str
    hours: float = Field(..., ge=0)
    hourly_rate: int = Field(..., ge=0, description="Rate in cents per hour")


class PermitEntry(BaseModel):
    required: bool
    note: str


class DisposalInfo(BaseModel):
    required: bool
    notes: str


class Narrative(BaseModel):
    existing_conditions: str
    project_description: str
    scope_of_work: List[str] = Field(default_factory=list)


class Diagnostics(BaseModel):
    detected_service: str
    detected_issues: List[str] = Field(default_factory=list)
    confidence_overall: float = Field(..., ge=0, le=1)
    data_sources_used: List[DataSource] = Field(default_factory=list)


class HistoricalRange(BaseModel):
    """Actual-cost spread of the precedents used, in cents."""

    job_count: int = Field(..., ge=1)
    min_cost: Optional[int] = None
    median_cost: Optional[int] = None
    max_cost: Optional[int] = None
    median_hours: Optional[float] = None


class CostBreakdown(BaseModel):
    """Every figure in cents except hours."""

    labor_hours: float = Field(..., ge=0)
    hourly_rate: int = Field(..., ge=0)
    base_labor_cost: int = Field(..., ge=0)
    regional_multiplier: float = Field(..., gt=0)
    regional_label: str
    adjustment_percent: int
    labor_cost: int = Field(..., ge=0)
    material_cost: int = Field(..., ge=0)
    add_on_fees: int = Field(default=0, ge=0)
    subtotal: int = Field(..., ge=0)
    tax: SalesTaxResult
    urgency_fee: int = Field(default=0, ge=0)
    total: int = Field(..., ge=0)


class StructuredScope(BaseModel):
    summary: str
    service_intent: ServiceIntent
    service_type: str
    subcategory: str
    complexity: Complexity
    recommended_vendor_type: str
    narrative: Optional[Narrative] = None
    line_items: List[LineItem] = Field(default_factory=list)
    materials: List[MaterialEntry] = Field(default_factory=list)
    labor: List[LaborEntry] = Field(default_factory=list)
    permits: PermitEntry
    disposal: DisposalInfo
    acceptance_criteria: List[str] = Field(default_factory=list)
    photos_required_after: List[str] = Field(default_factory=list)
    clarifications: List[str] = Field(default_factory=list)
    cost: Optional[CostBreakdown] = Field(
        default=None, description="None when nothing could be priced; see clarifications"
    )
    historical_range: Optional[HistoricalRange] = None
    diagnostics: Diagnostics

    @property
    def estimated_man_hours(self) -> Optional[float]:
        return self.cost.labor_hours if self.cost else None

    @property
    def estimated_cost(self) -> Optional[int]:
        return self.cost.total if self.cost else None
