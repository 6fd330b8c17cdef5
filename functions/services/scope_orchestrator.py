"""Estimation orchestrator.

Composes classification, answers, production standards, precedents,
regional pricing and sales tax into a StructuredScope.

Cost composition (all money in integer cents):
    labor hours     = standard hours, blended with precedent median hours
    base labor      = hours x vendor hourly rate
    labor cost      = base labor x regional multiplier
    subtotal        = labor cost + material cost + add-on fees
    tax             = sales tax on the subtotal (regime dependent)
    urgency fee     = subtotal x urgent fee percent, never taxed
    total           = subtotal + tax + urgency fee

The arithmetic is deterministic: identical inputs give identical figures.
A request nothing can price yields a scope with clarifications and no cost,
never a zero-cost scope.
"""

from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence

import structlog

from config.errors import NoMatchingStandardError
from config.settings import settings
from models.completed_job import CompletedJob
from models.intent import IntentClassification, ServiceIntent
from models.production_standard import ProductionStandard, UnitOfMeasure
from models.questions import DynamicQuestion
from models.scope import (
    Complexity,
    CostBreakdown,
    DataSource,
    Diagnostics,
    DisposalInfo,
    HistoricalRange,
    LaborEntry,
    LineItem,
    MaterialEntry,
    Narrative,
    PermitEntry,
    StructuredScope,
)
from models.service_request import ServiceRequest
from models.tax import SalesTaxInput
from services.precedent_matcher import blend_weight, find_precedents, summarize_precedents
from services.production_standards import LineItemSelection, ProductionStandardTable
from services.quantity_extractor import extract_quantity
from services.question_selector import missing_required_questions
from services.regional_pricing import apply_regional_pricing, parse_location
from services.sales_tax import calculate_sales_tax
from utils.money import format_cents, round_half_up

logger = structlog.get_logger()


# =============================================================================
# REFERENCE TABLES
# =============================================================================

HOURLY_RATES = MappingProxyType({
    "Licensed Electrician": 9500,
    "Licensed Plumber": 8500,
    "Licensed HVAC Technician": 10000,
    "Licensed Electrical Specialist": 9500,
    "Licensed Plumbing Specialist": 8500,
    "Licensed HVAC Specialist": 10000,
    "Plumbing Contractor": 7500,
    "Electrical Contractor": 7500,
    "HVAC Contractor": 8500,
    "Landscaping Contractor": 6500,
    "Handyman": 4000,
    "Handyman or Licensed Plumber": 4000,
    "Handyman or Licensed Electrician": 4000,
    "General Contractor": 7000,
})

ADD_ON_FEES = MappingProxyType({
    "Landscaping": ("Mobilization/trip fee", 5000),
})

HIGH_COMPLEXITY_PATTERNS = (
    "panel upgrade", "fence installation", "water heater", "gas line", "main line",
    "sewer", "hvac installation", "furnace replacement", "ac replacement", "unit replacement",
)
LOW_COMPLEXITY_PATTERNS = (
    "switch replacement", "switch repair", "faucet repair", "faucet replace", "repair faucet",
    "fix faucet", "outlet repair", "outlet replace", "repair outlet", "toilet repair",
    "toilet fix", "repair toilet", "drain clean", "drain clear", "unclog", "clog",
    "ac repair", "heating repair", "furnace repair", "thermostat",
)
LICENSED_PLUMBING_TERMS = ("gas", "water heater", "main line", "sewer", "backflow", "water line")
HANDYMAN_PLUMBING_TERMS = ("faucet", "toilet", "drain", "sink", "garbage disposal", "unclog", "leak")

PERMIT_REQUIRED_PATTERNS = (
    "panel upgrade", "water heater", "gas line", "deck construction", "fence installation",
    "roof replacement", "hvac installation", "furnace replacement", "ac replacement",
    "unit replacement",
)

ACCEPTANCE_CRITERIA = MappingProxyType({
    "Plumbing": ("No visible leaks after 15 minutes at normal water pressure",
                 "Fixtures drain and shut off fully"),
    "HVAC": ("System reaches the thermostat set point",
             "No error codes, unusual noises or odors on startup"),
    "Electrical": ("Repaired devices test live with correct polarity",
                   "Breaker holds under normal load"),
    "Deck Building": ("Framing is level and fastened to code",
                      "Railings and stairs are solid with no movement"),
    "Landscaping": ("Work area raked clean and debris removed",),
    "Painting": ("Even coverage with no drips, holidays or lap marks",
                 "Trim lines are clean and floors are free of paint"),
})

UNIT_LABELS = MappingProxyType({
    UnitOfMeasure.EACH: "each",
    UnitOfMeasure.SQUARE_FEET: "sq ft",
    UnitOfMeasure.SQUARE_YARDS: "sq yd",
    UnitOfMeasure.LINEAR_FEET: "linear ft",
    UnitOfMeasure.CUBIC_FEET: "cu ft",
    UnitOfMeasure.CUBIC_YARDS: "cu yd",
    UnitOfMeasure.SQUARES: "roofing squares",
    UnitOfMeasure.HOURS: "hours",
})


# =============================================================================
# RULES
# =============================================================================


def assess_complexity(subcategory: str) -> Complexity:
    normalized = subcategory.lower()
    if any(pattern in normalized for pattern in HIGH_COMPLEXITY_PATTERNS):
        return Complexity.HIGH
    if any(pattern in normalized for pattern in LOW_COMPLEXITY_PATTERNS):
        return Complexity.LOW
    return Complexity.MEDIUM


def recommend_vendor_type(service_type: str, subcategory: str, complexity: Complexity) -> str:
    normalized = subcategory.lower()

    if complexity == Complexity.HIGH:
        return f"Licensed {service_type} Specialist"

    if service_type == "Electrical":
        return "Handyman or Licensed Electrician" if complexity == Complexity.LOW else "Licensed Electrician"

    if service_type == "HVAC":
        return "Licensed HVAC Technician"

    if service_type == "Plumbing":
        if any(term in normalized for term in LICENSED_PLUMBING_TERMS):
            return "Licensed Plumber"
        if any(term in normalized for term in HANDYMAN_PLUMBING_TERMS):
            return "Handyman or Licensed Plumber"
        return "Licensed Plumber"

    if complexity == Complexity.LOW:
        return "Handyman"

    return f"{service_type} Contractor"


def get_hourly_rate(vendor_type: str, default: Optional[int] = None) -> int:
    """Hourly rate in cents; unknown vendor types get the default rate."""
    fallback = default if default is not None else settings.default_hourly_rate_cents
    return HOURLY_RATES.get(vendor_type, fallback)


def assess_permits(service_type: str, subcategory: str) -> PermitEntry:
    normalized = subcategory.lower()
    if any(pattern in normalized for pattern in PERMIT_REQUIRED_PATTERNS):
        return PermitEntry(
            required=True,
            note=f"{subcategory} typically requires a permit; vendor to pull it with the local building department",
        )
    return PermitEntry(
        required=False,
        note="Not typically required for this work; vendor to verify with the local jurisdiction",
    )


def assess_disposal(intent: ServiceIntent) -> DisposalInfo:
    if intent == ServiceIntent.INSTALLATION:
        return DisposalInfo(
            required=True,
            notes="Haul away construction debris, packaging and any removed materials",
        )
    return DisposalInfo(
        required=False,
        notes="Minimal debris; vendor removes replaced parts and packaging",
    )


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class ScopeOrchestrator:
    """Builds StructuredScopes from classified, answered requests."""

    def __init__(
        self,
        standards: Optional[ProductionStandardTable] = None,
        urgent_fee_percent: Optional[int] = None,
        precedent_limit: Optional[int] = None
    ):
        self.standards = standards if standards is not None else ProductionStandardTable()
        self.urgent_fee_percent = (
            urgent_fee_percent if urgent_fee_percent is not None else settings.urgent_fee_percent
        )
        self.precedent_limit = precedent_limit or settings.precedent_limit

    def _matching_rows(
        self,
        service_type: str,
        subcategories: Sequence[str]
    ) -> List[ProductionStandard]:
        for subcategory in subcategories:
            try:
                return self.standards.lookup(service_type, subcategory)
            except NoMatchingStandardError as e:
                logger.info("production_standard_not_found", **e.details)
        return []

    def generate_scope(
        self,
        request: ServiceRequest,
        classification: IntentClassification,
        answers: Mapping[str, str],
        questions: Sequence[DynamicQuestion] = (),
        historical_jobs: Iterable[CompletedJob] = (),
        resolved_subcategory: Optional[str] = None
    ) -> StructuredScope:
        """Generate the structured scope for a request.

        Args:
            request: The original service request.
            classification: Intent classification for the request.
            answers: Current answer per question id, in the order answered.
            questions: The question set the answers belong to.
            historical_jobs: Completed jobs to draw precedents from.
            resolved_subcategory: Subcategory the question selector settled on.

        Returns:
            StructuredScope. Unpriceable requests carry clarifications and
            no cost breakdown.
        """
        service_type = classification.service_type
        subcategory = classification.subcategory
        clarifications: List[str] = []

        if classification.clarifier:
            clarifications.append(classification.clarifier)
        for question in missing_required_questions(questions, answers):
            clarifications.append(f"Please answer: {question.question_text}")

        subcategories = [subcategory]
        if resolved_subcategory and resolved_subcategory.lower() != subcategory.lower():
            subcategories.append(resolved_subcategory)
        rows = self._matching_rows(service_type, subcategories)

        texts = [value for value in answers.values() if value] + [request.description]
        quantity = extract_quantity(texts)

        selection: Optional[LineItemSelection] = None
        if not rows:
            clarifications.append(
                f"No pricing standard covers {service_type} / {subcategory}. "
                "Please describe the work in more detail so a vendor can price it."
            )
        else:
            selection = self.standards.select_line_item(rows, quantity, " ".join(texts))
            if selection is None:
                units = sorted({UNIT_LABELS[row.unit_of_measure] for row in rows})
                clarifications.append(
                    f"Please provide the size of the job ({' or '.join(units)}) so it can be priced."
                )

        precedents = find_precedents(
            historical_jobs, service_type, subcategory, answers, limit=self.precedent_limit
        )
        precedent_summary = summarize_precedents(precedents)

        complexity = assess_complexity(subcategory)
        vendor_type = recommend_vendor_type(service_type, subcategory, complexity)
        hourly_rate = get_hourly_rate(vendor_type)

        line_items: List[LineItem] = []
        materials: List[MaterialEntry] = []
        labor_hours: Optional[float] = None
        material_cost = 0
        used_precedents = False

        if selection is not None:
            group = selection.group
            standard_hours = group.labor_hours_per_unit * selection.quantity
            material_cost = round_half_up(group.material_cost_per_unit * selection.quantity)
            unit = group.unit_of_measure.value
            line_items.append(LineItem(
                item=group.item_description,
                qty=selection.quantity,
                unit=unit,
                labor_hours=round(standard_hours, 2),
                material_cost=material_cost,
                notes="Quantity assumed; vendor to confirm on site" if selection.quantity_assumed else "",
            ))
            if material_cost > 0:
                materials.append(MaterialEntry(
                    item=f"Materials for {group.item_description.lower()}",
                    qty=selection.quantity,
                    unit=unit,
                    cost=material_cost,
                ))
            labor_hours = standard_hours
            if precedent_summary and precedent_summary.median_hours is not None:
                weight = blend_weight(precedent_summary.job_count)
                labor_hours = standard_hours * (1 - weight) + precedent_summary.median_hours * weight
                used_precedents = True
        elif precedent_summary and precedent_summary.median_hours is not None:
            labor_hours = precedent_summary.median_hours
            used_precedents = True
            clarifications.append(
                f"Labor is based on {precedent_summary.job_count} similar completed job(s); "
                "materials to be quoted by the vendor."
            )

        cost: Optional[CostBreakdown] = None
        if labor_hours is not None:
            cost = self._compose_cost(
                request, service_type, round(labor_hours, 2), hourly_rate, material_cost
            )

        data_sources: List[DataSource] = []
        if rows:
            data_sources.append(DataSource.PRODUCTION_STANDARDS)
        if used_precedents:
            data_sources.append(DataSource.HISTORICAL_JOBS)

        historical_range = None
        if precedent_summary is not None:
            historical_range = HistoricalRange(
                job_count=precedent_summary.job_count,
                min_cost=precedent_summary.min_cost,
                median_cost=precedent_summary.median_cost,
                max_cost=precedent_summary.max_cost,
                median_hours=precedent_summary.median_hours,
            )

        labor = []
        if cost is not None:
            labor.append(LaborEntry(role=vendor_type, hours=cost.labor_hours, hourly_rate=hourly_rate))

        disposal = assess_disposal(classification.service_intent)
        question_types = {q.id: q.response_type.value for q in questions}
        detected_issues = [
            value for question_id, value in answers.items()
            if value and question_types.get(question_id) == "choice"
        ]

        scope = StructuredScope(
            summary=self._summary(subcategory, service_type, line_items, cost),
            service_intent=classification.service_intent,
            service_type=service_type,
            subcategory=subcategory,
            complexity=complexity,
            recommended_vendor_type=vendor_type,
            narrative=self._narrative(request, classification, line_items, disposal),
            line_items=line_items,
            materials=materials,
            labor=labor,
            permits=assess_permits(service_type, subcategory),
            disposal=disposal,
            acceptance_criteria=list(ACCEPTANCE_CRITERIA.get(service_type, ())) + [
                "Work area left clean and safe",
            ],
            photos_required_after=["Completed work area"] + [item.item for item in line_items],
            clarifications=clarifications,
            cost=cost,
            historical_range=historical_range,
            diagnostics=Diagnostics(
                detected_service=f"{service_type} / {subcategory}",
                detected_issues=detected_issues,
                confidence_overall=classification.confidence,
                data_sources_used=data_sources,
            ),
        )

        logger.info(
            "scope_generated",
            service_type=service_type,
            subcategory=subcategory,
            priced=cost is not None,
            total=cost.total if cost else None,
            clarifications=len(clarifications),
            data_sources=[source.value for source in data_sources]
        )
        return scope

    def _compose_cost(
        self,
        request: ServiceRequest,
        service_type: str,
        labor_hours: float,
        hourly_rate: int,
        material_cost: int
    ) -> CostBreakdown:
        base_labor_cost = round_half_up(labor_hours * hourly_rate)
        location = parse_location(request.address)
        labor_cost, regional = apply_regional_pricing(base_labor_cost, location)

        add_on = ADD_ON_FEES.get(service_type)
        add_on_fees = add_on[1] if add_on else 0
        subtotal = labor_cost + material_cost + add_on_fees

        tax = calculate_sales_tax(SalesTaxInput(
            state=location.state,
            service_type=service_type,
            subtotal=subtotal,
            labor_cost=labor_cost,
            material_cost=material_cost,
        ))

        urgency_fee = 0
        if request.urgent:
            urgency_fee = round_half_up(subtotal * self.urgent_fee_percent / 100)

        return CostBreakdown(
            labor_hours=labor_hours,
            hourly_rate=hourly_rate,
            base_labor_cost=base_labor_cost,
            regional_multiplier=regional.multiplier,
            regional_label=regional.label,
            adjustment_percent=regional.adjustment_percent,
            labor_cost=labor_cost,
            material_cost=material_cost,
            add_on_fees=add_on_fees,
            subtotal=subtotal,
            tax=tax,
            urgency_fee=urgency_fee,
            total=subtotal + tax.tax_amount + urgency_fee,
        )

    @staticmethod
    def _summary(
        subcategory: str,
        service_type: str,
        line_items: Sequence[LineItem],
        cost: Optional[CostBreakdown]
    ) -> str:
        parts = [f"{subcategory} ({service_type})"]
        if line_items:
            item = line_items[0]
            parts.append(f"{item.item}, {item.qty:g} {item.unit.replace('_', ' ')}")
        if cost is None:
            parts.append("pricing pending clarification")
        else:
            parts.append(f"about {cost.labor_hours:g} labor hours, estimated total {format_cents(cost.total)}")
        return "; ".join(parts) + "."

    @staticmethod
    def _narrative(
        request: ServiceRequest,
        classification: IntentClassification,
        line_items: Sequence[LineItem],
        disposal: DisposalInfo
    ) -> Narrative:
        verb = "Install" if classification.service_intent == ServiceIntent.INSTALLATION else "Repair"
        steps = ["Inspect the site and confirm existing conditions"]
        for item in line_items:
            steps.append(f"Complete {item.item.lower()} ({item.qty:g} {item.unit.replace('_', ' ')})")
        steps.append("Test the completed work with the customer")
        if disposal.required:
            steps.append("Remove and dispose of debris")
        steps.append("Clean up the work area")
        return Narrative(
            existing_conditions=request.description,
            project_description=(
                f"{verb} work for {classification.subcategory.lower()} "
                f"({classification.service_type})"
            ),
            scope_of_work=steps,
        )


def format_scope_summary(scope: StructuredScope) -> str:
    """Plain-text, proposal-style rendering of a scope."""
    lines = [scope.summary, ""]
    lines.append(f"Service: {scope.service_type} / {scope.subcategory} ({scope.service_intent.value})")
    lines.append(f"Complexity: {scope.complexity.value}")
    lines.append(f"Recommended vendor: {scope.recommended_vendor_type}")

    if scope.line_items:
        lines.append("")
        lines.append("Line items:")
        for item in scope.line_items:
            lines.append(f"  - {item.item}: {item.qty:g} {item.unit.replace('_', ' ')}")

    if scope.cost is not None:
        cost = scope.cost
        lines.append("")
        lines.append(f"Labor: {cost.labor_hours:g} hrs @ {format_cents(cost.hourly_rate)}/hr = {format_cents(cost.base_labor_cost)}")
        if cost.adjustment_percent:
            sign = "+" if cost.adjustment_percent > 0 else ""
            lines.append(f"Regional adjustment ({cost.regional_label}): {sign}{cost.adjustment_percent}% -> {format_cents(cost.labor_cost)}")
        lines.append(f"Materials: {format_cents(cost.material_cost)}")
        if cost.add_on_fees:
            lines.append(f"Add-on fees: {format_cents(cost.add_on_fees)}")
        lines.append(f"Subtotal: {format_cents(cost.subtotal)}")
        lines.append(f"Sales tax ({cost.tax.notes}): {format_cents(cost.tax.tax_amount)}")
        if cost.urgency_fee:
            lines.append(f"Urgency fee: {format_cents(cost.urgency_fee)}")
        lines.append(f"Total: {format_cents(cost.total)}")

    lines.append("")
    lines.append(f"Permits: {scope.permits.note}")

    if scope.clarifications:
        lines.append("")
        lines.append("Needs clarification:")
        for clarification in scope.clarifications:
            lines.append(f"  - {clarification}")

    return "\n".join(lines)
