"""Sales tax calculator for home services.

Tax depends on the state's regime:
- no_tax: nothing is taxed
- broad: the full subtotal (including add-on fees) is taxed at the state rate
- selective: only commonly taxable service types are taxed, on labor plus
  materials, at the service override rate or the state rate

Rates are base state rates only; local rates are not included.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Optional

import structlog

from models.tax import SalesTaxInput, SalesTaxResult, ServiceTaxRule, TaxRegime
from utils.money import round_half_up

logger = structlog.get_logger()


STATE_TAX_RATES = MappingProxyType({
    "AL": 0.04, "AZ": 0.056, "AR": 0.065, "CA": 0.0725, "CO": 0.029,
    "CT": 0.0635, "DC": 0.06, "FL": 0.06, "GA": 0.04, "HI": 0.04,
    "ID": 0.06, "IL": 0.0625, "IN": 0.07, "IA": 0.06, "KS": 0.065,
    "KY": 0.06, "LA": 0.0445, "ME": 0.055, "MD": 0.06, "MA": 0.0625,
    "MI": 0.06, "MN": 0.0688, "MS": 0.07, "MO": 0.0423, "NE": 0.055,
    "NV": 0.0685, "NJ": 0.0663, "NM": 0.0513, "NY": 0.04, "NC": 0.0475,
    "ND": 0.05, "OH": 0.0575, "OK": 0.045, "PA": 0.06, "RI": 0.07,
    "SC": 0.06, "SD": 0.045, "TN": 0.07, "TX": 0.0625, "UT": 0.0485,
    "VT": 0.06, "VA": 0.053, "WA": 0.065, "WV": 0.06, "WI": 0.05,
    "WY": 0.04,
    "AK": 0.0, "DE": 0.0, "MT": 0.0, "NH": 0.0, "OR": 0.0,
})

NO_TAX_STATES = frozenset({"AK", "DE", "MT", "NH", "OR"})
BROAD_TAX_STATES = frozenset({"HI", "NM", "SD", "WV", "WA"})

SERVICE_TAX_RULES = MappingProxyType({
    rule.service_type: rule
    for rule in (
        ServiceTaxRule(
            service_type="Plumbing",
            is_commonly_taxable=True,
            notes="Repair and installation services typically taxable",
        ),
        ServiceTaxRule(
            service_type="Electrical",
            is_commonly_taxable=True,
            notes="Electrical repair and installation typically taxable",
        ),
        ServiceTaxRule(
            service_type="HVAC",
            is_commonly_taxable=True,
            notes="HVAC repair and installation typically taxable",
        ),
        ServiceTaxRule(
            service_type="Landscaping",
            is_commonly_taxable=False,
            notes="Landscaping services often exempt in many states",
        ),
        ServiceTaxRule(
            service_type="General Repair",
            is_commonly_taxable=True,
            notes="General repair services typically taxable",
        ),
    )
})


def _normalize_state(state: Optional[str]) -> Optional[str]:
    if not state or not state.strip():
        return None
    return state.strip().upper()


def get_tax_regime(state: Optional[str]) -> TaxRegime:
    """Classify a state's service tax regime."""
    code = _normalize_state(state)
    if code is None or code not in STATE_TAX_RATES:
        return TaxRegime.UNKNOWN
    if code in NO_TAX_STATES:
        return TaxRegime.NO_TAX
    if code in BROAD_TAX_STATES:
        return TaxRegime.BROAD
    return TaxRegime.SELECTIVE


def _tax_on(amount: int, rate: float) -> int:
    return round_half_up(Decimal(amount) * Decimal(str(rate)))


def _not_taxable(regime: TaxRegime, notes: str) -> SalesTaxResult:
    return SalesTaxResult(
        is_taxable=False,
        tax_rate=0.0,
        tax_amount=0,
        taxable_amount=0,
        regime=regime,
        notes=notes,
    )


def calculate_sales_tax(params: SalesTaxInput) -> SalesTaxResult:
    """Calculate sales tax for a service job.

    Args:
        params: State, service type, and subtotal/labor/material in cents.
            The subtotal includes add-on fees; labor and material do not.

    Returns:
        SalesTaxResult with the taxable amount and tax owed in cents.
    """
    state = _normalize_state(params.state)
    if state is None:
        return _not_taxable(TaxRegime.UNKNOWN, "Location not specified")

    regime = get_tax_regime(state)

    if regime == TaxRegime.UNKNOWN:
        logger.warning("sales_tax_unknown_state", state=state)
        return _not_taxable(TaxRegime.UNKNOWN, f"Unrecognized state {state}")

    if regime == TaxRegime.NO_TAX:
        return _not_taxable(TaxRegime.NO_TAX, f"{state} has no general sales tax")

    state_rate = STATE_TAX_RATES[state]

    if regime == TaxRegime.BROAD:
        return SalesTaxResult(
            is_taxable=True,
            tax_rate=state_rate,
            tax_amount=_tax_on(params.subtotal, state_rate),
            taxable_amount=params.subtotal,
            regime=TaxRegime.BROAD,
            notes=f"{state} taxes most services",
        )

    rule = SERVICE_TAX_RULES.get(params.service_type)
    if rule is None or not rule.is_commonly_taxable:
        return _not_taxable(
            TaxRegime.SELECTIVE,
            f"{params.service_type} services often exempt in {state}",
        )

    # Add-on fees are excluded in selective states
    taxable_amount = params.labor_cost + params.material_cost
    rate = rule.override_rate if rule.override_rate is not None else state_rate
    return SalesTaxResult(
        is_taxable=True,
        tax_rate=rate,
        tax_amount=_tax_on(taxable_amount, rate),
        taxable_amount=taxable_amount,
        regime=TaxRegime.SELECTIVE,
        notes=rule.notes,
    )


def get_sales_tax_info(state: Optional[str] = None) -> str:
    """Human-readable tax summary for a state."""
    code = _normalize_state(state)
    if code is None:
        return "Tax calculated based on service location"

    regime = get_tax_regime(code)
    rate = STATE_TAX_RATES.get(code, 0.0)

    if regime == TaxRegime.NO_TAX:
        return f"{code} has no sales tax"
    if regime == TaxRegime.BROAD:
        return f"{code} applies {rate * 100:.2f}% sales tax to most services"
    if regime == TaxRegime.UNKNOWN:
        return f"{code} is not a recognized state"
    return f"{code} sales tax rate: {rate * 100:.2f}% (applies to some services)"


def is_service_taxable(state: Optional[str], service_type: str) -> bool:
    """Whether a service is likely taxable in a state."""
    regime = get_tax_regime(state)
    if regime == TaxRegime.BROAD:
        return True
    if regime == TaxRegime.SELECTIVE:
        rule = SERVICE_TAX_RULES.get(service_type)
        return bool(rule and rule.is_commonly_taxable)
    return False
