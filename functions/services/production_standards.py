"""Production standard table and line-item selection."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from config.errors import NoMatchingStandardError
from models.production_standard import ProductionStandard, UnitOfMeasure
from services.quantity_extractor import Quantity
from services.reference_data import PRODUCTION_STANDARDS

logger = structlog.get_logger()

_WORD = re.compile(r"[a-z0-9]+")


def _words(text: str) -> set:
    return {word for word in _WORD.findall(text.lower()) if len(word) > 2}


@dataclass(frozen=True)
class StandardGroup:
    """Rows sharing one item description, priced together.

    A labor-only row and a material-only row for the same item combine into
    one line item.
    """

    item_description: str
    unit_of_measure: UnitOfMeasure
    labor_hours_per_unit: float
    material_cost_per_unit: int

    @classmethod
    def from_rows(cls, rows: Sequence[ProductionStandard]) -> "StandardGroup":
        first = rows[0]
        return cls(
            item_description=first.item_description,
            unit_of_measure=first.unit_of_measure,
            labor_hours_per_unit=sum(r.labor_hours_per_unit or 0.0 for r in rows),
            material_cost_per_unit=sum(r.material_cost_per_unit or 0 for r in rows),
        )


@dataclass(frozen=True)
class LineItemSelection:
    group: StandardGroup
    quantity: float
    quantity_assumed: bool


class ProductionStandardTable:
    """Read-only lookup over production standard rows."""

    def __init__(self, rows: Iterable[ProductionStandard] = PRODUCTION_STANDARDS):
        self._rows: Tuple[ProductionStandard, ...] = tuple(rows)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "ProductionStandardTable":
        """Build a table from stored documents (snake_case field names)."""
        return cls(ProductionStandard.model_validate(record) for record in records)

    def __len__(self) -> int:
        return len(self._rows)

    def lookup(self, service_type: str, subcategory: str) -> List[ProductionStandard]:
        """Rows for a (service type, subcategory) pair, case-insensitive.

        Raises:
            NoMatchingStandardError: If no row matches.
        """
        service_key = service_type.strip().lower()
        subcategory_key = subcategory.strip().lower()
        rows = [
            row for row in self._rows
            if row.service_type.lower() == service_key and row.subcategory.lower() == subcategory_key
        ]
        if not rows:
            raise NoMatchingStandardError(service_type, subcategory)
        return rows

    @staticmethod
    def group(rows: Sequence[ProductionStandard]) -> List[StandardGroup]:
        """Group rows by (item description, unit), keeping first-seen order."""
        grouped: Dict[Tuple[str, UnitOfMeasure], List[ProductionStandard]] = {}
        for row in rows:
            grouped.setdefault((row.item_description.lower(), row.unit_of_measure), []).append(row)
        return [StandardGroup.from_rows(group_rows) for group_rows in grouped.values()]

    @classmethod
    def select_line_item(
        cls,
        rows: Sequence[ProductionStandard],
        quantity: Optional[Quantity],
        context: str
    ) -> Optional[LineItemSelection]:
        """Pick the group to price.

        Only groups whose unit matches the extracted quantity are eligible;
        with no quantity, "each" groups default to one unit. Among eligible
        groups the best word overlap with the context wins, ties going to
        table order. Returns None when nothing can be priced.
        """
        groups = cls.group(rows)
        if quantity is not None:
            eligible = [g for g in groups if g.unit_of_measure == quantity.unit]
            amount, assumed = quantity.value, False
        else:
            eligible = []
        if not eligible:
            eligible = [g for g in groups if g.unit_of_measure == UnitOfMeasure.EACH]
            amount, assumed = 1.0, True
        if not eligible:
            return None

        context_words = _words(context)
        best = max(
            enumerate(eligible),
            key=lambda pair: (len(_words(pair[1].item_description) & context_words), -pair[0]),
        )[1]

        logger.debug(
            "line_item_selected",
            item=best.item_description,
            quantity=amount,
            unit=best.unit_of_measure.value,
            quantity_assumed=assumed
        )
        return LineItemSelection(group=best, quantity=amount, quantity_assumed=assumed)
