"""Unit tests for the production standard table."""

import pytest

from config.errors import ErrorCode, NoMatchingStandardError
from models.production_standard import ProductionStandard, UnitOfMeasure
from services.production_standards import ProductionStandardTable
from services.quantity_extractor import Quantity


@pytest.fixture
def table():
    return ProductionStandardTable()


class TestProductionStandardModel:
    """Tests for the ProductionStandard row model."""

    def test_requires_a_rate(self):
        with pytest.raises(ValueError):
            ProductionStandard(
                service_type="Plumbing",
                subcategory="Faucet Repair",
                item_description="Nothing",
                unit_of_measure=UnitOfMeasure.EACH,
            )


class TestLookup:
    """Tests for ProductionStandardTable.lookup."""

    def test_case_insensitive(self, table):
        rows = table.lookup("plumbing", "leak detection")
        assert len(rows) == 3
        assert all(row.subcategory == "Leak Detection" for row in rows)

    def test_no_match_raises(self, table):
        with pytest.raises(NoMatchingStandardError) as exc_info:
            table.lookup("Plumbing", "Water Heater Replacement")
        assert exc_info.value.code == ErrorCode.NO_MATCHING_STANDARD
        assert exc_info.value.details["subcategory"] == "Water Heater Replacement"

    def test_from_records(self):
        table = ProductionStandardTable.from_records([{
            "service_type": "Roofing",
            "subcategory": "Gutter Cleaning",
            "item_description": "Gutter cleaning single story",
            "unit_of_measure": "linear_feet",
            "labor_hours_per_unit": 0.02,
        }])
        assert len(table) == 1
        assert table.lookup("Roofing", "Gutter Cleaning")[0].material_cost_per_unit is None


class TestGrouping:
    """Tests for combining rows into line items."""

    def test_labor_and_material_rows_combine(self, table):
        groups = table.group(table.lookup("Plumbing", "Leak Detection"))

        assert [g.item_description for g in groups] == [
            "Leak diagnosis and pipe section repair",
            "Supply line replacement under sink",
        ]
        assert groups[0].labor_hours_per_unit == 1.5
        assert groups[0].material_cost_per_unit == 4500


class TestSelectLineItem:
    """Tests for select_line_item."""

    def test_unit_must_match_quantity(self, table):
        rows = table.lookup("Deck Building", "Deck Construction")

        selection = table.select_line_item(rows, Quantity(40, UnitOfMeasure.LINEAR_FEET), "")

        assert selection.group.item_description == "Deck railing"
        assert selection.quantity == 40
        assert selection.quantity_assumed is False

    def test_word_overlap_picks_material(self, table):
        rows = table.lookup("Deck Building", "Deck Construction")
        quantity = Quantity(192, UnitOfMeasure.SQUARE_FEET)

        composite = table.select_line_item(rows, quantity, "Composite")
        treated = table.select_line_item(rows, quantity, "Pressure-treated wood")

        assert composite.group.item_description == "Composite deck framing and decking"
        assert treated.group.item_description == "Pressure-treated deck framing and decking"
        assert treated.group.labor_hours_per_unit == 0.25
        assert treated.group.material_cost_per_unit == 1500

    def test_tie_goes_to_table_order(self, table):
        rows = table.lookup("Landscaping", "Fence Installation")

        selection = table.select_line_item(rows, Quantity(100, UnitOfMeasure.LINEAR_FEET), "6 ft")

        assert selection.group.item_description == "Vinyl fence 6ft privacy"

    def test_each_rows_default_to_one_unit(self, table):
        rows = table.lookup("Plumbing", "Leak Detection")

        selection = table.select_line_item(rows, None, "Behind a wall, copper pipe section")

        assert selection.group.item_description == "Leak diagnosis and pipe section repair"
        assert selection.quantity == 1.0
        assert selection.quantity_assumed is True

    def test_mismatched_unit_falls_back_to_each(self, table):
        rows = table.lookup("Electrical", "Outlet Repair")

        selection = table.select_line_item(rows, Quantity(12, UnitOfMeasure.LINEAR_FEET), "")

        assert selection.group.unit_of_measure == UnitOfMeasure.EACH
        assert selection.quantity_assumed is True

    def test_nothing_priceable_without_quantity(self, table):
        rows = table.lookup("Deck Building", "Deck Construction")
        assert table.select_line_item(rows, None, "Composite") is None
