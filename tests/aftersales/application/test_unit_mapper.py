"""Application tests for resolving returned unit codes against an order."""

import asyncio

import pytest
from aftersales.returns.unit_mapper import UnitMapper, known_units
from shared.errors import NotFoundError
from shared.orders import Order


class TestKnownUnits:
    def test_precedence_and_placeholders(self, backend):
        order = Order.from_payload(backend.orders["ord-100"])
        units = known_units(order)

        assert units["KB-0001"].is_placeholder is False
        assert units["MS-0001"].order_item_id == "oi-2"
        assert units["HD-0001"].is_placeholder is False
        assert units["ORD-100-prod-cb-1"].is_placeholder is True
        assert units["ORD-100-prod-cb-2"].order_item_id == "oi-3"

    def test_base_code_on_multi_quantity_line_gets_suffixes(self):
        order = Order.from_payload(
            {
                "id": "ord-7",
                "order_number": "ORD-7",
                "items": [{"id": "oi-1", "product_id": "p-1", "quantity": 2, "unit_code": "TEE-RED"}],
            }
        )
        assert sorted(known_units(order)) == ["TEE-RED-1", "TEE-RED-2"]

    def test_consumed_unit_is_authoritative(self):
        order = Order.from_payload(
            {
                "id": "ord-8",
                "items": [{"id": "oi-1", "product_id": "p-1", "quantity": 1, "consumed_unit": "SCAN-1"}],
            }
        )
        assert known_units(order)["SCAN-1"].is_placeholder is False


class TestResolve:
    def test_shortfall_is_a_warning_not_an_error(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["MS-0001"], {"oi-2": 2}))

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == ["Wireless Mouse: Trying to return 2 but only 1 available"]
        assert len(result.mapped_items) == 1
        assert result.mapped_items[0].quantity == 1

    def test_requested_more_than_supplied(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["ORD-100-prod-cb-1"], {"oi-3": 2}))
        assert result.valid is True
        assert result.warnings == ["USB-C Cable: Requested 2 but only 1 unit code(s) supplied"]

    def test_codes_map_in_order_line_order(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["HD-0001", " KB-0001 ", ""]))
        assert [m.order_item_id for m in result.mapped_items] == ["oi-1", "oi-4"]
        assert result.total_quantity == 2

    def test_unknown_code_invalidates_mapping(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["KB-0001", "NOPE-1"]))
        assert result.valid is False
        assert result.errors == ["Unit NOPE-1 does not belong to order ORD-100"]

    def test_duplicate_code(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["KB-0001", "KB-0001"]))
        assert result.valid is False
        assert "Unit KB-0001 is listed more than once" in result.errors

    def test_unknown_requested_item(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["KB-0001"], {"oi-9": 1}))
        assert result.valid is False
        assert result.errors == ["Order item oi-9 is not part of order ORD-100"]

    def test_no_codes(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["  "]))
        assert result.valid is False
        assert result.errors == ["No returnable units were supplied"]

    def test_placeholders_are_flagged(self, mapper):
        result = asyncio.run(mapper.resolve("ord-100", ["ORD-100-prod-cb-2"]))
        assert result.mapped_items[0].placeholder_codes == ["ORD-100-prod-cb-2"]

        items = UnitMapper.to_return_items(result)
        assert items == [
            {
                "order_item_id": "oi-3",
                "product_id": "prod-cb",
                "product_name": "USB-C Cable",
                "quantity": 1,
                "unit_price": 10.0,
                "unit_code": "ORD-100-prod-cb-2",
                "is_placeholder": True,
            }
        ]

    def test_already_returned_code(self, mapper, returns):
        asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        result = asyncio.run(mapper.resolve("ord-100", ["KB-0001"]))

        assert result.valid is False
        assert result.errors == ["Unit KB-0001 has already been returned"]

    def test_unknown_order(self, mapper):
        with pytest.raises(NotFoundError):
            asyncio.run(mapper.resolve("ord-404", ["KB-0001"]))


class TestEligibility:
    def test_eligible_items_track_returned_quantity(self, mapper, returns):
        asyncio.run(returns.create_from_codes("ord-100", ["ORD-100-prod-cb-1"], "changed_mind"))
        eligible = {e["order_item_id"]: e for e in asyncio.run(mapper.eligible_items("ord-100"))}

        cable = eligible["oi-3"]
        assert cable["ordered_quantity"] == 2
        assert cable["returned_quantity"] == 1
        assert cable["available_quantity"] == 1
        assert {u["code"]: u["is_returned"] for u in cable["units"]} == {
            "ORD-100-prod-cb-1": True,
            "ORD-100-prod-cb-2": False,
        }
        assert eligible["oi-1"]["available_quantity"] == 1

    def test_check_code(self, mapper):
        found = asyncio.run(mapper.check_code("ord-100", "KB-0001"))
        assert found["found"] is True
        assert found["can_return"] is True
        assert found["product_name"] == "Mechanical Keyboard"

        missing = asyncio.run(mapper.check_code("ord-100", "ZZZ"))
        assert missing["found"] is False
        assert missing["can_return"] is False
