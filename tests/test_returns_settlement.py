"""
Tests for settlement calculation.

These are pure functions, so most tests need no database.
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from apps.returns import settlement


@dataclass
class Line:
    quantity: int
    original_unit_price: Decimal = Decimal("0.00")
    unit_price: Decimal = Decimal("0.00")


class TestTotals:
    """Test return and exchange totals."""

    def test_return_total_sums_quantity_times_original_price(self):
        items = [
            Line(quantity=2, original_unit_price=Decimal("100.00")),
            Line(quantity=1, original_unit_price=Decimal("250.00")),
        ]
        assert settlement.return_total(items) == Decimal("450.00")

    def test_exchange_total_sums_quantity_times_unit_price(self):
        items = [{"quantity": 3, "unit_price": "19.99"}, {"quantity": 1, "unit_price": "5"}]
        assert settlement.exchange_total(items) == Decimal("64.97")

    def test_empty_totals_are_zero(self):
        assert settlement.return_total([]) == Decimal("0.00")
        assert settlement.exchange_total([]) == Decimal("0.00")

    def test_money_is_rounded_half_up(self):
        assert settlement.to_money("2.345") == Decimal("2.35")
        assert settlement.to_money(1.005) == Decimal("1.01")
        assert settlement.line_amount(3, "0.335") == Decimal("1.02")


class TestPriceDifference:
    """Test the sign convention of the price difference."""

    def test_customer_owes_when_exchange_costs_more(self):
        result = settlement.settle(
            [Line(quantity=1, original_unit_price=Decimal("100.00"))],
            [Line(quantity=1, unit_price=Decimal("130.00"))],
            is_exchange=True,
        )
        assert result.price_difference == Decimal("30.00")
        assert result.customer_owes == Decimal("30.00")
        assert result.store_owes == Decimal("0.00")

    def test_store_owes_when_exchange_costs_less(self):
        result = settlement.settle(
            [Line(quantity=2, original_unit_price=Decimal("50.00"))],
            [Line(quantity=1, unit_price=Decimal("80.00"))],
            is_exchange=True,
        )
        assert result.price_difference == Decimal("-20.00")
        assert result.customer_owes == Decimal("0.00")
        assert result.store_owes == Decimal("20.00")

    def test_even_exchange(self):
        result = settlement.settle(
            [Line(quantity=1, original_unit_price=Decimal("40.00"))],
            [Line(quantity=2, unit_price=Decimal("20.00"))],
            is_exchange=True,
        )
        assert result.price_difference == Decimal("0.00")
        assert result.customer_owes == result.store_owes == Decimal("0.00")

    def test_refund_has_no_price_difference(self):
        result = settlement.settle([Line(quantity=3, original_unit_price=Decimal("10.00"))])
        assert result.price_difference is None
        assert result.refund_amount == Decimal("30.00")
        assert result.store_owes == Decimal("30.00")
        assert result.exchange_total == Decimal("0.00")

    def test_exchange_lines_ignored_for_refunds(self):
        result = settlement.settle(
            [Line(quantity=1, original_unit_price=Decimal("10.00"))],
            [Line(quantity=1, unit_price=Decimal("99.00"))],
            is_exchange=False,
        )
        assert result.exchange_total == Decimal("0.00")
        assert result.price_difference is None

    def test_as_dict_renders_strings(self):
        data = settlement.settle(
            [Line(quantity=1, original_unit_price=Decimal("10.00"))],
            [Line(quantity=1, unit_price=Decimal("12.50"))],
            is_exchange=True,
        ).as_dict()
        assert data == {
            "is_exchange": True,
            "return_total": "10.00",
            "exchange_total": "12.50",
            "price_difference": "2.50",
            "refund_amount": "0.00",
            "customer_owes": "2.50",
            "store_owes": "0.00",
        }


@pytest.mark.django_db
class TestSettlementForReturn:
    """A persisted return re-derives the settlement it was created with."""

    def test_settlement_round_trips_through_persisted_return(self, sale, sale_items, bracelet, cashier):
        from apps.returns.repository import ReturnRepository
        from apps.returns.submissions import (
            ExchangeLine,
            ExchangeTerms,
            ReturnLine,
            ReturnSubmission,
        )

        ring_line = sale_items["Gold Ring"]
        submission = ReturnSubmission(
            sale_id=sale.pk,
            items=(ReturnLine(ring_line.pk, 2),),
            reason="EXCHANGE",
            terms=ExchangeTerms((ExchangeLine(bracelet.pk, 3),)),
        )
        return_request = ReturnRepository.create(submission, cashier)

        result = return_request.get_settlement()
        assert result.return_total == return_request.total_amount == Decimal("200.00")
        assert result.exchange_total == Decimal("240.00")
        assert result.price_difference == return_request.price_difference == Decimal("40.00")
