"""
Tests for the return draft state machine.
"""

from decimal import Decimal

import pytest

from apps.returns.drafts import DraftState, ReturnDraft
from apps.returns.exceptions import (
    InvalidTransitionError,
    NoValidItemsError,
    ReturnValidationError,
    SaleNotFoundError,
)
from apps.returns.models import Return
from apps.returns.submissions import ExchangeTerms, RefundTerms


@pytest.fixture
def draft(sale):
    draft = ReturnDraft()
    draft.select_sale(sale.sale_number)
    return draft


@pytest.mark.django_db
class TestSelectSale:
    def test_select_sale_moves_to_items(self, draft, sale):
        assert draft.state == DraftState.SELECT_ITEMS
        assert draft.sale.sale_id == sale.pk
        assert len(draft.lines) == 2
        assert all(not line.selected for line in draft.lines)

    def test_unknown_sale_stays_on_first_step(self, sale):
        draft = ReturnDraft()

        with pytest.raises(SaleNotFoundError):
            draft.select_sale("SALE-404")

        assert draft.state == DraftState.SELECT_SALE
        assert "sale" in draft.errors

    def test_sale_without_valid_items_blocks_draft(self, sale, ring, necklace):
        ring.delete()
        necklace.delete()
        draft = ReturnDraft()

        with pytest.raises(NoValidItemsError):
            draft.select_sale(sale.pk)
        assert draft.state == DraftState.SELECT_SALE

    def test_cannot_advance_without_sale(self):
        with pytest.raises(ReturnValidationError):
            ReturnDraft().advance()


@pytest.mark.django_db
class TestSelectItems:
    def test_toggle_defaults_to_full_quantity(self, draft, sale_items):
        line = draft.toggle_item(sale_items["Gold Ring"].pk)

        assert line.selected is True
        assert line.quantity == 2
        assert draft.return_total == Decimal("200.00")

    def test_toggle_twice_deselects(self, draft, sale_items):
        draft.toggle_item(sale_items["Gold Ring"].pk)
        line = draft.toggle_item(sale_items["Gold Ring"].pk)

        assert line.selected is False
        assert line.quantity == 0
        assert draft.returned_lines == []

    def test_quantity_is_clamped_to_returnable(self, draft, sale_items):
        ring_id = sale_items["Gold Ring"].pk

        assert draft.set_quantity(ring_id, 5).quantity == 2
        assert draft.set_quantity(ring_id, -3).quantity == 0

    def test_unknown_line_is_rejected(self, draft):
        with pytest.raises(ReturnValidationError) as exc_info:
            draft.set_quantity("not-a-line", 1)
        assert "items" in exc_info.value.errors

    def test_advance_requires_an_item(self, draft):
        with pytest.raises(ReturnValidationError) as exc_info:
            draft.advance()

        assert "items" in exc_info.value.errors
        assert draft.state == DraftState.SELECT_ITEMS

    def test_back_returns_to_sale_selection(self, draft):
        assert draft.back() == DraftState.SELECT_SALE
        assert draft.sale is None

    def test_cannot_set_reason_before_details(self, draft):
        with pytest.raises(InvalidTransitionError):
            draft.set_reason("DEFECTIVE")


@pytest.mark.django_db
class TestDetails:
    def _to_details(self, draft, sale_items):
        draft.set_quantity(sale_items["Gold Ring"].pk, 1)
        draft.advance()

    def test_refund_path_reaches_ready(self, draft, sale_items):
        self._to_details(draft, sale_items)
        draft.set_reason("Not Needed")
        draft.set_refund_method("store credit")
        draft.set_notes("  changed mind ")

        assert draft.advance() == DraftState.READY
        assert draft.reason == Return.NOT_NEEDED
        assert draft.refund_method == Return.STORE_CREDIT
        assert draft.notes == "changed mind"

    def test_reason_required(self, draft, sale_items):
        self._to_details(draft, sale_items)

        with pytest.raises(ReturnValidationError) as exc_info:
            draft.advance()
        assert "reason" in exc_info.value.errors

    def test_refund_method_required_for_refunds(self, draft, sale_items):
        self._to_details(draft, sale_items)
        draft.set_reason("DEFECTIVE")

        with pytest.raises(ReturnValidationError) as exc_info:
            draft.advance()
        assert "refund_method" in exc_info.value.errors

    def test_invalid_reason(self, draft, sale_items):
        self._to_details(draft, sale_items)

        with pytest.raises(ReturnValidationError) as exc_info:
            draft.set_reason("BORED")
        assert "reason" in exc_info.value.errors

    def test_exchange_reason_clears_refund_method(self, draft, sale_items):
        self._to_details(draft, sale_items)
        draft.set_reason("DEFECTIVE")
        draft.set_refund_method("CASH")

        draft.set_reason("EXCHANGE")

        assert draft.refund_method is None
        assert draft.advance() == DraftState.SELECT_EXCHANGE_ITEMS

    def test_refund_method_rejected_for_exchange(self, draft, sale_items):
        self._to_details(draft, sale_items)
        draft.set_reason("EXCHANGE")

        with pytest.raises(ReturnValidationError):
            draft.set_refund_method("CASH")


@pytest.mark.django_db
class TestExchangeItems:
    @pytest.fixture
    def exchange_draft(self, draft, sale_items):
        draft.set_quantity(sale_items["Gold Ring"].pk, 1)
        draft.advance()
        draft.set_reason("EXCHANGE")
        draft.advance()
        return draft

    def test_candidates_are_in_stock_products(self, exchange_draft, ring, bracelet, make_product):
        make_product(name="Sold Out Brooch", stock=0)

        names = [product.name for product in exchange_draft.exchange_candidates()]
        assert "Sold Out Brooch" not in names
        assert "Pearl Bracelet" in names

    def test_add_uses_selling_price_and_clamps_to_stock(self, exchange_draft, bracelet):
        line = exchange_draft.add_exchange_item(bracelet.pk, quantity=10)

        assert line.quantity == 3
        assert line.unit_price == Decimal("80.00")

    def test_adding_again_accumulates(self, exchange_draft, bracelet):
        exchange_draft.add_exchange_item(bracelet.pk)
        line = exchange_draft.add_exchange_item(bracelet.pk)

        assert line.quantity == 2
        assert len(exchange_draft.exchange_lines) == 1

    def test_quantity_clamped_between_one_and_stock(self, exchange_draft, bracelet):
        exchange_draft.add_exchange_item(bracelet.pk)

        assert exchange_draft.set_exchange_quantity(bracelet.pk, 0).quantity == 1
        assert exchange_draft.set_exchange_quantity(bracelet.pk, 99).quantity == 3

    def test_out_of_stock_product_rejected(self, exchange_draft, make_product):
        sold_out = make_product(name="Sold Out Brooch", stock=0)

        with pytest.raises(ReturnValidationError):
            exchange_draft.add_exchange_item(sold_out.pk)

    def test_advance_requires_exchange_item(self, exchange_draft):
        with pytest.raises(ReturnValidationError) as exc_info:
            exchange_draft.advance()
        assert "exchange_items" in exc_info.value.errors

    def test_back_to_details_requires_exchange_item(self, exchange_draft, bracelet):
        exchange_draft.add_exchange_item(bracelet.pk)
        exchange_draft.remove_exchange_item(bracelet.pk)

        with pytest.raises(ReturnValidationError) as exc_info:
            exchange_draft.back()

        assert "exchange_items" in exc_info.value.errors
        assert exchange_draft.state == DraftState.SELECT_EXCHANGE_ITEMS

    def test_back_to_details_with_exchange_item(self, exchange_draft, bracelet):
        exchange_draft.add_exchange_item(bracelet.pk)

        assert exchange_draft.back() == DraftState.DETAILS

    def test_price_difference(self, exchange_draft, necklace):
        exchange_draft.add_exchange_item(necklace.pk, quantity=1)

        assert exchange_draft.return_total == Decimal("100.00")
        assert exchange_draft.exchange_total == Decimal("250.00")
        assert exchange_draft.price_difference == Decimal("150.00")
        assert exchange_draft.get_settlement().customer_owes == Decimal("150.00")

    def test_switching_away_from_exchange_clears_items(self, exchange_draft, bracelet):
        exchange_draft.add_exchange_item(bracelet.pk)
        exchange_draft.back()

        exchange_draft.set_reason("DEFECTIVE")

        assert exchange_draft.exchange_lines == []
        assert exchange_draft.price_difference is None


@pytest.mark.django_db
class TestSubmission:
    def test_refund_submission(self, draft, sale_items):
        draft.set_quantity(sale_items["Silver Necklace"].pk, 1)
        draft.set_defective(sale_items["Silver Necklace"].pk)
        draft.advance()
        draft.set_reason("DEFECTIVE")
        draft.set_refund_method("CARD")
        draft.advance()

        submission = draft.to_submission()

        assert isinstance(submission.terms, RefundTerms)
        assert submission.refund_method == "CARD"
        assert submission.exchange_items == ()
        assert submission.items[0].is_defective is True

    def test_exchange_submission(self, draft, sale_items, bracelet):
        draft.set_quantity(sale_items["Gold Ring"].pk, 1)
        draft.advance()
        draft.set_reason("EXCHANGE")
        draft.advance()
        draft.add_exchange_item(bracelet.pk, 1, unit_price="75.00")
        draft.advance()

        submission = draft.to_submission()

        assert isinstance(submission.terms, ExchangeTerms)
        assert submission.refund_method is None
        assert submission.exchange_items[0].unit_price == Decimal("75.00")

    def test_submission_requires_ready_state(self, draft, sale_items):
        draft.set_quantity(sale_items["Gold Ring"].pk, 1)
        draft.advance()
        draft.set_reason("OTHER")
        draft.set_refund_method("CASH")

        with pytest.raises(InvalidTransitionError):
            draft.to_submission()

    def test_incomplete_draft_reports_field_errors(self, draft):
        errors = draft.validate()

        assert set(errors) == {"items", "reason"}
        with pytest.raises(ReturnValidationError):
            draft.to_submission()

    def test_submit_creates_pending_return(self, draft, sale_items, cashier):
        draft.set_quantity(sale_items["Gold Ring"].pk, 2)
        draft.advance()
        draft.set_reason("INCORRECT")
        draft.set_refund_method("CASH")
        draft.advance()

        return_request = draft.submit(cashier)

        assert return_request.status == Return.PENDING
        assert return_request.total_amount == Decimal("200.00")
        assert return_request.processed_by == cashier


@pytest.mark.django_db
class TestFromPayload:
    def test_camel_case_refund_payload(self, sale, ring):
        draft = ReturnDraft.from_payload(
            {
                "saleId": str(sale.pk),
                "items": [{"productId": str(ring.pk), "quantity": 1}],
                "reason": "NOT_NEEDED",
                "refundMethod": "CASH",
                "notes": "Gift duplicate",
            }
        )

        assert draft.state == DraftState.READY
        assert draft.return_total == Decimal("100.00")
        assert draft.notes == "Gift duplicate"

    def test_snake_case_exchange_payload_with_price(self, sale, ring, bracelet):
        draft = ReturnDraft.from_payload(
            {
                "sale_id": sale.sale_number,
                "items": [{"product_id": str(ring.pk), "quantity": 2}],
                "reason": "EXCHANGE",
                "exchange_items": [{"product_id": str(bracelet.pk), "quantity": 2, "price": "90.00"}],
            }
        )

        assert draft.state == DraftState.READY
        assert draft.price_difference == Decimal("-20.00")

    def test_quantities_are_not_clamped(self, sale, ring):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": 3}],
                    "reason": "DEFECTIVE",
                    "refundMethod": "CASH",
                }
            )
        assert "items" in exc_info.value.errors

    def test_exchange_stock_is_not_clamped(self, sale, ring, bracelet):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": 1}],
                    "reason": "EXCHANGE",
                    "exchangeItems": [{"productId": str(bracelet.pk), "quantity": 4}],
                }
            )
        assert "exchange_items" in exc_info.value.errors

    def test_mixed_variant_rejected(self, sale, ring, bracelet):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": 1}],
                    "reason": "DEFECTIVE",
                    "refundMethod": "CASH",
                    "exchangeItems": [{"productId": str(bracelet.pk), "quantity": 1}],
                }
            )
        assert "exchange_items" in exc_info.value.errors

    def test_missing_fields_reported_together(self, sale):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload({"saleId": str(sale.pk)})

        assert {"items", "reason"} <= set(exc_info.value.errors)

    def test_missing_sale(self):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload({"items": []})
        assert "sale_id" in exc_info.value.errors

    def test_product_quantity_spreads_across_lines(self, make_sale, ring):
        sale = make_sale([(ring, 1, "100.00"), (ring, 2, "90.00")])

        draft = ReturnDraft.from_payload(
            {
                "saleId": str(sale.pk),
                "items": [{"productId": str(ring.pk), "quantity": 3}],
                "reason": "OTHER",
                "refundMethod": "CARD",
            }
        )

        assert sorted(line.quantity for line in draft.returned_lines) == [1, 2]
        assert draft.return_total == Decimal("280.00")

    @pytest.mark.parametrize("quantity", [2.7, True, "1.5", "two"])
    def test_quantity_must_be_whole_number(self, sale, ring, quantity):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": quantity}],
                    "reason": "DEFECTIVE",
                    "refundMethod": "CASH",
                }
            )
        assert exc_info.value.errors["items"] == ["Item 1: quantity must be a whole number."]

    def test_numeric_string_quantity_accepted(self, sale, ring):
        draft = ReturnDraft.from_payload(
            {
                "saleId": str(sale.pk),
                "items": [{"productId": str(ring.pk), "quantity": "2"}],
                "reason": "DEFECTIVE",
                "refundMethod": "CASH",
            }
        )

        assert draft.returned_lines[0].quantity == 2

    def test_exchange_quantity_must_be_whole_number(self, sale, ring, bracelet):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": 1}],
                    "reason": "EXCHANGE",
                    "exchangeItems": [{"productId": str(bracelet.pk), "quantity": 1.5}],
                }
            )
        assert exc_info.value.errors["exchange_items"] == [
            "Exchange item 1: quantity must be a whole number."
        ]

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "abc"])
    def test_exchange_price_must_be_a_number(self, sale, ring, bracelet, price):
        with pytest.raises(ReturnValidationError) as exc_info:
            ReturnDraft.from_payload(
                {
                    "saleId": str(sale.pk),
                    "items": [{"productId": str(ring.pk), "quantity": 1}],
                    "reason": "EXCHANGE",
                    "exchangeItems": [
                        {"productId": str(bracelet.pk), "quantity": 1, "price": price}
                    ],
                }
            )
        assert exc_info.value.errors["exchange_items"] == [
            "Exchange item 1: price must be a number."
        ]
