"""
Tests for sale resolution when starting a return.
"""

import pytest

from apps.returns.exceptions import NoValidItemsError, SaleNotEligibleError, SaleNotFoundError
from apps.returns.repository import ReturnRepository
from apps.returns.resolver import SaleResolver
from apps.returns.services import ReturnApprovalService
from apps.returns.submissions import RefundTerms, ReturnLine, ReturnSubmission
from apps.sales.models import Sale


def submit_refund(sale, lines, user):
    return ReturnRepository.create(
        ReturnSubmission(
            sale_id=sale.pk,
            items=tuple(ReturnLine(item.pk, quantity) for item, quantity in lines),
            reason="NOT_NEEDED",
            terms=RefundTerms("CASH"),
        ),
        user,
    )


@pytest.mark.django_db
class TestFindSale:
    """Test looking sales up by id or invoice number."""

    def test_find_by_uuid(self, sale):
        assert SaleResolver.find_sale(str(sale.pk)) == sale

    def test_find_by_invoice_number_case_insensitive(self, sale):
        assert SaleResolver.find_sale(sale.sale_number.lower()) == sale

    def test_unknown_key_raises_not_found(self, sale):
        with pytest.raises(SaleNotFoundError):
            SaleResolver.find_sale("SALE-99999999")

    def test_blank_key_raises_not_found(self):
        with pytest.raises(SaleNotFoundError):
            SaleResolver.find_sale("   ")


@pytest.mark.django_db
class TestResolve:
    """Test reducing a sale to its returnable lines."""

    def test_resolve_lists_every_line(self, sale):
        resolved = SaleResolver.resolve(sale.sale_number)

        assert resolved.sale_id == sale.pk
        assert resolved.excluded_count == 0
        assert resolved.warnings == []
        by_name = {line.product_name: line for line in resolved.lines}
        assert by_name["Gold Ring"].purchased_quantity == 2
        assert by_name["Gold Ring"].returnable_quantity == 2
        assert by_name["Silver Necklace"].returnable_quantity == 1

    def test_deleted_products_are_excluded_with_warning(self, sale, necklace):
        necklace.delete()

        resolved = SaleResolver.resolve(sale.sale_number)

        assert [line.product_name for line in resolved.lines] == ["Gold Ring"]
        assert resolved.excluded_count == 1
        assert len(resolved.warnings) == 1

    def test_all_products_deleted_raises_no_valid_items(self, sale, ring, necklace):
        ring.delete()
        necklace.delete()

        with pytest.raises(NoValidItemsError) as exc_info:
            SaleResolver.resolve(sale.sale_number)
        assert exc_info.value.excluded_count == 2

    def test_cancelled_sale_not_eligible(self, sale):
        sale.mark_as_cancelled()

        with pytest.raises(SaleNotEligibleError):
            SaleResolver.resolve(sale.sale_number)

    def test_pending_returns_reduce_returnable_quantity(self, sale, sale_items, cashier):
        submit_refund(sale, [(sale_items["Gold Ring"], 1)], cashier)

        resolved = SaleResolver.resolve(sale.pk)
        ring_line = resolved.line_for(sale_items["Gold Ring"].pk)
        assert ring_line.returned_quantity == 1
        assert ring_line.returnable_quantity == 1

    def test_rejected_returns_do_not_count(self, sale, sale_items, cashier, manager):
        return_request = submit_refund(sale, [(sale_items["Gold Ring"], 2)], cashier)
        ReturnApprovalService.reject(return_request.pk, manager, "Damaged by customer")

        resolved = SaleResolver.resolve(sale.pk)
        assert resolved.line_for(sale_items["Gold Ring"].pk).returnable_quantity == 2

    def test_fully_claimed_sale_not_eligible(self, sale, sale_items, cashier):
        submit_refund(
            sale, [(sale_items["Gold Ring"], 2), (sale_items["Silver Necklace"], 1)], cashier
        )

        with pytest.raises(SaleNotEligibleError):
            SaleResolver.resolve(sale.pk)

    def test_lines_for_product(self, make_sale, ring):
        sale = make_sale([(ring, 1, "100.00"), (ring, 2, "90.00")])

        resolved = SaleResolver.resolve(sale.pk)
        assert len(resolved.lines_for_product(ring.pk)) == 2


@pytest.mark.django_db
class TestSearch:
    """Test searching candidate sales."""

    def test_search_by_customer_name_excludes_cancelled(self, sale, make_sale, ring, customer):
        cancelled = make_sale([(ring, 1, "100.00")], customer=customer)
        cancelled.mark_as_cancelled()

        results = list(SaleResolver.search("jane"))
        assert results == [sale]

    def test_search_by_invoice_fragment(self, sale):
        results = list(SaleResolver.search(sale.sale_number[-3:]))
        assert sale in results

    def test_search_only_completed(self, sale):
        Sale.objects.filter(pk=sale.pk).update(status=Sale.RETURNED)
        assert list(SaleResolver.search("")) == []
