"""
Persistence and queries for returns.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils.dateparse import parse_date

from django_fsm import TransitionNotAllowed

from apps.core.models import DocumentSequence
from apps.inventory.models import Product
from apps.sales.models import Sale

from . import settlement
from .exceptions import (
    InvalidTransitionError,
    ReturnLockedError,
    ReturnNotFoundError,
    ReturnValidationError,
    SaleNotEligibleError,
    SaleNotFoundError,
)
from .models import ExchangeItem, Return, ReturnItem
from .resolver import SaleResolver

logger = logging.getLogger(__name__)


class ReturnRepository:
    """
    Create, fetch, list and transition Return records.
    """

    @staticmethod
    def create(submission, processed_by) -> Return:
        """
        Persist a submission as a PENDING return.

        The sale row is locked for the duration so two submissions against the
        same sale cannot both claim the same units. Returnable quantities and
        exchange stock are checked again here rather than trusted from the draft.

        Raises:
            SaleNotFoundError: If the sale no longer exists
            SaleNotEligibleError: If the sale was cancelled or fully returned
            ReturnValidationError: If a quantity is no longer available
        """
        with transaction.atomic():
            try:
                sale = Sale.objects.select_for_update().get(pk=submission.sale_id)
            except (Sale.DoesNotExist, DjangoValidationError):
                raise SaleNotFoundError(f"Sale '{submission.sale_id}' not found.")

            if not sale.can_be_returned():
                raise SaleNotEligibleError(
                    f"Sale {sale.sale_number} cannot be returned. "
                    f"Current status: {sale.get_status_display()}"
                )

            sale_items = {item.pk: item for item in sale.items.select_related("product")}
            already_returned = SaleResolver.returned_quantities(sale)
            claimed = defaultdict(int)
            errors = defaultdict(list)

            for line in submission.items:
                sale_item = sale_items.get(line.sale_item_id)
                if sale_item is None or sale_item.product_id is None:
                    errors["items"].append(f"Item {line.sale_item_id} cannot be returned.")
                    continue
                claimed[sale_item.pk] += line.quantity
                remaining = sale_item.quantity - already_returned.get(sale_item.pk, 0)
                if claimed[sale_item.pk] > remaining:
                    errors["items"].append(
                        f"{sale_item.product_name}: requested {claimed[sale_item.pk]}, "
                        f"only {max(remaining, 0)} can be returned."
                    )

            exchange_products = Product.objects.in_bulk(
                [line.product_id for line in submission.exchange_items]
            )
            requested_stock = defaultdict(int)
            for line in submission.exchange_items:
                product = exchange_products.get(line.product_id)
                if product is None or not product.is_active:
                    errors["exchange_items"].append(f"Product {line.product_id} not found.")
                    continue
                requested_stock[product.pk] += line.quantity
                if requested_stock[product.pk] > product.stock:
                    errors["exchange_items"].append(
                        f"{product.name}: requested {requested_stock[product.pk]}, "
                        f"only {product.stock} in stock."
                    )

            if errors:
                raise ReturnValidationError(dict(errors))

            return_lines = [
                {
                    "sale_item": sale_items[line.sale_item_id],
                    "quantity": line.quantity,
                    "original_unit_price": sale_items[line.sale_item_id].unit_price,
                    "is_defective": line.is_defective,
                }
                for line in submission.items
            ]
            exchange_lines = [
                {
                    "product": exchange_products[line.product_id],
                    "quantity": line.quantity,
                    "unit_price": settlement.to_money(
                        exchange_products[line.product_id].selling_price
                        if line.unit_price is None
                        else line.unit_price
                    ),
                }
                for line in submission.exchange_items
            ]
            outcome = settlement.settle(return_lines, exchange_lines, submission.is_exchange)

            return_request = Return.objects.create(
                return_number=DocumentSequence.next_number(
                    "return", settings.RETURN_NUMBER_PREFIX, settings.RETURN_NUMBER_PADDING
                ),
                sale=sale,
                customer_id=sale.customer_id,
                reason=submission.reason,
                refund_method=submission.refund_method,
                total_amount=outcome.return_total,
                price_difference=outcome.price_difference,
                notes=submission.notes,
                processed_by=processed_by,
            )

            ReturnItem.objects.bulk_create(
                [
                    ReturnItem(
                        return_request=return_request,
                        line_number=number,
                        sale_item=line["sale_item"],
                        product_id=line["sale_item"].product_id,
                        product_name=line["sale_item"].product_name,
                        quantity=line["quantity"],
                        original_unit_price=line["original_unit_price"],
                        return_amount=settlement.line_amount(
                            line["quantity"], line["original_unit_price"]
                        ),
                        is_defective=line["is_defective"],
                    )
                    for number, line in enumerate(return_lines, start=1)
                ]
            )
            ExchangeItem.objects.bulk_create(
                [
                    ExchangeItem(
                        return_request=return_request,
                        line_number=number,
                        product=line["product"],
                        product_name=line["product"].name,
                        quantity=line["quantity"],
                        unit_price=line["unit_price"],
                    )
                    for number, line in enumerate(exchange_lines, start=1)
                ]
            )

        logger.info(
            f"Return {return_request.return_number} created by {processed_by.username} "
            f"for sale {sale.sale_number}: reason={return_request.reason}, "
            f"total={return_request.total_amount}, difference={return_request.price_difference}"
        )
        return return_request

    @staticmethod
    def get(return_id) -> Return:
        """
        Fetch one return with its lines.

        Raises:
            ReturnNotFoundError: If no return has that id
        """
        try:
            return (
                Return.objects.select_related("sale", "customer", "processed_by", "approved_by")
                .prefetch_related("items", "exchange_items")
                .get(pk=return_id)
            )
        except (Return.DoesNotExist, DjangoValidationError, ValueError):
            raise ReturnNotFoundError(f"Return '{return_id}' not found.")

    @staticmethod
    def list(status=None, reason=None, start_date=None, end_date=None, search=None):
        """
        Returns matching the given filters, newest first.

        Dates may be ``date`` objects or ISO strings (YYYY-MM-DD) and are inclusive.
        """
        queryset = Return.objects.select_related(
            "sale", "customer", "processed_by", "approved_by"
        ).prefetch_related("items", "exchange_items")

        if status:
            if status not in dict(Return.STATUS_CHOICES):
                raise ReturnValidationError({"status": [f"'{status}' is not a valid status."]})
            queryset = queryset.filter(status=status)

        if reason:
            if reason not in dict(Return.REASON_CHOICES):
                raise ReturnValidationError({"reason": [f"'{reason}' is not a valid reason."]})
            queryset = queryset.filter(reason=reason)

        for name, value, lookup in (
            ("start_date", start_date, "created_at__date__gte"),
            ("end_date", end_date, "created_at__date__lte"),
        ):
            if not value:
                continue
            try:
                parsed = parse_date(value) if isinstance(value, str) else value
            except ValueError:
                parsed = None
            if parsed is None:
                raise ReturnValidationError({name: ["Use the format YYYY-MM-DD."]})
            queryset = queryset.filter(**{lookup: parsed})

        if search:
            queryset = queryset.filter(
                Q(return_number__icontains=search)
                | Q(sale__sale_number__icontains=search)
                | Q(customer__first_name__icontains=search)
                | Q(customer__last_name__icontains=search)
                | Q(items__product_name__icontains=search)
                | Q(notes__icontains=search)
            ).distinct()

        return queryset.order_by("-created_at")

    @staticmethod
    def transition(return_request, new_status, decided_by, notes=""):
        """
        Apply a status change to an already locked return and save it.

        APPROVED and COMPLETED both run approve then complete, so a return is
        never left resting in APPROVED. Stock effects are not applied here;
        approvals go through ``ReturnApprovalService``.
        """
        try:
            if new_status in (Return.APPROVED, Return.COMPLETED):
                return_request.approve(decided_by, notes)
                return_request.complete()
            elif new_status == Return.REJECTED:
                return_request.reject(decided_by, notes)
            else:
                raise InvalidTransitionError(return_request.status, f"move to {new_status}")
        except TransitionNotAllowed:
            raise InvalidTransitionError(return_request.status, f"move to {new_status}")
        return_request.save()
        return return_request

    @classmethod
    def update_status(cls, return_id, new_status, decided_by, notes="", **changes):
        """
        Change a return's status, recording the decider, time and notes.

        APPROVED and COMPLETED go through ``ReturnApprovalService`` so stock
        is reconciled in the same transaction. Asking for the status a return
        already has returns it unchanged.

        Raises:
            ReturnLockedError: If any other field is passed in ``changes``
            ReturnNotFoundError: If the return does not exist
            InvalidTransitionError: If the transition is not allowed
            AuthorizationError: If an approval is requested by a non-approver
            ReconciliationFailed: If stock no longer allows an approval
        """
        if changes:
            raise ReturnLockedError(changes.keys())

        if new_status in (Return.APPROVED, Return.COMPLETED):
            from .services import ReturnApprovalService

            return ReturnApprovalService.approve(return_id, decided_by, notes).instance

        with transaction.atomic():
            try:
                return_request = Return.objects.select_for_update().get(pk=return_id)
            except (Return.DoesNotExist, DjangoValidationError, ValueError):
                raise ReturnNotFoundError(f"Return '{return_id}' not found.")
            if return_request.status == new_status:
                logger.info(
                    f"Return {return_request.return_number} already {new_status}, "
                    f"nothing to do for {decided_by.username}"
                )
                return return_request
            cls.transition(return_request, new_status, decided_by, notes)

        logger.info(
            f"Return {return_request.return_number} moved to {return_request.status} "
            f"by {decided_by.username}"
        )
        return return_request

    @staticmethod
    def stats(queryset=None):
        """
        Aggregate statistics over a set of returns (all returns by default).
        """
        if queryset is None:
            queryset = Return.objects.all()
        # Drop prefetches, ordering and joins added for listing
        ids = queryset.prefetch_related(None).order_by().values("pk")
        base = Return.objects.filter(pk__in=ids)

        by_status = {
            key: {"count": 0, "total_amount": Decimal("0.00")} for key, _ in Return.STATUS_CHOICES
        }
        for row in base.values("status").annotate(count=Count("pk"), total=Sum("total_amount")):
            by_status[row["status"]] = {
                "count": row["count"],
                "total_amount": row["total"] or Decimal("0.00"),
            }

        by_reason = {key: 0 for key, _ in Return.REASON_CHOICES}
        for row in base.values("reason").annotate(count=Count("pk")):
            by_reason[row["reason"]] = row["count"]

        total_amount_returned = base.filter(status=Return.COMPLETED).exclude(
            reason=Return.EXCHANGE
        ).aggregate(total=Sum("total_amount"))["total"] or Decimal("0.00")

        top_returned_products = list(
            ReturnItem.objects.filter(return_request__in=ids)
            .exclude(return_request__status=Return.REJECTED)
            .values("product_id", "product_name")
            .annotate(quantity=Sum("quantity"), returns=Count("return_request", distinct=True))
            .order_by("-quantity", "product_name")[:10]
        )

        return {
            "total_returns": base.count(),
            "by_status": by_status,
            "by_reason": by_reason,
            "total_amount_returned": total_amount_returned,
            "top_returned_products": top_returned_products,
        }
