"""
Approval and reconciliation of returns.

Approving a return re-validates it against the current state of the sale and
the catalog, then applies every stock effect and the status change in one
transaction. If any check or stock update fails, nothing is written and the
return stays PENDING.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F, Sum

from apps.inventory.exceptions import InsufficientStockError
from apps.inventory.services import InventoryService
from apps.sales.models import Customer, Sale

from .exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    ReconciliationFailed,
    ReturnNotFoundError,
    ReturnValidationError,
)
from .models import Return, ReturnItem
from .repository import ReturnRepository
from .resolver import SaleResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReturnDecision:
    """
    A request to approve or reject one return.

    ``authorize`` and ``validate`` only look at the command itself, so they
    can run before the return is read.
    """

    APPROVE = "approve"
    REJECT = "reject"

    action: str
    return_id: Any
    actor: Any
    notes: str = ""

    def authorize(self):
        actor = self.actor
        if not (actor and actor.is_authenticated and actor.can_approve_returns()):
            raise AuthorizationError("Only store owners and managers can approve or reject returns.")

    def validate(self):
        if self.action not in (self.APPROVE, self.REJECT):
            raise ReturnValidationError({"action": [f"Unknown action '{self.action}'."]})
        if self.action == self.REJECT and not (self.notes or "").strip():
            raise ReturnValidationError({"notes": ["A reason is required to reject a return."]})


@dataclass(frozen=True)
class DecisionOutcome:
    instance: Return
    # False when the decision had already been applied
    applied: bool


def _failure(product_id, product_name, requested, available, message):
    return {
        "product_id": str(product_id) if product_id else None,
        "product_name": product_name,
        "requested": requested,
        "available": available,
        "message": message,
    }


class ReturnApprovalService:
    """
    Service for deciding returns.
    """

    @classmethod
    def execute(cls, decision: ReturnDecision) -> DecisionOutcome:
        decision.authorize()
        decision.validate()
        if decision.action == ReturnDecision.APPROVE:
            return cls._approve(decision)
        return cls._reject(decision)

    @classmethod
    def approve(cls, return_id, actor, notes="") -> DecisionOutcome:
        """
        Approve a pending return and apply its stock effects.

        Returned units go back to sellable stock (or defective stock when
        flagged), exchange units are taken out of stock, and the return is
        completed. Approving a return that is already completed does nothing.

        Raises:
            AuthorizationError: If the actor cannot approve returns
            ReturnNotFoundError: If the return does not exist
            InvalidTransitionError: If the return was rejected
            ReconciliationFailed: If quantities or stock no longer allow the return
        """
        return cls.execute(ReturnDecision(ReturnDecision.APPROVE, return_id, actor, notes))

    @classmethod
    def reject(cls, return_id, actor, notes) -> DecisionOutcome:
        """
        Reject a pending return. No stock or money moves.

        Raises:
            AuthorizationError: If the actor cannot reject returns
            ReturnValidationError: If no rejection note is given
            ReturnNotFoundError: If the return does not exist
            InvalidTransitionError: If the return was already completed
        """
        return cls.execute(ReturnDecision(ReturnDecision.REJECT, return_id, actor, notes))

    @staticmethod
    def _lock_return(return_id) -> Return:
        try:
            return Return.objects.select_for_update().get(pk=return_id)
        except (Return.DoesNotExist, DjangoValidationError, ValueError):
            raise ReturnNotFoundError(f"Return '{return_id}' not found.")

    @classmethod
    def _approve(cls, decision):
        actor = decision.actor
        with transaction.atomic():
            return_request = cls._lock_return(decision.return_id)

            if return_request.status == Return.COMPLETED:
                logger.info(
                    f"Return {return_request.return_number} already completed; "
                    f"approval by {actor.username} ignored"
                )
                return DecisionOutcome(return_request, applied=False)
            if return_request.status != Return.PENDING:
                raise InvalidTransitionError(return_request.get_status_display(), "approve")

            sale = Sale.objects.select_for_update().get(pk=return_request.sale_id)
            items = list(return_request.items.select_related("sale_item"))
            exchange_items = list(return_request.exchange_items.all())
            products = InventoryService.lock_products(
                [item.product_id for item in items] + [item.product_id for item in exchange_items]
            )

            failures = cls._revalidate(return_request, sale, items, exchange_items, products)
            if failures:
                logger.warning(
                    f"Reconciliation failed for return {return_request.return_number} "
                    f"approved by {actor.username}: {failures}"
                )
                raise ReconciliationFailed(failures)

            reference = f"Return {return_request.return_number}"
            for item in items:
                if item.is_defective:
                    InventoryService.increment_defective_stock(
                        item.product_id, item.quantity, reference
                    )
                else:
                    InventoryService.increment_stock(item.product_id, item.quantity, reference)

            for item in exchange_items:
                try:
                    InventoryService.decrement_stock(item.product_id, item.quantity, reference)
                except InsufficientStockError as e:
                    logger.warning(f"Reconciliation failed for {reference}: {e}")
                    raise ReconciliationFailed([{**e.as_dict(), "message": str(e)}])

            ReturnRepository.transition(return_request, Return.COMPLETED, actor, decision.notes)

            if (
                not return_request.is_exchange()
                and return_request.refund_method == Return.STORE_CREDIT
                and return_request.customer_id
            ):
                Customer.objects.filter(pk=return_request.customer_id).update(
                    store_credit=F("store_credit") + return_request.total_amount
                )
                logger.info(
                    f"Store credit {return_request.total_amount} issued to customer "
                    f"{return_request.customer_id} for {reference}"
                )

            if cls._is_fully_returned(sale):
                sale.mark_as_returned()
                logger.info(f"Sale {sale.sale_number} fully returned")

        logger.info(f"{reference} approved and completed by {actor.username}")
        return DecisionOutcome(return_request, applied=True)

    @classmethod
    def _reject(cls, decision):
        actor = decision.actor
        with transaction.atomic():
            return_request = cls._lock_return(decision.return_id)

            if return_request.status == Return.REJECTED:
                logger.info(
                    f"Return {return_request.return_number} already rejected; "
                    f"rejection by {actor.username} ignored"
                )
                return DecisionOutcome(return_request, applied=False)
            if return_request.status != Return.PENDING:
                raise InvalidTransitionError(return_request.get_status_display(), "reject")

            ReturnRepository.transition(return_request, Return.REJECTED, actor, decision.notes)

        logger.info(f"Return {return_request.return_number} rejected by {actor.username}")
        return DecisionOutcome(return_request, applied=True)

    @staticmethod
    def _revalidate(return_request, sale, items, exchange_items, products):
        """Check the return against current sale quantities and stock."""
        failures = []

        if not sale.can_be_returned():
            failures.append(
                _failure(
                    None,
                    None,
                    0,
                    0,
                    f"Sale {sale.sale_number} is {sale.get_status_display().lower()}.",
                )
            )

        already_returned = SaleResolver.returned_quantities(
            sale, exclude_return_id=return_request.pk
        )
        claimed = defaultdict(int)
        for item in items:
            claimed[item.sale_item_id] += item.quantity
        for item in items:
            if item.product_id not in products:
                failures.append(
                    _failure(
                        item.product_id,
                        item.product_name,
                        item.quantity,
                        0,
                        f"{item.product_name} no longer exists in the catalog.",
                    )
                )
        for sale_item_id, requested in claimed.items():
            sale_item = next(item.sale_item for item in items if item.sale_item_id == sale_item_id)
            available = max(sale_item.quantity - already_returned.get(sale_item_id, 0), 0)
            if requested > available:
                failures.append(
                    _failure(
                        sale_item.product_id,
                        sale_item.product_name,
                        requested,
                        available,
                        f"{sale_item.product_name}: {requested} to return, "
                        f"only {available} still returnable.",
                    )
                )

        requested_stock = defaultdict(int)
        names = {}
        for item in exchange_items:
            requested_stock[item.product_id] += item.quantity
            names[item.product_id] = item.product_name
        for product_id, requested in requested_stock.items():
            product = products.get(product_id)
            if product is None:
                failures.append(
                    _failure(
                        product_id,
                        names[product_id],
                        requested,
                        0,
                        f"{names[product_id]} no longer exists in the catalog.",
                    )
                )
            elif requested > product.stock:
                failures.append(
                    _failure(
                        product_id,
                        product.name,
                        requested,
                        product.stock,
                        f"{product.name}: {requested} requested, only {product.stock} in stock.",
                    )
                )

        return failures

    @staticmethod
    def _is_fully_returned(sale):
        completed = dict(
            ReturnItem.objects.filter(
                sale_item__sale=sale, return_request__status=Return.COMPLETED
            )
            .values("sale_item_id")
            .annotate(total=Sum("quantity"))
            .values_list("sale_item_id", "total")
        )
        sale_items = list(sale.items.all())
        return bool(sale_items) and all(
            completed.get(item.pk, 0) >= item.quantity for item in sale_items
        )
