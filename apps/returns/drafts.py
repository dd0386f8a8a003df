"""
Return draft builder.

A draft walks the cashier through a return one step at a time:

    SELECT_SALE → SELECT_ITEMS → DETAILS → [SELECT_EXCHANGE_ITEMS] → READY

Drafts live in memory only. Nothing is persisted until ``submit`` hands the
finished draft to the repository, which re-checks everything inside its
own transaction.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from apps.inventory.models import Product
from apps.inventory.services import InventoryService

from . import settlement
from .exceptions import InvalidTransitionError, ReturnError, ReturnValidationError
from .models import Return
from .repository import ReturnRepository
from .resolver import ResolvedLine, ResolvedSale, SaleResolver
from .submissions import ExchangeLine, ExchangeTerms, RefundTerms, ReturnLine, ReturnSubmission

logger = logging.getLogger(__name__)


class DraftState(Enum):
    SELECT_SALE = "SELECT_SALE"
    SELECT_ITEMS = "SELECT_ITEMS"
    DETAILS = "DETAILS"
    SELECT_EXCHANGE_ITEMS = "SELECT_EXCHANGE_ITEMS"
    READY = "READY"


TRANSITIONS = {
    DraftState.SELECT_SALE: {DraftState.SELECT_ITEMS},
    DraftState.SELECT_ITEMS: {DraftState.SELECT_SALE, DraftState.DETAILS},
    DraftState.DETAILS: {
        DraftState.SELECT_ITEMS,
        DraftState.SELECT_EXCHANGE_ITEMS,
        DraftState.READY,
    },
    DraftState.SELECT_EXCHANGE_ITEMS: {DraftState.DETAILS, DraftState.READY},
    DraftState.READY: {DraftState.DETAILS, DraftState.SELECT_EXCHANGE_ITEMS},
}


def normalize_choice(value, choices):
    """Match a choice by key or label, ignoring case, spaces and underscores."""
    if value is None:
        return None
    wanted = re.sub(r"[^A-Z]", "", str(value).upper())
    for key, label in choices:
        if wanted in (re.sub(r"[^A-Z]", "", key.upper()), re.sub(r"[^A-Z]", "", label.upper())):
            return key
    return None


def _parse_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _parse_quantity(value):
    """A whole number from a request body. Booleans and fractions are refused."""
    if isinstance(value, bool):
        raise ValueError(f"Not a whole number: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"\s*[+-]?\d+\s*", value):
        return int(value)
    raise ValueError(f"Not a whole number: {value!r}")


@dataclass
class DraftLine:
    line: ResolvedLine
    selected: bool = False
    quantity: int = 0
    is_defective: bool = False

    @property
    def sale_item_id(self):
        return self.line.sale_item_id

    @property
    def max_quantity(self) -> int:
        return self.line.returnable_quantity

    @property
    def original_unit_price(self) -> Decimal:
        return self.line.unit_price

    @property
    def return_amount(self) -> Decimal:
        return settlement.line_amount(self.quantity, self.line.unit_price)

    @property
    def is_returned(self) -> bool:
        return self.selected and self.quantity > 0


@dataclass
class DraftExchangeLine:
    product_id: object
    product_name: str
    unit_price: Decimal
    quantity: int
    available_stock: int


class ReturnDraft:
    """
    In-memory state machine accumulating a return before submission.
    """

    def __init__(self, resolver=SaleResolver, inventory=InventoryService):
        self.resolver = resolver
        self.inventory = inventory
        self.state = DraftState.SELECT_SALE
        self.sale: Optional[ResolvedSale] = None
        self.lines: List[DraftLine] = []
        self.reason: Optional[str] = None
        self.refund_method: Optional[str] = None
        self.notes = ""
        self.exchange_lines: List[DraftExchangeLine] = []
        self.errors = {}

    # State handling

    def _require(self, *states):
        if self.state not in states:
            raise InvalidTransitionError(self.state.value, "edit this step")

    def _goto(self, target):
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, f"move to {target.value}")
        self.state = target
        self.errors = {}

    def _fail(self, errors):
        self.errors = errors
        raise ReturnValidationError(errors)

    # Step 1: sale

    def select_sale(self, search_key):
        """
        Resolve a sale and move to item selection.

        On failure the draft stays on SELECT_SALE, exposes the message under
        ``errors["sale"]`` and re-raises the resolver error.
        """
        self._require(DraftState.SELECT_SALE)
        try:
            resolved = self.resolver.resolve(search_key)
        except ReturnError as e:
            self.errors = {"sale": [str(e)]}
            raise

        self.sale = resolved
        self.lines = [DraftLine(line=line) for line in resolved.lines]
        self.reason = None
        self.refund_method = None
        self.exchange_lines = []
        self._goto(DraftState.SELECT_ITEMS)
        return resolved

    @property
    def warnings(self):
        return self.sale.warnings if self.sale else []

    # Step 2: items

    def _line(self, sale_item_id) -> DraftLine:
        for draft_line in self.lines:
            if str(draft_line.sale_item_id) == str(sale_item_id):
                return draft_line
        self._fail({"items": [f"Item {sale_item_id} is not part of this sale."]})

    def toggle_item(self, sale_item_id, selected=None):
        """Include or exclude a line; newly included lines default to their full quantity."""
        self._require(DraftState.SELECT_ITEMS)
        draft_line = self._line(sale_item_id)
        selected = not draft_line.selected if selected is None else selected
        if selected and draft_line.max_quantity == 0:
            self._fail(
                {"items": [f"All units of {draft_line.line.product_name} have already been returned."]}
            )
        draft_line.selected = selected
        draft_line.quantity = draft_line.max_quantity if selected else 0
        return draft_line

    def set_quantity(self, sale_item_id, quantity):
        """Set a line's quantity, clamped to [0, returnable quantity]."""
        self._require(DraftState.SELECT_ITEMS)
        draft_line = self._line(sale_item_id)
        quantity = min(max(int(quantity), 0), draft_line.max_quantity)
        draft_line.quantity = quantity
        draft_line.selected = draft_line.selected or quantity > 0
        return draft_line

    def set_defective(self, sale_item_id, is_defective=True):
        self._require(DraftState.SELECT_ITEMS, DraftState.DETAILS)
        draft_line = self._line(sale_item_id)
        draft_line.is_defective = bool(is_defective)
        return draft_line

    @property
    def returned_lines(self) -> List[DraftLine]:
        return [draft_line for draft_line in self.lines if draft_line.is_returned]

    @property
    def return_total(self) -> Decimal:
        return settlement.return_total(self.returned_lines)

    # Step 3: details

    def set_reason(self, reason):
        """Set the reason; switching to or away from EXCHANGE clears the other variant."""
        self._require(DraftState.DETAILS)
        key = normalize_choice(reason, Return.REASON_CHOICES)
        if key is None:
            self._fail({"reason": [f"'{reason}' is not a valid reason."]})
        if key == Return.EXCHANGE:
            self.refund_method = None
        else:
            self.exchange_lines = []
        self.reason = key

    def set_refund_method(self, refund_method):
        self._require(DraftState.DETAILS)
        if self.reason == Return.EXCHANGE:
            self._fail({"refund_method": ["Refund method must not be set for exchanges."]})
        key = normalize_choice(refund_method, Return.REFUND_METHOD_CHOICES)
        if key is None:
            self._fail({"refund_method": [f"'{refund_method}' is not a valid refund method."]})
        self.refund_method = key

    def set_notes(self, notes):
        self._require(DraftState.DETAILS, DraftState.SELECT_EXCHANGE_ITEMS, DraftState.READY)
        self.notes = (notes or "").strip()

    @property
    def is_exchange(self):
        return self.reason == Return.EXCHANGE

    # Step 4: exchange items

    def exchange_candidates(self, search=None):
        """In-stock products the customer may take in exchange."""
        self._require(DraftState.SELECT_EXCHANGE_ITEMS)
        return list(self.inventory.in_stock_products(search))

    def _exchange_line(self, product_id) -> Optional[DraftExchangeLine]:
        for exchange_line in self.exchange_lines:
            if str(exchange_line.product_id) == str(product_id):
                return exchange_line
        return None

    def add_exchange_item(self, product_id, quantity=1, unit_price=None):
        """Add a product, or more of one already added; quantity is clamped to [1, stock]."""
        self._require(DraftState.SELECT_EXCHANGE_ITEMS)
        product_uuid = _parse_uuid(product_id)
        product = (
            Product.objects.filter(pk=product_uuid, is_active=True).first() if product_uuid else None
        )
        if product is None or product.stock <= 0:
            self._fail({"exchange_items": [f"Product {product_id} is not available in stock."]})

        exchange_line = self._exchange_line(product.pk)
        if exchange_line is None:
            exchange_line = DraftExchangeLine(
                product_id=product.pk,
                product_name=product.name,
                unit_price=settlement.to_money(
                    product.selling_price if unit_price is None else unit_price
                ),
                quantity=0,
                available_stock=product.stock,
            )
            self.exchange_lines.append(exchange_line)
        exchange_line.available_stock = product.stock
        exchange_line.quantity = min(max(exchange_line.quantity + int(quantity), 1), product.stock)
        return exchange_line

    def set_exchange_quantity(self, product_id, quantity):
        self._require(DraftState.SELECT_EXCHANGE_ITEMS)
        exchange_line = self._exchange_line(product_id)
        if exchange_line is None:
            self._fail({"exchange_items": [f"Product {product_id} is not in the exchange."]})
        exchange_line.quantity = min(max(int(quantity), 1), exchange_line.available_stock)
        return exchange_line

    def remove_exchange_item(self, product_id):
        self._require(DraftState.SELECT_EXCHANGE_ITEMS)
        self.exchange_lines = [
            line for line in self.exchange_lines if str(line.product_id) != str(product_id)
        ]

    @property
    def exchange_total(self) -> Decimal:
        return settlement.exchange_total(self.exchange_lines)

    @property
    def price_difference(self) -> Optional[Decimal]:
        if not self.is_exchange:
            return None
        return settlement.price_difference(self.return_total, self.exchange_total)

    def get_settlement(self):
        return settlement.settle(self.returned_lines, self.exchange_lines, self.is_exchange)

    # Navigation

    def advance(self):
        """Move to the next step if the current one is complete."""
        if self.state == DraftState.SELECT_SALE:
            if self.sale is None:
                self._fail({"sale": ["Select a sale first."]})
            self._goto(DraftState.SELECT_ITEMS)
        elif self.state == DraftState.SELECT_ITEMS:
            if not self.returned_lines:
                self._fail({"items": ["Select at least one item with a quantity greater than zero."]})
            self._goto(DraftState.DETAILS)
        elif self.state == DraftState.DETAILS:
            if self.reason is None:
                self._fail({"reason": ["Select a reason for the return."]})
            if self.is_exchange:
                self._goto(DraftState.SELECT_EXCHANGE_ITEMS)
            elif self.refund_method is None:
                self._fail({"refund_method": ["Select a refund method."]})
            else:
                self._goto(DraftState.READY)
        elif self.state == DraftState.SELECT_EXCHANGE_ITEMS:
            if not self.exchange_lines:
                self._fail({"exchange_items": ["Select at least one exchange product."]})
            self._goto(DraftState.READY)
        else:
            raise InvalidTransitionError(self.state.value, "advance")
        return self.state

    def back(self):
        """Return to the previous step, keeping what has been entered so far."""
        if self.state == DraftState.SELECT_ITEMS:
            self.sale = None
            self.lines = []
            self._goto(DraftState.SELECT_SALE)
        elif self.state == DraftState.DETAILS:
            self._goto(DraftState.SELECT_ITEMS)
        elif self.state == DraftState.SELECT_EXCHANGE_ITEMS:
            if not self.exchange_lines:
                self._fail({"exchange_items": ["Select at least one exchange product."]})
            self._goto(DraftState.DETAILS)
        elif self.state == DraftState.READY:
            self._goto(
                DraftState.SELECT_EXCHANGE_ITEMS if self.is_exchange else DraftState.DETAILS
            )
        else:
            raise InvalidTransitionError(self.state.value, "go back")
        return self.state

    # Submission

    def validate(self):
        """Final checks before submission; returns field errors (empty when valid)."""
        errors = {}
        if self.sale is None:
            errors["sale"] = ["Select a sale first."]
        if not self.returned_lines:
            errors["items"] = ["Select at least one item with a quantity greater than zero."]
        if self.reason is None:
            errors["reason"] = ["Select a reason for the return."]
        elif self.is_exchange:
            if not self.exchange_lines:
                errors["exchange_items"] = ["Select at least one exchange product."]
            if self.refund_method is not None:
                errors["refund_method"] = ["Refund method must not be set for exchanges."]
        elif self.refund_method is None:
            errors["refund_method"] = ["Select a refund method."]
        self.errors = errors
        return errors

    def to_submission(self) -> ReturnSubmission:
        errors = self.validate()
        if errors:
            raise ReturnValidationError(errors)
        if self.state != DraftState.READY:
            raise InvalidTransitionError(self.state.value, "submit")

        if self.is_exchange:
            terms = ExchangeTerms(
                items=tuple(
                    ExchangeLine(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                    )
                    for line in self.exchange_lines
                )
            )
        else:
            terms = RefundTerms(refund_method=self.refund_method)

        return ReturnSubmission(
            sale_id=self.sale.sale_id,
            items=tuple(
                ReturnLine(
                    sale_item_id=line.sale_item_id,
                    quantity=line.quantity,
                    is_defective=line.is_defective,
                )
                for line in self.returned_lines
            ),
            reason=self.reason,
            terms=terms,
            notes=self.notes,
        )

    def submit(self, processed_by, repository=None):
        """Persist the draft as a PENDING return."""
        repository = repository or ReturnRepository
        return repository.create(self.to_submission(), processed_by)

    # Payload replay

    @classmethod
    def from_payload(cls, data, **kwargs):
        """
        Build a READY draft from a request body.

        Accepted keys (camelCase or snake_case): saleId, items[{productId,
        quantity, saleItemId?, isDefective?}], reason, refundMethod, notes,
        exchangeItems[{productId, quantity, price?}].

        Unlike the interactive path, quantities are never clamped: anything
        over the returnable quantity or available stock is reported as an
        error.
        """
        draft = cls(**kwargs)

        def get(*names, default=None):
            for name in names:
                if name in data and data[name] not in (None, ""):
                    return data[name]
            return default

        sale_key = get("saleId", "sale_id", "sale")
        if sale_key is None:
            raise ReturnValidationError({"sale_id": ["This field is required."]})
        draft.select_sale(sale_key)

        errors = {}
        raw_reason = get("reason")
        reason = normalize_choice(raw_reason, Return.REASON_CHOICES)
        if raw_reason is None:
            errors["reason"] = ["This field is required."]
        elif reason is None:
            errors["reason"] = [f"'{raw_reason}' is not a valid reason."]

        raw_refund = get("refundMethod", "refund_method")
        exchange_data = get("exchangeItems", "exchange_items", default=[])
        if reason == Return.EXCHANGE:
            if raw_refund is not None:
                errors["refund_method"] = ["Refund method must not be set for exchanges."]
            if not exchange_data:
                errors["exchange_items"] = ["Select at least one exchange product."]
        elif reason is not None:
            if exchange_data:
                errors["exchange_items"] = [
                    "Exchange items are only allowed when the reason is Exchange."
                ]
            if raw_refund is None:
                errors["refund_method"] = ["This field is required."]
            elif normalize_choice(raw_refund, Return.REFUND_METHOD_CHOICES) is None:
                errors["refund_method"] = [f"'{raw_refund}' is not a valid refund method."]

        item_errors = draft._apply_item_payload(get("items", default=[]))
        if item_errors:
            errors["items"] = item_errors
        if errors:
            draft._fail(errors)

        draft.advance()
        draft.set_reason(reason)
        if reason != Return.EXCHANGE:
            draft.set_refund_method(raw_refund)
        draft.set_notes(get("notes", default=""))
        draft.advance()

        if draft.state == DraftState.SELECT_EXCHANGE_ITEMS:
            exchange_errors = draft._apply_exchange_payload(exchange_data)
            if exchange_errors:
                draft._fail({"exchange_items": exchange_errors})
            draft.advance()

        return draft

    def _apply_item_payload(self, items_data):
        """Allocate product-level quantities onto sale lines in order."""
        if not items_data:
            return ["Select at least one item to return."]
        if not isinstance(items_data, list) or not all(isinstance(i, dict) for i in items_data):
            return ["Items must be a list of objects."]

        errors = []
        for index, item in enumerate(items_data):
            try:
                quantity = _parse_quantity(item.get("quantity", 0))
            except (TypeError, ValueError):
                errors.append(f"Item {index + 1}: quantity must be a whole number.")
                continue
            if quantity <= 0:
                errors.append(f"Item {index + 1}: quantity must be greater than zero.")
                continue

            sale_item_id = item.get("saleItemId") or item.get("sale_item_id")
            product_id = item.get("productId") or item.get("product_id")
            if sale_item_id:
                candidates = [self.sale.line_for(sale_item_id)]
                candidates = [line for line in candidates if line is not None]
            else:
                candidates = self.sale.lines_for_product(product_id) if product_id else []
            if not candidates:
                errors.append(f"Item {index + 1}: product is not part of this sale.")
                continue

            draft_lines = [self._line(line.sale_item_id) for line in candidates]
            available = sum(dl.max_quantity - dl.quantity for dl in draft_lines)
            if quantity > available:
                errors.append(
                    f"{candidates[0].product_name}: requested {quantity}, "
                    f"only {available} can be returned."
                )
                continue

            remaining = quantity
            is_defective = bool(item.get("isDefective", item.get("is_defective", False)))
            for draft_line in draft_lines:
                take = min(remaining, draft_line.max_quantity - draft_line.quantity)
                if take <= 0:
                    continue
                self.set_quantity(draft_line.sale_item_id, draft_line.quantity + take)
                draft_line.is_defective = draft_line.is_defective or is_defective
                remaining -= take
                if remaining == 0:
                    break
        return errors

    def _apply_exchange_payload(self, exchange_data):
        if not isinstance(exchange_data, list) or not all(isinstance(i, dict) for i in exchange_data):
            return ["Exchange items must be a list of objects."]
        errors = []
        for index, item in enumerate(exchange_data):
            product_id = item.get("productId") or item.get("product_id")
            try:
                quantity = _parse_quantity(item.get("quantity", 0))
            except (TypeError, ValueError):
                errors.append(f"Exchange item {index + 1}: quantity must be a whole number.")
                continue
            if quantity <= 0:
                errors.append(f"Exchange item {index + 1}: quantity must be greater than zero.")
                continue

            product_uuid = _parse_uuid(product_id)
            product = (
                Product.objects.filter(pk=product_uuid, is_active=True).first()
                if product_uuid
                else None
            )
            if product is None:
                errors.append(f"Exchange item {index + 1}: product not found.")
                continue
            existing = self._exchange_line(product.pk)
            wanted = quantity + (existing.quantity if existing else 0)
            if wanted > product.stock:
                errors.append(
                    f"{product.name}: requested {wanted}, only {product.stock} in stock."
                )
                continue

            price = item.get("price", item.get("unitPrice", item.get("unit_price")))
            try:
                unit_price = None if price in (None, "") else settlement.to_money(price)
            except ArithmeticError:
                errors.append(f"Exchange item {index + 1}: price must be a number.")
                continue
            if unit_price is not None and not unit_price.is_finite():
                errors.append(f"Exchange item {index + 1}: price must be a number.")
                continue
            if unit_price is not None and unit_price < 0:
                errors.append(f"Exchange item {index + 1}: price cannot be negative.")
                continue
            self.add_exchange_item(product.pk, quantity, unit_price)
        return errors
