"""
Immutable description of a return ready to be persisted.

The reason decides which settlement terms a submission carries: a refund
return carries ``RefundTerms``, an exchange carries ``ExchangeTerms``.
A submission that mixes them cannot be constructed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple, Union
from uuid import UUID

from .exceptions import ReturnValidationError
from .models import Return


@dataclass(frozen=True)
class ReturnLine:
    """One returned quantity of one sale line."""

    sale_item_id: UUID
    quantity: int
    is_defective: bool = False


@dataclass(frozen=True)
class ExchangeLine:
    """One product handed out in exchange."""

    product_id: UUID
    quantity: int
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class RefundTerms:
    refund_method: str


@dataclass(frozen=True)
class ExchangeTerms:
    items: Tuple[ExchangeLine, ...]


@dataclass(frozen=True)
class ReturnSubmission:
    sale_id: UUID
    items: Tuple[ReturnLine, ...]
    reason: str
    terms: Union[RefundTerms, ExchangeTerms]
    notes: str = field(default="")

    def __post_init__(self):
        errors = {}
        if not self.items:
            errors["items"] = ["Select at least one item to return."]
        elif any(line.quantity <= 0 for line in self.items):
            errors["items"] = ["Returned quantities must be greater than zero."]

        valid_reasons = {choice for choice, _ in Return.REASON_CHOICES}
        if self.reason not in valid_reasons:
            errors["reason"] = [f"'{self.reason}' is not a valid reason."]
        elif self.reason == Return.EXCHANGE:
            if not isinstance(self.terms, ExchangeTerms):
                errors["refund_method"] = ["Refund method must not be set for exchanges."]
            elif not self.terms.items:
                errors["exchange_items"] = ["Select at least one exchange product."]
            elif any(line.quantity <= 0 for line in self.terms.items):
                errors["exchange_items"] = ["Exchange quantities must be greater than zero."]
        elif not isinstance(self.terms, RefundTerms):
            errors["exchange_items"] = ["Exchange items are only allowed when the reason is Exchange."]
        elif self.terms.refund_method not in {choice for choice, _ in Return.REFUND_METHOD_CHOICES}:
            errors["refund_method"] = ["Select a refund method."]

        if errors:
            raise ReturnValidationError(errors)

    @property
    def is_exchange(self):
        return isinstance(self.terms, ExchangeTerms)

    @property
    def refund_method(self):
        return None if self.is_exchange else self.terms.refund_method

    @property
    def exchange_items(self):
        return self.terms.items if self.is_exchange else ()
