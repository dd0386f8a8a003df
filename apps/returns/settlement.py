"""
Settlement calculation for returns and exchanges.

Pure functions: nothing here touches the database except
``settlement_for_return``, which only reads a persisted return's lines.
Lines may be model instances, dataclasses or plain dicts.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert a number or numeric string to a Decimal rounded to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _field(line, name):
    if isinstance(line, dict):
        return line[name]
    return getattr(line, name)


def line_amount(quantity, unit_price) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_price))


def return_total(items: Iterable) -> Decimal:
    """Sum of quantity x original unit price over returned lines."""
    return to_money(
        sum(
            (line_amount(_field(i, "quantity"), _field(i, "original_unit_price")) for i in items),
            ZERO,
        )
    )


def exchange_total(exchange_items: Iterable) -> Decimal:
    """Sum of quantity x unit price over exchange lines."""
    return to_money(
        sum(
            (line_amount(_field(i, "quantity"), _field(i, "unit_price")) for i in exchange_items),
            ZERO,
        )
    )


def price_difference(returned: Decimal, exchanged: Decimal) -> Decimal:
    """Positive when the customer owes the store, negative when the store owes the customer."""
    return to_money(exchanged) - to_money(returned)


@dataclass(frozen=True)
class Settlement:
    """Monetary outcome of a return or exchange."""

    return_total: Decimal
    exchange_total: Decimal
    is_exchange: bool

    @property
    def price_difference(self) -> Optional[Decimal]:
        if not self.is_exchange:
            return None
        return price_difference(self.return_total, self.exchange_total)

    @property
    def refund_amount(self) -> Decimal:
        """Amount handed back through the refund method (zero for exchanges)."""
        return ZERO if self.is_exchange else self.return_total

    @property
    def customer_owes(self) -> Decimal:
        if not self.is_exchange:
            return ZERO
        return max(self.price_difference, ZERO)

    @property
    def store_owes(self) -> Decimal:
        if not self.is_exchange:
            return self.return_total
        return max(-self.price_difference, ZERO)

    def as_dict(self):
        difference = self.price_difference
        return {
            "is_exchange": self.is_exchange,
            "return_total": str(self.return_total),
            "exchange_total": str(self.exchange_total),
            "price_difference": None if difference is None else str(difference),
            "refund_amount": str(self.refund_amount),
            "customer_owes": str(self.customer_owes),
            "store_owes": str(self.store_owes),
        }


def settle(items: Iterable, exchange_items: Iterable = (), is_exchange: bool = False) -> Settlement:
    """Build the settlement for a set of returned lines and optional exchange lines."""
    exchanged = exchange_total(exchange_items) if is_exchange else ZERO
    return Settlement(
        return_total=return_total(items),
        exchange_total=exchanged,
        is_exchange=is_exchange,
    )


def settlement_for_return(return_request) -> Settlement:
    """Re-derive the settlement of a persisted return from its stored lines."""
    return settle(
        return_request.items.all(),
        return_request.exchange_items.all(),
        is_exchange=return_request.is_exchange(),
    )
