"""
Sale lookup for return drafting.

Finds the original sale and reduces its lines to the ones that can still
be returned: lines whose product still exists, bounded by what has not
already come back on other non-rejected returns.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from django.db.models import Q, Sum

from apps.sales.models import Sale

from .exceptions import NoValidItemsError, SaleNotEligibleError, SaleNotFoundError
from .models import Return, ReturnItem

logger = logging.getLogger(__name__)


@dataclass
class ResolvedLine:
    sale_item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    sku: str
    purchased_quantity: int
    returned_quantity: int
    unit_price: Decimal

    @property
    def returnable_quantity(self) -> int:
        return max(self.purchased_quantity - self.returned_quantity, 0)

    @property
    def original_unit_price(self) -> Decimal:
        return self.unit_price


@dataclass
class ResolvedSale:
    """A sale together with the lines that may be returned."""

    sale: Sale
    lines: List[ResolvedLine] = field(default_factory=list)
    excluded_count: int = 0

    @property
    def sale_id(self):
        return self.sale.pk

    @property
    def sale_number(self):
        return self.sale.sale_number

    @property
    def warnings(self) -> List[str]:
        if not self.excluded_count:
            return []
        return [
            f"{self.excluded_count} item(s) on this sale refer to products that no longer "
            f"exist and cannot be returned."
        ]

    def line_for(self, sale_item_id) -> Optional[ResolvedLine]:
        for line in self.lines:
            if str(line.sale_item_id) == str(sale_item_id):
                return line
        return None

    def lines_for_product(self, product_id) -> List[ResolvedLine]:
        return [line for line in self.lines if str(line.product_id) == str(product_id)]


class SaleResolver:
    """
    Resolve sales by id or invoice number.
    """

    @staticmethod
    def find_sale(search_key) -> Sale:
        """
        Look a sale up by UUID or, failing that, by exact invoice number.

        Raises:
            SaleNotFoundError: If nothing matches
        """
        key = str(search_key or "").strip()
        if not key:
            raise SaleNotFoundError("A sale identifier or invoice number is required.")

        queryset = Sale.objects.select_related("customer")
        sale = None
        try:
            sale = queryset.filter(pk=uuid.UUID(key)).first()
        except ValueError:
            pass
        if sale is None:
            sale = queryset.filter(sale_number__iexact=key).first()
        if sale is None:
            raise SaleNotFoundError(f"Sale '{key}' not found.")
        return sale

    @staticmethod
    def returned_quantities(sale, exclude_return_id=None) -> Dict[uuid.UUID, int]:
        """Quantities per sale line already claimed by non-rejected returns."""
        queryset = ReturnItem.objects.filter(sale_item__sale=sale).exclude(
            return_request__status=Return.REJECTED
        )
        if exclude_return_id is not None:
            queryset = queryset.exclude(return_request_id=exclude_return_id)
        rows = queryset.values("sale_item_id").annotate(total=Sum("quantity"))
        return {row["sale_item_id"]: row["total"] for row in rows}

    @classmethod
    def resolve(cls, search_key) -> ResolvedSale:
        """
        Find a sale and return its returnable lines.

        Raises:
            SaleNotFoundError: If no sale matches
            SaleNotEligibleError: If the sale is cancelled, returned, or fully claimed
            NoValidItemsError: If none of the sale's products still exist
        """
        return cls.resolve_sale(cls.find_sale(search_key))

    @classmethod
    def resolve_sale(cls, sale) -> ResolvedSale:
        if not sale.can_be_returned():
            raise SaleNotEligibleError(
                f"Sale {sale.sale_number} cannot be returned. "
                f"Current status: {sale.get_status_display()}"
            )

        returned = cls.returned_quantities(sale)
        resolved = ResolvedSale(sale=sale)
        for item in sale.items.select_related("product"):
            if item.product_id is None:
                resolved.excluded_count += 1
                continue
            resolved.lines.append(
                ResolvedLine(
                    sale_item_id=item.pk,
                    product_id=item.product_id,
                    product_name=item.product_name or item.product.name,
                    sku=item.product.sku,
                    purchased_quantity=item.quantity,
                    returned_quantity=returned.get(item.pk, 0),
                    unit_price=item.unit_price,
                )
            )

        if not resolved.lines:
            logger.info(
                f"Sale {sale.sale_number} has no valid items ({resolved.excluded_count} excluded)"
            )
            raise NoValidItemsError(sale.sale_number, resolved.excluded_count)

        if not any(line.returnable_quantity for line in resolved.lines):
            raise SaleNotEligibleError(
                f"All items on sale {sale.sale_number} have already been returned."
            )

        return resolved

    @staticmethod
    def search(query, limit=20):
        """Sales that returns can still be raised against, matching an invoice or customer."""
        queryset = Sale.objects.filter(status=Sale.COMPLETED).select_related("customer")
        if query:
            queryset = queryset.filter(
                Q(sale_number__icontains=query)
                | Q(customer__first_name__icontains=query)
                | Q(customer__last_name__icontains=query)
                | Q(customer__phone__icontains=query)
            )
        return queryset.order_by("-created_at")[:limit]
