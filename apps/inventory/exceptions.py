"""
Exceptions raised by the inventory service.
"""


class InsufficientStockError(Exception):
    """Raised when a conditional stock decrement cannot be satisfied."""

    def __init__(self, product_id, product_name, requested, available):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_name or product_id}. "
            f"Available: {available}, Requested: {requested}"
        )

    def as_dict(self):
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "requested": self.requested,
            "available": self.available,
        }


class ProductNotFoundError(Exception):
    """Raised when a stock operation targets a product that no longer exists."""

    pass
