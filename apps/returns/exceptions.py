"""
Domain errors for return and exchange processing.

Views translate these into HTTP responses; nothing in this module knows
about HTTP.
"""


class ReturnError(Exception):
    """Base class for all return processing errors."""

    pass


class ReturnValidationError(ReturnError):
    """
    Raised when a draft or submission is incomplete or inconsistent.

    ``errors`` maps a field name to a list of messages.
    """

    def __init__(self, errors):
        self.errors = {
            field: list(messages) if isinstance(messages, (list, tuple)) else [messages]
            for field, messages in errors.items()
        }
        summary = "; ".join(
            f"{field}: {' '.join(messages)}" for field, messages in self.errors.items()
        )
        super().__init__(summary or "Invalid return.")


class NotFoundError(ReturnError):
    """Raised when a referenced record does not exist."""

    pass


class SaleNotFoundError(NotFoundError):
    """Raised when no sale matches the given identifier or invoice number."""

    pass


class ReturnNotFoundError(NotFoundError):
    """Raised when no return matches the given identifier."""

    pass


class NoValidItemsError(ReturnError):
    """Raised when every line of a sale refers to a product that no longer exists."""

    def __init__(self, sale_number, excluded_count):
        self.sale_number = sale_number
        self.excluded_count = excluded_count
        super().__init__(
            f"Sale {sale_number} has no returnable items: all {excluded_count} of its "
            f"products have been removed from the catalog."
        )


class SaleNotEligibleError(ReturnError):
    """Raised when a sale is cancelled, already returned, or has nothing left to return."""

    pass


class InvalidTransitionError(ReturnError):
    """Raised when a status or draft step change is not allowed from the current state."""

    def __init__(self, current, action):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} from state {current}.")


class AuthorizationError(ReturnError):
    """Raised when the acting user may not approve or reject returns."""

    pass


class ReconciliationFailed(ReturnError):
    """
    Raised when stock or quantity re-validation fails while approving.

    ``failures`` is a list of dicts describing each failing line, including
    the product and the requested and available quantities.
    """

    def __init__(self, failures):
        self.failures = list(failures)
        details = "; ".join(failure["message"] for failure in self.failures)
        super().__init__(f"Reconciliation failed: {details}")


class ReturnLockedError(ReturnError):
    """Raised when a decided return, or a return's sale, would be modified."""

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Return fields cannot be modified: {', '.join(self.fields)}")
