"""
Return and exchange models.

A Return is raised against one completed sale and is a permanent audit
record: it is never deleted, its sale never changes, and once it has left
PENDING its reason and amounts are frozen.

State transitions:
pending → approved → completed
pending → rejected (terminal state)
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import User
from apps.inventory.models import Product
from apps.sales.models import Customer, Sale, SaleItem

from .exceptions import ReturnLockedError


class ReturnQuerySet(models.QuerySet):
    def active(self):
        """Returns that still count against the sale's returnable quantities."""
        return self.exclude(status=Return.REJECTED)

    def completed(self):
        return self.filter(status=Return.COMPLETED)

    def pending(self):
        return self.filter(status=Return.PENDING)


class Return(models.Model):
    """
    Customer return, optionally settled as an exchange.

    A refund return carries ``refund_method`` and settles for ``total_amount``.
    An exchange carries exchange items and settles for ``price_difference``.
    """

    # Reason choices
    DEFECTIVE = "DEFECTIVE"
    INCORRECT = "INCORRECT"
    NOT_NEEDED = "NOT_NEEDED"
    EXCHANGE = "EXCHANGE"
    OTHER = "OTHER"

    REASON_CHOICES = [
        (DEFECTIVE, "Defective"),
        (INCORRECT, "Incorrect"),
        (NOT_NEEDED, "Not Needed"),
        (EXCHANGE, "Exchange"),
        (OTHER, "Other"),
    ]

    # Refund method choices
    CASH = "CASH"
    CARD = "CARD"
    STORE_CREDIT = "STORE_CREDIT"

    REFUND_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (STORE_CREDIT, "Store Credit"),
    ]

    # Status choices for FSM
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
        (COMPLETED, "Completed"),
    ]

    # Fields frozen once the return has been decided
    LOCKED_FIELDS = ("reason", "refund_method", "total_amount", "price_difference")

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the return",
    )

    return_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Sequential return number (e.g., 'RET-000001')",
    )

    sale = models.ForeignKey(
        Sale,
        on_delete=models.PROTECT,
        related_name="returns",
        help_text="Sale the goods were originally bought on",
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="returns",
        help_text="Customer copied from the sale at creation",
    )

    reason = models.CharField(
        max_length=20,
        choices=REASON_CHOICES,
        help_text="Why the goods are coming back",
    )

    refund_method = models.CharField(
        max_length=20,
        choices=REFUND_METHOD_CHOICES,
        null=True,
        blank=True,
        help_text="How the customer is refunded (not used for exchanges)",
    )

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Sum of returned line amounts",
    )

    price_difference = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Exchange total minus return total (exchanges only); positive means the customer pays",
    )

    notes = models.TextField(
        blank=True,
        help_text="Notes from the cashier and the approver",
    )

    # FSM status field
    status = FSMField(
        default=PENDING,
        choices=STATUS_CHOICES,
        protected=True,
        help_text="Current status of the return",
    )

    # Workflow tracking
    processed_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="returns_processed",
        help_text="User who submitted the return",
    )

    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="returns_decided",
        help_text="User who approved or rejected the return",
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the return was submitted",
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the return was last updated",
    )

    decided_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the return was approved or rejected",
    )

    objects = ReturnQuerySet.as_manager()

    class Meta:
        db_table = "returns"
        ordering = ["-created_at"]
        verbose_name = "Return"
        verbose_name_plural = "Returns"
        indexes = [
            models.Index(fields=["status", "-created_at"], name="return_status_date_idx"),
            models.Index(fields=["reason", "-created_at"], name="return_reason_date_idx"),
            models.Index(fields=["sale"], name="return_sale_idx"),
        ]

    def __str__(self):
        return f"{self.return_number} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = dict(zip(field_names, values))
        return instance

    def save(self, *args, **kwargs):
        """
        Override save to keep decided returns immutable.
        """
        loaded = getattr(self, "_loaded_values", None)
        if loaded and not self._state.adding:
            changed = set()
            if "sale_id" in loaded and loaded["sale_id"] != self.sale_id:
                changed.add("sale")
            if loaded.get("status") != self.PENDING:
                for field in self.LOCKED_FIELDS:
                    if field in loaded and loaded[field] != getattr(self, field):
                        changed.add(field)
            if changed:
                raise ReturnLockedError(changed)
        super().save(*args, **kwargs)
        self._loaded_values = {
            field.attname: getattr(self, field.attname) for field in self._meta.concrete_fields
        }

    def delete(self, *args, **kwargs):
        raise ReturnLockedError(["id"])

    @transition(field=status, source=PENDING, target=APPROVED)
    def approve(self, user, notes=""):
        """
        Approve the return.

        Only the approval service calls this, after stock has been reconciled.
        """
        self.approved_by = user
        self.decided_at = timezone.now()
        if notes:
            self.notes = f"{self.notes}\n\nApproved by {user.username}: {notes}".strip()

    @transition(field=status, source=APPROVED, target=COMPLETED)
    def complete(self):
        """Mark the approved return as completed."""
        pass

    @transition(field=status, source=PENDING, target=REJECTED)
    def reject(self, user, notes):
        """
        Reject the return.

        Args:
            user: User rejecting the return
            notes: Reason for rejection
        """
        self.approved_by = user
        self.decided_at = timezone.now()
        self.notes = f"{self.notes}\n\nRejected by {user.username}: {notes}".strip()

    def is_exchange(self):
        return self.reason == self.EXCHANGE

    def is_pending(self):
        return self.status == self.PENDING

    def is_decided(self):
        return self.status in [self.REJECTED, self.COMPLETED]

    def can_be_decided_by(self, user):
        """Check if the user may approve or reject this return."""
        return bool(user and user.is_authenticated and user.can_approve_returns())

    def get_settlement(self):
        from .settlement import settlement_for_return

        return settlement_for_return(self)


class LockedLineMixin:
    """Lines of a decided return cannot be edited or removed."""

    def _check_editable(self):
        if not self._state.adding and self.return_request.status != Return.PENDING:
            raise ReturnLockedError(["items"])

    def save(self, *args, **kwargs):
        self._check_editable()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._check_editable()
        return super().delete(*args, **kwargs)


class ReturnItem(LockedLineMixin, models.Model):
    """
    A returned quantity of one sale line.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the return item",
    )

    return_request = models.ForeignKey(
        Return,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Return this item belongs to",
    )

    line_number = models.PositiveIntegerField(
        help_text="Position of the line within the return",
    )

    sale_item = models.ForeignKey(
        SaleItem,
        on_delete=models.PROTECT,
        related_name="return_items",
        help_text="Sale line the goods are returned from",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="return_items",
        help_text="Product being returned",
    )

    product_name = models.CharField(
        max_length=255,
        help_text="Product name at time of sale",
    )

    quantity = models.IntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity returned",
    )

    original_unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Unit price the customer paid",
    )

    return_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="quantity * original_unit_price",
    )

    is_defective = models.BooleanField(
        default=False,
        help_text="Defective units go back to defective stock instead of sellable stock",
    )

    class Meta:
        db_table = "return_items"
        ordering = ["return_request", "line_number"]
        verbose_name = "Return Item"
        verbose_name_plural = "Return Items"
        unique_together = [["return_request", "line_number"]]
        indexes = [
            models.Index(fields=["sale_item"], name="returnitem_saleitem_idx"),
            models.Index(fields=["product"], name="returnitem_product_idx"),
        ]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"


class ExchangeItem(LockedLineMixin, models.Model):
    """
    A product handed to the customer as part of an exchange.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the exchange item",
    )

    return_request = models.ForeignKey(
        Return,
        on_delete=models.CASCADE,
        related_name="exchange_items",
        help_text="Return this exchange item belongs to",
    )

    line_number = models.PositiveIntegerField(
        help_text="Position of the line within the exchange",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="exchange_items",
        help_text="Product given to the customer",
    )

    product_name = models.CharField(
        max_length=255,
        help_text="Product name at time of exchange",
    )

    quantity = models.IntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity given to the customer",
    )

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Unit price charged for the exchange product",
    )

    class Meta:
        db_table = "return_exchange_items"
        ordering = ["return_request", "line_number"]
        verbose_name = "Exchange Item"
        verbose_name_plural = "Exchange Items"
        unique_together = [["return_request", "line_number"]]
        indexes = [
            models.Index(fields=["product"], name="exchangeitem_product_idx"),
        ]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    @property
    def line_total(self):
        return self.unit_price * self.quantity
