"""
Core models for the retail back-office platform.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models, transaction


class User(AbstractUser):
    """
    Extended user model with a store role.

    The store is operated by a single owner; managers and owners hold the
    privileged roles, cashiers run day-to-day counter work.
    """

    # Role choices
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"

    ROLE_CHOICES = [
        (OWNER, "Store Owner"),
        (MANAGER, "Store Manager"),
        (CASHIER, "Cashier"),
    ]

    role = models.CharField(
        max_length=50,
        choices=ROLE_CHOICES,
        default=CASHIER,
        help_text="User's role in the store",
    )

    phone = models.CharField(
        max_length=20,
        blank=True,
        help_text="User's phone number",
    )

    class Meta:
        db_table = "users"
        ordering = ["username"]
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=["role"], name="user_role_idx"),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def is_owner(self):
        """Check if user is the store owner."""
        return self.role == self.OWNER

    def is_manager(self):
        """Check if user is a store manager."""
        return self.role == self.MANAGER

    def is_cashier(self):
        """Check if user is a cashier."""
        return self.role == self.CASHIER

    def has_store_access(self):
        """Check if user may use the back-office at all."""
        return self.is_active and self.role in [self.OWNER, self.MANAGER, self.CASHIER]

    def can_manage_inventory(self):
        """Check if user can manage inventory."""
        return self.role in [self.OWNER, self.MANAGER]

    def can_process_returns(self):
        """Check if user can draft and submit returns."""
        return self.has_store_access()

    def can_approve_returns(self):
        """Check if user can approve or reject returns."""
        return self.is_active and self.role in [self.OWNER, self.MANAGER]


class DocumentSequence(models.Model):
    """
    Serial counter backing human-readable document numbers.

    Each named sequence is a single row that is locked while it is
    incremented, so numbers are handed out one at a time. A number taken
    by a transaction that later rolls back is simply skipped.
    """

    name = models.CharField(
        max_length=50,
        unique=True,
        help_text="Sequence name (e.g., 'sale', 'return')",
    )

    last_value = models.PositiveBigIntegerField(
        default=0,
        help_text="Last value handed out",
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "document_sequences"
        ordering = ["name"]
        verbose_name = "Document Sequence"
        verbose_name_plural = "Document Sequences"

    def __str__(self):
        return f"{self.name}: {self.last_value}"

    @classmethod
    def next_value(cls, name):
        """Lock the named sequence, advance it and return the new value."""
        with transaction.atomic():
            sequence, _ = cls.objects.select_for_update().get_or_create(name=name)
            sequence.last_value += 1
            sequence.save(update_fields=["last_value", "updated_at"])
        return sequence.last_value

    @classmethod
    def next_number(cls, name, prefix, padding):
        """Return the next formatted number, e.g. ``RET-000001``."""
        return f"{prefix}-{cls.next_value(name):0{padding}d}"
