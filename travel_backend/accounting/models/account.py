# accounting/models/account.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class ChartOfAccount(models.Model):
    """
    A node in the chart-of-accounts tree.

    Guarantees:
    - Account codes are globally unique (e.g. "1-1-01")
    - Children share their parent's account type
    - Only active leaves (is_header=False) accept postings
    - level is derived from the parent, never set by hand
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (REVENUE, "Revenue"),
        (EXPENSE, "Expense"),
    ]

    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=150)

    account_type = models.CharField(
        max_length=20,
        choices=ACCOUNT_TYPES,
    )

    level = models.PositiveSmallIntegerField(default=1)
    is_header = models.BooleanField(
        default=False,
        help_text="Header accounts group children and never receive postings.",
    )
    currency = models.CharField(max_length=3, default="IDR")
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Chart of Account"
        verbose_name_plural = "Chart of Accounts"
        indexes = [
            models.Index(fields=["account_type"]),
            models.Index(fields=["is_active"]),
            models.Index(fields=["parent"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(code=""),
                name="chk_coa_code_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(name=""),
                name="chk_coa_name_not_blank",
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def is_postable(self) -> bool:
        return bool(self.is_active and not self.is_header)

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()
        self.currency = (self.currency or "IDR").strip().upper()

        if not self.code:
            raise ValidationError("Account code is required")
        if not self.name:
            raise ValidationError("Account name is required")

        parent = self.parent
        if parent is None:
            self.level = 1
            return

        if self.pk and parent.pk == self.pk:
            raise ValidationError("An account cannot be its own parent")
        if not parent.is_header:
            raise ValidationError(
                f"Parent account {parent.code} is a leaf; only header accounts can have children"
            )
        if parent.account_type != self.account_type:
            raise ValidationError(
                f"Account type {self.account_type} does not match parent type {parent.account_type}"
            )
        self.level = parent.level + 1

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
