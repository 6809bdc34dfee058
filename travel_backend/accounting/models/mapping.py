# accounting/models/mapping.py

"""
ACCOUNT MAPPING MODEL

Business-event category (sales_hotel, cash_receipt, payroll, ...) ->
(debit account, credit account).

Read-only at posting time; administered through the admin or the seed command.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import ChartOfAccount


class AccountMapping(models.Model):
    mapping_type = models.CharField(max_length=50, unique=True)

    debit_account = models.ForeignKey(
        ChartOfAccount,
        on_delete=models.PROTECT,
        related_name="debit_mappings",
    )
    credit_account = models.ForeignKey(
        ChartOfAccount,
        on_delete=models.PROTECT,
        related_name="credit_mappings",
    )

    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["mapping_type"]
        verbose_name = "Account Mapping"
        verbose_name_plural = "Account Mappings"
        constraints = [
            models.CheckConstraint(
                condition=~Q(mapping_type=""),
                name="chk_mapping_type_not_blank",
            ),
        ]

    def __str__(self):
        return f"{self.mapping_type}: {self.debit_account_id} / {self.credit_account_id}"

    def clean(self):
        self.mapping_type = (self.mapping_type or "").strip().lower()
        if not self.mapping_type:
            raise ValidationError("Mapping type is required")

        if self.debit_account_id and self.debit_account_id == self.credit_account_id:
            raise ValidationError("Debit and credit accounts must differ")

        for label, account in (
            ("debit", self.debit_account if self.debit_account_id else None),
            ("credit", self.credit_account if self.credit_account_id else None),
        ):
            if account is not None and account.is_header:
                raise ValidationError(
                    f"The {label} account {account.code} is a header account"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
