# accounting/models/journal_line.py

"""
======================================================
PATH: accounting/models/journal_line.py
======================================================
JOURNAL ENTRY LINE MODEL

One debit or credit row of a journal entry.

Guarantees:
- Immutable once created (no updates, no deletes)
- Exactly one of debit_amount / credit_amount is non-zero
- Amounts are non-negative and expressed in the base currency;
  original_* keep the amounts in the entry's original currency
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import ChartOfAccount
from accounting.models.journal import JournalEntry


class JournalEntryLine(models.Model):
    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    account = models.ForeignKey(
        ChartOfAccount,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    debit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    credit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    original_debit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    original_credit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    line_description = models.CharField(max_length=255, blank=True, default="")
    cost_center = models.CharField(max_length=50, blank=True, default="")

    # Back-reference to the originating business object (payment proof, ...)
    reference_type = models.CharField(max_length=50, blank=True, default="")
    reference_id = models.CharField(max_length=64, blank=True, default="")

    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        verbose_name = "Journal Entry Line"
        verbose_name_plural = "Journal Entry Lines"
        indexes = [
            models.Index(fields=["account"]),
            models.Index(fields=["entry"]),
            models.Index(fields=["reference_type", "reference_id"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(debit_amount__gte=0) & Q(credit_amount__gte=0),
                name="chk_line_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=(Q(debit_amount__gt=0) & Q(credit_amount=0))
                | (Q(debit_amount=0) & Q(credit_amount__gt=0)),
                name="chk_line_one_side_only",
            ),
        ]

    def __str__(self):
        side = "DR" if self.debit_amount else "CR"
        amount = self.debit_amount or self.credit_amount
        return f"{side} {amount} -> {self.account_id}"

    def clean(self):
        debit = self.debit_amount or Decimal("0.00")
        credit = self.credit_amount or Decimal("0.00")
        if debit < 0 or credit < 0:
            raise ValidationError("Line amounts cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationError("A line must have either a debit or a credit amount")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Journal lines are immutable and cannot be modified")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Journal lines are immutable and cannot be deleted")
