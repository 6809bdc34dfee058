# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents a single accounting transaction (journal header).

Guarantees:
- Append-only once posted: the only later change allowed is posted -> reversed
- Idempotency via posting_key uniqueness (when provided)
- total_debit == total_credit, both in the base currency (IDR)
- Original currency + exchange rate are stored as booked, never recomputed
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from accounting.models.period import AccountingPeriod


class JournalEntry(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_SUBMITTED = "submitted"
    STATUS_APPROVED = "approved"
    STATUS_POSTED = "posted"
    STATUS_REVERSED = "reversed"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_SUBMITTED, "Submitted"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_POSTED, "Posted"),
        (STATUS_REVERSED, "Reversed"),
    ]

    FINAL_STATUSES = (STATUS_POSTED, STATUS_REVERSED)

    SOURCE_REVERSAL = "reversal"
    SOURCE_MANUAL = "manual"

    journal_number = models.CharField(
        max_length=30,
        unique=True,
        null=True,
        blank=True,
        help_text="Sequential number per period, assigned when posted (JU-YYYYMM-00001).",
    )

    period = models.ForeignKey(
        AccountingPeriod,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )
    entry_date = models.DateField()

    journal_type = models.CharField(
        max_length=50,
        help_text="Business-event category (cash_receipt, payroll, ...)",
    )

    source_type = models.CharField(max_length=50, blank=True, default="")
    source_id = models.CharField(max_length=64, blank=True, default="")

    posting_key = models.CharField(
        max_length=200,
        unique=True,
        null=True,
        blank=True,
        help_text="Idempotency key: source_type:source_id:category[:discriminator]",
    )

    description = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
    )

    total_debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    currency = models.CharField(max_length=3, default="IDR")
    exchange_rate = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        default=Decimal("1"),
        help_text="Base-currency units per one unit of currency, as booked.",
    )
    original_total = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Debit total in the original currency.",
    )

    created_by = models.CharField(max_length=64, blank=True, default="")
    approved_by = models.CharField(max_length=64, blank=True, default="")
    posted_by = models.CharField(max_length=64, blank=True, default="")

    approved_at = models.DateTimeField(null=True, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-entry_date", "-created_at"]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"
        permissions = [
            ("post_journalentry", "Can post journal entries"),
            ("approve_journalentry", "Can approve manual journal entries"),
            ("reverse_journalentry", "Can reverse posted journal entries"),
        ]
        indexes = [
            models.Index(fields=["entry_date"]),
            models.Index(fields=["status"]),
            models.Index(fields=["journal_type"]),
            models.Index(fields=["source_type", "source_id"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_debit=F("total_credit")),
                name="chk_journal_balanced",
            ),
            models.CheckConstraint(
                condition=Q(total_debit__gte=0),
                name="chk_journal_total_non_negative",
            ),
        ]

    _IMMUTABLE_FIELDS_AFTER_POST = (
        "journal_number",
        "period_id",
        "entry_date",
        "journal_type",
        "source_type",
        "source_id",
        "posting_key",
        "total_debit",
        "total_credit",
        "currency",
        "exchange_rate",
        "original_total",
        "posted_at",
    )

    def __str__(self):
        return f"{self.journal_number or f'DRAFT-{self.id}'} | {self.journal_type}"

    def clean(self):
        self.journal_type = (self.journal_type or "").strip().lower()
        if not self.journal_type:
            raise ValidationError("Journal type is required")

        if self.posting_key is not None:
            self.posting_key = self.posting_key.strip() or None

        if self.total_debit != self.total_credit:
            raise ValidationError(
                f"Journal entry not balanced: debit={self.total_debit} credit={self.total_credit}"
            )

        if self.period_id and not (
            self.period.start_date <= self.entry_date <= self.period.end_date
        ):
            raise ValidationError(
                f"Entry date {self.entry_date} is outside period {self.period.name}"
            )

    def _validate_immutable(self, previous: "JournalEntry") -> None:
        if previous.status not in self.FINAL_STATUSES:
            return

        if not (
            self.status == previous.status
            or (
                previous.status == self.STATUS_POSTED
                and self.status == self.STATUS_REVERSED
            )
        ):
            raise ValidationError(
                f"Journal entry is immutable once {previous.status}. "
                f"Status change {previous.status} -> {self.status} is not allowed."
            )

        for field in self._IMMUTABLE_FIELDS_AFTER_POST:
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(
                    f"Journal entry is immutable once {previous.status}. "
                    f"Field '{field}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = JournalEntry.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Journal entries are append-only and cannot be deleted")
