# accounting/models/period.py

"""
======================================================
PATH: accounting/models/period.py
======================================================
FISCAL YEAR + ACCOUNTING PERIOD MODELS

A fiscal year is split into 12 contiguous calendar-month periods.

Audit guarantees:
- Locks carry who/when
- Closing a fiscal year is one-way (no reopen)
- Neither model can be deleted once created
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class FiscalYear(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=100)

    start_date = models.DateField()
    end_date = models.DateField()

    is_closed = models.BooleanField(default=False)
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.CharField(max_length=64, blank=True, default="")

    created_by = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-start_date"]
        verbose_name = "Fiscal Year"
        verbose_name_plural = "Fiscal Years"
        permissions = [
            ("close_fiscalyear", "Can close fiscal years"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="chk_fiscal_year_end_gt_start",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.start_date} - {self.end_date})"

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip() or self.code
        if not self.code:
            raise ValidationError("Fiscal year code is required")

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = FiscalYear.objects.filter(pk=self.pk).first()
            if previous is not None and previous.is_closed and not self.is_closed:
                raise ValidationError("A closed fiscal year cannot be reopened")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Fiscal years cannot be deleted")


class AccountingPeriod(models.Model):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="periods",
    )

    period_number = models.PositiveSmallIntegerField()
    name = models.CharField(max_length=50)

    start_date = models.DateField()
    end_date = models.DateField()

    is_locked = models.BooleanField(default=False)
    locked_at = models.DateTimeField(null=True, blank=True)
    locked_by = models.CharField(max_length=64, blank=True, default="")
    unlocked_at = models.DateTimeField(null=True, blank=True)
    unlocked_by = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        ordering = ["start_date"]
        verbose_name = "Accounting Period"
        verbose_name_plural = "Accounting Periods"
        permissions = [
            ("lock_accountingperiod", "Can lock and unlock accounting periods"),
        ]
        indexes = [
            models.Index(fields=["start_date", "end_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["fiscal_year", "period_number"],
                name="uniq_period_fiscal_year_number",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gte=F("start_date")),
                name="chk_period_end_gte_start",
            ),
            models.CheckConstraint(
                condition=Q(period_number__gte=1) & Q(period_number__lte=12),
                name="chk_period_number_1_12",
            ),
        ]

    def __str__(self):
        state = "locked" if self.is_locked else "open"
        return f"{self.name} [{state}]"

    @property
    def accepts_postings(self) -> bool:
        return not self.is_locked and not self.fiscal_year.is_closed

    def delete(self, *args, **kwargs):
        raise ValidationError("Accounting periods cannot be deleted")
