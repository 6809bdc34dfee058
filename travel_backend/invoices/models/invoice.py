# invoices/models/invoice.py

"""
======================================================
PATH: invoices/models/invoice.py
======================================================
INVOICE MODEL

One order's billing record.

Guarantees:
- paid_amount + remaining_amount == total_amount at rest
- remaining_amount, overpaid_amount >= 0 (any excess over the total lives
  in overpaid_amount, paid_amount is capped at the total)
- status only changes through invoices.services.invoice_lifecycle
- never deleted; cancellation is a status
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    TENTATIVE = "tentative", "Tentative"
    PARTIAL_PAID = "partial_paid", "Partially paid"
    PAID = "paid", "Paid"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    OVERDUE = "overdue", "Overdue"
    CANCELED = "canceled", "Canceled"
    ORDER_UPDATED = "order_updated", "Order updated"
    OVERPAID = "overpaid", "Overpaid"
    OVERPAID_TRANSFERRED = "overpaid_transferred", "Overpaid (transferred)"
    OVERPAID_RECEIVED = "overpaid_received", "Overpaid (received)"
    OVERPAID_REFUND_PENDING = "overpaid_refund_pending", "Overpaid (refund pending)"
    REFUND_CANCELED = "refund_canceled", "Refund canceled"
    REFUNDED = "refunded", "Refunded"


class OverpaymentHandling(models.TextChoices):
    TRANSFERRED = "transferred", "Transferred to another invoice"
    RECEIVED = "received", "Received as extra balance"
    REFUND_PENDING = "refund_pending", "Refund to customer"


class Invoice(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice_number = models.CharField(max_length=50, unique=True)

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="invoice",
    )
    owner_id = models.CharField(max_length=64, db_index=True)
    branch_id = models.CharField(max_length=64, db_index=True)

    total_amount = models.DecimalField(max_digits=18, decimal_places=2)
    dp_percentage = models.PositiveSmallIntegerField(default=30)
    dp_amount = models.DecimalField(max_digits=18, decimal_places=2)
    paid_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    remaining_amount = models.DecimalField(max_digits=18, decimal_places=2)
    overpaid_amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Verified payments above the total.",
    )
    currency = models.CharField(max_length=3, default="IDR")
    is_super_promo = models.BooleanField(default=False)

    status = models.CharField(
        max_length=30,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
    )

    issued_at = models.DateTimeField(null=True, blank=True)
    due_date_dp = models.DateTimeField(null=True, blank=True)
    due_date_full = models.DateTimeField(null=True, blank=True)
    auto_cancel_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="The overdue sweep blocks the invoice after this moment if the DP is still missing.",
    )

    is_blocked = models.BooleanField(default=False)
    is_overdue = models.BooleanField(default=False)
    overdue_activated_by = models.CharField(max_length=64, blank=True, default="")
    overdue_activated_at = models.DateTimeField(null=True, blank=True)

    overpayment_handling = models.CharField(
        max_length=20,
        choices=OverpaymentHandling.choices,
        blank=True,
        default="",
    )
    overpayment_target = models.CharField(max_length=64, blank=True, default="")

    terms = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("verify_paymentproof", "Can verify or reject payment proofs"),
            ("unblock_invoice", "Can unblock overdue invoices"),
            ("resolve_overpayment", "Can resolve overpaid invoices"),
            ("progress_invoice", "Can move invoices through processing"),
        ]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["status", "auto_cancel_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount=F("paid_amount") + F("remaining_amount")),
                name="chk_invoice_paid_plus_remaining",
            ),
            models.CheckConstraint(
                condition=Q(remaining_amount__gte=0),
                name="chk_invoice_remaining_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=0) & Q(overpaid_amount__gte=0),
                name="chk_invoice_paid_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.invoice_number} [{self.status}]"

    @property
    def gross_paid(self) -> Decimal:
        """All verified money, including any excess over the total."""
        return (self.paid_amount or Decimal("0.00")) + (
            self.overpaid_amount or Decimal("0.00")
        )

    def clean(self):
        self.currency = (self.currency or "IDR").strip().upper()
        if self.total_amount is not None and self.total_amount < 0:
            raise ValidationError("Invoice total cannot be negative")
        if self.paid_amount + self.remaining_amount != self.total_amount:
            raise ValidationError(
                f"paid ({self.paid_amount}) + remaining ({self.remaining_amount}) "
                f"must equal total ({self.total_amount})"
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Invoices are never deleted; cancel them instead")
