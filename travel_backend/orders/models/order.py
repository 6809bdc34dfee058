# orders/models/order.py

"""
ORDER MODEL (billing view)

Only the fields billing reads: totals, currency, owner and branch.
Item-level booking data (hotel rooms, visas, tickets, buses) is managed
elsewhere and is not modelled here.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Order(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_TENTATIVE = "tentative"
    STATUS_CONFIRMED = "confirmed"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_TENTATIVE, "Tentative"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=50, unique=True)

    # Opaque ids owned by the user/branch subsystem
    owner_id = models.CharField(max_length=64, db_index=True)
    branch_id = models.CharField(max_length=64, db_index=True)

    total_jamaah = models.PositiveIntegerField(default=0)

    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    penalty_amount = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Surcharges such as a bus booked below the minimum pack size.",
    )
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    currency = models.CharField(max_length=3, default="IDR")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
    )

    created_by = models.CharField(max_length=64, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="chk_order_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.order_number} ({self.total_amount} {self.currency})"

    def compute_total(self) -> Decimal:
        return (
            (self.subtotal or Decimal("0.00"))
            - (self.discount or Decimal("0.00"))
            + (self.penalty_amount or Decimal("0.00"))
        )

    def clean(self):
        self.currency = (self.currency or "IDR").strip().upper()
        self.order_number = (self.order_number or "").strip()
        if not self.order_number:
            raise ValidationError("Order number is required")
        if self.discount and self.discount < 0:
            raise ValidationError("Discount cannot be negative")
        if self.total_amount is not None and self.total_amount < 0:
            raise ValidationError("Order total cannot be negative")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
