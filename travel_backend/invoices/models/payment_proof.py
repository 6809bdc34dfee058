# invoices/models/payment_proof.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class PaymentType(models.TextChoices):
    DP = "dp", "Down payment"
    PARTIAL = "partial", "Partial"
    FULL = "full", "Full"


class ProofStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    REJECTED = "rejected", "Rejected"


class PaymentProof(models.Model):
    """
    One uploaded evidence of transfer.

    Verification changes it exactly once (pending -> verified | rejected).
    The image itself lives in external storage; only its reference is kept.
    """

    invoice = models.ForeignKey(
        "invoices.Invoice",
        on_delete=models.PROTECT,
        related_name="payment_proofs",
    )

    payment_type = models.CharField(max_length=10, choices=PaymentType.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)

    bank_name = models.CharField(max_length=100, blank=True, default="")
    account_number = models.CharField(
        max_length=50, blank=True, default="", help_text="Sender account / bank reference."
    )
    transfer_date = models.DateField(null=True, blank=True)
    proof_file_url = models.CharField(max_length=500, blank=True, default="")

    uploaded_by = models.CharField(max_length=64, blank=True, default="")

    status = models.CharField(
        max_length=10,
        choices=ProofStatus.choices,
        default=ProofStatus.PENDING,
    )
    verified_by = models.CharField(max_length=64, blank=True, default="")
    verified_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["invoice", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="chk_payment_proof_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.payment_type} {self.amount} [{self.status}]"

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = PaymentProof.objects.filter(pk=self.pk).first()
            if previous is not None and previous.status != ProofStatus.PENDING:
                raise ValidationError(
                    f"Payment proof {self.pk} is already {previous.status} and cannot change"
                )

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payment proofs cannot be deleted")
