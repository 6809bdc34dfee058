# invoices/tests/helpers.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from itertools import count

from django.utils import timezone

from invoices.models import Invoice
from invoices.services.invoice_service import create_invoice
from invoices.services.payment_verification import submit_payment_proof, verify_payment
from orders.models import Order

_order_numbers = count(1)


def make_order(total="5500000.00", *, owner_id="OWN-1", branch_id="BR-JKT", currency="IDR"):
    total = Decimal(total)
    return Order.objects.create(
        order_number=f"ORD-TEST-{next(_order_numbers):04d}",
        owner_id=owner_id,
        branch_id=branch_id,
        total_jamaah=2,
        subtotal=total,
        total_amount=total,
        currency=currency,
        status=Order.STATUS_CONFIRMED,
    )


def make_invoice(total="5500000.00", **kwargs) -> Invoice:
    order_kwargs = {
        key: kwargs.pop(key) for key in ("owner_id", "branch_id", "currency") if key in kwargs
    }
    order = make_order(total, **order_kwargs)
    return create_invoice(order, created_by="sales-1", **kwargs)


def pay(invoice, amount, payment_type="partial", *, approve=True, verified_by="finance-1"):
    """Submit one proof and verify it. Returns (invoice, proof)."""
    proof = submit_payment_proof(
        invoice.id,
        payment_type=payment_type,
        amount=Decimal(amount),
        bank_name="BCA",
        uploaded_by="customer-1",
    )
    invoice = verify_payment(invoice.id, proof.id, approve=approve, verified_by=verified_by)
    return invoice, proof


def expire_grace_window(invoice, *, hours=1) -> Invoice:
    """Move auto_cancel_at into the past without touching anything else."""
    Invoice.objects.filter(pk=invoice.pk).update(
        auto_cancel_at=timezone.now() - timedelta(hours=hours)
    )
    return Invoice.objects.get(pk=invoice.pk)
