# invoices/services/invoice_service.py

"""
======================================================
PATH: invoices/services/invoice_service.py
======================================================
INVOICE SERVICE

Creation from an order and the operator-driven progress steps:
- create_invoice           (draft, or tentative when issued right away)
- issue_invoice            draft -> tentative
- start_processing         partial_paid | paid -> processing
- complete_invoice         processing -> completed (fully paid only)
- cancel_invoice           overdue -> canceled
- handle_order_updated     any non-terminal -> order_updated
- rebill_invoice           order_updated -> status derived from amounts

Every mutation locks the invoice row first and re-reads it after locking.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from invoices.models.invoice import Invoice, InvoiceStatus
from invoices.models.payment_proof import ProofStatus
from invoices.models.sequence import InvoiceSequence
from invoices.services import notifications
from invoices.services.exceptions import (
    DuplicateInvoiceError,
    InvalidTransitionError,
    InvoiceClosedError,
    InvoiceNotFoundError,
    InvoiceServiceError,
)
from invoices.services.invoice_lifecycle import (
    InvoiceEvent,
    apply_gross_paid,
    is_terminal,
    money,
    transition,
)
from invoices.signals import INVOICE_CANCELED, INVOICE_CREATED, OVERPAYMENT_DETECTED
from orders.models.order import Order

logger = logging.getLogger(__name__)


def lock_invoice(invoice_id) -> Invoice:
    """
    Row-lock an invoice for the rest of the current transaction.
    """
    try:
        return Invoice.objects.select_for_update().get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValidationError, ValueError) as exc:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found") from exc


def next_invoice_number(year: int) -> str:
    InvoiceSequence.objects.get_or_create(year=year)
    sequence = InvoiceSequence.objects.select_for_update().get(year=year)
    sequence.last_number += 1
    sequence.save(update_fields=["last_number"])
    return f"INV-{year}-{sequence.last_number:05d}"


def dp_percentage_for(is_super_promo: bool) -> Decimal:
    if is_super_promo:
        return Decimal(settings.INVOICE_SUPER_PROMO_DP_PERCENTAGE)
    return Decimal(settings.INVOICE_DP_PERCENTAGE)


def dp_amount_for(total: Decimal, percentage: Decimal) -> Decimal:
    return money(money(total) * Decimal(percentage) / Decimal("100"))


def default_terms(dp_percentage: Decimal) -> list[str]:
    return [
        f"Invoice tentative batal otomatis bila dalam {settings.INVOICE_DP_GRACE_HOURS} jam "
        "setelah issued belum ada DP",
        f"Minimal DP {dp_percentage.normalize():f}% dari total",
        f"Jatuh tempo DP {settings.INVOICE_DP_DUE_DAYS} hari setelah issued",
    ]


@transaction.atomic
def create_invoice(
    order: Order | str,
    *,
    is_super_promo: bool = False,
    issue: bool = True,
    created_by: str = "",
    notes: str = "",
) -> Invoice:
    """
    Bill an order. Total, currency, owner and branch are read once from the
    order; later order edits come in through handle_order_updated.
    """
    order_id = order.pk if isinstance(order, Order) else order
    try:
        order = Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, ValidationError, ValueError) as exc:
        raise InvoiceServiceError(f"Order {order_id} not found") from exc

    if Invoice.objects.filter(order=order).exists():
        raise DuplicateInvoiceError(f"Order {order.order_number} already has an invoice")

    total = money(order.total_amount)
    if total <= 0:
        raise InvoiceServiceError(
            f"Order {order.order_number} has no billable total ({total})"
        )

    percentage = dp_percentage_for(is_super_promo)
    now = timezone.now()

    invoice = Invoice(
        invoice_number=next_invoice_number(timezone.localtime(now).year),
        order=order,
        owner_id=order.owner_id,
        branch_id=order.branch_id,
        total_amount=total,
        dp_percentage=int(percentage),
        dp_amount=dp_amount_for(total, percentage),
        paid_amount=Decimal("0.00"),
        remaining_amount=total,
        currency=order.currency,
        is_super_promo=is_super_promo,
        status=InvoiceStatus.DRAFT,
        terms=default_terms(percentage),
        notes=notes,
        created_by=created_by or "",
    )
    if issue:
        transition(invoice, InvoiceEvent.ISSUE, actor=created_by, now=now)
    invoice.save()

    logger.info(
        "Invoice created",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "order_id": str(order.id),
            "total": str(total),
            "dp_amount": str(invoice.dp_amount),
        },
    )
    notifications.notify_after_commit(INVOICE_CREATED, invoice, total=total)
    return invoice


def _step(invoice_id, event: str, *, actor: str) -> Invoice:
    invoice = lock_invoice(invoice_id)
    transition(invoice, event, actor=actor)
    invoice.save()

    logger.info(
        "Invoice transitioned",
        extra={
            "invoice_id": str(invoice.id),
            "event": str(event),
            "status": str(invoice.status),
            "actor": actor,
        },
    )
    return invoice


@transaction.atomic
def issue_invoice(invoice_id, *, actor: str = "") -> Invoice:
    return _step(invoice_id, InvoiceEvent.ISSUE, actor=actor)


@transaction.atomic
def start_processing(invoice_id, *, actor: str = "") -> Invoice:
    return _step(invoice_id, InvoiceEvent.START_PROCESSING, actor=actor)


@transaction.atomic
def complete_invoice(invoice_id, *, actor: str = "") -> Invoice:
    return _step(invoice_id, InvoiceEvent.COMPLETE, actor=actor)


@transaction.atomic
def cancel_invoice(invoice_id, *, actor: str = "", reason: str = "") -> Invoice:
    invoice = _step(invoice_id, InvoiceEvent.CANCEL, actor=actor)
    notifications.notify_after_commit(INVOICE_CANCELED, invoice, actor=actor, reason=reason)
    return invoice


@transaction.atomic
def handle_order_updated(order: Order, *, actor: str = "") -> Invoice | None:
    """
    Flag the order's invoice for re-billing. Orders without an invoice are
    ignored; a closed invoice refuses the order edit.
    """
    invoice_id = (
        Invoice.objects.filter(order_id=order.pk).values_list("id", flat=True).first()
    )
    if invoice_id is None:
        return None

    invoice = lock_invoice(invoice_id)
    if is_terminal(invoice.status):
        raise InvoiceClosedError(
            f"Invoice {invoice.invoice_number} is {invoice.status}; the order can no longer change"
        )

    transition(invoice, InvoiceEvent.ORDER_UPDATED, actor=actor)
    invoice.save()

    logger.info(
        "Invoice flagged for re-billing",
        extra={"invoice_id": str(invoice.id), "order_id": str(order.pk), "actor": actor},
    )
    return invoice


def verified_total(invoice: Invoice) -> Decimal:
    """Sum of verified proofs; equals invoice.gross_paid when consistent."""
    return money(
        sum(
            (p.amount for p in invoice.payment_proofs.filter(status=ProofStatus.VERIFIED)),
            Decimal("0.00"),
        )
    )


@transaction.atomic
def rebill_invoice(invoice_id, *, actor: str = "") -> Invoice:
    """
    Re-read the order total, recompute DP and amounts, and derive the status
    from the verified money already received.
    """
    invoice = lock_invoice(invoice_id)
    if invoice.status != InvoiceStatus.ORDER_UPDATED:
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number} has no pending order update"
        )

    order = Order.objects.get(pk=invoice.order_id)
    total = money(order.total_amount)
    gross_paid = verified_total(invoice)
    if gross_paid != invoice.gross_paid:
        logger.error(
            "Invoice amounts drifted from verified proofs; re-billing from proofs",
            extra={
                "invoice_id": str(invoice.id),
                "stored_gross_paid": str(invoice.gross_paid),
                "verified_total": str(gross_paid),
            },
        )

    invoice.total_amount = total
    invoice.currency = order.currency
    invoice.dp_amount = dp_amount_for(total, Decimal(invoice.dp_percentage))
    apply_gross_paid(invoice, gross_paid)

    transition(invoice, InvoiceEvent.REBILL, actor=actor)
    invoice.save()

    logger.info(
        "Invoice re-billed",
        extra={
            "invoice_id": str(invoice.id),
            "total": str(total),
            "status": str(invoice.status),
            "actor": actor,
        },
    )
    if invoice.status == InvoiceStatus.OVERPAID:
        notifications.notify_after_commit(
            OVERPAYMENT_DETECTED, invoice, overpaid_amount=invoice.overpaid_amount
        )
    return invoice
