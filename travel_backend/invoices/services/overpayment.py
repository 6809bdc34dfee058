# invoices/services/overpayment.py

"""
OVERPAYMENT RESOLVER

Entered when verified money exceeds the invoice total. The excess sits in
Invoice.overpaid_amount until an operator picks exactly one outcome:

    transferred     credit toward another invoice of the same owner
                    (journal: cash clearing -> customer deposits)
    received        kept as extra balance, no journal
    refund_pending  -> refunded        (journal: cash clearing -> cash)
                    -> refund_canceled (request withdrawn)
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from accounting.services.account_mapping import (
    CATEGORY_OVERPAYMENT_REFUND,
    CATEGORY_OVERPAYMENT_TRANSFER,
)
from accounting.services.exceptions import DuplicatePostingError
from accounting.services.journal_entry_service import post_journal
from invoices.models.invoice import Invoice, InvoiceStatus, OverpaymentHandling
from invoices.services import notifications
from invoices.services.exceptions import (
    AlreadyResolvedError,
    InvalidOverpaymentTargetError,
    InvoiceServiceError,
)
from invoices.services.invoice_lifecycle import InvoiceEvent, is_terminal, transition
from invoices.services.invoice_service import lock_invoice
from invoices.signals import (
    OVERPAYMENT_DETECTED,
    OVERPAYMENT_RESOLVED,
    REFUND_COMPLETED,
)

logger = logging.getLogger(__name__)

OVERPAYMENT_SOURCE_TYPE = "invoice_overpayment"

RESOLUTION_EVENTS = {
    OverpaymentHandling.TRANSFERRED: InvoiceEvent.RESOLVE_TRANSFERRED,
    OverpaymentHandling.RECEIVED: InvoiceEvent.RESOLVE_RECEIVED,
    OverpaymentHandling.REFUND_PENDING: InvoiceEvent.REQUEST_REFUND,
}

RESOLVED_STATES = frozenset(
    {
        InvoiceStatus.OVERPAID_TRANSFERRED,
        InvoiceStatus.OVERPAID_RECEIVED,
        InvoiceStatus.REFUNDED,
        InvoiceStatus.REFUND_CANCELED,
    }
)


def enter_overpaid(invoice: Invoice, *, actor: str = "", now=None) -> Invoice:
    """
    Caller holds the row lock and has already applied the new gross paid.
    """
    transition(invoice, InvoiceEvent.OVERPAYMENT_DETECTED, actor=actor, now=now)
    invoice.overpayment_handling = ""
    invoice.overpayment_target = ""

    logger.warning(
        "Overpayment detected",
        extra={
            "invoice_id": str(invoice.id),
            "overpaid_amount": str(invoice.overpaid_amount),
            "actor": actor,
        },
    )
    notifications.notify_after_commit(
        OVERPAYMENT_DETECTED, invoice, overpaid_amount=invoice.overpaid_amount
    )
    return invoice


def _post_overpayment(invoice: Invoice, *, category: str, actor: str, **kwargs):
    try:
        return post_journal(
            category=category,
            amount=invoice.overpaid_amount,
            currency=invoice.currency,
            source_type=OVERPAYMENT_SOURCE_TYPE,
            source_id=str(invoice.id),
            created_by=actor,
            **kwargs,
        )
    except DuplicatePostingError as exc:
        logger.warning(
            "Overpayment journal already posted",
            extra={"invoice_id": str(invoice.id), "category": category},
        )
        return exc.existing_entry


def _transfer_target(invoice: Invoice, target_invoice_id) -> Invoice:
    if not target_invoice_id:
        raise InvalidOverpaymentTargetError("A target invoice is required for a transfer")

    try:
        target = Invoice.objects.get(pk=target_invoice_id)
    except (Invoice.DoesNotExist, ValidationError, ValueError) as exc:
        raise InvalidOverpaymentTargetError(
            f"Target invoice {target_invoice_id} not found"
        ) from exc

    if target.pk == invoice.pk:
        raise InvalidOverpaymentTargetError("An overpayment cannot be transferred to itself")
    if target.owner_id != invoice.owner_id:
        raise InvalidOverpaymentTargetError(
            "Overpayments can only be transferred between invoices of the same owner"
        )
    if is_terminal(target.status):
        raise InvalidOverpaymentTargetError(
            f"Target invoice {target.invoice_number} is {target.status}"
        )
    return target


@transaction.atomic
def resolve_overpayment(
    invoice_id,
    *,
    handling: str,
    target_invoice_id=None,
    actor: str = "",
) -> Invoice:
    invoice = lock_invoice(invoice_id)
    if invoice.status != InvoiceStatus.OVERPAID:
        raise AlreadyResolvedError(
            f"Invoice {invoice.invoice_number} is {invoice.status}; the overpayment is not open"
        )

    if handling not in OverpaymentHandling.values:
        raise InvoiceServiceError(f"Unknown overpayment handling '{handling}'")

    target = None
    if handling == OverpaymentHandling.TRANSFERRED:
        target = _transfer_target(invoice, target_invoice_id)

    transition(invoice, RESOLUTION_EVENTS[handling], actor=actor)
    invoice.overpayment_handling = handling

    if target is not None:
        invoice.overpayment_target = str(target.pk)
        _post_overpayment(
            invoice,
            category=CATEGORY_OVERPAYMENT_TRANSFER,
            actor=actor,
            description=(
                f"Kelebihan bayar {invoice.invoice_number} dialihkan ke {target.invoice_number}"
            ),
            reference_type="invoice",
            reference_id=str(target.pk),
        )

    invoice.save()

    logger.info(
        "Overpayment resolved",
        extra={
            "invoice_id": str(invoice.id),
            "handling": handling,
            "target": invoice.overpayment_target,
            "actor": actor,
        },
    )
    notifications.notify_after_commit(
        OVERPAYMENT_RESOLVED,
        invoice,
        handling=handling,
        overpaid_amount=invoice.overpaid_amount,
        target=invoice.overpayment_target,
    )
    return invoice


def _lock_refund_pending(invoice_id) -> Invoice:
    invoice = lock_invoice(invoice_id)
    if invoice.status in RESOLVED_STATES:
        raise AlreadyResolvedError(
            f"Invoice {invoice.invoice_number} is already {invoice.status}"
        )
    return invoice


@transaction.atomic
def confirm_refund(invoice_id, *, actor: str = "", reference: str = "") -> Invoice:
    """
    The excess was actually paid back to the customer.
    """
    invoice = _lock_refund_pending(invoice_id)
    transition(invoice, InvoiceEvent.CONFIRM_REFUND, actor=actor)

    _post_overpayment(
        invoice,
        category=CATEGORY_OVERPAYMENT_REFUND,
        actor=actor,
        description=f"Pengembalian kelebihan bayar {invoice.invoice_number}",
        reference_type="refund",
        reference_id=reference,
    )
    invoice.save()

    logger.info(
        "Overpayment refunded",
        extra={
            "invoice_id": str(invoice.id),
            "amount": str(invoice.overpaid_amount),
            "actor": actor,
        },
    )
    notifications.notify_after_commit(
        REFUND_COMPLETED, invoice, amount=invoice.overpaid_amount, reference=reference
    )
    return invoice


@transaction.atomic
def cancel_refund(invoice_id, *, actor: str = "", reason: str = "") -> Invoice:
    invoice = _lock_refund_pending(invoice_id)
    transition(invoice, InvoiceEvent.CANCEL_REFUND, actor=actor)
    invoice.save()

    logger.info(
        "Overpayment refund canceled",
        extra={"invoice_id": str(invoice.id), "actor": actor, "reason": reason},
    )
    notifications.notify_after_commit(
        OVERPAYMENT_RESOLVED, invoice, handling="refund_canceled", reason=reason
    )
    return invoice
