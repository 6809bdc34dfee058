# invoices/services/invoice_lifecycle.py

"""
======================================================
PATH: invoices/services/invoice_lifecycle.py
======================================================
INVOICE LIFECYCLE DOMAIN RULES

The ONLY place that changes Invoice.status and the timestamps that govern it.

DESIGN PRINCIPLES:
- No database writes (callers lock, transition, then save)
- One table: (status, event) -> target status or amount-derived resolver
- Anything not in the table is illegal
- A rejected transition leaves the in-memory invoice untouched

Amount semantics:
    gross paid == 0        -> stays pre-payment
    0 < gross paid < total -> partial_paid
    gross paid == total    -> paid
    gross paid > total     -> overpaid (only via overpayment_detected / rebill)
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from invoices.models.invoice import Invoice, InvoiceStatus
from invoices.services.exceptions import InvalidTransitionError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

S = InvoiceStatus


class InvoiceEvent(models.TextChoices):
    ISSUE = "issue"
    PAYMENT_VERIFIED = "payment_verified"
    OVERPAYMENT_DETECTED = "overpayment_detected"
    MARK_OVERDUE = "mark_overdue"
    UNBLOCK = "unblock"
    CANCEL = "cancel"
    START_PROCESSING = "start_processing"
    COMPLETE = "complete"
    ORDER_UPDATED = "order_updated"
    REBILL = "rebill"
    RESOLVE_TRANSFERRED = "resolve_transferred"
    RESOLVE_RECEIVED = "resolve_received"
    REQUEST_REFUND = "request_refund"
    CONFIRM_REFUND = "confirm_refund"
    CANCEL_REFUND = "cancel_refund"


E = InvoiceEvent

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = frozenset(
    {
        S.COMPLETED,
        S.CANCELED,
        S.OVERPAID_TRANSFERRED,
        S.OVERPAID_RECEIVED,
        S.REFUND_CANCELED,
        S.REFUNDED,
    }
)

PRE_PAYMENT_STATES = frozenset({S.DRAFT, S.TENTATIVE})

# Statuses the overdue sweep may block
SWEEPABLE_STATES = frozenset({S.TENTATIVE, S.PARTIAL_PAID})


def money(value) -> Decimal:
    return Decimal(str(value or "0")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def derive_payment_status(invoice: Invoice, gross_paid: Decimal) -> str:
    total = money(invoice.total_amount)
    if gross_paid <= ZERO:
        if invoice.status in PRE_PAYMENT_STATES:
            return invoice.status
        return S.TENTATIVE if invoice.issued_at else S.DRAFT
    if gross_paid < total:
        return S.PARTIAL_PAID
    if gross_paid == total:
        return S.PAID
    return S.OVERPAID


def _after_payment(invoice: Invoice) -> str | None:
    target = derive_payment_status(invoice, invoice.gross_paid)
    # Excess goes through overpayment_detected, never through a plain payment
    return None if target == S.OVERPAID else target


def _overpaid_only(invoice: Invoice) -> str | None:
    return S.OVERPAID if invoice.gross_paid > money(invoice.total_amount) else None


def _fully_paid(invoice: Invoice) -> str | None:
    return S.COMPLETED if money(invoice.remaining_amount) == ZERO else None


def _rebilled(invoice: Invoice) -> str | None:
    return derive_payment_status(invoice, invoice.gross_paid)


_NON_TERMINAL = [status for status in S if status not in TERMINAL_STATES]

TRANSITIONS = {
    (S.DRAFT, E.ISSUE): S.TENTATIVE,
    # payments
    (S.DRAFT, E.PAYMENT_VERIFIED): _after_payment,
    (S.TENTATIVE, E.PAYMENT_VERIFIED): _after_payment,
    (S.PARTIAL_PAID, E.PAYMENT_VERIFIED): _after_payment,
    (S.PROCESSING, E.PAYMENT_VERIFIED): S.PROCESSING,
    # overpayment
    **{
        (status, E.OVERPAYMENT_DETECTED): _overpaid_only
        for status in (
            S.DRAFT,
            S.TENTATIVE,
            S.PARTIAL_PAID,
            S.PAID,
            S.PROCESSING,
            S.COMPLETED,
            S.OVERPAID,
        )
    },
    # overdue branch
    (S.TENTATIVE, E.MARK_OVERDUE): S.OVERDUE,
    (S.PARTIAL_PAID, E.MARK_OVERDUE): S.OVERDUE,
    (S.OVERDUE, E.UNBLOCK): S.TENTATIVE,
    (S.OVERDUE, E.CANCEL): S.CANCELED,
    # fulfilment
    (S.PARTIAL_PAID, E.START_PROCESSING): S.PROCESSING,
    (S.PAID, E.START_PROCESSING): S.PROCESSING,
    (S.PROCESSING, E.COMPLETE): _fully_paid,
    # re-billing
    **{(status, E.ORDER_UPDATED): S.ORDER_UPDATED for status in _NON_TERMINAL},
    (S.ORDER_UPDATED, E.REBILL): _rebilled,
    # overpayment resolution
    (S.OVERPAID, E.RESOLVE_TRANSFERRED): S.OVERPAID_TRANSFERRED,
    (S.OVERPAID, E.RESOLVE_RECEIVED): S.OVERPAID_RECEIVED,
    (S.OVERPAID, E.REQUEST_REFUND): S.OVERPAID_REFUND_PENDING,
    (S.OVERPAID_REFUND_PENDING, E.CONFIRM_REFUND): S.REFUNDED,
    (S.OVERPAID_REFUND_PENDING, E.CANCEL_REFUND): S.REFUND_CANCELED,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def resolve_target(invoice: Invoice, event: str) -> str | None:
    rule = TRANSITIONS.get((invoice.status, event))
    if rule is None:
        return None
    if callable(rule):
        return rule(invoice)
    return rule


def can_transition(invoice: Invoice, event: str) -> bool:
    return resolve_target(invoice, event) is not None


def apply_gross_paid(invoice: Invoice, gross_paid) -> None:
    """
    Spread verified money over paid / remaining / overpaid so that
    paid + remaining == total with nothing negative.
    """
    gross = money(gross_paid)
    total = money(invoice.total_amount)

    if gross > total:
        invoice.paid_amount = total
        invoice.overpaid_amount = gross - total
    else:
        invoice.paid_amount = gross
        invoice.overpaid_amount = ZERO
    invoice.remaining_amount = total - invoice.paid_amount


def grace_deadline(now: datetime) -> datetime:
    return now + timedelta(hours=settings.INVOICE_DP_GRACE_HOURS)


def _stamp_issue(invoice: Invoice, now: datetime) -> None:
    invoice.issued_at = now
    invoice.due_date_dp = now + timedelta(days=settings.INVOICE_DP_DUE_DAYS)
    invoice.due_date_full = now + timedelta(days=settings.INVOICE_FULL_PAYMENT_DUE_DAYS)
    invoice.auto_cancel_at = grace_deadline(now)


def transition(invoice: Invoice, event: str, *, actor: str = "", now=None) -> Invoice:
    """
    Apply one event to an invoice in memory.

    Raises:
        InvalidTransitionError when (status, event) is not allowed.
    """
    target = resolve_target(invoice, event)
    if target is None:
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number or invoice.id} cannot handle "
            f"'{event}' while '{invoice.status}'"
        )

    now = now or timezone.now()

    invoice.remaining_amount = max(
        money(invoice.total_amount) - money(invoice.paid_amount), ZERO
    )

    if event == E.ISSUE:
        _stamp_issue(invoice, now)

    if target in (S.PARTIAL_PAID, S.PAID):
        invoice.is_overdue = False
        invoice.is_blocked = False

    if target == S.OVERDUE:
        invoice.is_blocked = True
        invoice.is_overdue = True
        invoice.overdue_activated_by = actor or "system"
        invoice.overdue_activated_at = now

    if target == S.TENTATIVE and invoice.is_blocked:
        invoice.is_blocked = False
        invoice.auto_cancel_at = grace_deadline(now)

    invoice.status = target
    return invoice
