# invoices/services/payment_verification.py

"""
======================================================
PATH: invoices/services/payment_verification.py
======================================================
PAYMENT VERIFICATION SERVICE

submit_payment_proof:
    stores an uploaded proof as pending (refused on closed invoices and
    while a refund is pending)

verify_payment, one transaction:
    1. lock the invoice row (bounded statement timeout on PostgreSQL)
    2. proof already verified/rejected -> return invoice unchanged
    3. reject -> proof rejected, invoice unchanged
    4. approve -> proof verified, paid/remaining recomputed
    5. paid above total -> overpayment resolver
    6. otherwise lifecycle transition
    7. cash_receipt journal for the proof amount
Any failure rolls the whole thing back. Notifications go out after commit.
"""

from __future__ import annotations

import logging
from datetime import date

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import connection, transaction
from django.utils import timezone

from accounting.services.account_mapping import CATEGORY_CASH_RECEIPT
from accounting.services.exceptions import DuplicatePostingError
from accounting.services.journal_entry_service import post_journal
from invoices.models.invoice import Invoice, InvoiceStatus
from invoices.models.payment_proof import PaymentProof, PaymentType, ProofStatus
from invoices.services import notifications
from invoices.services.exceptions import (
    InsufficientFundsError,
    InvalidTransitionError,
    InvoiceClosedError,
    InvoiceServiceError,
    PaymentAmountMismatchError,
    PaymentProofNotFoundError,
)
from invoices.services.invoice_lifecycle import (
    InvoiceEvent,
    apply_gross_paid,
    is_terminal,
    money,
    transition,
)
from invoices.services.invoice_service import lock_invoice
from invoices.services.overpayment import enter_overpaid
from invoices.signals import PAYMENT_REJECTED, PAYMENT_VERIFIED

logger = logging.getLogger(__name__)

PAYMENT_SOURCE_TYPE = "invoice_payment"


def _apply_statement_timeout() -> None:
    timeout_ms = int(getattr(settings, "INVOICE_VERIFICATION_STATEMENT_TIMEOUT_MS", 0) or 0)
    if timeout_ms <= 0 or connection.vendor != "postgresql":
        return
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL statement_timeout = {timeout_ms}")


@transaction.atomic
def submit_payment_proof(
    invoice_id,
    *,
    payment_type: str,
    amount,
    bank_name: str = "",
    account_number: str = "",
    transfer_date: date | None = None,
    proof_file_url: str = "",
    uploaded_by: str = "",
    notes: str = "",
) -> PaymentProof:
    invoice = lock_invoice(invoice_id)
    if is_terminal(invoice.status):
        raise InvoiceClosedError(
            f"Invoice {invoice.invoice_number} is {invoice.status}; no more payments are accepted"
        )
    if invoice.status == InvoiceStatus.OVERPAID_REFUND_PENDING:
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number} has a refund pending; confirm or cancel it first"
        )

    if payment_type not in PaymentType.values:
        raise InvoiceServiceError(f"Unknown payment type '{payment_type}'")

    amount = money(amount)
    if amount <= 0:
        raise InvoiceServiceError("Payment amount must be greater than zero")

    proof = PaymentProof.objects.create(
        invoice=invoice,
        payment_type=payment_type,
        amount=amount,
        bank_name=bank_name or "",
        account_number=account_number or "",
        transfer_date=transfer_date,
        proof_file_url=proof_file_url or "",
        uploaded_by=uploaded_by or "",
        notes=notes or "",
    )

    logger.info(
        "Payment proof submitted",
        extra={
            "invoice_id": str(invoice.id),
            "proof_id": proof.id,
            "amount": str(amount),
            "payment_type": payment_type,
        },
    )
    return proof


def _validate_amount(invoice: Invoice, proof: PaymentProof) -> None:
    if proof.payment_type == PaymentType.FULL and proof.amount < invoice.remaining_amount:
        raise PaymentAmountMismatchError(
            f"Full payment of {proof.amount} does not cover the remaining "
            f"{invoice.remaining_amount}"
        )
    if (
        proof.payment_type == PaymentType.DP
        and invoice.paid_amount + proof.amount < invoice.dp_amount
    ):
        raise InsufficientFundsError(
            f"DP payment of {proof.amount} leaves the paid amount below the "
            f"required DP of {invoice.dp_amount}"
        )


def _post_cash_receipt(invoice: Invoice, proof: PaymentProof, *, actor: str):
    try:
        return post_journal(
            category=CATEGORY_CASH_RECEIPT,
            amount=proof.amount,
            currency=invoice.currency,
            entry_date=timezone.localdate(),
            source_type=PAYMENT_SOURCE_TYPE,
            source_id=str(invoice.id),
            discriminator=str(proof.id),
            description=f"Pembayaran {invoice.invoice_number} ({proof.payment_type})",
            reference_type="payment_proof",
            reference_id=str(proof.id),
            created_by=actor,
        )
    except DuplicatePostingError as exc:
        logger.warning(
            "Cash receipt already posted for payment proof",
            extra={
                "invoice_id": str(invoice.id),
                "proof_id": proof.id,
                "journal_entry_id": exc.existing_entry.id if exc.existing_entry else None,
            },
        )
        return exc.existing_entry


def _locked_proof(invoice: Invoice, proof_id) -> PaymentProof:
    try:
        return PaymentProof.objects.select_for_update().get(pk=proof_id, invoice=invoice)
    except (PaymentProof.DoesNotExist, ValidationError, ValueError) as exc:
        raise PaymentProofNotFoundError(
            f"Payment proof {proof_id} not found on invoice {invoice.invoice_number}"
        ) from exc


@transaction.atomic
def verify_payment(
    invoice_id,
    proof_id,
    *,
    approve: bool,
    verified_by: str,
    notes: str = "",
) -> Invoice:
    """
    Human verification of one payment proof. Idempotent per proof.
    """
    _apply_statement_timeout()

    invoice = lock_invoice(invoice_id)
    proof = _locked_proof(invoice, proof_id)

    if proof.status != ProofStatus.PENDING:
        logger.info(
            "Payment proof already handled",
            extra={"invoice_id": str(invoice.id), "proof_id": proof.id, "proof_status": proof.status},
        )
        return invoice

    now = timezone.now()
    proof.verified_by = verified_by or ""
    proof.verified_at = now
    if notes:
        proof.notes = notes

    if not approve:
        proof.status = ProofStatus.REJECTED
        proof.save()

        logger.info(
            "Payment proof rejected",
            extra={"invoice_id": str(invoice.id), "proof_id": proof.id, "actor": verified_by},
        )
        notifications.notify_after_commit(
            PAYMENT_REJECTED, invoice, proof_id=proof.id, amount=proof.amount
        )
        return invoice

    _validate_amount(invoice, proof)

    gross_paid = invoice.gross_paid + proof.amount
    apply_gross_paid(invoice, gross_paid)

    if gross_paid > money(invoice.total_amount):
        enter_overpaid(invoice, actor=verified_by, now=now)
    else:
        transition(invoice, InvoiceEvent.PAYMENT_VERIFIED, actor=verified_by, now=now)
    invoice.save()

    proof.status = ProofStatus.VERIFIED
    proof.save()

    entry = _post_cash_receipt(invoice, proof, actor=verified_by)

    logger.info(
        "Payment verified",
        extra={
            "invoice_id": str(invoice.id),
            "proof_id": proof.id,
            "amount": str(proof.amount),
            "status": str(invoice.status),
            "paid_amount": str(invoice.paid_amount),
            "remaining_amount": str(invoice.remaining_amount),
            "journal_entry_id": entry.id if entry else None,
        },
    )
    notifications.notify_after_commit(
        PAYMENT_VERIFIED,
        invoice,
        proof_id=proof.id,
        amount=proof.amount,
        remaining_amount=invoice.remaining_amount,
    )
    return invoice

