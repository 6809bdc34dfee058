# invoices/tests/test_payment_verification.py

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.tests.helpers import seed_ledger
from invoices.models import InvoiceStatus, PaymentProof, ProofStatus
from invoices.services.exceptions import (
    InsufficientFundsError,
    InvalidTransitionError,
    InvoiceClosedError,
    InvoiceServiceError,
    PaymentAmountMismatchError,
    PaymentProofNotFoundError,
)
from invoices.services.invoice_service import verified_total
from invoices.services.overdue_scheduler import run_sweep
from invoices.services.overpayment import resolve_overpayment
from invoices.services.payment_verification import (
    PAYMENT_SOURCE_TYPE,
    submit_payment_proof,
    verify_payment,
)
from invoices.tests.helpers import expire_grace_window, make_invoice, pay


def receipts_for(invoice):
    return JournalEntry.objects.filter(
        source_type=PAYMENT_SOURCE_TYPE, source_id=str(invoice.id)
    )


class PaymentVerificationTests(TestCase):
    def setUp(self):
        seed_ledger()
        self.invoice = make_invoice("5500000.00")

    def assertAtRest(self, invoice):
        invoice.refresh_from_db()
        self.assertEqual(invoice.paid_amount + invoice.remaining_amount, invoice.total_amount)
        self.assertGreaterEqual(invoice.remaining_amount, Decimal("0"))
        self.assertEqual(verified_total(invoice), invoice.gross_paid)

    def test_dp_payment_moves_to_partial_paid_and_posts_receipt(self):
        self.assertEqual(self.invoice.dp_amount, Decimal("1650000.00"))

        invoice, proof = pay(self.invoice, "1650000.00", "dp")

        self.assertEqual(invoice.status, InvoiceStatus.PARTIAL_PAID)
        self.assertEqual(invoice.remaining_amount, Decimal("3850000.00"))
        proof.refresh_from_db()
        self.assertEqual(proof.status, ProofStatus.VERIFIED)

        entries = receipts_for(invoice)
        self.assertEqual(entries.count(), 1)
        entry = entries.get()
        self.assertEqual(entry.total_debit, Decimal("1650000.00"))
        self.assertEqual(entry.total_credit, Decimal("1650000.00"))
        line_refs = set(entry.lines.values_list("reference_id", flat=True))
        self.assertEqual(line_refs, {str(proof.id)})
        self.assertAtRest(invoice)

    def test_full_payment_marks_paid(self):
        invoice, _ = pay(self.invoice, "5500000.00", "full")

        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(invoice.remaining_amount, Decimal("0.00"))
        self.assertAtRest(invoice)

    def test_overpayment_then_received(self):
        invoice, _ = pay(self.invoice, "6000000.00", "full")

        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID)
        self.assertEqual(invoice.overpaid_amount, Decimal("500000.00"))
        self.assertEqual(invoice.paid_amount, Decimal("5500000.00"))
        self.assertEqual(invoice.remaining_amount, Decimal("0.00"))
        self.assertAtRest(invoice)

        invoice = resolve_overpayment(invoice.id, handling="received", actor="finance-1")
        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID_RECEIVED)

    def test_verify_twice_is_idempotent(self):
        proof = submit_payment_proof(
            self.invoice.id, payment_type="dp", amount=Decimal("1650000.00")
        )
        first = verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f1")
        second = verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f2")

        self.assertEqual(second.status, first.status)
        self.assertEqual(second.paid_amount, first.paid_amount)
        self.assertEqual(second.remaining_amount, first.remaining_amount)
        self.assertEqual(receipts_for(self.invoice).count(), 1)
        proof.refresh_from_db()
        self.assertEqual(proof.verified_by, "f1")

    def test_each_proof_gets_its_own_receipt(self):
        pay(self.invoice, "1650000.00", "dp")
        invoice, _ = pay(self.invoice, "1000000.00", "partial")

        self.assertEqual(invoice.status, InvoiceStatus.PARTIAL_PAID)
        self.assertEqual(invoice.paid_amount, Decimal("2650000.00"))
        self.assertEqual(receipts_for(invoice).count(), 2)
        self.assertAtRest(invoice)

    def test_rejection_leaves_invoice_untouched(self):
        invoice, proof = pay(self.invoice, "1650000.00", "dp", approve=False)

        self.assertEqual(invoice.status, InvoiceStatus.TENTATIVE)
        self.assertEqual(invoice.paid_amount, Decimal("0.00"))
        proof.refresh_from_db()
        self.assertEqual(proof.status, ProofStatus.REJECTED)
        self.assertFalse(receipts_for(invoice).exists())

        # a rejected proof is final
        again = verify_payment(invoice.id, proof.id, approve=True, verified_by="f2")
        self.assertEqual(again.paid_amount, Decimal("0.00"))

    def test_dp_proof_below_dp_is_refused_and_rolled_back(self):
        proof = submit_payment_proof(
            self.invoice.id, payment_type="dp", amount=Decimal("1000000.00")
        )

        with self.assertRaises(InsufficientFundsError):
            verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f1")

        proof.refresh_from_db()
        self.assertEqual(proof.status, ProofStatus.PENDING)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertFalse(receipts_for(self.invoice).exists())

    def test_full_proof_below_remaining_is_refused(self):
        proof = submit_payment_proof(
            self.invoice.id, payment_type="full", amount=Decimal("5000000.00")
        )

        with self.assertRaises(PaymentAmountMismatchError):
            verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f1")

        self.assertFalse(receipts_for(self.invoice).exists())

    def test_submit_validation(self):
        with self.assertRaises(InvoiceServiceError):
            submit_payment_proof(self.invoice.id, payment_type="dp", amount=Decimal("0"))
        with self.assertRaises(InvoiceServiceError):
            submit_payment_proof(self.invoice.id, payment_type="cash", amount=Decimal("10"))

    def test_submit_on_closed_invoice_is_refused(self):
        invoice, _ = pay(self.invoice, "6000000.00", "full")
        resolve_overpayment(invoice.id, handling="received", actor="finance-1")

        with self.assertRaises(InvoiceClosedError):
            submit_payment_proof(invoice.id, payment_type="partial", amount=Decimal("10"))

    def test_unknown_proof(self):
        other = make_invoice("1000000.00")
        proof = submit_payment_proof(other.id, payment_type="full", amount=Decimal("1000000.00"))

        with self.assertRaises(PaymentProofNotFoundError):
            verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f1")

    def test_verify_on_blocked_invoice_rolls_back(self):
        expire_grace_window(self.invoice)
        run_sweep()
        proof = submit_payment_proof(
            self.invoice.id, payment_type="partial", amount=Decimal("1650000.00")
        )

        with self.assertRaises(InvalidTransitionError):
            verify_payment(self.invoice.id, proof.id, approve=True, verified_by="f1")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.OVERDUE)
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(
            PaymentProof.objects.get(pk=proof.pk).status, ProofStatus.PENDING
        )
        self.assertFalse(receipts_for(self.invoice).exists())
