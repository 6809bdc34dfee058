# invoices/tests/test_overpayment.py

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.tests.helpers import seed_ledger
from invoices.models import InvoiceStatus, OverpaymentHandling
from invoices.services.exceptions import (
    AlreadyResolvedError,
    InvalidOverpaymentTargetError,
    InvalidTransitionError,
    InvoiceServiceError,
)
from invoices.services.overpayment import (
    OVERPAYMENT_SOURCE_TYPE,
    cancel_refund,
    confirm_refund,
    resolve_overpayment,
)
from invoices.services.payment_verification import PAYMENT_SOURCE_TYPE, submit_payment_proof
from invoices.tests.helpers import make_invoice, pay


class OverpaymentResolverTests(TestCase):
    def setUp(self):
        seed_ledger()
        invoice = make_invoice("5500000.00", owner_id="OWN-7")
        self.invoice, _ = pay(invoice, "6000000.00", "full")

    def overpayment_entries(self):
        return JournalEntry.objects.filter(
            source_type=OVERPAYMENT_SOURCE_TYPE, source_id=str(self.invoice.id)
        )

    def test_transfer_to_same_owner_invoice_posts_journal(self):
        target = make_invoice("2000000.00", owner_id="OWN-7")

        invoice = resolve_overpayment(
            self.invoice.id,
            handling=OverpaymentHandling.TRANSFERRED,
            target_invoice_id=target.id,
            actor="finance-1",
        )

        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID_TRANSFERRED)
        self.assertEqual(invoice.overpayment_handling, "transferred")
        self.assertEqual(invoice.overpayment_target, str(target.id))

        entry = self.overpayment_entries().get()
        self.assertEqual(entry.total_debit, Decimal("500000.00"))
        codes = {
            (line.account.code, line.debit_amount, line.credit_amount)
            for line in entry.lines.select_related("account")
        }
        self.assertEqual(
            codes,
            {
                ("1-1-04", Decimal("500000.00"), Decimal("0.00")),
                ("2-3", Decimal("0.00"), Decimal("500000.00")),
            },
        )

        # the target keeps its own amounts
        target.refresh_from_db()
        self.assertEqual(target.paid_amount, Decimal("0.00"))

    def test_transfer_target_rules(self):
        stranger = make_invoice("2000000.00", owner_id="OWN-8")

        with self.assertRaises(InvalidOverpaymentTargetError):
            resolve_overpayment(self.invoice.id, handling="transferred", actor="f1")
        with self.assertRaises(InvalidOverpaymentTargetError):
            resolve_overpayment(
                self.invoice.id,
                handling="transferred",
                target_invoice_id=stranger.id,
                actor="f1",
            )
        with self.assertRaises(InvalidOverpaymentTargetError):
            resolve_overpayment(
                self.invoice.id,
                handling="transferred",
                target_invoice_id=self.invoice.id,
                actor="f1",
            )

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.OVERPAID)
        self.assertFalse(self.overpayment_entries().exists())

    def test_received_posts_nothing(self):
        invoice = resolve_overpayment(self.invoice.id, handling="received", actor="f1")

        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID_RECEIVED)
        self.assertFalse(self.overpayment_entries().exists())

    def test_second_resolution_is_refused(self):
        resolve_overpayment(self.invoice.id, handling="received", actor="f1")

        with self.assertRaises(AlreadyResolvedError):
            resolve_overpayment(self.invoice.id, handling="refund_pending", actor="f2")

    def test_unknown_handling(self):
        with self.assertRaises(InvoiceServiceError):
            resolve_overpayment(self.invoice.id, handling="donate", actor="f1")

    def test_refund_confirmed(self):
        invoice = resolve_overpayment(self.invoice.id, handling="refund_pending", actor="f1")
        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID_REFUND_PENDING)
        self.assertFalse(self.overpayment_entries().exists())

        invoice = confirm_refund(self.invoice.id, actor="f1", reference="TRF-001")

        self.assertEqual(invoice.status, InvoiceStatus.REFUNDED)
        entry = self.overpayment_entries().get()
        self.assertEqual(entry.total_credit, Decimal("500000.00"))

        with self.assertRaises(AlreadyResolvedError):
            confirm_refund(self.invoice.id, actor="f1")

    def test_refund_canceled(self):
        resolve_overpayment(self.invoice.id, handling="refund_pending", actor="f1")

        invoice = cancel_refund(self.invoice.id, actor="f1", reason="customer asked to keep it")

        self.assertEqual(invoice.status, InvoiceStatus.REFUND_CANCELED)
        self.assertFalse(self.overpayment_entries().exists())
        with self.assertRaises(AlreadyResolvedError):
            cancel_refund(self.invoice.id, actor="f1")

    def test_refund_steps_need_a_pending_refund(self):
        with self.assertRaises(InvalidTransitionError):
            confirm_refund(self.invoice.id, actor="f1")

    def test_more_money_on_an_overpaid_invoice_grows_the_excess(self):
        invoice, proof = pay(self.invoice, "100000.00")

        self.assertEqual(invoice.status, InvoiceStatus.OVERPAID)
        self.assertEqual(invoice.paid_amount, Decimal("5500000.00"))
        self.assertEqual(invoice.remaining_amount, Decimal("0.00"))
        self.assertEqual(invoice.overpaid_amount, Decimal("600000.00"))
        self.assertTrue(
            JournalEntry.objects.filter(
                source_type=PAYMENT_SOURCE_TYPE,
                source_id=str(invoice.id),
                lines__reference_id=str(proof.id),
            ).exists()
        )

        invoice = resolve_overpayment(invoice.id, handling="refund_pending", actor="f1")
        invoice = confirm_refund(invoice.id, actor="f1", reference="TRF-002")
        self.assertEqual(self.overpayment_entries().get().total_credit, Decimal("600000.00"))

    def test_no_new_proofs_while_a_refund_is_pending(self):
        resolve_overpayment(self.invoice.id, handling="refund_pending", actor="f1")

        with self.assertRaises(InvalidTransitionError):
            submit_payment_proof(self.invoice.id, payment_type="partial", amount=Decimal("100000.00"))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.payment_proofs.count(), 1)
