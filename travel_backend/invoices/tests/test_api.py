# invoices/tests/test_api.py

from __future__ import annotations

import uuid
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounting.models.journal import JournalEntry
from accounting.tests.helpers import make_user, seed_ledger
from invoices.models import Invoice, InvoiceStatus
from invoices.services.overdue_scheduler import run_sweep
from invoices.tests.helpers import expire_grace_window, make_invoice, make_order, pay


class InvoiceApiTests(TestCase):
    def setUp(self):
        seed_ledger()
        self.client = APIClient()
        self.finance = make_user(
            "finance",
            "invoices.view_invoice",
            "invoices.add_invoice",
            "invoices.add_paymentproof",
            "invoices.verify_paymentproof",
            "invoices.unblock_invoice",
            "invoices.resolve_overpayment",
            "invoices.progress_invoice",
        )
        self.clerk = make_user("clerk", "invoices.view_invoice", "invoices.add_paymentproof")
        self.client.force_authenticate(user=self.finance)

    def url(self, name, invoice):
        return reverse(f"invoice-{name}", args=[invoice.id])

    def test_anonymous_is_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("invoice-list"))
        self.assertIn(
            response.status_code,
            (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN),
        )

    def test_create_from_order(self):
        order = make_order("5500000.00")

        response = self.client.post(
            reverse("invoice-list"), {"order_id": str(order.id)}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "tentative")
        self.assertEqual(Decimal(response.data["dp_amount"]), Decimal("1650000.00"))

        again = self.client.post(
            reverse("invoice-list"), {"order_id": str(order.id)}, format="json"
        )
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data["error"]["code"], "invoice_exists")

    def test_submit_and_verify(self):
        invoice = make_invoice("5500000.00")

        self.client.force_authenticate(user=self.clerk)
        submitted = self.client.post(
            self.url("payment-proofs", invoice),
            {"payment_type": "dp", "amount": "1650000.00", "bank_name": "BCA"},
            format="json",
        )
        self.assertEqual(submitted.status_code, status.HTTP_201_CREATED)
        proof_id = submitted.data["id"]

        denied = self.client.post(
            self.url("verify", invoice), {"proof_id": proof_id, "approve": True}, format="json"
        )
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.finance)
        verified = self.client.post(
            self.url("verify", invoice), {"proof_id": proof_id, "approve": True}, format="json"
        )
        self.assertEqual(verified.status_code, status.HTTP_200_OK)
        self.assertEqual(verified.data["status"], "partial_paid")
        self.assertEqual(Decimal(verified.data["remaining_amount"]), Decimal("3850000.00"))
        self.assertEqual(verified.data["payment_proofs"][0]["status"], "verified")
        self.assertEqual(
            JournalEntry.objects.filter(source_id=str(invoice.id)).count(), 1
        )

    def test_verify_validation_error_shape(self):
        invoice = make_invoice("5500000.00")
        proof = self.client.post(
            self.url("payment-proofs", invoice),
            {"payment_type": "full", "amount": "100.00"},
            format="json",
        ).data

        response = self.client.post(
            self.url("verify", invoice), {"proof_id": proof["id"], "approve": True}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "payment_amount_mismatch")

    def test_unknown_proof_is_404(self):
        invoice = make_invoice("5500000.00")

        response = self.client.post(
            self.url("verify", invoice), {"proof_id": 999999, "approve": True}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "payment_proof_not_found")

    def test_unknown_invoice_is_404(self):
        response = self.client.post(
            reverse("invoice-unblock", args=[uuid.uuid4()]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unblock_flow(self):
        invoice = expire_grace_window(make_invoice("5500000.00"))

        conflict = self.client.post(self.url("unblock", invoice), format="json")
        self.assertEqual(conflict.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(conflict.data["error"]["code"], "invalid_transition")

        run_sweep()
        response = self.client.post(self.url("unblock", invoice), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "tentative")
        self.assertFalse(response.data["is_blocked"])

    def test_resolve_overpayment(self):
        invoice = make_invoice("5500000.00", owner_id="OWN-9")
        target = make_invoice("1000000.00", owner_id="OWN-9")
        pay(invoice, "6000000.00", "full")

        missing_target = self.client.post(
            self.url("resolve-overpayment", invoice), {"handling": "transferred"}, format="json"
        )
        self.assertEqual(missing_target.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            self.url("resolve-overpayment", invoice),
            {"handling": "transferred", "target_invoice_id": str(target.id)},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "overpaid_transferred")

        again = self.client.post(
            self.url("resolve-overpayment", invoice), {"handling": "received"}, format="json"
        )
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data["error"]["code"], "already_resolved")

    def test_refund_endpoints(self):
        invoice = make_invoice("5500000.00")
        pay(invoice, "6000000.00", "full")
        self.client.post(
            self.url("resolve-overpayment", invoice), {"handling": "refund_pending"}, format="json"
        )

        response = self.client.post(
            self.url("confirm-refund", invoice), {"reference": "TRF-9"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "refunded")

        closed = self.client.post(self.url("cancel-refund", invoice), format="json")
        self.assertEqual(closed.status_code, status.HTTP_409_CONFLICT)

    def test_progress_endpoints(self):
        invoice = make_invoice("5500000.00")
        pay(invoice, "5500000.00", "full")

        started = self.client.post(self.url("start-processing", invoice), format="json")
        completed = self.client.post(self.url("complete", invoice), format="json")

        self.assertEqual(started.data["status"], "processing")
        self.assertEqual(completed.data["status"], "completed")

        submit = self.client.post(
            self.url("payment-proofs", invoice),
            {"payment_type": "partial", "amount": "10.00"},
            format="json",
        )
        self.assertEqual(submit.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(submit.data["error"]["code"], "invoice_closed")

    def test_list_filters(self):
        paid = make_invoice("1000000.00", owner_id="OWN-A")
        pay(paid, "1000000.00", "full")
        make_invoice("2000000.00", owner_id="OWN-B")

        response = self.client.get(reverse("invoice-list"), {"status": "paid"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        numbers = [row["invoice_number"] for row in response.data["results"]]
        self.assertEqual(numbers, [Invoice.objects.get(pk=paid.pk).invoice_number])

        by_owner = self.client.get(reverse("invoice-list"), {"owner_id": "OWN-B"})
        self.assertEqual(by_owner.data["count"], 1)
        self.assertEqual(by_owner.data["results"][0]["status"], InvoiceStatus.TENTATIVE)

    def test_list_requires_view_permission(self):
        self.client.force_authenticate(user=make_user("nobody"))
        response = self.client.get(reverse("invoice-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
