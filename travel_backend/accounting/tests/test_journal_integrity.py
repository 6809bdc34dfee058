# accounting/tests/test_journal_integrity.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.mapping import AccountMapping
from accounting.services.exceptions import (
    DuplicatePostingError,
    ExchangeRateError,
    JournalEntryCreationError,
    UnmappedCategoryError,
)
from accounting.services.journal_entry_service import build_posting_key, post_journal
from accounting.tests.helpers import seed_ledger

ENTRY_DATE = date(2026, 3, 15)


class LedgerPostingTests(TestCase):
    """
    GUARANTEES:
    - Every posted entry balances (header totals and lines)
    - posting_key blocks double-posting, and the duplicate error carries the original
    - Unmapped categories fail loudly, nothing is written
    - Foreign-currency postings keep their original amounts and booked rate
    """

    def setUp(self):
        seed_ledger(2026)

    def _post_receipt(self, **overrides):
        payload = {
            "category": "cash_receipt",
            "amount": Decimal("1500000.00"),
            "currency": "IDR",
            "entry_date": ENTRY_DATE,
            "source_type": "invoice_payment",
            "source_id": "INV-1",
        }
        payload.update(overrides)
        return post_journal(**payload)

    def test_mapped_posting_writes_balanced_two_line_entry(self):
        entry = self._post_receipt()

        self.assertEqual(entry.status, JournalEntry.STATUS_POSTED)
        self.assertEqual(entry.total_debit, Decimal("1500000.00"))
        self.assertEqual(entry.total_debit, entry.total_credit)
        self.assertEqual(entry.journal_number, "JU-202603-00001")
        self.assertEqual(entry.period.name, "2026-03")

        lines = list(entry.lines.select_related("account"))
        self.assertEqual(len(lines), 2)
        self.assertEqual(lines[0].account.code, "1-1-01")
        self.assertEqual(lines[0].debit_amount, Decimal("1500000.00"))
        self.assertEqual(lines[1].account.code, "1-2-01")
        self.assertEqual(lines[1].credit_amount, Decimal("1500000.00"))
        self.assertEqual(
            sum(l.debit_amount for l in lines), sum(l.credit_amount for l in lines)
        )

    def test_journal_numbers_are_sequential_per_period(self):
        first = self._post_receipt(source_id="INV-1")
        second = self._post_receipt(source_id="INV-2")
        april = self._post_receipt(source_id="INV-3", entry_date=date(2026, 4, 2))

        self.assertEqual(first.journal_number, "JU-202603-00001")
        self.assertEqual(second.journal_number, "JU-202603-00002")
        self.assertEqual(april.journal_number, "JU-202604-00001")

    def test_amounts_are_rounded_half_up_to_two_places(self):
        entry = self._post_receipt(amount="100.005")
        self.assertEqual(entry.total_debit, Decimal("100.01"))

    def test_duplicate_posting_is_rejected_with_existing_entry(self):
        first = self._post_receipt()

        with self.assertRaises(DuplicatePostingError) as ctx:
            self._post_receipt()

        self.assertEqual(ctx.exception.existing_entry.id, first.id)
        self.assertEqual(JournalEntry.objects.count(), 1)
        self.assertEqual(JournalEntryLine.objects.count(), 2)

    def test_discriminator_separates_instalments_of_one_source(self):
        self._post_receipt(discriminator="proof-1")
        self._post_receipt(discriminator="proof-2")

        keys = set(JournalEntry.objects.values_list("posting_key", flat=True))
        self.assertEqual(
            keys,
            {
                "invoice_payment:INV-1:cash_receipt:proof-1",
                "invoice_payment:INV-1:cash_receipt:proof-2",
            },
        )

    def test_posting_key_requires_source(self):
        self.assertIsNone(build_posting_key("", "1", "cash_receipt"))
        self.assertEqual(
            build_posting_key("invoice_payment", 7, " Cash_Receipt "),
            "invoice_payment:7:cash_receipt",
        )

    def test_unmapped_category_raises_and_logs(self):
        with self.assertLogs("accounting.services.account_mapping", level="ERROR"):
            with self.assertRaises(UnmappedCategoryError):
                self._post_receipt(category="commission_income")

        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_inactive_mapping_is_treated_as_unmapped(self):
        AccountMapping.objects.filter(mapping_type="cash_receipt").update(is_active=False)

        with self.assertLogs("accounting.services.account_mapping", level="ERROR"):
            with self.assertRaises(UnmappedCategoryError):
                self._post_receipt()

    def test_foreign_currency_is_converted_and_original_kept(self):
        entry = self._post_receipt(amount=Decimal("100.00"), currency="usd")

        self.assertEqual(entry.currency, "USD")
        self.assertEqual(entry.exchange_rate, Decimal("15500"))
        self.assertEqual(entry.original_total, Decimal("100.00"))
        self.assertEqual(entry.total_debit, Decimal("1550000.00"))

        debit_line = entry.lines.get(debit_amount__gt=0)
        self.assertEqual(debit_line.original_debit_amount, Decimal("100.00"))
        self.assertEqual(debit_line.debit_amount, Decimal("1550000.00"))

    def test_unknown_currency_is_rejected(self):
        with self.assertRaises(ExchangeRateError):
            self._post_receipt(currency="EUR")
        self.assertEqual(JournalEntry.objects.count(), 0)

    @override_settings(
        ACCOUNTING_EXCHANGE_RATES={"IDR": Decimal("1"), "XYZ": Decimal("1.005")}
    )
    def test_conversion_residue_lands_on_lighter_side(self):
        entry = post_journal(
            category="sales_hotel",
            currency="XYZ",
            entry_date=ENTRY_DATE,
            source_type="order",
            source_id="ORD-9",
            lines=[
                {"account": "1-1-01", "debit": "0.50"},
                {"account": "1-1-02", "debit": "0.50"},
                {"account": "4-1", "credit": "1.00"},
            ],
        )

        self.assertEqual(entry.total_debit, entry.total_credit)
        self.assertEqual(entry.total_credit, Decimal("1.01"))
        last_debit = entry.lines.get(account__code="1-1-02")
        self.assertEqual(last_debit.debit_amount, Decimal("0.51"))
        self.assertEqual(last_debit.original_debit_amount, Decimal("0.50"))

    def test_explicit_lines_must_balance(self):
        with self.assertRaises(JournalEntryCreationError):
            post_journal(
                category="payroll",
                entry_date=ENTRY_DATE,
                source_type="payroll_run",
                source_id="2026-03",
                lines=[
                    {"account": "5-5", "debit": "100.00"},
                    {"account": "2-2", "credit": "90.00"},
                ],
            )
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_header_accounts_cannot_receive_postings(self):
        with self.assertRaises(JournalEntryCreationError):
            post_journal(
                category="payroll",
                entry_date=ENTRY_DATE,
                source_type="payroll_run",
                source_id="2026-03",
                lines=[
                    {"account": "5", "debit": "100.00"},
                    {"account": "2-2", "credit": "100.00"},
                ],
            )

    def test_line_with_both_sides_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            post_journal(
                category="payroll",
                entry_date=ENTRY_DATE,
                source_type="payroll_run",
                source_id="2026-03",
                lines=[
                    {"account": "5-5", "debit": "100.00", "credit": "100.00"},
                    {"account": "2-2", "credit": "0.00"},
                ],
            )

    def test_zero_amount_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            self._post_receipt(amount=Decimal("0"))


class JournalImmutabilityTests(TestCase):
    def setUp(self):
        seed_ledger(2026)
        self.entry = post_journal(
            category="cash_receipt",
            amount=Decimal("250000.00"),
            entry_date=ENTRY_DATE,
            source_type="invoice_payment",
            source_id="INV-7",
        )

    def test_posted_entry_amounts_cannot_change(self):
        self.entry.total_debit = Decimal("1.00")
        self.entry.total_credit = Decimal("1.00")
        with self.assertRaises(ValidationError):
            self.entry.save()

    def test_posted_entry_cannot_go_back_to_draft(self):
        self.entry.status = JournalEntry.STATUS_DRAFT
        with self.assertRaises(ValidationError):
            self.entry.save()

    def test_posted_entry_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.entry.delete()
        self.assertTrue(JournalEntry.objects.filter(pk=self.entry.pk).exists())

    def test_lines_are_immutable(self):
        line = self.entry.lines.first()
        line.line_description = "edited"
        with self.assertRaises(ValidationError):
            line.save()
        with self.assertRaises(ValidationError):
            line.delete()
