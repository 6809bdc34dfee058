# accounting/tests/test_manual_journal.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import TestCase

from accounting.models.account import ChartOfAccount
from accounting.models.journal import JournalEntry
from accounting.models.period import AccountingPeriod
from accounting.services.exceptions import (
    AccountResolutionError,
    JournalWorkflowError,
    PostingRuleError,
)
from accounting.services.journal_entry_service import post_journal, reverse_journal
from accounting.services.manual_journal_service import (
    approve_journal,
    create_draft_journal,
    post_approved_journal,
    submit_journal,
)
from accounting.services.period_lock import PeriodLockedError, lock_period
from accounting.tests.helpers import seed_ledger

ENTRY_DATE = date(2026, 5, 20)

SALARY_LINES = [
    {"account": "5-5", "debit": "12000000.00", "description": "Gaji Mei"},
    {"account": "2-2", "credit": "12000000.00", "description": "Gaji Mei"},
]


class ManualJournalWorkflowTests(TestCase):
    def setUp(self):
        seed_ledger(2026)

    def _draft(self):
        return create_draft_journal(
            journal_type="payroll",
            entry_date=ENTRY_DATE,
            lines=SALARY_LINES,
            description="Payroll accrual",
            created_by="staff-1",
        )

    def test_full_workflow_assigns_number_on_post(self):
        entry = self._draft()
        self.assertEqual(entry.status, JournalEntry.STATUS_DRAFT)
        self.assertIsNone(entry.journal_number)
        self.assertEqual(entry.lines.count(), 2)

        submit_journal(entry.id, submitted_by="staff-1")
        approved = approve_journal(entry.id, approved_by="manager-1")
        self.assertEqual(approved.approved_by, "manager-1")

        posted = post_approved_journal(entry.id, posted_by="finance-1")
        self.assertEqual(posted.status, JournalEntry.STATUS_POSTED)
        self.assertEqual(posted.journal_number, "JU-202605-00001")
        self.assertEqual(posted.posted_by, "finance-1")

    def test_steps_cannot_be_skipped(self):
        entry = self._draft()

        with self.assertRaises(JournalWorkflowError):
            approve_journal(entry.id, approved_by="manager-1")
        with self.assertRaises(JournalWorkflowError):
            post_approved_journal(entry.id, posted_by="finance-1")

        entry.refresh_from_db()
        self.assertEqual(entry.status, JournalEntry.STATUS_DRAFT)

    def test_posting_checks_period_lock(self):
        entry = self._draft()
        submit_journal(entry.id)
        approve_journal(entry.id, approved_by="manager-1")

        lock_period(AccountingPeriod.objects.get(name="2026-05").id, locked_by="cfo")
        with self.assertRaises(PeriodLockedError):
            post_approved_journal(entry.id, posted_by="finance-1")

        entry.refresh_from_db()
        self.assertEqual(entry.status, JournalEntry.STATUS_APPROVED)
        self.assertIsNone(entry.journal_number)

    def test_posting_rechecks_line_accounts(self):
        entry = self._draft()
        submit_journal(entry.id)
        approve_journal(entry.id, approved_by="manager-1")

        ChartOfAccount.objects.filter(code="5-5").update(is_active=False)
        with self.assertRaises(AccountResolutionError):
            post_approved_journal(entry.id, posted_by="finance-1")

        entry.refresh_from_db()
        self.assertEqual(entry.status, JournalEntry.STATUS_APPROVED)
        self.assertIsNone(entry.journal_number)

        ChartOfAccount.objects.filter(code="5-5").update(is_active=True)
        posted = post_approved_journal(entry.id, posted_by="finance-1")
        self.assertEqual(posted.status, JournalEntry.STATUS_POSTED)

    def test_manual_journals_are_base_currency_only(self):
        with self.assertRaises(PostingRuleError):
            create_draft_journal(
                journal_type="payroll",
                entry_date=ENTRY_DATE,
                lines=SALARY_LINES,
                currency="SAR",
            )


class ReversalTests(TestCase):
    def setUp(self):
        seed_ledger(2026)

    def test_reversal_mirrors_lines_and_marks_original(self):
        original = post_journal(
            category="cash_receipt",
            amount=Decimal("300.00"),
            currency="SAR",
            entry_date=ENTRY_DATE,
            source_type="invoice_payment",
            source_id="INV-3",
        )

        reversal = reverse_journal(
            entry_id=original.id, reversed_by="finance-1", entry_date=ENTRY_DATE
        )
        original.refresh_from_db()

        self.assertEqual(original.status, JournalEntry.STATUS_REVERSED)
        self.assertEqual(reversal.source_type, JournalEntry.SOURCE_REVERSAL)
        self.assertEqual(reversal.source_id, str(original.id))
        self.assertEqual(reversal.exchange_rate, original.exchange_rate)
        self.assertEqual(reversal.total_debit, Decimal("1260000.00"))

        for line in original.lines.all():
            mirror = reversal.lines.get(account=line.account)
            self.assertEqual(mirror.debit_amount, line.credit_amount)
            self.assertEqual(mirror.credit_amount, line.debit_amount)
            self.assertEqual(mirror.original_debit_amount, line.original_credit_amount)

    def test_entry_can_only_be_reversed_once(self):
        original = post_journal(
            category="cash_receipt",
            amount=Decimal("1000.00"),
            entry_date=ENTRY_DATE,
            source_type="invoice_payment",
            source_id="INV-4",
        )
        reverse_journal(entry_id=original.id, reversed_by="finance-1", entry_date=ENTRY_DATE)

        with self.assertRaises(JournalWorkflowError):
            reverse_journal(
                entry_id=original.id, reversed_by="finance-1", entry_date=ENTRY_DATE
            )
        self.assertEqual(
            JournalEntry.objects.filter(source_type=JournalEntry.SOURCE_REVERSAL).count(), 1
        )

    def test_drafts_cannot_be_reversed(self):
        draft = create_draft_journal(
            journal_type="payroll", entry_date=ENTRY_DATE, lines=SALARY_LINES
        )
        with self.assertRaises(JournalWorkflowError):
            reverse_journal(entry_id=draft.id, reversed_by="finance-1")
