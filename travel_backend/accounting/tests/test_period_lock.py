# accounting/tests/test_period_lock.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.period import AccountingPeriod, FiscalYear
from accounting.services.journal_entry_service import post_journal
from accounting.services.period_lock import (
    NoOpenPeriodError,
    PeriodCloseError,
    PeriodLockedError,
    close_fiscal_year,
    create_fiscal_year,
    lock_all_periods,
    lock_period,
    resolve_period,
    unlock_period,
)
from accounting.tests.helpers import seed_ledger


class FiscalYearCreationTests(TestCase):
    def test_creates_twelve_contiguous_monthly_periods(self):
        fy = create_fiscal_year(code="FY2030", start_date=date(2030, 1, 1))

        periods = list(fy.periods.order_by("period_number"))
        self.assertEqual(len(periods), 12)
        self.assertEqual(fy.end_date, date(2030, 12, 31))
        self.assertEqual(periods[0].name, "2030-01")
        self.assertEqual(periods[1].end_date, date(2030, 2, 28))
        self.assertEqual(periods[-1].end_date, date(2030, 12, 31))

        for previous, current in zip(periods, periods[1:]):
            self.assertEqual((current.start_date - previous.end_date).days, 1)

    def test_fiscal_year_may_start_mid_calendar(self):
        fy = create_fiscal_year(code="FY2031", start_date=date(2031, 4, 1))

        self.assertEqual(fy.end_date, date(2032, 3, 31))
        self.assertEqual(fy.periods.get(period_number=12).name, "2032-03")

    def test_start_must_be_first_of_month(self):
        with self.assertRaises(PeriodCloseError):
            create_fiscal_year(code="FY-BAD", start_date=date(2030, 1, 15))

    def test_overlapping_years_are_rejected(self):
        create_fiscal_year(code="FY2030", start_date=date(2030, 1, 1))
        with self.assertRaises(PeriodCloseError):
            create_fiscal_year(code="FY2030B", start_date=date(2030, 7, 1))
        self.assertEqual(FiscalYear.objects.count(), 1)

    def test_resolve_period_without_fiscal_year(self):
        with self.assertRaises(NoOpenPeriodError):
            resolve_period(date(1999, 5, 1))


class PeriodLockTests(TestCase):
    """
    GUARANTEES:
    - A locked period or closed year refuses postings and nothing is written
    - Locks are independent per period
    - Closing a fiscal year is one-way
    """

    def setUp(self):
        seed_ledger(2026)
        self.fiscal_year = FiscalYear.objects.get(code="FY2026")
        self.march = self.fiscal_year.periods.get(period_number=3)

    def _post(self, entry_date, source_id="INV-1"):
        return post_journal(
            category="cash_receipt",
            amount=Decimal("500000.00"),
            entry_date=entry_date,
            source_type="invoice_payment",
            source_id=source_id,
        )

    def test_locked_period_rejects_posting_and_writes_nothing(self):
        lock_period(self.march.id, locked_by="finance-1")

        with self.assertRaises(PeriodLockedError):
            self._post(date(2026, 3, 10))

        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertEqual(JournalEntryLine.objects.count(), 0)

    def test_other_periods_stay_open(self):
        lock_period(self.march.id, locked_by="finance-1")

        entry = self._post(date(2026, 4, 1))
        self.assertEqual(entry.period.name, "2026-04")

    def test_unlock_reopens_period(self):
        lock_period(self.march.id, locked_by="finance-1")
        period = unlock_period(self.march.id, unlocked_by="finance-2")

        self.assertFalse(period.is_locked)
        self.assertEqual(period.unlocked_by, "finance-2")
        self.assertTrue(period.accepts_postings)
        self._post(date(2026, 3, 10))

    def test_lock_records_actor(self):
        period = lock_period(self.march.id, locked_by="finance-1")

        self.assertTrue(period.is_locked)
        self.assertEqual(period.locked_by, "finance-1")
        self.assertIsNotNone(period.locked_at)
        self.assertFalse(period.accepts_postings)

    def test_double_lock_and_spurious_unlock_are_refused(self):
        with self.assertRaises(PeriodCloseError):
            unlock_period(self.march.id, unlocked_by="finance-1")

        lock_period(self.march.id, locked_by="finance-1")
        with self.assertRaises(PeriodCloseError):
            lock_period(self.march.id, locked_by="finance-1")

    def test_lock_all_periods(self):
        lock_period(self.march.id, locked_by="finance-1")
        lock_all_periods(self.fiscal_year.id, locked_by="finance-2")

        periods = AccountingPeriod.objects.filter(fiscal_year=self.fiscal_year)
        self.assertFalse(periods.filter(is_locked=False).exists())
        # earlier lock keeps its original actor
        self.assertEqual(periods.get(pk=self.march.pk).locked_by, "finance-1")

    def test_closed_year_blocks_postings_and_cannot_be_reopened(self):
        close_fiscal_year(self.fiscal_year.id, closed_by="cfo")
        self.fiscal_year.refresh_from_db()

        self.assertTrue(self.fiscal_year.is_closed)
        self.assertFalse(self.fiscal_year.periods.filter(is_locked=False).exists())

        with self.assertRaises(PeriodLockedError):
            self._post(date(2026, 6, 1))
        with self.assertRaises(PeriodCloseError):
            unlock_period(self.march.id, unlocked_by="cfo")
        with self.assertRaises(PeriodCloseError):
            close_fiscal_year(self.fiscal_year.id, closed_by="cfo")

        self.fiscal_year.is_closed = False
        with self.assertRaises(ValidationError):
            self.fiscal_year.save()

    def test_periods_and_years_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.march.delete()
        with self.assertRaises(ValidationError):
            self.fiscal_year.delete()
