# accounting/services/period_lock.py

"""
======================================================
PATH: accounting/services/period_lock.py
======================================================
PERIOD LOCK MANAGER

Purpose:
- Split fiscal years into 12 monthly periods
- Lock / unlock single periods; close a fiscal year (one-way)
- Resolve the period for an entry date and refuse postings into
  locked periods or closed years

Design:
- Called by journal_entry_service (engine choke-point) inside its
  transaction, with the period row locked so a concurrent lock cannot
  slip in between the check and the write
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta

from django.db import transaction
from django.utils import timezone

from accounting.models.period import AccountingPeriod, FiscalYear

logger = logging.getLogger(__name__)


class PeriodLockedError(ValueError):
    """Raised when attempting to post into a locked period or closed fiscal year."""

    code = "period_locked"


class NoOpenPeriodError(ValueError):
    """Raised when no accounting period covers a date."""

    code = "no_open_period"


class PeriodCloseError(ValueError):
    """Raised when a lock/unlock/close/create request is not allowed."""

    code = "period_close"


def to_date(dt: datetime | date | None) -> date | None:
    if dt is None:
        return None
    if isinstance(dt, date) and not isinstance(dt, datetime):
        return dt
    if isinstance(dt, datetime):
        if timezone.is_naive(dt):
            dt = timezone.make_aware(dt, timezone.get_current_timezone())
        return timezone.localtime(dt).date()
    return None


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def resolve_period(
    entry_date: datetime | date | None, *, for_update: bool = False
) -> AccountingPeriod:
    """
    Return the period whose range covers entry_date.

    for_update=True locks the period row (caller must be inside a transaction).

    Raises:
        NoOpenPeriodError if no period covers the date.
    """
    post_date = to_date(entry_date) or timezone.localdate()

    qs = AccountingPeriod.objects.select_related("fiscal_year").filter(
        start_date__lte=post_date,
        end_date__gte=post_date,
    )
    if for_update:
        qs = qs.select_for_update(of=("self",))

    period = qs.first()
    if period is None:
        raise NoOpenPeriodError(
            f"No accounting period is defined for {post_date}. Create the fiscal year first."
        )
    return period


def assert_period_open(period: AccountingPeriod) -> None:
    if period.accepts_postings:
        return
    if period.fiscal_year.is_closed:
        raise PeriodLockedError(
            f"Posting blocked: fiscal year {period.fiscal_year.code} is closed."
        )
    if period.is_locked:
        raise PeriodLockedError(f"Posting blocked: period {period.name} is locked.")


@transaction.atomic
def create_fiscal_year(
    *, code: str, name: str = "", start_date: date, created_by: str = ""
) -> FiscalYear:
    """
    Create a fiscal year starting on the first day of a month and generate
    its 12 contiguous monthly periods.
    """
    if start_date.day != 1:
        raise PeriodCloseError("A fiscal year must start on the first day of a month")

    end_date = _add_months(start_date, 12) - timedelta(days=1)

    overlaps = FiscalYear.objects.filter(
        start_date__lte=end_date,
        end_date__gte=start_date,
    ).exists()
    if overlaps:
        raise PeriodCloseError(
            f"Fiscal year {start_date} - {end_date} overlaps an existing fiscal year"
        )
    if FiscalYear.objects.filter(code=(code or "").strip()).exists():
        raise PeriodCloseError(f"Fiscal year code {code} already exists")

    fiscal_year = FiscalYear.objects.create(
        code=code,
        name=name or code,
        start_date=start_date,
        end_date=end_date,
        created_by=created_by or "",
    )

    periods = []
    for number in range(1, 13):
        month_start = _add_months(start_date, number - 1)
        last_day = calendar.monthrange(month_start.year, month_start.month)[1]
        periods.append(
            AccountingPeriod(
                fiscal_year=fiscal_year,
                period_number=number,
                name=month_start.strftime("%Y-%m"),
                start_date=month_start,
                end_date=month_start.replace(day=last_day),
            )
        )
    AccountingPeriod.objects.bulk_create(periods)

    logger.info(
        "Fiscal year created",
        extra={"fiscal_year": fiscal_year.code, "created_by": created_by},
    )
    return fiscal_year


def _locked_period(period_id) -> AccountingPeriod:
    try:
        return (
            AccountingPeriod.objects.select_for_update(of=("self",))
            .select_related("fiscal_year")
            .get(pk=period_id)
        )
    except AccountingPeriod.DoesNotExist as exc:
        raise PeriodCloseError(f"Accounting period {period_id} not found") from exc


@transaction.atomic
def lock_period(period_id, *, locked_by: str) -> AccountingPeriod:
    period = _locked_period(period_id)

    if period.fiscal_year.is_closed:
        raise PeriodCloseError(
            f"Fiscal year {period.fiscal_year.code} is closed; its periods are already locked"
        )
    if period.is_locked:
        raise PeriodCloseError(f"Period {period.name} is already locked")

    period.is_locked = True
    period.locked_at = timezone.now()
    period.locked_by = locked_by or ""
    period.save(update_fields=["is_locked", "locked_at", "locked_by"])

    logger.info(
        "Accounting period locked",
        extra={"period": period.name, "locked_by": locked_by},
    )
    return period


@transaction.atomic
def unlock_period(period_id, *, unlocked_by: str) -> AccountingPeriod:
    period = _locked_period(period_id)

    if period.fiscal_year.is_closed:
        raise PeriodCloseError(
            f"Fiscal year {period.fiscal_year.code} is closed; periods cannot be unlocked"
        )
    if not period.is_locked:
        raise PeriodCloseError(f"Period {period.name} is not locked")

    period.is_locked = False
    period.unlocked_at = timezone.now()
    period.unlocked_by = unlocked_by or ""
    period.save(update_fields=["is_locked", "unlocked_at", "unlocked_by"])

    logger.warning(
        "Accounting period unlocked",
        extra={"period": period.name, "unlocked_by": unlocked_by},
    )
    return period


def _lock_open_periods(fiscal_year: FiscalYear, *, locked_by: str) -> int:
    now = timezone.now()
    return (
        AccountingPeriod.objects.filter(fiscal_year=fiscal_year, is_locked=False)
        .update(is_locked=True, locked_at=now, locked_by=locked_by or "")
    )


def _locked_fiscal_year(fiscal_year_id) -> FiscalYear:
    try:
        return FiscalYear.objects.select_for_update().get(pk=fiscal_year_id)
    except FiscalYear.DoesNotExist as exc:
        raise PeriodCloseError(f"Fiscal year {fiscal_year_id} not found") from exc


@transaction.atomic
def lock_all_periods(fiscal_year_id, *, locked_by: str) -> FiscalYear:
    fiscal_year = _locked_fiscal_year(fiscal_year_id)
    if fiscal_year.is_closed:
        raise PeriodCloseError(f"Fiscal year {fiscal_year.code} is already closed")

    count = _lock_open_periods(fiscal_year, locked_by=locked_by)
    logger.info(
        "All periods locked",
        extra={"fiscal_year": fiscal_year.code, "locked": count, "locked_by": locked_by},
    )
    return fiscal_year


@transaction.atomic
def close_fiscal_year(fiscal_year_id, *, closed_by: str) -> FiscalYear:
    """
    Lock every period of the year and flip the irreversible is_closed flag.
    """
    fiscal_year = _locked_fiscal_year(fiscal_year_id)
    if fiscal_year.is_closed:
        raise PeriodCloseError(f"Fiscal year {fiscal_year.code} is already closed")

    _lock_open_periods(fiscal_year, locked_by=closed_by)

    fiscal_year.is_closed = True
    fiscal_year.closed_at = timezone.now()
    fiscal_year.closed_by = closed_by or ""
    fiscal_year.save(update_fields=["is_closed", "closed_at", "closed_by"])

    logger.info(
        "Fiscal year closed",
        extra={"fiscal_year": fiscal_year.code, "closed_by": closed_by},
    )
    return fiscal_year
