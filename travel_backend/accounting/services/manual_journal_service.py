# accounting/services/manual_journal_service.py

"""
MANUAL JOURNAL WORKFLOW

draft -> submitted -> approved -> posted

- Drafts are validated (balanced, active leaf accounts) when created and
  again at posting time, together with the period lock.
- Posting assigns the sequential journal number under the period row lock,
  the same way the posting engine does.
- Manual journals are booked in the base currency.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from accounting.models.journal import JournalEntry
from accounting.services.chart_registry import assert_postable
from accounting.services.exceptions import JournalWorkflowError, PostingRuleError
from accounting.services.exchange_rates import base_currency, normalize_currency
from accounting.services.journal_entry_service import (
    next_journal_number,
    normalize_lines,
    write_lines,
)
from accounting.services.period_lock import assert_period_open, resolve_period

logger = logging.getLogger(__name__)

ALLOWED_STEPS = {
    JournalEntry.STATUS_DRAFT: JournalEntry.STATUS_SUBMITTED,
    JournalEntry.STATUS_SUBMITTED: JournalEntry.STATUS_APPROVED,
    JournalEntry.STATUS_APPROVED: JournalEntry.STATUS_POSTED,
}


def _locked_entry(entry_id) -> JournalEntry:
    try:
        return JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist as exc:
        raise JournalWorkflowError(f"Journal entry {entry_id} not found") from exc


def _validate_step(entry: JournalEntry, target: str) -> None:
    if ALLOWED_STEPS.get(entry.status) != target:
        raise JournalWorkflowError(
            f"Journal entry {entry.id} cannot move from '{entry.status}' to '{target}'"
        )


def _revalidate_lines(entry: JournalEntry) -> None:
    """Accounts may have been deactivated or turned into headers since drafting."""
    debit = credit = Decimal("0.00")
    for line in entry.lines.select_related("account"):
        assert_postable(line.account)
        debit += line.debit_amount
        credit += line.credit_amount
    if debit != credit or debit != entry.total_debit:
        raise PostingRuleError(
            f"Journal entry {entry.id} is not balanced: debit={debit} credit={credit}"
        )


@transaction.atomic
def create_draft_journal(
    *,
    journal_type: str,
    entry_date: date,
    lines: list,
    description: str = "",
    currency: str | None = None,
    created_by: str = "",
) -> JournalEntry:
    if normalize_currency(currency) != base_currency():
        raise PostingRuleError(
            f"Manual journals are booked in {base_currency()} only"
        )

    normalized = normalize_lines(lines, rate=Decimal("1"))
    total = sum((line["debit"] for line in normalized), Decimal("0.00"))
    period = resolve_period(entry_date)

    entry = JournalEntry.objects.create(
        period=period,
        entry_date=entry_date,
        journal_type=journal_type,
        source_type=JournalEntry.SOURCE_MANUAL,
        description=description,
        status=JournalEntry.STATUS_DRAFT,
        total_debit=total,
        total_credit=total,
        currency=base_currency(),
        original_total=total,
        created_by=created_by or "",
    )
    write_lines(entry, normalized)

    logger.info(
        "Manual journal drafted",
        extra={"journal_entry_id": entry.id, "created_by": created_by},
    )
    return entry


@transaction.atomic
def submit_journal(entry_id, *, submitted_by: str = "") -> JournalEntry:
    entry = _locked_entry(entry_id)
    _validate_step(entry, JournalEntry.STATUS_SUBMITTED)

    entry.status = JournalEntry.STATUS_SUBMITTED
    entry.save(update_fields=["status"])

    logger.info(
        "Manual journal submitted",
        extra={"journal_entry_id": entry.id, "submitted_by": submitted_by},
    )
    return entry


@transaction.atomic
def approve_journal(entry_id, *, approved_by: str) -> JournalEntry:
    entry = _locked_entry(entry_id)
    _validate_step(entry, JournalEntry.STATUS_APPROVED)

    entry.status = JournalEntry.STATUS_APPROVED
    entry.approved_by = approved_by or ""
    entry.approved_at = timezone.now()
    entry.save(update_fields=["status", "approved_by", "approved_at"])

    logger.info(
        "Manual journal approved",
        extra={"journal_entry_id": entry.id, "approved_by": approved_by},
    )
    return entry


@transaction.atomic
def post_approved_journal(entry_id, *, posted_by: str) -> JournalEntry:
    entry = _locked_entry(entry_id)
    _validate_step(entry, JournalEntry.STATUS_POSTED)
    _revalidate_lines(entry)

    period = resolve_period(entry.entry_date, for_update=True)
    assert_period_open(period)

    entry.period = period
    entry.journal_number = next_journal_number(period)
    entry.status = JournalEntry.STATUS_POSTED
    entry.posted_by = posted_by or ""
    entry.posted_at = timezone.now()
    entry.save(
        update_fields=["period", "journal_number", "status", "posted_by", "posted_at"]
    )

    logger.info(
        "Manual journal posted",
        extra={
            "journal_entry_id": entry.id,
            "journal_number": entry.journal_number,
            "posted_by": posted_by,
        },
    )
    return entry
