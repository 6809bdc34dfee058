# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
LEDGER POSTING ENGINE

This module is the ONLY place allowed to:
- Create posted JournalEntry / JournalEntryLine rows
- Enforce debit == credit
- Guarantee atomicity
- Enforce idempotency via posting_key (prevents double-posting)
- Enforce period locks (no posting into locked periods / closed years)
- Convert foreign-currency postings to the base currency (IDR)

Everything else (invoice payments, overpayment handling, payroll, manual
journals) must pass through here.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.account import ChartOfAccount
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.period import AccountingPeriod
from accounting.services.account_mapping import normalize_category, resolve_mapping
from accounting.services.chart_registry import get_postable_account
from accounting.services.exceptions import (
    AccountResolutionError,
    DuplicatePostingError,
    JournalEntryCreationError,
    JournalWorkflowError,
)
from accounting.services.exchange_rates import get_rate, normalize_currency, to_base
from accounting.services.period_lock import (
    assert_period_open,
    resolve_period,
    to_date,
)

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
MIN_LINE_AMOUNT = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    if value is None or value == "":
        return ZERO

    if isinstance(value, Decimal):
        amt = value
    else:
        try:
            amt = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise JournalEntryCreationError(f"Invalid money value: {value!r}") from exc

    return amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def build_posting_key(
    source_type: str, source_id, category: str, discriminator=None
) -> str | None:
    st = (source_type or "").strip()
    sid = str(source_id or "").strip()
    cat = normalize_category(category)
    if not st or not sid or not cat:
        return None

    key = f"{st}:{sid}:{cat}"
    if discriminator not in (None, ""):
        key = f"{key}:{discriminator}"
    return key


def _resolve_line_account(value) -> ChartOfAccount:
    if value is None:
        raise JournalEntryCreationError("Posting line missing account")
    try:
        return get_postable_account(value)
    except AccountResolutionError as exc:
        raise JournalEntryCreationError(str(exc)) from exc


def normalize_lines(lines: list, *, rate: Decimal) -> list[dict]:
    """
    Validate caller lines and convert them to the base currency.

    Each line: {"account": ChartOfAccount | code, "debit", "credit",
                "description", "cost_center", "reference_type", "reference_id"}
    """
    if not lines or len(lines) < 2:
        raise JournalEntryCreationError("A journal entry needs at least two lines")

    normalized: list[dict] = []
    original_debits = ZERO
    original_credits = ZERO

    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise JournalEntryCreationError("Each posting line must be an object/dict")

        account = _resolve_line_account(line.get("account"))
        debit = _money(line.get("debit"))
        credit = _money(line.get("credit"))

        if debit < 0 or credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")
        if debit > 0 and credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            raise JournalEntryCreationError("A line must have either debit or credit")
        if 0 < debit < MIN_LINE_AMOUNT or 0 < credit < MIN_LINE_AMOUNT:
            raise JournalEntryCreationError("Line amount too small")

        original_debits += debit
        original_credits += credit

        normalized.append(
            {
                "account": account,
                "original_debit": debit,
                "original_credit": credit,
                "debit": to_base(debit, rate) if debit else ZERO,
                "credit": to_base(credit, rate) if credit else ZERO,
                "description": (line.get("description") or "").strip()[:255],
                "cost_center": (line.get("cost_center") or "").strip()[:50],
                "reference_type": (line.get("reference_type") or "").strip()[:50],
                "reference_id": str(line.get("reference_id") or "").strip()[:64],
                "sort_order": index,
            }
        )

    if original_debits != original_credits:
        raise JournalEntryCreationError(
            f"Journal entry not balanced: debits={original_debits} credits={original_credits}"
        )

    _absorb_rounding_residue(normalized)
    return normalized


def _absorb_rounding_residue(lines: list[dict]) -> None:
    """
    Per-line conversion can leave a minor-unit residue between the converted
    sides. Put it on the last line of the lighter side.
    """
    debits = sum((line["debit"] for line in lines), ZERO)
    credits = sum((line["credit"] for line in lines), ZERO)
    residue = debits - credits
    if residue == 0:
        return

    side = "credit" if residue > 0 else "debit"
    for line in reversed(lines):
        if line[side] > 0:
            line[side] = (line[side] + abs(residue)).quantize(TWOPLACES)
            return


def _totals(lines: list[dict]) -> tuple[Decimal, Decimal, Decimal]:
    debit = sum((line["debit"] for line in lines), ZERO)
    credit = sum((line["credit"] for line in lines), ZERO)
    original = sum((line["original_debit"] for line in lines), ZERO)
    return debit, credit, original


def next_journal_number(period: AccountingPeriod) -> str:
    """
    Sequential per period. Caller must hold the period row lock.
    """
    count = JournalEntry.objects.filter(
        period=period, journal_number__isnull=False
    ).count()
    return f"JU-{period.start_date:%Y%m}-{count + 1:05d}"


def write_lines(entry: JournalEntry, lines: list[dict]) -> None:
    JournalEntryLine.objects.bulk_create(
        [
            JournalEntryLine(
                entry=entry,
                account=line["account"],
                debit_amount=line["debit"],
                credit_amount=line["credit"],
                original_debit_amount=line["original_debit"],
                original_credit_amount=line["original_credit"],
                line_description=line["description"],
                cost_center=line["cost_center"],
                reference_type=line["reference_type"],
                reference_id=line["reference_id"],
                sort_order=line["sort_order"],
            )
            for line in lines
        ]
    )


def _existing_for_key(posting_key: str | None) -> JournalEntry | None:
    if not posting_key:
        return None
    return JournalEntry.objects.filter(posting_key=posting_key).first()


def _mapped_lines(
    *,
    category: str,
    amount: Decimal,
    description: str,
    reference_type: str,
    reference_id: str,
) -> list[dict]:
    debit_account, credit_account = resolve_mapping(category)
    return [
        {
            "account": debit_account,
            "debit": amount,
            "credit": ZERO,
            "description": description,
            "reference_type": reference_type,
            "reference_id": reference_id,
        },
        {
            "account": credit_account,
            "debit": ZERO,
            "credit": amount,
            "description": description,
            "reference_type": reference_type,
            "reference_id": reference_id,
        },
    ]


@transaction.atomic
def post_journal(
    *,
    category: str,
    source_type: str,
    source_id,
    amount=None,
    currency: str | None = None,
    entry_date: date | datetime | None = None,
    lines: list | None = None,
    description: str = "",
    discriminator=None,
    reference_type: str = "",
    reference_id: str = "",
    created_by: str = "system",
) -> JournalEntry:
    """
    POST ONE BALANCED JOURNAL ENTRY

    Without `lines`, the mapping for `category` supplies the debit and credit
    accounts and both lines carry `amount`. With `lines`, the mapping is not
    consulted and the engine only checks the breakdown balances.

    Idempotency:
      posting_key = source_type:source_id:category[:discriminator]

    Raises:
        UnmappedCategoryError, JournalEntryCreationError, DuplicatePostingError,
        PeriodLockedError, NoOpenPeriodError, ExchangeRateError
    """
    category = normalize_category(category)
    if not category:
        raise JournalEntryCreationError("Posting category is required")

    source_type = (source_type or "").strip()
    source_id = str(source_id or "").strip()
    if not source_type or not source_id:
        raise JournalEntryCreationError("source_type and source_id are required")

    currency = normalize_currency(currency)
    rate = get_rate(currency)
    post_date = to_date(entry_date) or timezone.localdate()
    description = (description or "").strip() or f"{category} {source_type}:{source_id}"

    posting_key = build_posting_key(source_type, source_id, category, discriminator)
    existing = _existing_for_key(posting_key)
    if existing is not None:
        logger.warning(
            "Duplicate posting rejected",
            extra={"posting_key": posting_key, "journal_entry_id": existing.id},
        )
        raise DuplicatePostingError(
            f"Journal entry already exists for {posting_key}",
            existing_entry=existing,
        )

    if lines is None:
        amt = _money(amount)
        if amt <= ZERO:
            raise JournalEntryCreationError("Posting amount must be > 0")
        lines = _mapped_lines(
            category=category,
            amount=amt,
            description=description,
            reference_type=reference_type,
            reference_id=str(reference_id or ""),
        )

    normalized = normalize_lines(lines, rate=rate)
    total_debit, total_credit, original_total = _totals(normalized)

    # Period lock enforcement (engine choke-point). The row lock keeps a
    # concurrent lock_period() out until this transaction commits.
    period = resolve_period(post_date, for_update=True)
    assert_period_open(period)

    try:
        with transaction.atomic():
            entry = JournalEntry.objects.create(
                journal_number=next_journal_number(period),
                period=period,
                entry_date=post_date,
                journal_type=category,
                source_type=source_type,
                source_id=source_id,
                posting_key=posting_key,
                description=description,
                status=JournalEntry.STATUS_POSTED,
                total_debit=total_debit,
                total_credit=total_credit,
                currency=currency,
                exchange_rate=rate,
                original_total=original_total,
                created_by=created_by or "",
                posted_by=created_by or "",
                posted_at=timezone.now(),
            )
    except (IntegrityError, ValidationError) as exc:
        existing = _existing_for_key(posting_key)
        if existing is not None:
            raise DuplicatePostingError(
                f"Journal entry already exists for {posting_key}",
                existing_entry=existing,
            ) from exc
        raise JournalEntryCreationError(f"Failed to create journal entry: {exc}") from exc

    write_lines(entry, normalized)

    logger.info(
        "Journal entry posted",
        extra={
            "journal_entry_id": entry.id,
            "journal_number": entry.journal_number,
            "category": category,
            "source": f"{source_type}:{source_id}",
            "total": str(total_debit),
            "currency": currency,
        },
    )
    return entry


@transaction.atomic
def reverse_journal(
    *,
    entry_id,
    reversed_by: str,
    entry_date: date | None = None,
    description: str = "",
) -> JournalEntry:
    """
    Append a mirrored entry (source_type="reversal") and mark the original
    reversed. The booked exchange rate is reused, never recomputed.
    """
    try:
        original = JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist as exc:
        raise JournalWorkflowError(f"Journal entry {entry_id} not found") from exc

    if original.status != JournalEntry.STATUS_POSTED:
        raise JournalWorkflowError(
            f"Only posted entries can be reversed (entry is {original.status})"
        )

    mirrored = [
        {
            "account": line.account,
            "original_debit": line.original_credit_amount,
            "original_credit": line.original_debit_amount,
            "debit": line.credit_amount,
            "credit": line.debit_amount,
            "description": f"Reversal: {line.line_description}"[:255],
            "cost_center": line.cost_center,
            "reference_type": line.reference_type,
            "reference_id": line.reference_id,
            "sort_order": line.sort_order,
        }
        for line in original.lines.select_related("account").order_by("sort_order", "id")
    ]
    total_debit, total_credit, original_total = _totals(mirrored)

    post_date = entry_date or timezone.localdate()
    period = resolve_period(post_date, for_update=True)
    assert_period_open(period)

    posting_key = build_posting_key(
        JournalEntry.SOURCE_REVERSAL, original.id, original.journal_type
    )
    reversal = JournalEntry.objects.create(
        journal_number=next_journal_number(period),
        period=period,
        entry_date=post_date,
        journal_type=original.journal_type,
        source_type=JournalEntry.SOURCE_REVERSAL,
        source_id=str(original.id),
        posting_key=posting_key,
        description=description or f"Reversal of {original.journal_number}",
        status=JournalEntry.STATUS_POSTED,
        total_debit=total_debit,
        total_credit=total_credit,
        currency=original.currency,
        exchange_rate=original.exchange_rate,
        original_total=original_total,
        created_by=reversed_by or "",
        posted_by=reversed_by or "",
        posted_at=timezone.now(),
    )
    write_lines(reversal, mirrored)

    original.status = JournalEntry.STATUS_REVERSED
    original.save(update_fields=["status"])

    logger.info(
        "Journal entry reversed",
        extra={
            "journal_entry_id": original.id,
            "reversal_id": reversal.id,
            "reversed_by": reversed_by,
        },
    )
    return reversal
