# invoices/services/overdue_scheduler.py

"""
======================================================
PATH: invoices/services/overdue_scheduler.py
======================================================
OVERDUE SCHEDULER

Blocks tentative / partially paid invoices whose DP grace window expired.

run_sweep():
    - single-flight across processes (cache lock)
    - candidates selected without locks, then each one handled in its own
      transaction: lock row, re-check against the persisted state, block
    - a failing row is logged and skipped, the sweep carries on
    - optional second phase cancels invoices blocked for longer than
      INVOICE_OVERDUE_CANCEL_AFTER_HOURS (0 disables it)

Driven by Celery beat (invoices.tasks) or by OverdueScheduler in the
run_overdue_scheduler management command.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from invoices.models.invoice import Invoice, InvoiceStatus
from invoices.services import notifications
from invoices.services.exceptions import InvalidTransitionError
from invoices.services.invoice_lifecycle import (
    SWEEPABLE_STATES,
    InvoiceEvent,
    money,
    transition,
)
from invoices.services.invoice_service import lock_invoice
from invoices.signals import INVOICE_BLOCKED, INVOICE_CANCELED

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
SWEEP_LOCK_KEY = "invoices:overdue-sweep"


# ============================================================
# CANDIDATES
# ============================================================


def candidate_ids(now: datetime) -> list:
    return list(
        Invoice.objects.filter(
            auto_cancel_at__lte=now,
            paid_amount__lt=F("dp_amount"),
            status__in=SWEEPABLE_STATES,
            is_blocked=False,
        )
        .order_by("auto_cancel_at")
        .values_list("id", flat=True)
    )


def is_sweep_candidate(invoice: Invoice, now: datetime) -> bool:
    return (
        invoice.status in SWEEPABLE_STATES
        and not invoice.is_blocked
        and invoice.auto_cancel_at is not None
        and invoice.auto_cancel_at <= now
        and money(invoice.paid_amount) < money(invoice.dp_amount)
    )


def cancel_candidate_ids(now: datetime) -> list:
    hours = int(getattr(settings, "INVOICE_OVERDUE_CANCEL_AFTER_HOURS", 0) or 0)
    if hours <= 0:
        return []
    return list(
        Invoice.objects.filter(
            status=InvoiceStatus.OVERDUE,
            is_blocked=True,
            overdue_activated_at__lte=now - timedelta(hours=hours),
        ).values_list("id", flat=True)
    )


# ============================================================
# PER-ROW WORK
# ============================================================


@transaction.atomic
def sweep_invoice(invoice_id, *, now: datetime, actor: str = SYSTEM_ACTOR) -> bool:
    """
    Block one invoice. Returns False when, after locking, it no longer
    qualifies (a payment or an operator got there first).
    """
    invoice = lock_invoice(invoice_id)
    if not is_sweep_candidate(invoice, now):
        logger.info(
            "Sweep candidate no longer qualifies",
            extra={"invoice_id": str(invoice.id), "status": str(invoice.status)},
        )
        return False

    transition(invoice, InvoiceEvent.MARK_OVERDUE, actor=actor, now=now)
    invoice.save()

    logger.info(
        "Invoice blocked as overdue",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "paid_amount": str(invoice.paid_amount),
            "dp_amount": str(invoice.dp_amount),
        },
    )
    notifications.notify_after_commit(
        INVOICE_BLOCKED, invoice, auto_cancel_at=invoice.auto_cancel_at
    )
    return True


@transaction.atomic
def cancel_overdue_invoice(invoice_id, *, now: datetime, actor: str = SYSTEM_ACTOR) -> bool:
    invoice = lock_invoice(invoice_id)
    if invoice.status != InvoiceStatus.OVERDUE or not invoice.is_blocked:
        return False

    transition(invoice, InvoiceEvent.CANCEL, actor=actor, now=now)
    invoice.save()

    logger.info(
        "Overdue invoice canceled",
        extra={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number},
    )
    notifications.notify_after_commit(INVOICE_CANCELED, invoice, actor=actor, reason="overdue")
    return True


def _run_each(ids, handler, *, now: datetime, counters: dict, key: str) -> None:
    for invoice_id in ids:
        try:
            if handler(invoice_id, now=now):
                counters[key] += 1
        except Exception:
            counters["failed"] += 1
            logger.exception(
                "Overdue sweep failed for invoice",
                extra={"invoice_id": str(invoice_id), "phase": key},
            )


def run_sweep(now: datetime | None = None) -> dict:
    """
    One sweep pass. Returns counters; a concurrent pass already holding the
    lock makes this one a no-op with skipped=True.
    """
    now = now or timezone.now()
    counters = {"blocked": 0, "canceled": 0, "failed": 0, "skipped": False}

    timeout = max(int(settings.INVOICE_OVERDUE_SWEEP_SECONDS) * 5, 60)
    if not cache.add(SWEEP_LOCK_KEY, now.isoformat(), timeout=timeout):
        logger.info("Overdue sweep already running")
        counters["skipped"] = True
        return counters

    try:
        _run_each(candidate_ids(now), sweep_invoice, now=now, counters=counters, key="blocked")
        _run_each(
            cancel_candidate_ids(now),
            cancel_overdue_invoice,
            now=now,
            counters=counters,
            key="canceled",
        )
    finally:
        cache.delete(SWEEP_LOCK_KEY)

    logger.info("Overdue sweep finished", extra={"result": counters})
    return counters


# ============================================================
# OPERATOR UNBLOCK
# ============================================================


@transaction.atomic
def unblock_invoice(invoice_id, *, actor: str, now: datetime | None = None) -> Invoice:
    """
    Give a blocked invoice a fresh grace window. Only while it is still
    waiting for its DP.
    """
    invoice = lock_invoice(invoice_id)
    if (
        invoice.status != InvoiceStatus.OVERDUE
        or not invoice.is_blocked
        or money(invoice.paid_amount) >= money(invoice.dp_amount)
    ):
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number} is not a blocked overdue invoice awaiting DP"
        )

    transition(invoice, InvoiceEvent.UNBLOCK, actor=actor, now=now)
    invoice.save()

    logger.info(
        "Invoice unblocked",
        extra={
            "invoice_id": str(invoice.id),
            "actor": actor,
            "auto_cancel_at": invoice.auto_cancel_at.isoformat(),
        },
    )
    return invoice


# ============================================================
# STANDALONE RUNNER
# ============================================================


class OverdueScheduler:
    """
    Fixed-interval sweep loop on a background thread.

    start() is a no-op while running; stop() lets the current pass finish.
    """

    def __init__(self, interval_seconds: int | None = None, sweep=run_sweep):
        self.interval = interval_seconds or settings.INVOICE_OVERDUE_SWEEP_SECONDS
        self._sweep = sweep
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> dict | None:
        try:
            return self._sweep()
        except Exception:
            logger.exception("Overdue sweep pass failed")
            return None

    def run_forever(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self.interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="overdue-scheduler", daemon=True
        )
        self._thread.start()
        logger.info("Overdue scheduler started", extra={"interval": self.interval})

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Overdue scheduler stopped")
