# invoices/tasks.py

from __future__ import annotations

import logging

from celery import shared_task

from invoices.services.overdue_scheduler import run_sweep

logger = logging.getLogger(__name__)


@shared_task(name="invoices.tasks.sweep_overdue_invoices", ignore_result=True)
def sweep_overdue_invoices() -> dict:
    """Beat entry point for the overdue sweep."""
    result = run_sweep()
    if result["failed"]:
        logger.warning("Overdue sweep had failures", extra={"result": result})
    return result
