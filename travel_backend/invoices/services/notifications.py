# invoices/services/notifications.py

from __future__ import annotations

import logging

from django.db import transaction

from invoices.models.invoice import Invoice
from invoices.signals import invoice_event

logger = logging.getLogger(__name__)


def _dispatch(event: str, invoice_id: str, payload: dict) -> None:
    results = invoice_event.send_robust(
        sender=Invoice, event=event, invoice_id=invoice_id, payload=payload
    )
    for receiver, response in results:
        if isinstance(response, Exception):
            logger.error(
                "Invoice event receiver failed",
                exc_info=response,
                extra={
                    "event": event,
                    "invoice_id": invoice_id,
                    "receiver": getattr(receiver, "__qualname__", repr(receiver)),
                },
            )


def notify_after_commit(event: str, invoice: Invoice, **payload) -> None:
    """
    Queue a business event for after the current transaction commits.
    Nothing is sent if the transaction rolls back.
    """
    invoice_id = str(invoice.id)
    payload = {
        "invoice_number": invoice.invoice_number,
        "status": str(invoice.status),
        "owner_id": invoice.owner_id,
        **{key: str(value) for key, value in payload.items()},
    }
    transaction.on_commit(lambda: _dispatch(event, invoice_id, payload))
