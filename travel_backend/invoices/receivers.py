# invoices/receivers.py

import logging

from django.dispatch import receiver

from invoices.models.invoice import Invoice
from invoices.signals import invoice_event

logger = logging.getLogger(__name__)


@receiver(invoice_event, sender=Invoice, dispatch_uid="invoices.log_invoice_event")
def log_invoice_event(sender, event, invoice_id, payload, **kwargs):
    logger.info(
        "Invoice event",
        extra={"event": event, "invoice_id": invoice_id, "payload": payload},
    )
