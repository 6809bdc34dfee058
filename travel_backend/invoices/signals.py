# invoices/signals.py

"""
Business events emitted after the owning transaction commits.

Receivers get: sender=Invoice, event=<name>, invoice_id=<str>, payload=<dict>.
Delivery (email, WhatsApp, in-app) is the receivers' concern; a failing
receiver never undoes the state change that produced the event.
"""

from django.dispatch import Signal

invoice_event = Signal()

INVOICE_CREATED = "invoice_created"
INVOICE_BLOCKED = "invoice_blocked"
INVOICE_CANCELED = "invoice_canceled"
PAYMENT_VERIFIED = "payment_verified"
PAYMENT_REJECTED = "payment_rejected"
OVERPAYMENT_DETECTED = "overpayment_detected"
OVERPAYMENT_RESOLVED = "overpayment_resolved"
REFUND_COMPLETED = "refund_completed"
