# invoices/models/__init__.py

from invoices.models.invoice import Invoice, InvoiceStatus, OverpaymentHandling
from invoices.models.payment_proof import PaymentProof, PaymentType, ProofStatus
from invoices.models.sequence import InvoiceSequence

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "OverpaymentHandling",
    "PaymentProof",
    "PaymentType",
    "ProofStatus",
    "InvoiceSequence",
]
