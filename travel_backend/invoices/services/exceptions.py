"""
INVOICE SERVICE ERRORS

Every error carries a stable `code`; API views return it as-is.
"""


class InvoiceServiceError(Exception):
    """Base exception for invoice lifecycle failures."""

    code = "invoice_error"


class InvoiceNotFoundError(InvoiceServiceError):
    code = "invoice_not_found"


class DuplicateInvoiceError(InvoiceServiceError):
    """Raised when the order already has an invoice."""

    code = "invoice_exists"


class InvalidTransitionError(InvoiceServiceError):
    """Raised when (status, event) is not in the transition table."""

    code = "invalid_transition"


class InvoiceClosedError(InvoiceServiceError):
    """Raised on operations against an invoice in a terminal state."""

    code = "invoice_closed"


class AlreadyResolvedError(InvoiceServiceError):
    """Raised when an overpayment was already resolved."""

    code = "already_resolved"


class InsufficientFundsError(InvoiceServiceError):
    """Raised when a DP proof does not bring the paid amount up to the DP."""

    code = "insufficient_funds"


class PaymentAmountMismatchError(InvoiceServiceError):
    """Raised when a full-payment proof does not cover the remaining amount."""

    code = "payment_amount_mismatch"


class PaymentProofNotFoundError(InvoiceServiceError):
    code = "payment_proof_not_found"


class InvalidOverpaymentTargetError(InvoiceServiceError):
    """Raised when an overpayment transfer target is missing or not eligible."""

    code = "invalid_overpayment_target"
