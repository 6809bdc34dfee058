"""
ACCOUNTING SERVICE ERRORS

Centralized domain errors for accounting services.

Every error carries a stable `code` so API views can return a structured
reason without parsing messages.
"""


class AccountingServiceError(Exception):
    """Base exception for all accounting service failures."""

    code = "accounting_error"


class PostingRuleError(AccountingServiceError):
    """Raised when a posting rule cannot be applied."""

    code = "posting_rule"


class ExchangeRateError(PostingRuleError):
    """Raised when no exchange rate is configured for a currency."""

    code = "exchange_rate_missing"


class AccountResolutionError(AccountingServiceError):
    """Raised when an expected account cannot be resolved."""

    code = "account_resolution"


class UnmappedCategoryError(AccountResolutionError):
    """Raised when a business-event category has no active account mapping."""

    code = "unmapped_category"


class JournalEntryCreationError(AccountingServiceError):
    """Raised when a journal entry cannot be created."""

    code = "journal_entry_invalid"


class JournalWorkflowError(AccountingServiceError):
    """Raised on an illegal draft/submit/approve/post/reverse step."""

    code = "journal_workflow"


class DuplicatePostingError(AccountingServiceError):
    """
    Raised on duplicate or retried accounting events.

    Carries the entry that already exists for the posting key, so callers
    can treat the retry as success-with-warning.
    """

    code = "duplicate_posting"

    def __init__(self, message: str, *, existing_entry=None):
        super().__init__(message)
        self.existing_entry = existing_entry
