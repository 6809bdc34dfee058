# accounting/api/views/__init__.py

"""
accounting.api.views package

Do NOT import accounting.api.urls from here to avoid circular imports.
"""

from accounting.api.views.accounts import AccountMappingViewSet, AccountTreeView
from accounting.api.views.journal_entries import JournalEntryViewSet
from accounting.api.views.periods import AccountingPeriodViewSet, FiscalYearViewSet

__all__ = [
    "AccountTreeView",
    "AccountMappingViewSet",
    "FiscalYearViewSet",
    "AccountingPeriodViewSet",
    "JournalEntryViewSet",
]
