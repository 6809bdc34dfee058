# accounting/api/serializers/__init__.py

from accounting.api.serializers.accounts import (
    AccountMappingSerializer,
    AccountTreeNodeSerializer,
)
from accounting.api.serializers.journal_entries import (
    JournalEntryLineSerializer,
    JournalEntrySerializer,
    ManualJournalCreateSerializer,
    PostJournalSerializer,
    ReverseJournalSerializer,
)
from accounting.api.serializers.periods import (
    AccountingPeriodSerializer,
    FiscalYearCreateSerializer,
    FiscalYearSerializer,
)

__all__ = [
    "AccountMappingSerializer",
    "AccountTreeNodeSerializer",
    "AccountingPeriodSerializer",
    "FiscalYearSerializer",
    "FiscalYearCreateSerializer",
    "JournalEntrySerializer",
    "JournalEntryLineSerializer",
    "PostJournalSerializer",
    "ManualJournalCreateSerializer",
    "ReverseJournalSerializer",
]
