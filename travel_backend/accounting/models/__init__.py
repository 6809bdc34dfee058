# accounting/models/__init__.py

"""
ACCOUNTING MODELS PACKAGE EXPORTS

Note:
- Keep this file *imports-only* (no business logic).
- Do NOT import services from models anywhere (models must stay pure).
"""

from accounting.models.account import ChartOfAccount
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.mapping import AccountMapping
from accounting.models.period import AccountingPeriod, FiscalYear

__all__ = [
    "ChartOfAccount",
    "AccountMapping",
    "FiscalYear",
    "AccountingPeriod",
    "JournalEntry",
    "JournalEntryLine",
]
