# accounting/admin.py

from django.contrib import admin

from accounting.models import (
    AccountingPeriod,
    AccountMapping,
    ChartOfAccount,
    FiscalYear,
    JournalEntry,
    JournalEntryLine,
)

# ============================================================
# CHART OF ACCOUNTS
# ============================================================


@admin.register(ChartOfAccount)
class ChartOfAccountAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "account_type",
        "parent",
        "is_header",
        "currency",
        "is_active",
    )
    list_filter = ("account_type", "is_header", "is_active")
    search_fields = ("code", "name")
    ordering = ("code",)
    readonly_fields = ("level", "created_at", "updated_at")

    fieldsets = (
        (
            "Account Identity",
            {
                "fields": ("parent", "code", "name", "account_type", "currency"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_header", "is_active", "sort_order"),
            },
        ),
        (
            "System Fields",
            {
                "fields": ("level", "created_at", "updated_at"),
            },
        ),
    )


# ============================================================
# ACCOUNT MAPPING
# ============================================================


@admin.register(AccountMapping)
class AccountMappingAdmin(admin.ModelAdmin):
    list_display = ("mapping_type", "debit_account", "credit_account", "is_active")
    list_filter = ("is_active",)
    search_fields = ("mapping_type", "description")
    autocomplete_fields = ("debit_account", "credit_account")


# ============================================================
# FISCAL YEARS / PERIODS (locks go through the API services)
# ============================================================


class AccountingPeriodInline(admin.TabularInline):
    model = AccountingPeriod
    extra = 0
    can_delete = False
    fields = ("period_number", "name", "start_date", "end_date", "is_locked", "locked_by", "locked_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(FiscalYear)
class FiscalYearAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "start_date", "end_date", "is_closed", "closed_by")
    list_filter = ("is_closed",)
    readonly_fields = ("is_closed", "closed_at", "closed_by", "created_by", "created_at")
    inlines = [AccountingPeriodInline]

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================
# JOURNAL ENTRY (READ-ONLY)
# ============================================================


class JournalEntryLineInline(admin.TabularInline):
    model = JournalEntryLine
    extra = 0
    can_delete = False
    fields = (
        "account",
        "debit_amount",
        "credit_amount",
        "original_debit_amount",
        "original_credit_amount",
        "line_description",
        "reference_type",
        "reference_id",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = (
        "journal_number",
        "entry_date",
        "journal_type",
        "source_type",
        "source_id",
        "status",
        "total_debit",
        "currency",
    )
    list_filter = ("status", "journal_type", "currency")
    search_fields = ("journal_number", "source_id", "description")
    ordering = ("-entry_date",)
    inlines = [JournalEntryLineInline]

    readonly_fields = (
        "journal_number",
        "period",
        "entry_date",
        "journal_type",
        "source_type",
        "source_id",
        "posting_key",
        "description",
        "status",
        "total_debit",
        "total_credit",
        "currency",
        "exchange_rate",
        "original_total",
        "created_by",
        "approved_by",
        "posted_by",
        "approved_at",
        "posted_at",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
