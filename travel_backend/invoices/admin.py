# invoices/admin.py

from django.contrib import admin

from invoices.models import Invoice, InvoiceSequence, PaymentProof

# ============================================================
# INVOICES (state changes go through the services / API)
# ============================================================


class PaymentProofInline(admin.TabularInline):
    model = PaymentProof
    extra = 0
    can_delete = False
    fields = (
        "payment_type",
        "amount",
        "bank_name",
        "transfer_date",
        "status",
        "verified_by",
        "verified_at",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "owner_id",
        "branch_id",
        "status",
        "total_amount",
        "paid_amount",
        "remaining_amount",
        "overpaid_amount",
        "is_blocked",
        "auto_cancel_at",
    )
    list_filter = ("status", "is_blocked", "is_overdue", "is_super_promo", "currency")
    search_fields = ("invoice_number", "owner_id", "order__order_number")
    ordering = ("-created_at",)
    inlines = [PaymentProofInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PaymentProof)
class PaymentProofAdmin(admin.ModelAdmin):
    list_display = ("invoice", "payment_type", "amount", "status", "verified_by", "created_at")
    list_filter = ("status", "payment_type")
    search_fields = ("invoice__invoice_number", "bank_name", "account_number")

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ("year", "last_number")
    readonly_fields = ("year", "last_number")
