# orders/admin.py

from django.contrib import admin

from orders.models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "owner_id",
        "branch_id",
        "total_amount",
        "currency",
        "status",
        "created_at",
    )
    list_filter = ("status", "currency")
    search_fields = ("order_number", "owner_id")
    readonly_fields = ("total_amount", "created_at", "updated_at")
