# accounting/api/serializers/journal_entries.py

"""
======================================================
PATH: accounting/api/serializers/journal_entries.py
======================================================
JOURNAL ENTRY SERIALIZERS

Read side: header + lines.
Write side: command serializers for posting, manual drafts and reversals.
"""

from decimal import Decimal

from rest_framework import serializers

from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine


class JournalEntryLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalEntryLine
        fields = (
            "id",
            "account",
            "account_code",
            "account_name",
            "debit_amount",
            "credit_amount",
            "original_debit_amount",
            "original_credit_amount",
            "line_description",
            "cost_center",
            "reference_type",
            "reference_id",
            "sort_order",
        )
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalEntryLineSerializer(many=True, read_only=True)
    period_name = serializers.CharField(source="period.name", read_only=True)

    class Meta:
        model = JournalEntry
        fields = (
            "id",
            "journal_number",
            "period",
            "period_name",
            "entry_date",
            "journal_type",
            "source_type",
            "source_id",
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
            "lines",
        )
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    account_code = serializers.CharField(max_length=20)
    debit = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )
    credit = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    cost_center = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def to_posting_line(self, data) -> dict:
        return {
            "account": data["account_code"],
            "debit": data.get("debit"),
            "credit": data.get("credit"),
            "description": data.get("description", ""),
            "cost_center": data.get("cost_center", ""),
        }


class PostJournalSerializer(serializers.Serializer):
    """
    Either `amount` (mapping-driven two-line entry) or `lines`
    (explicit multi-line breakdown) must be given.
    """

    category = serializers.CharField(max_length=50)
    amount = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, min_value=Decimal("0.01")
    )
    currency = serializers.CharField(max_length=3, required=False, default="IDR")
    entry_date = serializers.DateField(required=False)
    source_type = serializers.CharField(max_length=50)
    source_id = serializers.CharField(max_length=64)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    lines = JournalLineInputSerializer(many=True, required=False)

    def validate(self, attrs):
        has_amount = attrs.get("amount") is not None
        has_lines = bool(attrs.get("lines"))
        if has_amount == has_lines:
            raise serializers.ValidationError(
                "Provide either amount or lines (exactly one of them)."
            )
        if has_lines:
            line_serializer = JournalLineInputSerializer()
            attrs["lines"] = [line_serializer.to_posting_line(l) for l in attrs["lines"]]
        attrs["currency"] = (attrs.get("currency") or "IDR").upper()
        return attrs


class ManualJournalCreateSerializer(serializers.Serializer):
    journal_type = serializers.CharField(max_length=50, required=False, default="general")
    entry_date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    lines = JournalLineInputSerializer(many=True)

    def validate_lines(self, value):
        if len(value) < 2:
            raise serializers.ValidationError("At least two lines are required")
        line_serializer = JournalLineInputSerializer()
        return [line_serializer.to_posting_line(l) for l in value]


class ReverseJournalSerializer(serializers.Serializer):
    entry_date = serializers.DateField(required=False)
    description = serializers.CharField(required=False, allow_blank=True, default="")
