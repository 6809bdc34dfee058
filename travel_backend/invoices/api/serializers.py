# invoices/api/serializers.py

from decimal import Decimal

from rest_framework import serializers

from invoices.models import (
    Invoice,
    OverpaymentHandling,
    PaymentProof,
    PaymentType,
)

# ============================================================
# READ
# ============================================================


class PaymentProofSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentProof
        fields = [
            "id",
            "payment_type",
            "amount",
            "bank_name",
            "account_number",
            "transfer_date",
            "proof_file_url",
            "uploaded_by",
            "status",
            "verified_by",
            "verified_at",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceListSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "order",
            "order_number",
            "owner_id",
            "branch_id",
            "status",
            "total_amount",
            "paid_amount",
            "remaining_amount",
            "overpaid_amount",
            "currency",
            "is_blocked",
            "auto_cancel_at",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceListSerializer):
    payment_proofs = PaymentProofSerializer(many=True, read_only=True)

    class Meta(InvoiceListSerializer.Meta):
        fields = InvoiceListSerializer.Meta.fields + [
            "dp_percentage",
            "dp_amount",
            "is_super_promo",
            "issued_at",
            "due_date_dp",
            "due_date_full",
            "is_overdue",
            "overdue_activated_by",
            "overdue_activated_at",
            "overpayment_handling",
            "overpayment_target",
            "terms",
            "notes",
            "created_by",
            "updated_at",
            "payment_proofs",
        ]
        read_only_fields = fields


# ============================================================
# COMMANDS
# ============================================================


class InvoiceCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    is_super_promo = serializers.BooleanField(default=False)
    issue = serializers.BooleanField(default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentProofSubmitSerializer(serializers.Serializer):
    payment_type = serializers.ChoiceField(choices=PaymentType.choices)
    amount = serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=Decimal("0.01")
    )
    bank_name = serializers.CharField(required=False, allow_blank=True, default="")
    account_number = serializers.CharField(required=False, allow_blank=True, default="")
    transfer_date = serializers.DateField(required=False, allow_null=True, default=None)
    proof_file_url = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentVerificationSerializer(serializers.Serializer):
    proof_id = serializers.IntegerField()
    approve = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ResolveOverpaymentSerializer(serializers.Serializer):
    handling = serializers.ChoiceField(choices=OverpaymentHandling.choices)
    target_invoice_id = serializers.UUIDField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if (
            attrs["handling"] == OverpaymentHandling.TRANSFERRED
            and not attrs.get("target_invoice_id")
        ):
            raise serializers.ValidationError(
                {"target_invoice_id": "Required when handling is 'transferred'."}
            )
        return attrs


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RefundConfirmSerializer(serializers.Serializer):
    reference = serializers.CharField(required=False, allow_blank=True, default="")
