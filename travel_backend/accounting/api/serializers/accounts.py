# accounting/api/serializers/accounts.py

from rest_framework import serializers

from accounting.models.mapping import AccountMapping


class AccountTreeNodeSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    code = serializers.CharField()
    name = serializers.CharField()
    account_type = serializers.CharField()
    level = serializers.IntegerField()
    is_header = serializers.BooleanField()
    currency = serializers.CharField()
    is_active = serializers.BooleanField()
    parent_id = serializers.IntegerField(allow_null=True)
    children = serializers.ListField(child=serializers.DictField())


class AccountMappingSerializer(serializers.ModelSerializer):
    debit_account_code = serializers.CharField(source="debit_account.code", read_only=True)
    credit_account_code = serializers.CharField(source="credit_account.code", read_only=True)

    class Meta:
        model = AccountMapping
        fields = (
            "id",
            "mapping_type",
            "debit_account",
            "debit_account_code",
            "credit_account",
            "credit_account_code",
            "description",
            "is_active",
        )
        read_only_fields = fields
