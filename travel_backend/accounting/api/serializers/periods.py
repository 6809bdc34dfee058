# accounting/api/serializers/periods.py

from rest_framework import serializers

from accounting.models.period import AccountingPeriod, FiscalYear


class AccountingPeriodSerializer(serializers.ModelSerializer):
    fiscal_year_code = serializers.CharField(source="fiscal_year.code", read_only=True)

    class Meta:
        model = AccountingPeriod
        fields = (
            "id",
            "fiscal_year",
            "fiscal_year_code",
            "period_number",
            "name",
            "start_date",
            "end_date",
            "is_locked",
            "locked_at",
            "locked_by",
            "unlocked_at",
            "unlocked_by",
        )
        read_only_fields = fields


class FiscalYearSerializer(serializers.ModelSerializer):
    periods = AccountingPeriodSerializer(many=True, read_only=True)

    class Meta:
        model = FiscalYear
        fields = (
            "id",
            "code",
            "name",
            "start_date",
            "end_date",
            "is_closed",
            "closed_at",
            "closed_by",
            "created_by",
            "periods",
        )
        read_only_fields = fields


class FiscalYearCreateSerializer(serializers.Serializer):
    """
    start_date must be the first day of a month; 12 monthly periods follow.
    """

    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    start_date = serializers.DateField()

    def validate_start_date(self, value):
        if value.day != 1:
            raise serializers.ValidationError("start_date must be the first day of a month")
        return value
