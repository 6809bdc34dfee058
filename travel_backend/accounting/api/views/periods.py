# accounting/api/views/periods.py

"""
PATH: accounting/api/views/periods.py

FISCAL YEAR / PERIOD LOCK API

/api/accounting/fiscal-years/                 GET, POST (creates 12 periods)
/api/accounting/fiscal-years/{id}/close/      POST (irreversible)
/api/accounting/fiscal-years/{id}/lock-all/   POST
/api/accounting/periods/                      GET (?fiscal_year=, ?is_locked=)
/api/accounting/periods/{id}/lock/            POST
/api/accounting/periods/{id}/unlock/          POST

Security:
- Reads require the model view permission
- Locks require accounting.lock_accountingperiod
- Closing a year requires accounting.close_fiscalyear
"""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.errors import ACCOUNTING_ERRORS, domain_error_response, forbidden
from accounting.api.serializers.periods import (
    AccountingPeriodSerializer,
    FiscalYearCreateSerializer,
    FiscalYearSerializer,
)
from accounting.models.period import AccountingPeriod, FiscalYear
from accounting.services.period_lock import (
    close_fiscal_year,
    create_fiscal_year,
    lock_all_periods,
    lock_period,
    unlock_period,
)

LOCK_PERMISSION = "accounting.lock_accountingperiod"
CLOSE_PERMISSION = "accounting.close_fiscalyear"


@extend_schema(tags=["accounting"])
class FiscalYearViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    serializer_class = FiscalYearSerializer
    queryset = FiscalYear.objects.prefetch_related("periods").order_by("-start_date")

    def get_queryset(self):
        if not self.request.user.has_perm("accounting.view_fiscalyear"):
            raise PermissionDenied("You do not have permission to view fiscal years.")
        return super().get_queryset()

    @extend_schema(request=FiscalYearCreateSerializer, responses={201: FiscalYearSerializer})
    def create(self, request, *args, **kwargs):
        if not request.user.has_perm("accounting.add_fiscalyear"):
            return forbidden("You do not have permission to create fiscal years.")

        serializer = FiscalYearCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            fiscal_year = create_fiscal_year(
                code=data["code"],
                name=data.get("name", ""),
                start_date=data["start_date"],
                created_by=request.user.get_username(),
            )
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return Response(FiscalYearSerializer(fiscal_year).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={200: FiscalYearSerializer})
    @action(detail=True, methods=["post"], url_path="close")
    def close(self, request, pk=None):
        if not request.user.has_perm(CLOSE_PERMISSION):
            return forbidden("You do not have permission to close fiscal years.")

        try:
            fiscal_year = close_fiscal_year(pk, closed_by=request.user.get_username())
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return Response(FiscalYearSerializer(fiscal_year).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: FiscalYearSerializer})
    @action(detail=True, methods=["post"], url_path="lock-all")
    def lock_all(self, request, pk=None):
        if not request.user.has_perm(LOCK_PERMISSION):
            return forbidden("You do not have permission to lock accounting periods.")

        try:
            fiscal_year = lock_all_periods(pk, locked_by=request.user.get_username())
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return Response(FiscalYearSerializer(fiscal_year).data, status=status.HTTP_200_OK)


@extend_schema(tags=["accounting"])
class AccountingPeriodViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountingPeriodSerializer
    queryset = AccountingPeriod.objects.select_related("fiscal_year").order_by(
        "start_date"
    )
    filterset_fields = ["fiscal_year", "is_locked"]

    def get_queryset(self):
        if not self.request.user.has_perm("accounting.view_accountingperiod"):
            raise PermissionDenied("You do not have permission to view accounting periods.")
        return super().get_queryset()

    def _run(self, request, operation, **kwargs):
        if not request.user.has_perm(LOCK_PERMISSION):
            return forbidden("You do not have permission to lock accounting periods.")

        try:
            period = operation(**kwargs)
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return Response(AccountingPeriodSerializer(period).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: AccountingPeriodSerializer})
    @action(detail=True, methods=["post"], url_path="lock")
    def lock(self, request, pk=None):
        return self._run(
            request, lock_period, period_id=pk, locked_by=request.user.get_username()
        )

    @extend_schema(request=None, responses={200: AccountingPeriodSerializer})
    @action(detail=True, methods=["post"], url_path="unlock")
    def unlock(self, request, pk=None):
        return self._run(
            request, unlock_period, period_id=pk, unlocked_by=request.user.get_username()
        )
