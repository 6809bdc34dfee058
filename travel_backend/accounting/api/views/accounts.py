# accounting/api/views/accounts.py

"""
PATH: accounting/api/views/accounts.py

CHART OF ACCOUNTS API (READ-ONLY)

GET /api/accounting/accounts/                 nested tree (?include_inactive=1)
GET /api/accounting/account-mappings/         category -> debit/credit pair (?is_active=)

Accounts and mappings are maintained by seed_travel_chart and the admin.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import ReadOnlyModelViewSet

from accounting.api.errors import forbidden
from accounting.api.serializers.accounts import (
    AccountMappingSerializer,
    AccountTreeNodeSerializer,
)
from accounting.models.mapping import AccountMapping
from accounting.services.chart_registry import account_tree

TRUTHY = {"1", "true", "yes"}


class AccountTreeView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountTreeNodeSerializer

    @extend_schema(
        tags=["accounting"],
        parameters=[OpenApiParameter("include_inactive", bool, required=False)],
        responses=AccountTreeNodeSerializer(many=True),
    )
    def get(self, request, *args, **kwargs):
        if not request.user.has_perm("accounting.view_chartofaccount"):
            return forbidden("You do not have permission to view accounts.")

        include_inactive = (
            str(request.query_params.get("include_inactive", "")).lower() in TRUTHY
        )
        return Response(
            account_tree(include_inactive=include_inactive), status=status.HTTP_200_OK
        )


@extend_schema(tags=["accounting"])
class AccountMappingViewSet(ReadOnlyModelViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountMappingSerializer
    queryset = AccountMapping.objects.select_related(
        "debit_account", "credit_account"
    ).order_by("mapping_type")
    filterset_fields = ["is_active"]

    def get_queryset(self):
        if not self.request.user.has_perm("accounting.view_accountmapping"):
            raise PermissionDenied("You do not have permission to view account mappings.")
        return super().get_queryset()
