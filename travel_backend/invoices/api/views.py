# invoices/api/views.py

"""
PATH: invoices/api/views.py

INVOICE API

Read:
  GET  /api/invoices/                     (?status=&owner_id=&branch_id=&is_blocked=)
  GET  /api/invoices/{id}/

Commands:
  POST /api/invoices/                             bill an order
  POST /api/invoices/{id}/payment-proofs/         upload a proof (pending)
  POST /api/invoices/{id}/verify/                 approve / reject a proof
  POST /api/invoices/{id}/unblock/
  POST /api/invoices/{id}/cancel/
  POST /api/invoices/{id}/start-processing/
  POST /api/invoices/{id}/complete/
  POST /api/invoices/{id}/rebill/
  POST /api/invoices/{id}/resolve-overpayment/
  POST /api/invoices/{id}/confirm-refund/
  POST /api/invoices/{id}/cancel-refund/

Errors:
  404 unknown invoice / proof
  409 the invoice state does not allow the command
  400 anything else the services refuse
"""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.errors import (
    ACCOUNTING_ERRORS,
    CONFLICT_ERRORS,
    domain_error_response,
    error_response,
    forbidden,
)
from invoices.api.serializers import (
    InvoiceCreateSerializer,
    InvoiceDetailSerializer,
    InvoiceListSerializer,
    PaymentProofSerializer,
    PaymentProofSubmitSerializer,
    PaymentVerificationSerializer,
    ReasonSerializer,
    RefundConfirmSerializer,
    ResolveOverpaymentSerializer,
)
from invoices.models import Invoice
from invoices.services.exceptions import (
    AlreadyResolvedError,
    DuplicateInvoiceError,
    InvalidTransitionError,
    InvoiceClosedError,
    InvoiceNotFoundError,
    InvoiceServiceError,
    PaymentProofNotFoundError,
)
from invoices.services.invoice_service import (
    cancel_invoice,
    complete_invoice,
    create_invoice,
    rebill_invoice,
    start_processing,
)
from invoices.services.overdue_scheduler import unblock_invoice
from invoices.services.overpayment import (
    cancel_refund,
    confirm_refund,
    resolve_overpayment,
)
from invoices.services.payment_verification import submit_payment_proof, verify_payment

VERIFY_PERMISSION = "invoices.verify_paymentproof"
UNBLOCK_PERMISSION = "invoices.unblock_invoice"
RESOLVE_PERMISSION = "invoices.resolve_overpayment"
PROGRESS_PERMISSION = "invoices.progress_invoice"

SERVICE_ERRORS = (InvoiceServiceError,) + ACCOUNTING_ERRORS
NOT_FOUND_ERRORS = (InvoiceNotFoundError, PaymentProofNotFoundError)
INVOICE_CONFLICTS = (
    InvalidTransitionError,
    InvoiceClosedError,
    AlreadyResolvedError,
    DuplicateInvoiceError,
) + CONFLICT_ERRORS


def invoice_error_response(exc: Exception):
    if isinstance(exc, NOT_FOUND_ERRORS):
        return error_response(
            code=exc.code, message=str(exc), http_status=status.HTTP_404_NOT_FOUND
        )
    return domain_error_response(exc, conflict_errors=INVOICE_CONFLICTS)


def _invoice_response(invoice, http_status=status.HTTP_200_OK):
    invoice = (
        Invoice.objects.select_related("order")
        .prefetch_related("payment_proofs")
        .get(pk=invoice.pk)
    )
    return Response(InvoiceDetailSerializer(invoice).data, status=http_status)


@extend_schema(tags=["invoices"])
class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    queryset = Invoice.objects.select_related("order").order_by("-created_at")
    filterset_fields = ["status", "owner_id", "branch_id", "is_blocked"]

    def get_queryset(self):
        if not self.request.user.has_perm("invoices.view_invoice"):
            raise PermissionDenied("You do not have permission to view invoices.")
        queryset = super().get_queryset()
        if self.action == "retrieve":
            queryset = queryset.prefetch_related("payment_proofs")
        return queryset

    def get_serializer_class(self):
        if self.action == "list":
            return InvoiceListSerializer
        return InvoiceDetailSerializer

    def _actor(self, request):
        return request.user.get_username()

    def _run(self, request, pk, *, permission, message, operation, **kwargs):
        if not request.user.has_perm(permission):
            return forbidden(message)

        self.get_object()
        try:
            invoice = operation(pk, actor=self._actor(request), **kwargs)
        except SERVICE_ERRORS as exc:
            return invoice_error_response(exc)

        return _invoice_response(invoice)

    # --------------------------------------------------
    # CREATE
    # --------------------------------------------------

    @extend_schema(request=InvoiceCreateSerializer, responses={201: InvoiceDetailSerializer})
    def create(self, request, *args, **kwargs):
        if not request.user.has_perm("invoices.add_invoice"):
            return forbidden("You do not have permission to create invoices.")

        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            invoice = create_invoice(
                data["order_id"],
                is_super_promo=data["is_super_promo"],
                issue=data["issue"],
                created_by=self._actor(request),
                notes=data["notes"],
            )
        except SERVICE_ERRORS as exc:
            return invoice_error_response(exc)

        return _invoice_response(invoice, status.HTTP_201_CREATED)

    # --------------------------------------------------
    # PAYMENTS
    # --------------------------------------------------

    @extend_schema(request=PaymentProofSubmitSerializer, responses={201: PaymentProofSerializer})
    @action(detail=True, methods=["post"], url_path="payment-proofs")
    def payment_proofs(self, request, pk=None):
        if not request.user.has_perm("invoices.add_paymentproof"):
            return forbidden("You do not have permission to submit payment proofs.")

        self.get_object()
        serializer = PaymentProofSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            proof = submit_payment_proof(
                pk, uploaded_by=self._actor(request), **serializer.validated_data
            )
        except SERVICE_ERRORS as exc:
            return invoice_error_response(exc)

        return Response(PaymentProofSerializer(proof).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=PaymentVerificationSerializer, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="verify")
    def verify(self, request, pk=None):
        if not request.user.has_perm(VERIFY_PERMISSION):
            return forbidden("You do not have permission to verify payments.")

        self.get_object()
        serializer = PaymentVerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            invoice = verify_payment(
                pk,
                data["proof_id"],
                approve=data["approve"],
                verified_by=self._actor(request),
                notes=data["notes"],
            )
        except SERVICE_ERRORS as exc:
            return invoice_error_response(exc)

        return _invoice_response(invoice)

    # --------------------------------------------------
    # LIFECYCLE STEPS
    # --------------------------------------------------

    @extend_schema(request=None, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="unblock")
    def unblock(self, request, pk=None):
        return self._run(
            request,
            pk,
            permission=UNBLOCK_PERMISSION,
            message="You do not have permission to unblock invoices.",
            operation=unblock_invoice,
        )

    @extend_schema(request=ReasonSerializer, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(
            request,
            pk,
            permission=PROGRESS_PERMISSION,
            message="You do not have permission to cancel invoices.",
            operation=cancel_invoice,
            reason=serializer.validated_data["reason"],
        )

    @extend_schema(request=None, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="start-processing")
    def start_processing(self, request, pk=None):
        return self._run(
            request,
            pk,
            permission=PROGRESS_PERMISSION,
            message="You do not have permission to progress invoices.",
            operation=start_processing,
        )

    @extend_schema(request=None, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        return self._run(
            request,
            pk,
            permission=PROGRESS_PERMISSION,
            message="You do not have permission to progress invoices.",
            operation=complete_invoice,
        )

    @extend_schema(request=None, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="rebill")
    def rebill(self, request, pk=None):
        return self._run(
            request,
            pk,
            permission=PROGRESS_PERMISSION,
            message="You do not have permission to re-bill invoices.",
            operation=rebill_invoice,
        )

    # --------------------------------------------------
    # OVERPAYMENT
    # --------------------------------------------------

    @extend_schema(request=ResolveOverpaymentSerializer, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="resolve-overpayment")
    def resolve_overpayment(self, request, pk=None):
        serializer = ResolveOverpaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return self._run(
            request,
            pk,
            permission=RESOLVE_PERMISSION,
            message="You do not have permission to resolve overpayments.",
            operation=resolve_overpayment,
            handling=data["handling"],
            target_invoice_id=data["target_invoice_id"],
        )

    @extend_schema(request=RefundConfirmSerializer, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="confirm-refund")
    def confirm_refund(self, request, pk=None):
        serializer = RefundConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(
            request,
            pk,
            permission=RESOLVE_PERMISSION,
            message="You do not have permission to confirm refunds.",
            operation=confirm_refund,
            reference=serializer.validated_data["reference"],
        )

    @extend_schema(request=ReasonSerializer, responses={200: InvoiceDetailSerializer})
    @action(detail=True, methods=["post"], url_path="cancel-refund")
    def cancel_refund(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(
            request,
            pk,
            permission=RESOLVE_PERMISSION,
            message="You do not have permission to cancel refunds.",
            operation=cancel_refund,
            reason=serializer.validated_data["reason"],
        )
