# accounting/api/views/journal_entries.py

"""
PATH: accounting/api/views/journal_entries.py

JOURNAL ENTRY API

Read:
  GET /api/accounting/journal-entries/          (?status=&journal_type=&source_type=&source_id=&period=&currency=)
  GET /api/accounting/journal-entries/{id}/

Commands:
  POST /api/accounting/journal-entries/post/            engine posting (mapping or explicit lines);
                                                        a repeated posting returns the existing entry
  POST /api/accounting/journal-entries/manual/          manual draft
  POST /api/accounting/journal-entries/{id}/submit/
  POST /api/accounting/journal-entries/{id}/approve/
  POST /api/accounting/journal-entries/{id}/post-approved/
  POST /api/accounting/journal-entries/{id}/reverse/

Journal entries are append-only. Corrections go through reverse/.
"""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import ReadOnlyModelViewSet

from accounting.api.errors import ACCOUNTING_ERRORS, domain_error_response, forbidden
from accounting.api.serializers.journal_entries import (
    JournalEntrySerializer,
    ManualJournalCreateSerializer,
    PostJournalSerializer,
    ReverseJournalSerializer,
)
from accounting.models.journal import JournalEntry
from accounting.services.exceptions import DuplicatePostingError
from accounting.services.journal_entry_service import post_journal, reverse_journal
from accounting.services.manual_journal_service import (
    approve_journal,
    create_draft_journal,
    post_approved_journal,
    submit_journal,
)

POST_PERMISSION = "accounting.post_journalentry"
APPROVE_PERMISSION = "accounting.approve_journalentry"
REVERSE_PERMISSION = "accounting.reverse_journalentry"
DRAFT_PERMISSION = "accounting.add_journalentry"

logger = logging.getLogger(__name__)


def _entry_response(entry, http_status=status.HTTP_200_OK, *, duplicate=False):
    entry = (
        JournalEntry.objects.select_related("period")
        .prefetch_related("lines__account")
        .get(pk=entry.pk)
    )
    data = dict(JournalEntrySerializer(entry).data)
    if duplicate:
        data["duplicate"] = True
        data["warning"] = "This posting already exists; the original entry is returned."
    return Response(data, status=http_status)


@extend_schema(tags=["accounting"])
class JournalEntryViewSet(ReadOnlyModelViewSet):
    """
    Journal entries with their lines. Writes only through the command actions.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = JournalEntrySerializer
    queryset = (
        JournalEntry.objects.select_related("period")
        .prefetch_related("lines__account")
        .order_by("-entry_date", "-id")
    )
    filterset_fields = [
        "status",
        "journal_type",
        "source_type",
        "source_id",
        "period",
        "currency",
    ]

    def get_queryset(self):
        if not self.request.user.has_perm("accounting.view_journalentry"):
            raise PermissionDenied("You do not have permission to view journal entries.")
        return super().get_queryset()

    # --------------------------------------------------
    # ENGINE POSTING
    # --------------------------------------------------

    @extend_schema(
        request=PostJournalSerializer,
        responses={201: JournalEntrySerializer, 200: JournalEntrySerializer},
    )
    @action(detail=False, methods=["post"], url_path="post")
    def post_entry(self, request):
        if not request.user.has_perm(POST_PERMISSION):
            return forbidden("You do not have permission to post journal entries.")

        serializer = PostJournalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            entry = post_journal(
                category=data["category"],
                amount=data.get("amount"),
                currency=data["currency"],
                entry_date=data.get("entry_date"),
                source_type=data["source_type"],
                source_id=data["source_id"],
                lines=data.get("lines"),
                description=data.get("description", ""),
                created_by=request.user.get_username(),
            )
        except DuplicatePostingError as exc:
            if exc.existing_entry is None:
                return domain_error_response(exc)
            logger.warning(
                "Duplicate journal posting returned existing entry",
                extra={
                    "journal_entry_id": exc.existing_entry.id,
                    "source_type": data["source_type"],
                    "source_id": data["source_id"],
                },
            )
            return _entry_response(exc.existing_entry, duplicate=True)
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return _entry_response(entry, status.HTTP_201_CREATED)

    # --------------------------------------------------
    # MANUAL WORKFLOW
    # --------------------------------------------------

    @extend_schema(
        request=ManualJournalCreateSerializer, responses={201: JournalEntrySerializer}
    )
    @action(detail=False, methods=["post"], url_path="manual")
    def manual(self, request):
        if not request.user.has_perm(DRAFT_PERMISSION):
            return forbidden("You do not have permission to draft journal entries.")

        serializer = ManualJournalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            entry = create_draft_journal(
                journal_type=data["journal_type"],
                entry_date=data["entry_date"],
                lines=data["lines"],
                description=data.get("description", ""),
                created_by=request.user.get_username(),
            )
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return _entry_response(entry, status.HTTP_201_CREATED)

    def _step(self, request, pk, *, permission, message, operation, **kwargs):
        if not request.user.has_perm(permission):
            return forbidden(message)

        # 404 for unknown ids, via the permission-gated queryset
        self.get_object()
        try:
            entry = operation(pk, **kwargs)
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return _entry_response(entry)

    @extend_schema(request=None, responses={200: JournalEntrySerializer})
    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        return self._step(
            request,
            pk,
            permission=DRAFT_PERMISSION,
            message="You do not have permission to submit journal entries.",
            operation=submit_journal,
            submitted_by=request.user.get_username(),
        )

    @extend_schema(request=None, responses={200: JournalEntrySerializer})
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        return self._step(
            request,
            pk,
            permission=APPROVE_PERMISSION,
            message="You do not have permission to approve journal entries.",
            operation=approve_journal,
            approved_by=request.user.get_username(),
        )

    @extend_schema(request=None, responses={200: JournalEntrySerializer})
    @action(detail=True, methods=["post"], url_path="post-approved")
    def post_approved(self, request, pk=None):
        return self._step(
            request,
            pk,
            permission=POST_PERMISSION,
            message="You do not have permission to post journal entries.",
            operation=post_approved_journal,
            posted_by=request.user.get_username(),
        )

    # --------------------------------------------------
    # REVERSAL
    # --------------------------------------------------

    @extend_schema(request=ReverseJournalSerializer, responses={201: JournalEntrySerializer})
    @action(detail=True, methods=["post"], url_path="reverse")
    def reverse(self, request, pk=None):
        if not request.user.has_perm(REVERSE_PERMISSION):
            return forbidden("You do not have permission to reverse journal entries.")

        self.get_object()
        serializer = ReverseJournalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            reversal = reverse_journal(
                entry_id=pk,
                reversed_by=request.user.get_username(),
                entry_date=data.get("entry_date"),
                description=data.get("description", ""),
            )
        except ACCOUNTING_ERRORS as exc:
            return domain_error_response(exc)

        return _entry_response(reversal, status.HTTP_201_CREATED)
