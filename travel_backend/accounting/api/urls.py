# accounting/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounting.api.views.accounts import AccountMappingViewSet, AccountTreeView
from accounting.api.views.journal_entries import JournalEntryViewSet
from accounting.api.views.periods import AccountingPeriodViewSet, FiscalYearViewSet

router = DefaultRouter()
router.register("account-mappings", AccountMappingViewSet, basename="account-mapping")
router.register("fiscal-years", FiscalYearViewSet, basename="fiscal-year")
router.register("periods", AccountingPeriodViewSet, basename="accounting-period")
router.register("journal-entries", JournalEntryViewSet, basename="journal-entry")

urlpatterns = [
    # Master data (read-only tree)
    path("accounts/", AccountTreeView.as_view(), name="accounts"),
    # Router endpoints
    path("", include(router.urls)),
]
