# invoices/api/urls.py

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from invoices.api.views import InvoiceViewSet

router = SimpleRouter()
router.register("", InvoiceViewSet, basename="invoice")

urlpatterns = [
    path("", include(router.urls)),
]
