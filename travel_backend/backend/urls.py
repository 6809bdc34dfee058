# backend/urls.py
"""
PROJECT URLS

Everything except the admin lives under /api/:
- accounting/   chart, mappings, fiscal years, periods, journal entries
- invoices/     invoice lifecycle, payment proofs, overpayments
- auth/jwt/     SimpleJWT token pair + refresh
- schema/ docs/ OpenAPI

/api/health/ reports database and cache reachability. The cache backs the
overdue sweep's single-flight lock, so a dead cache is reported as degraded.
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.core.cache import cache
from django.db import connections
from django.db.utils import OperationalError
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

API_MODULES = {
    "accounting": "/api/accounting/",
    "invoices": "/api/invoices/",
}


@extend_schema(responses={200: dict})
@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request):
    return Response(
        {
            "message": "Travel Back-Office API is running",
            "auth": {
                "jwt_create": "/api/auth/jwt/create/",
                "jwt_refresh": "/api/auth/jwt/refresh/",
            },
            "docs": {"swagger": "/api/docs/", "schema": "/api/schema/"},
            "modules": API_MODULES,
        }
    )


def _database_ok() -> tuple[bool, str]:
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except OperationalError as exc:
        return False, str(exc)
    return True, ""


def _cache_ok() -> bool:
    cache.set("health:ping", "pong", timeout=5)
    return cache.get("health:ping") == "pong"


@extend_schema(responses={200: dict, 503: dict})
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    db_ok, db_error = _database_ok()
    cache_ok = _cache_ok()

    body = {
        "status": "ok" if db_ok and cache_ok else "degraded",
        "db": "ok" if db_ok else "down",
        "cache": "ok" if cache_ok else "down",
    }
    if db_error:
        body["error"] = db_error
    return Response(body, status=200 if db_ok else 503)


# Keep the trailing slash; production should use a non-obvious path.
ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH = f"{ADMIN_PATH}/"


api_urlpatterns = [
    path("", api_root, name="api-root"),
    path("health/", health_check, name="health-check"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("auth/jwt/create/", TokenObtainPairView.as_view(), name="jwt-create"),
    path("auth/jwt/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
    path("accounting/", include("accounting.api.urls")),
    path("invoices/", include("invoices.api.urls")),
]

urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
