# backend/urls.py
"""
PROJECT URLS

Stock operations are Python services (each app's services/ package); callers
own their HTTP surface. Mounted here:
- Django admin for read-only ledger inspection (path from ADMIN_PATH)
- /health/ readiness check
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse
from django.urls import path

from core.exceptions import ConfigurationError
from stock.services.transfers import get_transit_warehouse


def health_check(request):
    """
    200 when the database answers and the TRANSIT warehouse exists.
    503 otherwise: transfers cannot run without it.
    """
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except OperationalError as e:
        return JsonResponse({"status": "down", "db": "down", "error": str(e)}, status=503)

    try:
        get_transit_warehouse()
    except ConfigurationError as e:
        return JsonResponse(
            {"status": "degraded", "db": "ok", "transit": "missing", "error": str(e)},
            status=503,
        )

    return JsonResponse({"status": "ok", "db": "ok", "transit": "ok"})


ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH = f"{ADMIN_PATH}/"


urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
    path("health/", health_check, name="health-check"),
]
