from __future__ import annotations

import platform
from typing import Dict

from django.conf import settings
from django.db import connections
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

STARTED_AT = timezone.now()


class HealthCheckView(APIView):
    """Liveness probe: database connectivity plus basic runtime facts."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        database = self._database_status()
        now = timezone.now()
        payload = {
            "status": "ok" if database["ok"] else "degraded",
            "service": "fin-control",
            "environment": settings.APP_ENV,
            "uptime_seconds": int((now - STARTED_AT).total_seconds()),
            "timestamp": now.isoformat(),
            "python": platform.python_version(),
            "email_delivery": "enabled" if settings.EMAIL_ENABLED and settings.RESEND_API_KEY else "simulated",
            "database": database,
        }
        http_status = status.HTTP_200_OK if database["ok"] else status.HTTP_503_SERVICE_UNAVAILABLE
        return Response(payload, status=http_status)

    def _database_status(self) -> Dict:
        result = {"ok": True, "details": {}}
        for alias in connections:
            try:
                with connections[alias].cursor() as cursor:
                    cursor.execute("SELECT 1")
                    cursor.fetchone()
            except Exception as exc:
                result["ok"] = False
                result["details"][alias] = f"error: {exc}"
            else:
                result["details"][alias] = "connected"
        return result
