import logging
import time

from django.conf import settings
from django.db import DatabaseError, connections
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger("taskboard.core")


class HealthCheckView(APIView):
    """
    Public uptime probe.
    Runs one trivial query and reports its round trip; 503 when the
    database cannot be reached.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        started = time.monotonic()

        try:
            with connections["default"].cursor() as cursor:
                cursor.execute("SELECT 1")
            db_ok = True
        except DatabaseError as exc:
            logger.error(f"Health check database failure: {exc}")
            db_ok = False

        latency_ms = int((time.monotonic() - started) * 1000)

        return Response(
            {
                "status": "ok" if db_ok else "degraded",
                "database": db_ok,
                "env": getattr(settings, "ENV", "unknown"),
                "latency_ms": latency_ms,
            },
            status=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        )
