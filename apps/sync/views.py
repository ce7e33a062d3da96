import logging
import traceback

from django.conf import settings
from django.db import DatabaseError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ParseError, ValidationError
from rest_framework.response import Response

from .permissions import SyncAccessPermission
from .serializers import SyncPayloadSerializer
from .services.health import check_database
from .services.reconcile import apply_sync_payload

logger = logging.getLogger(__name__)

HEALTH_STATUS = "Sync API is active"


def _degraded(exc):
    return Response(
        {"status": HEALTH_STATUS, "database": "error", "message": str(exc)},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


def _health_check():
    try:
        check_database()
    except DatabaseError as exc:
        logger.warning("Sync health check: database unreachable: %s", exc)
        return _degraded(exc)
    except Exception as exc:
        # Backend misconfiguration (e.g. missing driver) still reports as degraded.
        logger.exception("Sync health check failed")
        return _degraded(exc)
    return Response({"status": HEALTH_STATUS, "database": "connected"})


def _submit(request):
    try:
        serializer = SyncPayloadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
    except ParseError as exc:
        return Response({"error": str(exc.detail)}, status=status.HTTP_400_BAD_REQUEST)
    except ValidationError as exc:
        return Response(
            {"error": "Invalid sync payload", "details": exc.detail},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        apply_sync_payload(serializer.validated_data)
    except Exception as exc:
        logger.exception("Sync fatal error")
        body = {"error": str(exc)}
        # Tracebacks only leave the server in non-production builds.
        if settings.DEBUG:
            body["stack"] = traceback.format_exc()
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response({"success": True})


@extend_schema(methods=["GET"], responses={200: OpenApiTypes.OBJECT, 503: OpenApiTypes.OBJECT})
@extend_schema(
    methods=["POST"],
    request=SyncPayloadSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 500: OpenApiTypes.OBJECT},
)
@api_view(["GET", "POST"])
@permission_classes([SyncAccessPermission])
def sync(request):
    """GET: liveness probe. POST: apply an offline batch atomically."""
    if request.method == "GET":
        return _health_check()
    return _submit(request)
