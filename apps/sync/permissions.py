from django.conf import settings
from rest_framework.permissions import SAFE_METHODS, BasePermission


class SyncAccessPermission(BasePermission):
    """Reads (the health probe) are open; pushes need a user when SYNC_REQUIRE_AUTH is on."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS or not settings.SYNC_REQUIRE_AUTH:
            return True
        return bool(request.user and request.user.is_authenticated)
