"""
Role and tenant based permission classes.
"""
from django.conf import settings
from django.utils.crypto import constant_time_compare
from rest_framework.permissions import BasePermission

from booking.exceptions import AuthorizationError, IntakeDisabledError

STAFF_ROLES = {"receptionist", "admin", "super"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "patient"


class IsDoctorRole(BasePermission):
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "doctor"


class IsReceptionistOrAdmin(BasePermission):
    """Front desk: receptionists, hospital admins and super admins."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in STAFF_ROLES


class HasWebhookToken(BasePermission):
    """Shared-secret check for the WhatsApp intake webhook.

    With no token configured the webhook is switched off entirely.
    """
    message = "Invalid webhook token"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        expected = settings.WHATSAPP_WEBHOOK_TOKEN
        if not expected:
            raise IntakeDisabledError()
        supplied = request.headers.get("X-Webhook-Token", "")
        return constant_time_compare(supplied, expected)


def hospital_scope(user):
    """Hospital id the user is confined to, or None for super admins."""
    if getattr(user, "role", None) == "super":
        return None
    hospital_id = getattr(user, "hospital_id", None)
    if not hospital_id:
        raise AuthorizationError("User is not bound to a hospital")
    return hospital_id
