"""
Audit trail: login attempts and every appointment write leave an
:class:`~booking.models.AuditEvent`, written in the same transaction as
the change it describes.
"""
from typing import Any, Dict, Optional

from booking.models import AuditEvent

APPOINTMENT = 'appointment'


def client_ip(request) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(*, user, action: str, object_type: Optional[str] = None, object_id=None,
               detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    return AuditEvent.objects.create(
        # anonymous callers (failed logins, the webhook) are recorded without a user
        user=user if getattr(user, 'pk', None) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )


def log_appointment(actor, appointment_id: str, event: str, **detail) -> AuditEvent:
    """Record ``appointment_<event>`` for one appointment."""
    return log_action(user=actor, action=f'{APPOINTMENT}_{event}', object_type=APPOINTMENT,
                      object_id=appointment_id, detail=detail)
