from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Q

from booking.exceptions import NotFoundError
from booking.models import AppointmentSlot, DoctorProfile
from booking.services.timeslots import generate_time_slots, parse_date, visiting_windows

User = get_user_model()


@dataclass(frozen=True)
class DoctorSnapshot:
    """Doctor details as they were when looked up."""
    id: int
    name: str
    specialization: str
    consultation_fee: int
    hospital_id: Optional[str] = None


def _display_name(user) -> str:
    return f"{user.first_name or ''} {user.last_name or ''}".strip() or user.username


def lookup_doctor(doctor_id, *, hospital_id: Optional[str] = None) -> DoctorSnapshot:
    qs = User.objects.filter(id=doctor_id, role=User.ROLE_DOCTOR, is_active=True).select_related('doctor_profile')
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    user = qs.first()
    if user is None:
        raise NotFoundError('Doctor not found')
    profile = getattr(user, 'doctor_profile', None)
    return DoctorSnapshot(
        id=user.id,
        name=_display_name(user),
        specialization=profile.specialization if profile else '',
        consultation_fee=profile.consultation_fee if profile else 0,
        hospital_id=user.hospital_id,
    )


def list_doctors(hospital_id: Optional[str], *, q: Optional[str] = None) -> list[dict]:
    qs = DoctorProfile.objects.select_related('user').filter(user__is_active=True, user__role=User.ROLE_DOCTOR)
    if hospital_id:
        qs = qs.filter(user__hospital_id=hospital_id)
    if q:
        qs = qs.filter(
            Q(user__first_name__icontains=q) | Q(user__last_name__icontains=q)
            | Q(user__username__icontains=q) | Q(specialization__icontains=q)
        )
    return [{
        'id': p.user_id,
        'name': _display_name(p.user),
        'specialization': p.specialization,
        'consultationFee': p.consultation_fee,
        'hospitalId': p.user.hospital_id,
    } for p in qs.order_by('user_id')]


def available_times(doctor_id, date) -> list[str]:
    """Visiting-hours start times for ``date`` that nobody holds yet."""
    day = parse_date(date)
    taken = set(
        AppointmentSlot.objects.filter(owner=str(doctor_id), appointment_date=day)
        .values_list('appointment_time', flat=True)
    )
    slots = generate_time_slots(visiting_windows(day), step=settings.BOOKING_SLOT_MINUTES)
    return [t for t in slots if t not in taken]
