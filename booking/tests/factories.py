import datetime

from django.utils import timezone

from booking.models import AppointmentSlot, DoctorProfile, PatientProfile, User
from booking.services.timeslots import PENDING_OWNER, slot_key

DAY = datetime.date(2024, 1, 15)


def make_doctor(hospital, username, *, fee=600, specialization='General Medicine', first_name='Meera'):
    user = User.objects.create_user(
        username=username, password='P@ssw0rd1', role=User.ROLE_DOCTOR,
        hospital=hospital, first_name=first_name, last_name='Iyer',
    )
    DoctorProfile.objects.create(user=user, hospital=hospital, specialization=specialization, consultation_fee=fee)
    return user


def make_patient(hospital, username, *, phone='+919876543210'):
    user = User.objects.create_user(
        username=username, password='P@ssw0rd1', role=User.ROLE_PATIENT,
        hospital=hospital, first_name='Priya', last_name='Sharma', email=f'{username}@example.com',
    )
    PatientProfile.objects.create(user=user, hospital=hospital, phone=phone, sex='F', age=34)
    return user


def make_staff(hospital, username, role=User.ROLE_RECEPTIONIST):
    return User.objects.create_user(username=username, password='P@ssw0rd1', role=role, hospital=hospital)


def seed_pending_slot(appointment):
    """A stored ``PENDING`` record for a doctorless appointment, as older bookings have."""
    now = timezone.now()
    return AppointmentSlot.objects.create(
        pk=slot_key(PENDING_OWNER, appointment.appointment_date, appointment.appointment_time),
        owner=PENDING_OWNER,
        appointment=appointment,
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        created_at=now,
        updated_at=now,
    )
