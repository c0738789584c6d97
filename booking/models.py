"""
Database models for the appointment portal.

Hospitals are the tenants; every staff user, doctor and patient belongs
to one.  Appointments keep denormalized copies of patient and doctor
details taken at write time, and each appointment that holds a time
claims it through an :class:`AppointmentSlot` row whose primary key is
the slot key.  The primary key is what keeps two appointments from
holding the same doctor/date/time.
"""
from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


def _new_appointment_id() -> str:
    return uuid.uuid4().hex[:20]


class Hospital(models.Model):
    """A hospital or branch; the unit of tenant isolation."""
    id = models.CharField(
        max_length=20,
        primary_key=True,
        help_text="Unique identifier for the hospital (e.g. 'h1')",
    )
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class User(AbstractUser):
    """Custom user model with a portal role and a hospital binding."""
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_RECEPTIONIST = 'receptionist'
    ROLE_ADMIN = 'admin'
    ROLE_SUPER = 'super'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_RECEPTIONIST, 'Receptionist'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_SUPER, 'Super Administrator'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_PATIENT)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='users', db_index=True
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class DoctorProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    specialization = models.CharField(max_length=120, blank=True)
    consultation_fee = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"Dr. {self.user.get_full_name() or self.user.username} ({self.specialization})"


class PatientProfile(models.Model):
    """Demographics for a patient user.

    Edited independently of appointments; an appointment copies the
    name, phone and email at booking time and does not follow later
    profile edits.
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients'
    )
    # looked up by the WhatsApp intake, hence the index
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    sex = models.CharField(max_length=10, blank=True)
    age = models.PositiveIntegerField(null=True, blank=True)

    def __str__(self) -> str:
        return f"{self.user.username} ({self.phone})"


class Appointment(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_WHATSAPP_PENDING = 'whatsapp_pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_REFUND_REQUESTED = 'refund_requested'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_WHATSAPP_PENDING, 'WhatsApp pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_REFUND_REQUESTED, 'Refund requested'),
    ]
    PENDING_STATUSES = (STATUS_PENDING, STATUS_WHATSAPP_PENDING)

    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('upi', 'UPI'),
        ('online', 'Online'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('refunded', 'Refunded'),
    ]
    SOURCE_CHOICES = [
        ('web', 'Web'),
        ('receptionist', 'Receptionist'),
        ('doctor', 'Doctor'),
        ('whatsapp', 'WhatsApp'),
    ]

    id = models.CharField(max_length=32, primary_key=True, default=_new_appointment_id, editable=False)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='patient_appointments')
    patient_name = models.CharField(max_length=150, blank=True)
    patient_phone = models.CharField(max_length=20, blank=True)
    patient_email = models.EmailField(blank=True)

    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_appointments'
    )
    doctor_name = models.CharField(max_length=150, blank=True)
    doctor_specialization = models.CharField(max_length=120, blank=True)

    appointment_date = models.DateField()
    appointment_time = models.CharField(max_length=5)

    # dashboards filter on status, index it
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    whatsapp_pending = models.BooleanField(default=False, db_index=True)

    chief_complaint = models.TextField(blank=True)
    medical_history = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    consultation_fee = models.PositiveIntegerField(default=0)
    payment_amount = models.PositiveIntegerField(default=0)
    remaining_amount = models.PositiveIntegerField(default=0)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, default='cash')
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default='pending')

    created_by = models.CharField(max_length=16, choices=SOURCE_CHOICES, default='web')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['hospital', 'status', 'appointment_date'], name='appt_hospital_status_date'),
            models.Index(fields=['doctor', 'appointment_date'], name='appt_doctor_date'),
            models.Index(fields=['patient', 'appointment_date'], name='appt_patient_date'),
        ]

    @property
    def is_pending(self) -> bool:
        return self.whatsapp_pending or self.status in self.PENDING_STATUSES

    def __str__(self) -> str:
        return f"{self.id} {self.appointment_date} {self.appointment_time} ({self.status})"


class AppointmentSlot(models.Model):
    """A claim on ``{owner}_{date}_{HH-MM}`` held by exactly one appointment.

    ``owner`` is a doctor id, or ``PENDING`` on stored records of
    doctorless bookings; those are released when a doctor is assigned.
    """
    id = models.CharField(max_length=120, primary_key=True)
    owner = models.CharField(max_length=64)
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='slots')
    appointment_date = models.DateField()
    appointment_time = models.CharField(max_length=5)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        indexes = [
            models.Index(fields=['owner', 'appointment_date'], name='slot_owner_date'),
        ]

    def __str__(self) -> str:
        return f"{self.id} -> {self.appointment_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
