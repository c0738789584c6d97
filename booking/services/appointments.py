"""
Appointment creation, updates and status changes.

Slot records are always changed through :mod:`booking.services.slots`
inside the same database transaction that writes the appointment row,
so a rejected slot leaves the appointment untouched.  WhatsApp
confirmations and realtime broadcasts run only after that transaction
has finished; their failures are logged and do not change the outcome
reported to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import transaction

from booking.exceptions import (
    AuthorizationError,
    BookingValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from booking.models import Appointment, PatientProfile, User
from booking.services.audit import log_appointment
from booking.services.doctors import DoctorSnapshot, lookup_doctor
from booking.services.messaging import SendResult, format_confirmation_message
from booking.services.slots import SlotChange, claim_slot, owner_token, reassign_slot, release_slots, write_claim
from booking.services.timeslots import normalize_time, parse_date
from booking.store import SlotStore

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Appointment.STATUS_PENDING: {Appointment.STATUS_CONFIRMED, Appointment.STATUS_CANCELLED},
    Appointment.STATUS_WHATSAPP_PENDING: {Appointment.STATUS_CONFIRMED, Appointment.STATUS_CANCELLED},
    Appointment.STATUS_CONFIRMED: {
        Appointment.STATUS_COMPLETED,
        Appointment.STATUS_CANCELLED,
        Appointment.STATUS_REFUND_REQUESTED,
    },
    Appointment.STATUS_COMPLETED: set(),
    Appointment.STATUS_CANCELLED: set(),
    Appointment.STATUS_REFUND_REQUESTED: set(),
}

# statuses that no longer hold a slot
RELEASING_STATUSES = {Appointment.STATUS_CANCELLED, Appointment.STATUS_REFUND_REQUESTED}

CONTACT_FIELDS = ('patient_name', 'patient_phone', 'patient_email')
TEXT_FIELDS = ('chief_complaint', 'medical_history', 'notes')
PAYMENT_CHOICE_FIELDS = ('payment_method', 'payment_status')


@dataclass
class BookingUpdateResult:
    appointment: Appointment
    slot_change: SlotChange
    notification: Optional[SendResult] = None


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def remaining_amount(fee: int, paid: int) -> int:
    return max((fee or 0) - (paid or 0), 0)


def _default_fee() -> int:
    return settings.BOOKING_DEFAULT_CONSULTATION_FEE


def _patient_contact(patient: User) -> Dict[str, str]:
    profile = PatientProfile.objects.filter(user=patient).first()
    return {
        'patient_name': f"{patient.first_name or ''} {patient.last_name or ''}".strip() or patient.username,
        'patient_phone': profile.phone if profile else '',
        'patient_email': patient.email or '',
    }


def _check_tenant(appointment: Appointment, hospital_id: Optional[str]) -> None:
    if hospital_id and appointment.hospital_id != hospital_id:
        # same answer as a missing id, so other tenants' ids don't leak
        raise NotFoundError('Appointment not found')


def _lock(appointment_id: str, hospital_id: Optional[str]) -> Appointment:
    appointment = Appointment.objects.select_for_update().filter(pk=appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found')
    _check_tenant(appointment, hospital_id)
    return appointment


def format_appointment(a: Appointment) -> Dict[str, Any]:
    return {
        'id': a.id,
        'hospitalId': a.hospital_id,
        'patientId': a.patient_id,
        'patientName': a.patient_name,
        'patientPhone': a.patient_phone,
        'patientEmail': a.patient_email,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor_name,
        'doctorSpecialization': a.doctor_specialization,
        'appointmentDate': a.appointment_date.isoformat() if a.appointment_date else None,
        'appointmentTime': a.appointment_time,
        'status': a.status,
        'whatsappPending': a.whatsapp_pending,
        'chiefComplaint': a.chief_complaint,
        'medicalHistory': a.medical_history,
        'notes': a.notes,
        'consultationFee': a.consultation_fee,
        'paymentAmount': a.payment_amount,
        'remainingAmount': a.remaining_amount,
        'paymentMethod': a.payment_method,
        'paymentStatus': a.payment_status,
        'createdBy': a.created_by,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }


def broadcast_appointment_update(appointment: Appointment, event: str = 'updated') -> None:
    if not appointment.hospital_id:
        return
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {
        'type': 'appointment.changed',
        'event': event,
        'appointmentId': appointment.id,
        'status': appointment.status,
        'doctorId': appointment.doctor_id,
        'appointmentDate': appointment.appointment_date.isoformat(),
        'appointmentTime': appointment.appointment_time,
    }
    try:
        async_to_sync(channel_layer.group_send)(f'appointments.{appointment.hospital_id}', payload)
    except Exception:
        logger.warning('Broadcast of appointment %s failed', appointment.id, exc_info=True)


def notify_confirmation(messenger, appointment: Appointment) -> SendResult:
    """Send the confirmation; failures are logged, never raised."""
    if not appointment.patient_phone:
        logger.warning('No phone on appointment %s, confirmation not sent', appointment.id)
        return SendResult.failed('No phone number on appointment', code='invalid_recipient')
    try:
        result = messenger.send(appointment.patient_phone, format_confirmation_message(appointment))
    except Exception as e:
        logger.exception('Messenger raised while confirming appointment %s', appointment.id)
        result = SendResult.failed(str(e), code='messenger_error')
    if result.success:
        logger.info('Confirmation for appointment %s sent (sid=%s)', appointment.id, result.sid)
    else:
        logger.warning(
            'Confirmation for appointment %s failed: %s (code=%s)',
            appointment.id, result.error, result.error_code,
        )
    return result


def create_booking(
    *,
    store: SlotStore,
    patient: User,
    appointment_date,
    appointment_time: str,
    doctor_id=None,
    hospital_id: Optional[str] = None,
    source: str = 'web',
    whatsapp: bool = False,
    actor: Optional[User] = None,
    **fields,
) -> Appointment:
    """Create an appointment and claim its slot in one transaction.

    With a doctor the booking is ``confirmed`` and claims the doctor's
    slot.  Without one no slot is claimed; it starts as ``pending``, or
    ``whatsapp_pending`` for WhatsApp intake, and gets its slot when a
    doctor is assigned.
    """
    day = parse_date(appointment_date)
    time = normalize_time(appointment_time)
    hospital_id = hospital_id or patient.hospital_id

    doctor: Optional[DoctorSnapshot] = lookup_doctor(doctor_id, hospital_id=hospital_id) if doctor_id else None
    hospital_id = hospital_id or (doctor.hospital_id if doctor else None)

    values: Dict[str, Any] = _patient_contact(patient)
    values.update({k: v for k, v in fields.items() if k in CONTACT_FIELDS + TEXT_FIELDS + PAYMENT_CHOICE_FIELDS})
    fee = fields.get('consultation_fee') or (doctor.consultation_fee if doctor else 0) or _default_fee()
    paid = fields.get('payment_amount') or 0
    if doctor:
        status = Appointment.STATUS_CONFIRMED
    elif whatsapp:
        status = Appointment.STATUS_WHATSAPP_PENDING
    else:
        status = Appointment.STATUS_PENDING

    key = None
    with transaction.atomic():
        with store.transaction() as tx:
            if doctor:
                key = claim_slot(tx, owner=owner_token(doctor.id), date=day, time=time)
            appointment = Appointment.objects.create(
                hospital_id=hospital_id,
                patient=patient,
                doctor_id=doctor.id if doctor else None,
                doctor_name=doctor.name if doctor else '',
                doctor_specialization=doctor.specialization if doctor else '',
                appointment_date=day,
                appointment_time=time,
                status=status,
                whatsapp_pending=whatsapp and not doctor,
                consultation_fee=fee,
                payment_amount=paid,
                remaining_amount=remaining_amount(fee, paid),
                created_by=source,
                **values,
            )
            if key:
                write_claim(tx, key, owner=owner_token(doctor.id), date=day, time=time,
                            appointment_id=appointment.id)
        log_appointment(actor or patient, appointment.id, 'create', slot=key, source=source)

    logger.info('Appointment %s created (%s) holding %s', appointment.id, status, key or 'no slot')
    broadcast_appointment_update(appointment, 'created')
    return appointment


def _find_patient_by_phone(phone: str, hospital_id: Optional[str] = None) -> Optional[User]:
    """Exact phone match first, then the last ten digits; oldest profile wins."""
    digits = ''.join(ch for ch in phone if ch.isdigit())
    if not digits:
        return None
    profiles = PatientProfile.objects.select_related('user').order_by('pk')
    if hospital_id:
        profiles = profiles.filter(user__hospital_id=hospital_id)
    profile = profiles.filter(phone=phone).first() or profiles.filter(phone__endswith=digits[-10:]).first()
    return profile.user if profile else None


def create_whatsapp_booking(*, store: SlotStore, phone: str, appointment_date, appointment_time: str,
                            chief_complaint: str = '', payment_method: str = 'cash',
                            payment_amount: int = 0, hospital_id: Optional[str] = None) -> Appointment:
    patient = _find_patient_by_phone(phone, hospital_id)
    if patient is None:
        raise NotFoundError('Patient record not found. Please register first.')
    return create_booking(
        store=store,
        patient=patient,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        source='whatsapp',
        whatsapp=True,
        patient_phone=phone,
        chief_complaint=chief_complaint or 'General consultation',
        payment_method=payment_method,
        payment_amount=payment_amount,
    )


def update_booking(
    appointment_id: str,
    changes: Dict[str, Any],
    *,
    store: SlotStore,
    messenger=None,
    notify: bool = True,
    actor: Optional[User] = None,
    hospital_id: Optional[str] = None,
) -> BookingUpdateResult:
    """Apply field changes to an appointment, moving its slot if needed.

    ``changes`` holds model field names: ``doctor_id``,
    ``appointment_date``, ``appointment_time``, the contact and text
    fields, ``consultation_fee``, ``payment_amount``, ``payment_method``,
    ``payment_status``.  Absent keys are left alone.

    Assigning a doctor to a pending appointment confirms it and clears
    the WhatsApp pending flag whether or not ``notify`` is set; the
    confirmation message is only sent when it is.
    """
    doctor: Optional[DoctorSnapshot] = None
    if changes.get('doctor_id') is not None:
        doctor = lookup_doctor(changes['doctor_id'], hospital_id=hospital_id)
    new_date = parse_date(changes['appointment_date']) if changes.get('appointment_date') else None
    new_time = normalize_time(changes['appointment_time']) if changes.get('appointment_time') else None

    with transaction.atomic():
        appointment = _lock(appointment_id, hospital_id)
        # super admins pass no hospital scope, so tie the doctor to the booking's hospital here
        if doctor and appointment.hospital_id and doctor.hospital_id != appointment.hospital_id:
            raise NotFoundError('Doctor not found')
        was_pending = appointment.is_pending

        slot_change = SlotChange(skipped=True)
        if doctor or new_date or new_time:
            if appointment.status in RELEASING_STATUSES or appointment.status == Appointment.STATUS_COMPLETED:
                raise InvalidTransitionError(f'Cannot reschedule a {appointment.status} appointment')
            slot_change = reassign_slot(
                store,
                appointment,
                doctor_id=doctor.id if doctor else appointment.doctor_id,
                date=new_date or appointment.appointment_date,
                time=new_time or appointment.appointment_time,
            )

        fee_or_payment_changed = False
        if doctor:
            appointment.doctor_id = doctor.id
            appointment.doctor_name = doctor.name
            appointment.doctor_specialization = doctor.specialization
            if doctor.consultation_fee:
                appointment.consultation_fee = doctor.consultation_fee
                fee_or_payment_changed = True
        if new_date:
            appointment.appointment_date = new_date
        if new_time:
            appointment.appointment_time = new_time

        for name in CONTACT_FIELDS + TEXT_FIELDS + PAYMENT_CHOICE_FIELDS:
            if name in changes and changes[name] is not None:
                setattr(appointment, name, changes[name])
        if changes.get('consultation_fee') is not None:
            appointment.consultation_fee = changes['consultation_fee']
            fee_or_payment_changed = True
        if changes.get('payment_amount') is not None:
            appointment.payment_amount = changes['payment_amount']
            fee_or_payment_changed = True
        if fee_or_payment_changed:
            if not appointment.consultation_fee:
                appointment.consultation_fee = _default_fee()
            appointment.remaining_amount = remaining_amount(appointment.consultation_fee, appointment.payment_amount)

        assigned = doctor is not None and was_pending
        if assigned:
            appointment.status = Appointment.STATUS_CONFIRMED
            appointment.whatsapp_pending = False

        appointment.save()
        log_appointment(actor, appointment.id, 'update',
                        fields=sorted(k for k, v in changes.items() if v is not None),
                        slot=slot_change.key, released=slot_change.released, confirmed=assigned)

    notification = None
    if assigned and notify and messenger is not None:
        notification = notify_confirmation(messenger, appointment)
    broadcast_appointment_update(appointment)
    return BookingUpdateResult(appointment=appointment, slot_change=slot_change, notification=notification)


def reschedule_booking(appointment_id: str, *, patient: User, appointment_date, appointment_time: str,
                       store: SlotStore) -> BookingUpdateResult:
    """Let a patient move their own appointment; the doctor stays the same."""
    appointment = Appointment.objects.filter(pk=appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found')
    if appointment.patient_id != patient.id:
        raise AuthorizationError('You cannot modify this appointment')
    if appointment.status not in (Appointment.STATUS_CONFIRMED,) + Appointment.PENDING_STATUSES:
        raise InvalidTransitionError(f'Cannot reschedule a {appointment.status} appointment')
    return update_booking(
        appointment_id,
        {'appointment_date': appointment_date, 'appointment_time': appointment_time},
        store=store,
        notify=False,
        actor=patient,
    )


def transition_status(appointment_id: str, new_status: str, *, store: SlotStore, actor: Optional[User] = None,
                      hospital_id: Optional[str] = None, patient_id=None, doctor_id=None) -> Appointment:
    """Move an appointment along the status state machine.

    ``patient_id``/``doctor_id`` restrict the change to appointments of
    that patient or doctor.  Cancelling or requesting a refund frees the
    appointment's slot records in the same transaction.
    """
    if new_status not in TRANSITIONS:
        raise BookingValidationError(f'Unknown status: {new_status}')
    with transaction.atomic():
        appointment = _lock(appointment_id, hospital_id)
        if patient_id is not None and appointment.patient_id != patient_id:
            raise AuthorizationError('You cannot modify this appointment')
        if doctor_id is not None and appointment.doctor_id != doctor_id:
            raise AuthorizationError('You cannot modify this appointment')
        if not can_transition(appointment.status, new_status):
            raise InvalidTransitionError(f'Cannot change status from {appointment.status} to {new_status}')
        if new_status == Appointment.STATUS_CONFIRMED and not appointment.doctor_id:
            raise InvalidTransitionError('Assign a doctor before confirming')
        if new_status == Appointment.STATUS_REFUND_REQUESTED and appointment.payment_status != 'paid':
            raise InvalidTransitionError('Only paid appointments can request a refund')

        released = release_slots(store, appointment) if new_status in RELEASING_STATUSES else []
        old_status = appointment.status
        appointment.status = new_status
        if new_status == Appointment.STATUS_CONFIRMED:
            appointment.whatsapp_pending = False
        appointment.save(update_fields=['status', 'whatsapp_pending', 'updated_at'])
        log_appointment(actor, appointment.id, 'status', previous=old_status, current=new_status, released=released)

    logger.info('Appointment %s: %s -> %s', appointment.id, old_status, new_status)
    broadcast_appointment_update(appointment)
    return appointment
