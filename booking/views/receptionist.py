"""
Front-desk endpoints: booking on behalf of a patient and working the
queue of bookings that arrived over WhatsApp without a doctor.
"""
from __future__ import annotations

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import BookingValidationError, NotFoundError
from ..models import Appointment, User
from ..permissions import IsReceptionistOrAdmin, hospital_scope
from ..serializers.appointments import BookingUpdateSerializer, ReceptionistBookingSerializer
from ..services.appointments import create_booking, format_appointment, update_booking
from ..services.messaging import get_messenger
from ..store import get_slot_store


def _notification_payload(result):
    if result is None:
        return {'sent': False, 'skipped': True}
    payload = {'sent': result.success, 'skipped': False, 'sid': result.sid}
    if not result.success:
        payload['error'] = {'code': result.error_code, 'message': str(result.error)}
    return payload


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReceptionistOrAdmin])
def receptionist_book(request):
    s = ReceptionistBookingSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital_id = hospital_scope(request.user)

    patients = User.objects.filter(id=s.validated_data['patientId'], role=User.ROLE_PATIENT, is_active=True)
    if hospital_id:
        patients = patients.filter(hospital_id=hospital_id)
    patient = patients.first()
    if patient is None:
        raise NotFoundError('Patient not found')

    appointment = create_booking(
        store=get_slot_store(),
        patient=patient,
        hospital_id=hospital_id or patient.hospital_id,
        source='receptionist',
        actor=request.user,
        **s.to_booking_kwargs(),
    )
    return Response({'ok': True, 'appointment': format_appointment(appointment)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsReceptionistOrAdmin])
def whatsapp_bookings(request):
    """WhatsApp bookings still waiting for a doctor, oldest first."""
    qs = Appointment.objects.filter(
        Q(whatsapp_pending=True) | Q(status=Appointment.STATUS_WHATSAPP_PENDING)
    )
    hospital_id = hospital_scope(request.user)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    items = [format_appointment(a) for a in qs.order_by('appointment_date', 'appointment_time', 'created_at')]
    return Response({'ok': True, 'data': items, 'pagination': {'total': len(items)}})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsReceptionistOrAdmin])
def whatsapp_booking_update(request, appointment_id: str):
    """
    Edit a WhatsApp booking: assign the doctor, move the date/time and
    fix contact or payment fields.  Assigning a doctor confirms the
    booking and, unless ``notify`` is false, sends the patient a
    WhatsApp confirmation.  The booking is saved even when that message
    fails; the response reports the delivery outcome separately.
    """
    s = BookingUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital_id = hospital_scope(request.user)

    appointment = Appointment.objects.filter(pk=appointment_id).first()
    if appointment is None or (hospital_id and appointment.hospital_id != hospital_id):
        raise NotFoundError('Appointment not found')
    if appointment.created_by != 'whatsapp' and not appointment.whatsapp_pending:
        raise BookingValidationError('Not a WhatsApp booking')

    notify = s.validated_data.get('notify', True)
    result = update_booking(
        appointment_id,
        s.to_changes(),
        store=get_slot_store(),
        messenger=get_messenger() if notify else None,
        notify=notify,
        actor=request.user,
        hospital_id=hospital_id,
    )
    return Response({
        'ok': True,
        'appointment': format_appointment(result.appointment),
        'slot': {'key': result.slot_change.key, 'released': result.slot_change.released,
                 'unchanged': result.slot_change.skipped},
        'notification': _notification_payload(result.notification),
    })
