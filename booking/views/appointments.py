"""
Appointment endpoints shared by patients, doctors and front-desk staff.

Every write goes through :mod:`booking.services.appointments`; the slot
store is built here, per request, and handed to the service.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from ..exceptions import AuthorizationError
from ..models import Appointment, User
from ..permissions import IsPatientRole, hospital_scope
from ..serializers.appointments import (
    AppointmentListQuerySerializer,
    BookingCreateSerializer,
    RescheduleSerializer,
    SlotQuerySerializer,
    StatusChangeSerializer,
)
from ..services.appointments import create_booking, format_appointment, reschedule_booking, transition_status
from ..services.slots import is_slot_available
from ..services.timeslots import slot_key
from ..store import get_slot_store

# role -> statuses that role may move an appointment to
STATUS_CHANGES_BY_ROLE = {
    User.ROLE_PATIENT: {Appointment.STATUS_CANCELLED, Appointment.STATUS_REFUND_REQUESTED},
    User.ROLE_DOCTOR: {Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED},
    User.ROLE_RECEPTIONIST: {
        Appointment.STATUS_CONFIRMED, Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED,
    },
    User.ROLE_ADMIN: {
        Appointment.STATUS_CONFIRMED, Appointment.STATUS_COMPLETED,
        Appointment.STATUS_CANCELLED, Appointment.STATUS_REFUND_REQUESTED,
    },
}
STATUS_CHANGES_BY_ROLE[User.ROLE_SUPER] = STATUS_CHANGES_BY_ROLE[User.ROLE_ADMIN]


@api_view(['GET'])
@permission_classes([AllowAny])
def check_slot(request):
    """Public pre-booking check: 200 when free, 409 when taken.

    Only advisory; the booking itself re-checks inside its transaction.
    """
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    key = slot_key(vd['doctorId'], vd['date'], vd['time'])
    if is_slot_available(get_slot_store(), key):
        return Response({'ok': True, 'available': True})
    return Response(
        {'ok': False, 'available': False, 'error': {'code': 'slot_conflict', 'message': 'Time slot already booked'}},
        status=status.HTTP_409_CONFLICT,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_appointments(request):
    """Role-scoped appointment list.

    Patients see their own, doctors those assigned to them, staff those
    of their hospital (super admins everything).
    """
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    user: User = request.user  # type: ignore[assignment]
    qs = Appointment.objects.all()
    if user.role == User.ROLE_PATIENT:
        qs = qs.filter(patient=user)
    elif user.role == User.ROLE_DOCTOR:
        qs = qs.filter(doctor=user)
    else:
        hospital_id = hospital_scope(user)
        if hospital_id:
            qs = qs.filter(hospital_id=hospital_id)

    vd = q.validated_data
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('date'):
        qs = qs.filter(appointment_date=vd['date'])

    total = qs.count()
    page = vd.get('page') or 1
    page_size = vd.get('pageSize') or 50
    start = (page - 1) * page_size
    items = qs.order_by('appointment_date', 'appointment_time', 'id')[start:start + page_size]
    return Response({
        'ok': True,
        'data': [format_appointment(a) for a in items],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_book(request):
    s = BookingCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = create_booking(store=get_slot_store(), patient=request.user, source='web', **s.to_booking_kwargs())
    return Response({'ok': True, 'appointment': format_appointment(appointment)}, status=status.HTTP_201_CREATED)

patient_book.cls.throttle_scope = 'booking_write'


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_reschedule(request, appointment_id: str):
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = reschedule_booking(
        appointment_id,
        patient=request.user,
        appointment_date=s.validated_data['appointmentDate'],
        appointment_time=s.validated_data['appointmentTime'],
        store=get_slot_store(),
    )
    return Response({'ok': True, 'appointment': format_appointment(result.appointment)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_status(request, appointment_id: str):
    s = StatusChangeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    new_status = s.validated_data['status']
    user: User = request.user  # type: ignore[assignment]
    if new_status not in STATUS_CHANGES_BY_ROLE.get(user.role, set()):
        raise AuthorizationError(f'{user.role} cannot set status {new_status}')

    scope = {}
    if user.role == User.ROLE_PATIENT:
        scope['patient_id'] = user.id
    elif user.role == User.ROLE_DOCTOR:
        scope['doctor_id'] = user.id
    else:
        scope['hospital_id'] = hospital_scope(user)
    appointment = transition_status(appointment_id, new_status, store=get_slot_store(), actor=user, **scope)
    return Response({'ok': True, 'appointment': format_appointment(appointment)})
