"""
Inbound WhatsApp booking webhook.

The conversational bot in front of this endpoint collects phone, date,
time and problem from the patient and posts them here with the shared
``X-Webhook-Token``.  An optional ``hospitalId`` restricts the patient
lookup to one hospital.  The booking is created without a doctor and
waits in the receptionist queue.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response

from booking.permissions import HasWebhookToken
from booking.serializers.appointments import WhatsAppIntakeSerializer
from booking.services.appointments import create_whatsapp_booking
from booking.store import get_slot_store

logger = logging.getLogger(__name__)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([HasWebhookToken])
def whatsapp_intake(request):
    s = WhatsAppIntakeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    appointment = create_whatsapp_booking(
        store=get_slot_store(),
        phone=vd['phone'],
        appointment_date=vd['date'],
        appointment_time=vd['time'],
        chief_complaint=vd.get('problem', ''),
        payment_method=vd['paymentMethod'],
        payment_amount=vd['paymentAmount'],
        hospital_id=vd.get('hospitalId') or None,
    )
    logger.info('WhatsApp booking %s received for %s %s', appointment.id,
                appointment.appointment_date, appointment.appointment_time)
    return Response({
        'ok': True,
        'appointmentId': appointment.id,
        'status': appointment.status,
        'appointmentDate': appointment.appointment_date.isoformat(),
        'appointmentTime': appointment.appointment_time,
        'consultationFee': appointment.consultation_fee,
        'remainingAmount': appointment.remaining_amount,
    }, status=status.HTTP_201_CREATED)

whatsapp_intake.cls.throttle_scope = 'whatsapp_intake'
