import bleach
from rest_framework import serializers

from booking.exceptions import BookingValidationError
from booking.models import Appointment
from booking.services.timeslots import normalize_time

PAYMENT_METHODS = [c[0] for c in Appointment.PAYMENT_METHOD_CHOICES]
PAYMENT_STATUSES = [c[0] for c in Appointment.PAYMENT_STATUS_CHOICES]
STATUSES = [c[0] for c in Appointment.STATUS_CHOICES]

# request key -> model field
UPDATE_FIELD_MAP = {
    'doctorId': 'doctor_id',
    'appointmentDate': 'appointment_date',
    'appointmentTime': 'appointment_time',
    'patientName': 'patient_name',
    'patientPhone': 'patient_phone',
    'patientEmail': 'patient_email',
    'chiefComplaint': 'chief_complaint',
    'medicalHistory': 'medical_history',
    'notes': 'notes',
    'consultationFee': 'consultation_fee',
    'paymentAmount': 'payment_amount',
    'paymentMethod': 'payment_method',
    'paymentStatus': 'payment_status',
}


def clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class TimeField(serializers.CharField):
    """Loosely typed time, validated and returned as ``HH:MM``."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return normalize_time(value)
        except BookingValidationError as e:
            raise serializers.ValidationError(str(e.detail))


class CleanTextField(serializers.CharField):
    def to_internal_value(self, data):
        return clean_text(super().to_internal_value(data))


class SlotQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    time = TimeField(max_length=16)


class AvailableSlotsQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    date = serializers.DateField(required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)


class BookingCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    appointmentDate = serializers.DateField()
    appointmentTime = TimeField(max_length=16)
    chiefComplaint = CleanTextField(required=False, allow_blank=True, max_length=2000)
    medicalHistory = CleanTextField(required=False, allow_blank=True, max_length=4000)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False)
    paymentAmount = serializers.IntegerField(min_value=0, required=False)

    def to_booking_kwargs(self) -> dict:
        vd = self.validated_data
        kwargs = {
            'doctor_id': vd.get('doctorId'),
            'appointment_date': vd['appointmentDate'],
            'appointment_time': vd['appointmentTime'],
        }
        for key in ('chiefComplaint', 'medicalHistory', 'paymentMethod', 'paymentAmount'):
            if key in vd:
                kwargs[UPDATE_FIELD_MAP[key]] = vd[key]
        return kwargs


class ReceptionistBookingSerializer(BookingCreateSerializer):
    patientId = serializers.IntegerField(min_value=1)
    consultationFee = serializers.IntegerField(min_value=0, required=False)

    def to_booking_kwargs(self) -> dict:
        kwargs = super().to_booking_kwargs()
        if 'consultationFee' in self.validated_data:
            kwargs['consultation_fee'] = self.validated_data['consultationFee']
        return kwargs


class RescheduleSerializer(serializers.Serializer):
    appointmentDate = serializers.DateField()
    appointmentTime = TimeField(max_length=16)


class BookingUpdateSerializer(serializers.Serializer):
    """Receptionist edit of a (WhatsApp) booking."""
    doctorId = serializers.IntegerField(min_value=1, required=False)
    appointmentDate = serializers.DateField(required=False)
    appointmentTime = TimeField(max_length=16, required=False)
    patientName = CleanTextField(required=False, max_length=150)
    patientPhone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    patientEmail = serializers.EmailField(required=False, allow_blank=True)
    chiefComplaint = CleanTextField(required=False, allow_blank=True, max_length=2000)
    medicalHistory = CleanTextField(required=False, allow_blank=True, max_length=4000)
    notes = CleanTextField(required=False, allow_blank=True, max_length=4000)
    consultationFee = serializers.IntegerField(min_value=0, required=False)
    paymentAmount = serializers.IntegerField(min_value=0, required=False)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False)
    paymentStatus = serializers.ChoiceField(choices=PAYMENT_STATUSES, required=False)
    notify = serializers.BooleanField(required=False, default=True)

    def validate_patientPhone(self, v):
        return clean_text(v)

    def to_changes(self) -> dict:
        return {field: self.validated_data[key] for key, field in UPDATE_FIELD_MAP.items() if key in self.validated_data}


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES)


class WhatsAppIntakeSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=32)
    date = serializers.DateField()
    time = TimeField(max_length=16)
    problem = CleanTextField(required=False, allow_blank=True, max_length=2000)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, default='cash')
    paymentAmount = serializers.IntegerField(min_value=0, required=False, default=0)
    hospitalId = serializers.CharField(max_length=64, required=False, allow_blank=True)

    def validate_phone(self, v):
        v = (v or '').strip()
        if v.lower().startswith('whatsapp:'):
            v = v[len('whatsapp:'):]
        if not any(ch.isdigit() for ch in v):
            raise serializers.ValidationError('Invalid phone number')
        return v
