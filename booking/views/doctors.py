from django.conf import settings
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from booking.models import Hospital
from booking.permissions import hospital_scope
from booking.serializers.appointments import AvailableSlotsQuerySerializer
from booking.services.doctors import available_times, list_doctors, lookup_doctor


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def hospital_doctors(request):
    """Doctors of the caller's hospital.
    Query params:
      - q: optional search (name/username/specialization contains)
      - hospitalId: super only
    """
    hospital_id = hospital_scope(request.user)
    if hospital_id is None:
        hospital_id = request.query_params.get('hospitalId') or None
    q = (request.query_params.get('q') or '').strip() or None

    cache_key = f"doctors:h={hospital_id or '*'}:q={q or ''}"
    cached = cache.get(cache_key)
    if cached:
        return Response(cached)

    doctors = list_doctors(hospital_id, q=q)
    meta = {'hospitalId': hospital_id}
    if hospital_id:
        hospital = Hospital.objects.filter(id=hospital_id).first()
        if hospital:
            meta['hospitalName'] = hospital.name
    payload = {'ok': True, 'meta': meta, 'data': doctors, 'pagination': {'total': len(doctors)}}
    cache.set(cache_key, payload, settings.BOOKING_DOCTOR_CACHE_SECONDS)
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_slots(request):
    q = AvailableSlotsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    doctor = lookup_doctor(q.validated_data['doctorId'], hospital_id=hospital_scope(request.user))
    day = q.validated_data['date']
    return Response({
        'ok': True,
        'doctorId': doctor.id,
        'date': day.isoformat(),
        'slots': available_times(doctor.id, day),
    })
