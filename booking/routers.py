"""
URL mappings for the appointment API.

Trailing slashes are omitted to match the portal front end.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view
from .views import health
from .views.appointments import (
    change_status,
    check_slot,
    list_appointments,
    patient_book,
    patient_reschedule,
)
from .views.doctors import available_slots, hospital_doctors
from .views.receptionist import receptionist_book, whatsapp_booking_update, whatsapp_bookings
from .views.whatsapp import whatsapp_intake

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    # Doctors and availability
    path('api/doctors', hospital_doctors),
    path('api/appointments/check-slot', check_slot, name='check_slot'),
    path('api/appointments/available-slots', available_slots),
    # Appointments
    path('api/appointments', list_appointments),
    path('api/appointments/<str:appointment_id>/status', change_status),
    path('api/patient/appointments', patient_book),
    path('api/patient/appointments/<str:appointment_id>/reschedule', patient_reschedule),
    # Front desk
    path('api/receptionist/appointments', receptionist_book),
    path('api/receptionist/whatsapp-bookings', whatsapp_bookings),
    path('api/receptionist/whatsapp-bookings/<str:appointment_id>', whatsapp_booking_update),
    # WhatsApp bot webhook
    path('api/whatsapp/intake', whatsapp_intake, name='whatsapp_intake'),
]
