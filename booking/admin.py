"""
Django admin registrations for the booking models.

Slot records are read-only here: they are written by the booking
services together with the appointment they belong to, and editing
one by hand would let two appointments share a time.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AppointmentSlot,
    AuditEvent,
    DoctorProfile,
    Hospital,
    PatientProfile,
    User,
)


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'phone', 'created_at')
    search_fields = ('id', 'name')


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'hospital', 'is_staff', 'is_superuser')
    list_filter = ('role', 'hospital')
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'hospital', 'specialization', 'consultation_fee')
    list_filter = ('hospital',)
    search_fields = ('user__username', 'specialization')


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'hospital', 'phone', 'sex', 'age')
    search_fields = ('user__username', 'phone')


class AppointmentSlotInline(admin.TabularInline):
    model = AppointmentSlot
    extra = 0
    can_delete = False
    readonly_fields = ('id', 'owner', 'appointment_date', 'appointment_time', 'created_at', 'updated_at')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'hospital', 'patient_name', 'doctor_name', 'appointment_date', 'appointment_time',
                    'status', 'whatsapp_pending', 'payment_status')
    list_filter = ('hospital', 'status', 'whatsapp_pending', 'created_by', 'payment_status')
    search_fields = ('id', 'patient_name', 'patient_phone', 'doctor_name')
    inlines = [AppointmentSlotInline]


@admin.register(AppointmentSlot)
class AppointmentSlotAdmin(admin.ModelAdmin):
    list_display = ('id', 'owner', 'appointment', 'appointment_date', 'appointment_time')
    list_filter = ('appointment_date',)
    search_fields = ('id', 'owner')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
