"""
Integration tests for the appointment API.

These exercise role checks, tenant isolation, slot conflicts surfacing
as 409 with the error envelope, the WhatsApp intake webhook and the
receptionist flow that assigns a doctor to a WhatsApp booking.  The
tests use Django REST Framework's APIClient within APITestCase.
"""
from django.core.cache import cache
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Appointment, AppointmentSlot, AuditEvent, Hospital, User
from .factories import make_doctor, make_patient, make_staff
from .fakes import RecordingMessenger

WEBHOOK_TOKEN = 'hook-secret'


class AppointmentAPITests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        RecordingMessenger.sent.clear()
        self.hospital1 = Hospital.objects.create(id="h1", name="City Care Hospital")
        self.hospital2 = Hospital.objects.create(id="h2", name="Lakeside Clinic")

        self.doctor1 = make_doctor(self.hospital1, "doctor1", fee=800, specialization="Cardiology")
        self.doctor2 = make_doctor(self.hospital2, "doctor2", fee=400)
        self.patient1 = make_patient(self.hospital1, "patient1", phone="+919876543210")
        self.patient2 = make_patient(self.hospital1, "patient2", phone="+919800000002")
        self.receptionist1 = make_staff(self.hospital1, "reception1")
        self.receptionist2 = make_staff(self.hospital2, "reception2")
        self.super_user = make_staff(None, "super", role=User.ROLE_SUPER)

    def authenticate(self, user: User) -> APIClient:
        """Return an authenticated APIClient for the given user."""
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def book(self, user, time="09:00", doctor=None, date="2024-01-15"):
        payload = {"appointmentDate": date, "appointmentTime": time, "chiefComplaint": "Chest pain"}
        if doctor:
            payload["doctorId"] = doctor.id
        return self.authenticate(user).post("/api/patient/appointments", payload, format="json")

    def intake(self, phone="+919876543210", time="10:30", token=WEBHOOK_TOKEN):
        return self.client.post(
            "/api/whatsapp/intake",
            {"phone": phone, "date": "2024-01-15", "time": time, "problem": "Fever", "paymentAmount": 100},
            format="json",
            HTTP_X_WEBHOOK_TOKEN=token,
        )

    # -- booking ---------------------------------------------------------

    def test_patient_books_doctor_slot(self):
        response = self.book(self.patient1, time="9:00 am", doctor=self.doctor1)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        appointment = response.data["appointment"]
        self.assertEqual(appointment["status"], "confirmed")
        self.assertEqual(appointment["appointmentTime"], "09:00")
        self.assertEqual(appointment["consultationFee"], 800)
        self.assertTrue(AppointmentSlot.objects.filter(pk=f"{self.doctor1.id}_2024-01-15_09-00").exists())

    def test_double_booking_returns_409_envelope(self):
        self.assertEqual(self.book(self.patient1, doctor=self.doctor1).status_code, status.HTTP_201_CREATED)
        response = self.book(self.patient2, time="09-00", doctor=self.doctor1)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["ok"])
        self.assertEqual(response.data["error"]["code"], "slot_conflict")
        self.assertEqual(response.data["error"]["message"], "Time slot already booked")
        self.assertTrue(response.data["error"]["retryable"])
        self.assertEqual(Appointment.objects.count(), 1)

    def test_patient_cannot_book_doctor_of_other_hospital(self):
        response = self.book(self.patient1, doctor=self.doctor2)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "not_found")

    def test_invalid_time_rejected(self):
        response = self.book(self.patient1, time="quarter past nine", doctor=self.doctor1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["ok"])

    def test_check_slot(self):
        url = f"/api/appointments/check-slot?doctorId={self.doctor1.id}&date=2024-01-15&time=09:00"
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)
        self.book(self.patient1, doctor=self.doctor1)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["available"])

    def test_available_slots_exclude_booked_times(self):
        self.book(self.patient1, doctor=self.doctor1)
        response = self.authenticate(self.patient2).get(
            f"/api/appointments/available-slots?doctorId={self.doctor1.id}&date=2024-01-15"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn("09:00", response.data["slots"])
        self.assertIn("09:15", response.data["slots"])

    def test_doctor_list_is_hospital_scoped(self):
        response = self.authenticate(self.patient1).get("/api/doctors")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [d["id"] for d in response.data["data"]]
        self.assertEqual(ids, [self.doctor1.id])
        self.assertEqual(response.data["meta"]["hospitalName"], "City Care Hospital")

    def test_unauthenticated_list_rejected(self):
        response = self.client.get("/api/appointments")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_patient_lists_only_own_appointments(self):
        self.book(self.patient1, doctor=self.doctor1)
        self.book(self.patient2, time="10:00", doctor=self.doctor1)
        response = self.authenticate(self.patient1).get("/api/appointments")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["pagination"]["total"], 1)
        self.assertEqual(response.data["data"][0]["patientId"], self.patient1.id)

    def test_patient_reschedule(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        response = self.authenticate(self.patient1).post(
            f"/api/patient/appointments/{appointment_id}/reschedule",
            {"appointmentDate": "2024-01-16", "appointmentTime": "11:00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["appointment"]["appointmentDate"], "2024-01-16")
        other = self.authenticate(self.patient2).post(
            f"/api/patient/appointments/{appointment_id}/reschedule",
            {"appointmentDate": "2024-01-17", "appointmentTime": "11:00"},
            format="json",
        )
        self.assertEqual(other.status_code, status.HTTP_403_FORBIDDEN)

    # -- status changes --------------------------------------------------

    def test_patient_cancels_own_appointment_and_frees_slot(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        client = self.authenticate(self.patient1)
        response = client.post(f"/api/appointments/{appointment_id}/status", {"status": "cancelled"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["appointment"]["status"], "cancelled")
        self.assertFalse(AppointmentSlot.objects.exists())
        # the freed slot can be booked again
        self.assertEqual(self.book(self.patient2, doctor=self.doctor1).status_code, status.HTTP_201_CREATED)

    def test_patient_cannot_complete_appointment(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        response = self.authenticate(self.patient1).post(
            f"/api/appointments/{appointment_id}/status", {"status": "completed"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_patient_cannot_cancel_someone_elses_appointment(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        response = self.authenticate(self.patient2).post(
            f"/api/appointments/{appointment_id}/status", {"status": "cancelled"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_doctor_completes_appointment(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        response = self.authenticate(self.doctor1).post(
            f"/api/appointments/{appointment_id}/status", {"status": "completed"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Appointment.objects.get(pk=appointment_id).status, "completed")

    def test_invalid_transition_is_400(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        client = self.authenticate(self.receptionist1)
        client.post(f"/api/appointments/{appointment_id}/status", {"status": "completed"}, format="json")
        response = client.post(f"/api/appointments/{appointment_id}/status", {"status": "cancelled"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "invalid_transition")

    # -- WhatsApp intake and the receptionist queue ----------------------

    @override_settings(WHATSAPP_WEBHOOK_TOKEN="")
    def test_intake_disabled_without_token(self):
        response = self.intake(token="anything")
        self.assertEqual(response.status_code, status.HTTP_501_NOT_IMPLEMENTED)

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_intake_rejects_wrong_token(self):
        response = self.intake(token="wrong")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Appointment.objects.exists())

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_intake_creates_pending_booking(self):
        response = self.intake(phone="9876543210", time="10:30 am")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "whatsapp_pending")
        self.assertEqual(response.data["remainingAmount"], 400)
        appointment = Appointment.objects.get(pk=response.data["appointmentId"])
        self.assertEqual(appointment.patient, self.patient1)
        self.assertTrue(appointment.whatsapp_pending)
        # no doctor yet, so no slot is held
        self.assertFalse(AppointmentSlot.objects.exists())

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_two_intakes_for_same_time_both_accepted(self):
        first = self.intake(phone="+919876543210", time="10:30")
        second = self.intake(phone="+919800000002", time="10:30 am")
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Appointment.objects.filter(status="whatsapp_pending").count(), 2)

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_super_cannot_assign_doctor_of_another_hospital(self):
        appointment_id = self.intake(time="10:30").data["appointmentId"]
        response = self.authenticate(self.super_user).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"doctorId": self.doctor2.id, "notify": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(Appointment.objects.get(pk=appointment_id).status, "whatsapp_pending")

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_intake_unknown_patient(self):
        response = self.intake(phone="+911234500000")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn("register", str(response.data["error"]["message"]))

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_whatsapp_queue_is_hospital_scoped(self):
        self.intake()
        mine = self.authenticate(self.receptionist1).get("/api/receptionist/whatsapp-bookings")
        theirs = self.authenticate(self.receptionist2).get("/api/receptionist/whatsapp-bookings")
        self.assertEqual(mine.data["pagination"]["total"], 1)
        self.assertEqual(theirs.data["pagination"]["total"], 0)
        denied = self.authenticate(self.patient1).get("/api/receptionist/whatsapp-bookings")
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_receptionist_assigns_doctor_without_notification(self):
        appointment_id = self.intake(time="10:30").data["appointmentId"]
        response = self.authenticate(self.receptionist1).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"doctorId": self.doctor1.id, "notify": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["appointment"]["status"], "confirmed")
        self.assertFalse(response.data["appointment"]["whatsappPending"])
        self.assertEqual(response.data["appointment"]["remainingAmount"], 700)
        self.assertTrue(response.data["notification"]["skipped"])
        self.assertEqual(response.data["slot"]["key"], f"{self.doctor1.id}_2024-01-15_10-30")
        self.assertEqual(response.data["slot"]["released"], [])
        self.assertEqual(
            set(AppointmentSlot.objects.values_list("pk", flat=True)),
            {f"{self.doctor1.id}_2024-01-15_10-30"},
        )
        self.assertTrue(AuditEvent.objects.filter(action="appointment_update", user=self.receptionist1).exists())

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN, BOOKING_MESSENGER="booking.tests.fakes.RecordingMessenger")
    def test_receptionist_assignment_sends_confirmation(self):
        appointment_id = self.intake(time="10:30").data["appointmentId"]
        response = self.authenticate(self.receptionist1).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"doctorId": self.doctor1.id, "appointmentTime": "11:00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["notification"]["sent"])
        self.assertEqual(len(RecordingMessenger.sent), 1)
        self.assertIn("11:00 am", RecordingMessenger.sent[0][1])

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN, BOOKING_MESSENGER="booking.tests.fakes.FailingMessenger")
    def test_failed_confirmation_still_saves_booking(self):
        appointment_id = self.intake(time="10:30").data["appointmentId"]
        response = self.authenticate(self.receptionist1).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"doctorId": self.doctor1.id},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["notification"]["sent"])
        self.assertEqual(response.data["notification"]["error"]["code"], 21610)
        self.assertEqual(Appointment.objects.get(pk=appointment_id).status, "confirmed")

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_receptionist_assignment_conflict(self):
        self.book(self.patient2, time="10:30", doctor=self.doctor1)
        appointment_id = self.intake(time="10:30").data["appointmentId"]
        response = self.authenticate(self.receptionist1).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"doctorId": self.doctor1.id, "notify": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        appointment = Appointment.objects.get(pk=appointment_id)
        self.assertEqual(appointment.status, "whatsapp_pending")
        self.assertIsNone(appointment.doctor_id)

    @override_settings(WHATSAPP_WEBHOOK_TOKEN=WEBHOOK_TOKEN)
    def test_receptionist_of_other_hospital_cannot_edit(self):
        appointment_id = self.intake().data["appointmentId"]
        response = self.authenticate(self.receptionist2).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}",
            {"notes": "x", "notify": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_whatsapp_update_rejects_web_booking(self):
        appointment_id = self.book(self.patient1, doctor=self.doctor1).data["appointment"]["id"]
        response = self.authenticate(self.receptionist1).put(
            f"/api/receptionist/whatsapp-bookings/{appointment_id}", {"notes": "x"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receptionist_books_for_patient(self):
        response = self.authenticate(self.receptionist1).post(
            "/api/receptionist/appointments",
            {"patientId": self.patient1.id, "doctorId": self.doctor1.id, "appointmentDate": "2024-01-15",
             "appointmentTime": "12:00", "consultationFee": 1000, "paymentAmount": 1000, "paymentMethod": "card"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        appointment = response.data["appointment"]
        self.assertEqual(appointment["createdBy"], "receptionist")
        self.assertEqual(appointment["consultationFee"], 1000)
        self.assertEqual(appointment["remainingAmount"], 0)

    def test_receptionist_cannot_book_patient_of_other_hospital(self):
        stranger = make_patient(self.hospital2, "patient3", phone="+919800000003")
        response = self.authenticate(self.receptionist1).post(
            "/api/receptionist/appointments",
            {"patientId": stranger.id, "appointmentDate": "2024-01-15", "appointmentTime": "12:00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_super_admin_sees_all_hospitals(self):
        self.book(self.patient1, doctor=self.doctor1)
        response = self.authenticate(self.super_user).get("/api/appointments")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["pagination"]["total"], 1)

    def test_healthz(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ok"])
