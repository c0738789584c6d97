from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from booking.models import DoctorProfile, Hospital, PatientProfile, User

DEMO_HOSPITAL = ("h1", "City Care Hospital")

USERS = [
    ("super", User.ROLE_SUPER, "", ""),
    ("admin1", User.ROLE_ADMIN, "Asha", "Rao"),
    ("reception1", User.ROLE_RECEPTIONIST, "Ravi", "Kumar"),
    ("doctor1", User.ROLE_DOCTOR, "Meera", "Iyer"),
    ("doctor2", User.ROLE_DOCTOR, "Arjun", "Nair"),
    ("patient1", User.ROLE_PATIENT, "Priya", "Sharma"),
]

DOCTORS = {
    "doctor1": ("General Medicine", 500),
    "doctor2": ("Cardiology", 800),
}

PATIENTS = {
    "patient1": ("+919876543210", "F", 34),
}


class Command(BaseCommand):
    help = "Create a demo hospital with one user per role (password=123456). Idempotent."

    def handle(self, *args, **opts):
        hospital, _ = Hospital.objects.update_or_create(
            id=DEMO_HOSPITAL[0], defaults={"name": DEMO_HOSPITAL[1]}
        )
        for username, role, first, last in USERS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": make_password("123456"), "is_active": True},
            )
            if not created:
                u.password = make_password("123456")
            u.role = role
            u.first_name = first
            u.last_name = last
            u.is_active = True
            u.hospital = None if role == User.ROLE_SUPER else hospital
            u.is_staff = u.is_superuser = role == User.ROLE_SUPER
            u.save()

            if username in DOCTORS:
                specialization, fee = DOCTORS[username]
                DoctorProfile.objects.update_or_create(
                    user=u, defaults={"hospital": hospital, "specialization": specialization, "consultation_fee": fee}
                )
            if username in PATIENTS:
                phone, sex, age = PATIENTS[username]
                PatientProfile.objects.update_or_create(
                    user=u, defaults={"hospital": hospital, "phone": phone, "sex": sex, "age": age}
                )
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS(f"Demo data ready for {hospital}."))
