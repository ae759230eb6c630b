# care/management/commands/ensure_test_users.py
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from care.models import DoctorProfile, PatientProfile, User
from care.services.references import patient_reference

TEST_SET = [
    ("admin1", "admin"),
    ("staff1", "staff"),
    ("doctor1", "doctor"),
    ("patient1", "patient"),
]


class Command(BaseCommand):
    help = "Ensure one test user per role exists with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="Clinic#2024", help="password set on every test user")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True,
                          "email": f"{username}@clinic.test"},
            )
            if not created:
                # reset password, role and activation
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            if role == User.ROLE_ADMIN and not u.is_superuser:
                u.is_staff = u.is_superuser = True
                u.save(update_fields=["is_staff", "is_superuser"])
            if role == User.ROLE_PATIENT:
                PatientProfile.objects.get_or_create(user=u, defaults={"reference_number": patient_reference()})
            if role == User.ROLE_DOCTOR:
                DoctorProfile.objects.get_or_create(user=u)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
