"""
Management command to populate the database with demo data.
"""
import datetime
import random
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from care.models import (
    Appointment, AppointmentTransition, DoctorProfile, DoctorSchedule, DoctorService, HospitalService,
    PatientProfile, User,
)
from care.services.references import appointment_reference, patient_reference
from care.services.slots import available_slot_times

HOSPITAL_SERVICES = [
    ('General Consultation', 'Consultation', Decimal('500.00'), 30),
    ('Annual Physical Examination', 'Check-up', Decimal('1500.00'), 60),
    ('Complete Blood Count', 'Laboratory', Decimal('350.00'), 15),
    ('Urinalysis', 'Laboratory', Decimal('150.00'), 15),
    ('Chest X-Ray', 'Imaging', Decimal('800.00'), 20),
    ('Ultrasound', 'Imaging', Decimal('1200.00'), 30),
    ('ECG', 'Cardiology', Decimal('600.00'), 20),
]

DOCTORS = [
    ('dr_santos', 'Maria', 'Santos', 'Internal Medicine', Decimal('600.00')),
    ('dr_reyes', 'Jose', 'Reyes', 'Pediatrics', Decimal('550.00')),
    ('dr_cruz', 'Ana', 'Cruz', 'Cardiology', Decimal('900.00')),
]

PATIENTS = [
    ('juan', 'Juan', 'Dela Cruz', 'M'),
    ('liza', 'Liza', 'Garcia', 'F'),
    ('mark', 'Mark', 'Lim', 'M'),
    ('rosa', 'Rosa', 'Mendoza', 'F'),
]

REASONS = ['Follow-up check', 'Persistent cough', 'Headache and dizziness', 'Routine consultation', 'Chest pain']


class Command(BaseCommand):
    help = 'Populate database with demo data'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='Clinic#2024')

    @transaction.atomic
    def handle(self, *args, **options):
        self.password = make_password(options['password'])
        self.stdout.write('Creating demo data...')

        self.create_hospital_services()
        doctors = self.create_doctors()
        patients = self.create_patients()
        self.create_schedules(doctors)
        self.create_appointments(doctors, patients)

        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_hospital_services(self):
        for name, category, price, minutes in HOSPITAL_SERVICES:
            HospitalService.objects.get_or_create(
                name=name, defaults={'category': category, 'price': price, 'duration_minutes': minutes},
            )
        self.stdout.write(f'  services: {len(HOSPITAL_SERVICES)}')

    def create_doctors(self):
        doctors = []
        for username, first, last, specialty, fee in DOCTORS:
            user, _ = User.objects.get_or_create(username=username, defaults={
                'first_name': first, 'last_name': last, 'role': User.ROLE_DOCTOR,
                'email': f'{username}@clinic.test', 'password': self.password,
            })
            DoctorProfile.objects.get_or_create(user=user, defaults={'specialty': specialty, 'consultation_fee': fee})
            DoctorService.objects.get_or_create(doctor=user, name='Consultation',
                                                defaults={'price': fee, 'duration_minutes': 30})
            doctors.append(user)
        self.stdout.write(f'  doctors: {len(doctors)}')
        return doctors

    def create_patients(self):
        patients = []
        for username, first, last, sex in PATIENTS:
            user, _ = User.objects.get_or_create(username=username, defaults={
                'first_name': first, 'last_name': last, 'role': User.ROLE_PATIENT,
                'email': f'{username}@mail.test', 'password': self.password,
            })
            PatientProfile.objects.get_or_create(user=user, defaults={
                'reference_number': patient_reference(), 'sex': sex,
                'birth_date': datetime.date(1985 + random.randint(0, 20), random.randint(1, 12), random.randint(1, 28)),
            })
            patients.append(user)
        self.stdout.write(f'  patients: {len(patients)}')
        return patients

    def create_schedules(self, doctors):
        created = 0
        for doctor in doctors:
            # Monday to Friday mornings and afternoons
            for dow in range(1, 6):
                for start, end in ((datetime.time(8), datetime.time(12)), (datetime.time(13), datetime.time(17))):
                    _, was_created = DoctorSchedule.objects.get_or_create(
                        doctor=doctor, day_of_week=dow, start_time=start, end_time=end, specific_date=None,
                        defaults={'approval_status': DoctorSchedule.APPROVAL_APPROVED, 'max_appointments': 8},
                    )
                    created += int(was_created)
        self.stdout.write(f'  schedules: {created}')

    def create_appointments(self, doctors, patients):
        today = timezone.localdate()
        created = 0
        for offset in range(1, 8):
            day = today + datetime.timedelta(days=offset)
            for doctor in doctors:
                free = available_slot_times(doctor, day)
                if not free:
                    continue
                at = random.choice(free)
                patient = random.choice(patients)
                status = random.choice([Appointment.STATUS_PENDING, Appointment.STATUS_CONFIRMED])
                a = Appointment.objects.create(
                    reference_number=appointment_reference(),
                    patient=patient, doctor=doctor, appointment_date=day, appointment_time=at,
                    reason=random.choice(REASONS), status=status, fee=doctor.doctor_profile.consultation_fee,
                )
                AppointmentTransition.objects.create(appointment=a, from_status='', to_status=Appointment.STATUS_PENDING,
                                                     operator=patient, reason='booked')
                if status == Appointment.STATUS_CONFIRMED:
                    AppointmentTransition.objects.create(appointment=a, from_status=Appointment.STATUS_PENDING,
                                                         to_status=status, operator=doctor, reason='seed')
                created += 1
        self.stdout.write(f'  appointments: {created}')
