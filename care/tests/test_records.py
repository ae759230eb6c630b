import datetime

import pytest
from django.urls import reverse

from care.models import Appointment, AuditEvent, Notification, PatientRecord, Prescription
from care.services import appointments as appointment_svc

pytestmark = pytest.mark.django_db


def record_payload(patient, **extra):
    payload = {
        'patient_id': patient.id,
        'diagnosis': 'Acute bronchitis <script>alert(1)</script>',
        'vital_signs': {'blood_pressure': '120/80', 'heart_rate': 72, 'temperature': '37.2'},
        'prescriptions': [
            {'medication': 'Amoxicillin', 'dosage': '500mg', 'frequency': '3x a day', 'duration': '7 days'},
        ],
    }
    payload.update(extra)
    return payload


def test_doctor_creates_record_with_prescription(client_for, doctor, patient):
    r = client_for(doctor).post(reverse('records'), record_payload(patient), format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['doctorId'] == doctor.id
    assert '<script>' not in data['diagnosis']
    assert data['vitalSigns'] == {'blood_pressure': '120/80', 'heart_rate': 72, 'temperature': 37.2}
    assert len(data['prescriptions']) == 1
    assert data['prescriptions'][0]['referenceNumber']

    assert Prescription.objects.get().doctor == doctor
    assert Notification.objects.filter(user=patient, type=Notification.TYPE_MEDICAL_RECORD_UPDATED).exists()
    assert AuditEvent.objects.filter(action='record_create', object_id=data['id']).exists()


def test_out_of_range_vital_sign_rejected(client_for, doctor, patient):
    r = client_for(doctor).post(reverse('records'),
                                record_payload(patient, vital_signs={'heart_rate': 500}), format='json')
    assert r.status_code == 400


def test_record_completes_confirmed_appointment(client_for, doctor, patient, schedule, next_week):
    a = appointment_svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9),
                                         reason='visit')
    appointment_svc.change_status(doctor, a, Appointment.STATUS_CONFIRMED)
    r = client_for(doctor).post(reverse('records'), record_payload(patient, appointment_id=a.id), format='json')
    assert r.status_code == 201
    a.refresh_from_db()
    assert a.status == Appointment.STATUS_COMPLETED
    assert a.transitions.filter(to_status='completed').exists()


def test_doctor_cannot_use_another_doctors_appointment(client_for, doctor, other_doctor, patient, schedule,
                                                      next_week):
    a = appointment_svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9),
                                         reason='visit')
    r = client_for(other_doctor).post(reverse('records'), record_payload(patient, appointment_id=a.id),
                                      format='json')
    assert r.status_code == 403


def test_staff_vitals_notify_assigned_doctor(client_for, doctor, staff, patient, schedule, next_week):
    a = appointment_svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(10),
                                         reason='visit')
    r = client_for(staff).post(
        reverse('records'),
        {'patient_id': patient.id, 'record_type': 'medical_checkup', 'appointment_id': a.id,
         'status': 'pending', 'vital_signs': {'blood_pressure': '130/85', 'oxygen_saturation': 98}},
        format='json',
    )
    assert r.status_code == 201
    assert r.data['data']['doctorId'] == doctor.id
    n = Notification.objects.get(user=doctor, type=Notification.TYPE_VITAL_SIGNS_SUBMITTED)
    assert n.data['record_id'] == r.data['data']['id']


def test_visibility_by_role(client_for, doctor, other_doctor, patient, other_patient, staff):
    mine = PatientRecord.objects.create(patient=patient, assigned_doctor=doctor, diagnosis='flu')
    PatientRecord.objects.create(patient=other_patient, diagnosis='sprain')

    assert client_for(patient).get(reverse('records')).data['pagination']['total'] == 1
    assert client_for(doctor).get(reverse('records')).data['pagination']['total'] == 1
    assert client_for(other_doctor).get(reverse('records')).data['pagination']['total'] == 0
    assert client_for(staff).get(reverse('records')).data['pagination']['total'] == 2

    assert client_for(other_patient).get(reverse('record_detail', args=[mine.id])).status_code == 404
    r = client_for(patient).get(reverse('record_detail', args=[mine.id]))
    assert r.status_code == 200
    assert r.data['data']['diagnosis'] == 'flu'


def test_patient_cannot_write_records(client_for, patient):
    record = PatientRecord.objects.create(patient=patient)
    assert client_for(patient).post(reverse('records'), record_payload(patient), format='json').status_code == 403
    r = client_for(patient).patch(reverse('record_detail', args=[record.id]), {'diagnosis': 'x'}, format='json')
    assert r.status_code == 403


def test_update_and_soft_delete(client_for, doctor, patient):
    record = PatientRecord.objects.create(patient=patient, assigned_doctor=doctor, diagnosis='flu')
    c = client_for(doctor)
    r = c.patch(reverse('record_detail', args=[record.id]),
                {'diagnosis': 'influenza A', 'prescriptions': [
                    {'medication': 'Oseltamivir', 'dosage': '75mg', 'frequency': '2x a day'}]},
                format='json')
    assert r.status_code == 200
    assert r.data['data']['diagnosis'] == 'influenza A'
    assert len(r.data['data']['prescriptions']) == 1

    assert c.delete(reverse('record_detail', args=[record.id])).status_code == 200
    assert not PatientRecord.objects.filter(id=record.id).exists()
    assert PatientRecord.all_objects.filter(id=record.id, deleted_at__isnull=False).exists()
    assert c.get(reverse('record_detail', args=[record.id])).status_code == 404


def test_history_and_prescription_status(client_for, doctor, patient):
    created = client_for(doctor).post(reverse('records'), record_payload(patient), format='json').data['data']
    c = client_for(doctor)

    history = c.get(reverse('patient_history', args=[patient.id]))
    assert history.status_code == 200
    assert [r['id'] for r in history.data['data']] == [created['id']]
    assert client_for(patient).get(reverse('patient_history', args=[patient.id])).status_code == 403

    prescription_id = created['prescriptions'][0]['id']
    r = c.post(reverse('prescription_status', args=[prescription_id]), {'status': 'completed'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'completed'


def test_record_pdfs(client_for, doctor, patient):
    created = client_for(doctor).post(reverse('records'), record_payload(patient), format='json').data['data']
    c = client_for(patient)
    for name, args in (
        ('record_pdf', [created['id']]),
        ('record_prescriptions_pdf', [created['id']]),
        ('prescription_pdf', [created['prescriptions'][0]['id']]),
    ):
        r = c.get(reverse(name, args=args))
        assert r.status_code == 200, name
        assert r.content.startswith(b'%PDF')


def test_doctor_cannot_change_another_doctors_record(client_for, doctor, other_doctor, patient, next_week):
    # a cancelled visit still makes the record readable by other_doctor
    Appointment.objects.create(reference_number='APT-OLD-0001', patient=patient, doctor=other_doctor,
                               appointment_date=next_week, appointment_time=datetime.time(9), reason='visit',
                               status=Appointment.STATUS_CANCELLED)
    created = client_for(doctor).post(reverse('records'), record_payload(patient), format='json').data['data']
    c = client_for(other_doctor)
    assert c.get(reverse('record_detail', args=[created['id']])).status_code == 200

    r = c.patch(reverse('record_detail', args=[created['id']]),
                {'diagnosis': 'overwritten', 'prescriptions': [{'medication': 'Placebo'}]}, format='json')
    assert r.status_code == 404
    assert c.delete(reverse('record_detail', args=[created['id']])).status_code == 404
    prescription_id = created['prescriptions'][0]['id']
    assert c.post(reverse('prescription_status', args=[prescription_id]), {'status': 'cancelled'},
                  format='json').status_code == 404

    record = PatientRecord.objects.get(id=created['id'])
    assert record.diagnosis != 'overwritten'
    assert record.prescriptions.count() == 1
    assert Prescription.objects.get(id=prescription_id).status == 'active'
