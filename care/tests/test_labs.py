import datetime
import json

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from django.utils import timezone

from care.models import Notification, PatientRecord

pytestmark = pytest.mark.django_db

RESULTS = [
    {'name': 'Hemoglobin', 'value': '13.5', 'unit': 'g/dL', 'reference_range': '12-16', 'flag': 'normal'},
    {'name': 'WBC', 'value': '12.1', 'unit': '10^9/L', 'reference_range': '4-11', 'flag': 'high'},
]


def book(client, day=None, lab_type='blood_test', **extra):
    day = day or timezone.localdate() + datetime.timedelta(days=2)
    payload = {'lab_type': lab_type, 'preferred_date': day.isoformat(), 'preferred_time': '08:30'}
    payload.update(extra)
    return client.post(reverse('book_lab'), payload, format='json')


def test_lab_types_listed(client_for, patient):
    r = client_for(patient).get(reverse('lab_types'))
    values = [t['value'] for t in r.data['data']]
    assert 'blood_test' in values and 'x_ray' in values


def test_booking_creates_pending_record_and_alerts_staff(client_for, patient, staff, admin_user):
    r = book(client_for(patient), notes='fasting since 10pm')
    assert r.status_code == 201
    data = r.data['data']
    assert data['type'] == 'laboratory'
    assert data['status'] == 'pending'
    assert data['labType'] == 'blood_test'
    assert data['preferredTime'] == '08:30'
    for user in (staff, admin_user):
        assert Notification.objects.filter(user=user, type=Notification.TYPE_LAB_REQUEST).count() == 1


def test_booking_validation(client_for, patient):
    c = client_for(patient)
    assert book(c, day=timezone.localdate() - datetime.timedelta(days=1)).status_code == 400
    assert book(c, lab_type='dna_sequencing').status_code == 400


def test_staff_records_results(client_for, patient, staff, doctor):
    record_id = book(client_for(patient)).data['data']['id']
    c = client_for(staff)

    pending = c.get(reverse('staff_pending_labs'))
    assert [r['id'] for r in pending.data['data']] == [record_id]

    r = c.post(reverse('staff_lab_results', args=[record_id]),
               {'lab_results': RESULTS, 'summary': 'Mild leukocytosis', 'doctor_id': doctor.id}, format='json')
    assert r.status_code == 200
    data = r.data['data']
    assert data['status'] == 'completed'
    assert data['doctorId'] == doctor.id
    assert [item['flag'] for item in data['labResults']] == ['normal', 'high']
    assert Notification.objects.filter(user=patient, type=Notification.TYPE_LAB_RESULTS_AVAILABLE).exists()

    assert c.get(reverse('staff_pending_labs')).data['data'] == []
    mine = client_for(patient).get(reverse('my_lab_results'))
    assert [r['id'] for r in mine.data['data']] == [record_id]


def test_results_as_multipart_with_scan(client_for, patient, staff):
    record_id = book(client_for(patient)).data['data']['id']
    scan = SimpleUploadedFile('scan.pdf', b'%PDF-1.4 scan', content_type='application/pdf')
    r = client_for(staff).post(reverse('staff_lab_results', args=[record_id]),
                               {'lab_results': json.dumps(RESULTS), 'scan': scan}, format='multipart')
    assert r.status_code == 200
    assert r.data['data']['labScanUrl']
    assert len(r.data['data']['labResults']) == 2


def test_results_need_content(client_for, patient, staff):
    record_id = book(client_for(patient)).data['data']['id']
    c = client_for(staff)
    assert c.post(reverse('staff_lab_results', args=[record_id]), {}, format='json').status_code == 400
    bad = [{'name': 'Glucose', 'flag': 'weird'}]
    assert c.post(reverse('staff_lab_results', args=[record_id]), {'lab_results': bad},
                  format='json').status_code == 400
    assert PatientRecord.objects.get(id=record_id).status == PatientRecord.STATUS_PENDING


def test_patient_access_and_pdf(client_for, patient, other_patient, staff):
    record_id = book(client_for(patient)).data['data']['id']
    # not completed yet
    assert client_for(patient).get(reverse('lab_result_pdf', args=[record_id])).status_code == 404
    client_for(staff).post(reverse('staff_lab_results', args=[record_id]), {'lab_results': RESULTS},
                           format='json')

    r = client_for(patient).get(reverse('lab_result_pdf', args=[record_id]))
    assert r.status_code == 200
    assert r.content.startswith(b'%PDF')
    assert client_for(other_patient).get(reverse('lab_result_pdf', args=[record_id])).status_code == 404
    assert client_for(other_patient).get(reverse('my_lab_result_detail', args=[record_id])).status_code == 404


def test_staff_filters_and_deletes(client_for, patient, staff):
    c = client_for(patient)
    blood = book(c).data['data']['id']
    book(c, lab_type='x_ray')
    s = client_for(staff)
    r = s.get(reverse('staff_labs'), {'lab_type': 'x_ray'})
    assert len(r.data['data']) == 1
    assert s.delete(reverse('staff_lab_detail', args=[blood])).status_code == 200
    assert len(s.get(reverse('staff_labs')).data['data']) == 1
    assert client_for(patient).get(reverse('staff_labs')).status_code == 403
