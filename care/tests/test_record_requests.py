import datetime

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from care.models import Notification, PatientRecord, RecordRequest
from care.services import record_requests as svc

pytestmark = pytest.mark.django_db


@pytest.fixture
def record(patient, doctor):
    return PatientRecord.objects.create(patient=patient, assigned_doctor=doctor, diagnosis='asthma')


@pytest.fixture
def lab_record(patient):
    return PatientRecord.objects.create(patient=patient, record_type=PatientRecord.TYPE_LABORATORY,
                                        lab_type='blood_test')


def ask(client, record, reason='for my new physician'):
    return client.post(reverse('my_requests'), {'record_id': record.id, 'reason': reason}, format='json')


def test_patient_requests_own_record(client_for, patient, record, lab_record):
    c = client_for(patient)
    r = ask(c, record)
    assert r.status_code == 201
    assert r.data['data']['status'] == 'pending'
    assert r.data['data']['recordType'] == 'medical_record'
    assert ask(c, lab_record).data['data']['recordType'] == 'lab_record'
    assert len(c.get(reverse('my_requests')).data['data']) == 2


def test_duplicate_and_foreign_requests(client_for, patient, other_patient, record):
    c = client_for(patient)
    assert ask(c, record).status_code == 201
    assert ask(c, record).status_code == 400
    assert ask(client_for(other_patient), record).status_code == 404


def test_approval_grants_access_until_expiry(client_for, patient, staff, record):
    req_id = ask(client_for(patient), record).data['data']['id']
    c = client_for(patient)
    assert c.get(reverse('my_request_record', args=[req_id])).status_code == 403

    r = client_for(staff).post(reverse('staff_decide_request', args=[req_id]), {'action': 'approve', 'days': 3},
                               format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'approved'
    assert r.data['data']['expiresAt']
    assert Notification.objects.filter(user=patient, type=Notification.TYPE_RECORD_REQUEST_UPDATE).exists()

    r = c.get(reverse('my_request_record', args=[req_id]))
    assert r.status_code == 200
    assert r.data['data']['diagnosis'] == 'asthma'

    later = timezone.now() + datetime.timedelta(days=4)
    with pytest.raises(PermissionDenied):
        svc.granted_record(patient, req_id, now=later)


def test_deny_needs_reason_and_decisions_are_final(client_for, patient, staff, record):
    req_id = ask(client_for(patient), record).data['data']['id']
    c = client_for(staff)
    assert c.post(reverse('staff_decide_request', args=[req_id]), {'action': 'deny'},
                  format='json').status_code == 400
    r = c.post(reverse('staff_decide_request', args=[req_id]), {'action': 'deny', 'reason': 'identity not verified'},
               format='json')
    assert r.status_code == 200
    assert r.data['data']['deniedReason'] == 'identity not verified'

    r = c.post(reverse('staff_decide_request', args=[req_id]), {'action': 'approve'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_transition'

    # a denied request does not block asking again
    assert ask(client_for(patient), record).status_code == 201


def test_staff_listing_and_detail(client_for, patient, staff, record, lab_record):
    ask(client_for(patient), record)
    ask(client_for(patient), lab_record)
    c = client_for(staff)
    assert len(c.get(reverse('staff_requests')).data['data']) == 2
    labs = c.get(reverse('staff_requests'), {'type': 'lab_record'}).data['data']
    assert len(labs) == 1
    detail = c.get(reverse('staff_request_detail', args=[labs[0]['id']]))
    assert detail.data['data']['record']['id'] == lab_record.id
    assert client_for(patient).get(reverse('staff_requests')).status_code == 403


def test_expire_command_closes_old_approvals(patient, staff, record):
    req = svc.create_request(patient, record_id=record.id, reason='copy')
    past = timezone.now() - datetime.timedelta(days=30)
    svc.decide_request(staff, req, approve=True, now=past)
    assert svc.expired_approvals().count() == 1

    call_command('expire_record_requests', '--purge')
    req.refresh_from_db()
    assert req.status == RecordRequest.STATUS_DENIED
    assert req.denied_reason == 'access expired'
