import json

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.urls import reverse

from care.models import Notification
from care.realtime.consumers import NotificationsConsumer
from care.services import notifications as svc

pytestmark = pytest.mark.django_db


def make(user, ntype=Notification.TYPE_APPOINTMENT_REQUEST, title='Hello'):
    return svc.notify(user, ntype, title, 'message body', related_type='appointment', data={'k': 1})


class RecordingLayer:
    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))


def test_notify_pushes_after_commit(monkeypatch, patient, django_capture_on_commit_callbacks):
    layer = RecordingLayer()
    monkeypatch.setattr(svc, 'get_channel_layer', lambda: layer)
    with django_capture_on_commit_callbacks(execute=True):
        n = make(patient)
    assert layer.sent == [(f'notify.{patient.id}', {'type': 'notification.created',
                                                    'payload': svc.serialize_notification(n)})]


def test_failed_push_keeps_the_row(monkeypatch, patient, django_capture_on_commit_callbacks):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    monkeypatch.setattr(svc, 'get_channel_layer', lambda: BrokenLayer())
    with django_capture_on_commit_callbacks(execute=True):
        make(patient)
    assert Notification.objects.filter(user=patient).count() == 1


def test_list_and_unread_count(client_for, patient, other_patient):
    for i in range(3):
        make(patient, title=f'n{i}')
    make(other_patient)
    c = client_for(patient)

    r = c.get(reverse('list_notifications'))
    assert r.status_code == 200
    assert r.data['pagination']['total'] == 3
    assert r.data['unreadCount'] == 3
    assert [n['title'] for n in r.data['data']] == ['n2', 'n1', 'n0']

    assert c.get(reverse('unread_count')).data['count'] == 3
    assert len(c.get(reverse('recent')).data['data']) == 3


def test_mark_read_only_own(client_for, patient, other_patient):
    mine = make(patient)
    theirs = make(other_patient)
    c = client_for(patient)

    r = c.post(reverse('mark_read', args=[mine.id]))
    assert r.status_code == 200
    assert r.data['data']['read'] is True

    r = c.post(reverse('mark_read', args=[theirs.id]))
    assert r.status_code == 404
    theirs.refresh_from_db()
    assert theirs.read_at is None

    r = c.get(reverse('list_notifications'), {'unread': 'true'})
    assert r.data['pagination']['total'] == 0


def test_mark_all_and_appointment_types(client_for, patient):
    make(patient, Notification.TYPE_APPOINTMENT_CONFIRMED)
    make(patient, Notification.TYPE_APPOINTMENT_CANCELLED)
    make(patient, Notification.TYPE_LAB_RESULTS_AVAILABLE)
    c = client_for(patient)

    r = c.post(reverse('mark_appointments_read'))
    assert r.data['count'] == 2
    assert svc.unread_count(patient) == 1

    r = c.post(reverse('mark_all_read'))
    assert r.data['count'] == 1
    assert svc.unread_count(patient) == 0


def _with_user(app, user):
    async def wrapped(scope, receive, send):
        return await app(dict(scope, user=user), receive, send)
    return wrapped


def test_socket_delivers_notifications(patient):
    async def scenario():
        communicator = WebsocketCommunicator(_with_user(NotificationsConsumer.as_asgi(), patient),
                                             '/ws/notifications/')
        connected, _ = await communicator.connect()
        assert connected
        welcome = json.loads(await communicator.receive_from())
        assert welcome['type'] == 'welcome'

        await communicator.send_to(text_data='ping')
        assert json.loads(await communicator.receive_from()) == {'type': 'pong'}

        await get_channel_layer().group_send(
            svc.user_group_name(patient.id),
            {'type': 'notification.created', 'payload': {'id': 7, 'title': 'Lab Results Available'}},
        )
        message = json.loads(await communicator.receive_from())
        assert message == {'type': 'notification', 'notification': {'id': 7, 'title': 'Lab Results Available'}}
        await communicator.disconnect()

    async_to_sync(scenario)()


def test_anonymous_socket_is_refused():
    from django.contrib.auth.models import AnonymousUser

    async def scenario():
        communicator = WebsocketCommunicator(_with_user(NotificationsConsumer.as_asgi(), AnonymousUser()),
                                             '/ws/notifications/')
        connected, code = await communicator.connect()
        assert not connected
        assert code == 4401

    async_to_sync(scenario)()


@pytest.mark.django_db(transaction=True)
@pytest.mark.parametrize('kind', ['drf', 'jwt', 'bogus'])
def test_socket_token_query_authenticates(patient, kind):
    from django.contrib.auth.models import AnonymousUser
    from rest_framework.authtoken.models import Token
    from rest_framework_simplejwt.tokens import RefreshToken

    from care.realtime.auth import TokenAuthMiddleware

    raw = {
        'drf': lambda: Token.objects.create(user=patient).key,
        'jwt': lambda: str(RefreshToken.for_user(patient).access_token),
        'bogus': lambda: 'not-a-token',
    }[kind]()

    async def scenario():
        app = _with_user(TokenAuthMiddleware(NotificationsConsumer.as_asgi()), AnonymousUser())
        communicator = WebsocketCommunicator(app, f'/ws/notifications/?token={raw}')
        connected, code = await communicator.connect()
        if kind == 'bogus':
            assert not connected
            assert code == 4401
            return
        assert connected
        assert json.loads(await communicator.receive_from())['type'] == 'welcome'
        await communicator.disconnect()

    async_to_sync(scenario)()
