import logging
from typing import Any, Dict, Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

from care.models import Notification, User

logger = logging.getLogger(__name__)


def user_group_name(user_id: int) -> str:
    return f"notify.{user_id}"


def serialize_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'data': n.data,
        'relatedType': n.related_type or None,
        'relatedId': n.related_id,
        'read': n.is_read,
        'readAt': n.read_at.isoformat() if n.read_at else None,
        'createdAt': n.created_at.isoformat(),
    }


def _push(n: Notification) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(
            user_group_name(n.user_id),
            {'type': 'notification.created', 'payload': serialize_notification(n)},
        )
    except Exception:
        # the row is already stored; clients catch up through the list endpoint
        logger.warning('notification push failed for user %s', n.user_id, exc_info=True)


def notify(user: User, ntype: str, title: str, message: str, *, related: Any = None,
           related_type: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> Notification:
    n = Notification.objects.create(
        user=user,
        type=ntype,
        title=title,
        message=message,
        data=data or {},
        related_type=related_type or (related._meta.model_name if related is not None else ''),
        related_id=getattr(related, 'pk', None),
    )
    transaction.on_commit(lambda: _push(n))
    return n


def notify_many(users: Iterable[User], ntype: str, title: str, message: str, **kwargs) -> list[Notification]:
    return [notify(u, ntype, title, message, **kwargs) for u in users]


def notifications_for(user: User, *, unread_only: bool = False):
    qs = Notification.objects.filter(user=user)
    if unread_only:
        qs = qs.filter(read_at__isnull=True)
    return qs.order_by('-created_at', '-id')


def unread_count(user: User) -> int:
    return Notification.objects.filter(user=user, read_at__isnull=True).count()


def mark_all_read(user: User, *, types: Optional[Iterable[str]] = None) -> int:
    qs = Notification.objects.filter(user=user, read_at__isnull=True)
    if types:
        qs = qs.filter(type__in=list(types))
    return qs.update(read_at=timezone.now())
