"""
Audit trail for security-relevant and clinical actions.

Every call writes an :class:`AuditEvent` row and mirrors a one-line
summary to the ``care.audit`` logger.
"""
import logging
from typing import Any, Dict, Optional

from care.models import AuditEvent, User

logger = logging.getLogger('care.audit')


def client_ip(request) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    return forwarded.split(',')[0].strip() or request.META.get('REMOTE_ADDR')


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None,
               request=None) -> AuditEvent:
    actor = user if getattr(user, 'is_authenticated', False) and getattr(user, 'id', None) else None
    detail = dict(detail or {})
    ip = client_ip(request)
    if ip:
        detail.setdefault('ip', ip)
    event = AuditEvent.objects.create(
        user=actor, action=action, object_type=object_type, object_id=object_id, detail=detail,
    )
    logger.info('%s by %s on %s:%s', action, actor.id if actor else '-', object_type or '-', object_id or '-')
    return event
