from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Notification
from care.serializers.misc import NotificationListQuerySerializer
from care.services import notifications as svc
from care.views.common import paginated


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_notifications(request):
    q = NotificationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.notifications_for(request.user, unread_only=vd['unread'])
    return paginated(qs, svc.serialize_notification, page=vd.get('page'), page_size=vd.get('pageSize'),
                     extra={'unreadCount': svc.unread_count(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_read(request, pk: int):
    # notifications of other users are reported as missing
    n = get_object_or_404(Notification, pk=pk, user=request.user)
    n.mark_as_read()
    return Response({'ok': True, 'data': svc.serialize_notification(n)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_all_read(request):
    return Response({'ok': True, 'count': svc.mark_all_read(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_appointments_read(request):
    return Response({'ok': True, 'count': svc.mark_all_read(request.user, types=Notification.APPOINTMENT_TYPES)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread_count(request):
    return Response({'ok': True, 'count': svc.unread_count(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def recent(request):
    items = svc.notifications_for(request.user)[:5]
    return Response({
        'ok': True,
        'data': [svc.serialize_notification(n) for n in items],
        'unreadCount': svc.unread_count(request.user),
    })
