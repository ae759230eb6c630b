"""
Role dashboards and administrator report downloads.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.permissions import IsAdminRole
from care.serializers.misc import ReportQuerySerializer
from care.services import reports
from care.services.audit import log_action
from care.views.common import pdf_response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Dashboard figures for the caller's role."""
    build = reports.DASHBOARDS.get(request.user.role)
    if build is None:
        raise PermissionDenied('no dashboard for this role')
    return Response({'ok': True, 'role': request.user.role, 'data': build(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    return Response({'ok': True, 'data': reports.admin_dashboard(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def report_download(request):
    q = ReportQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    content = reports.build_report(vd['type'], vd['start'], vd['end'])
    log_action(user=request.user, action='report_download', object_type='report',
               detail={'type': vd['type'], 'start': vd['start'].isoformat(), 'end': vd['end'].isoformat()})
    return pdf_response(content, f"{vd['type']}-report-{vd['start']:%Y%m%d}-{vd['end']:%Y%m%d}.pdf")
