from django.http import QueryDict
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import MedicalFile
from care.permissions import IsPatientRole
from care.serializers.misc import UploadSerializer
from care.services import uploads as svc


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def medical_files(request):
    """
    List own files, or upload new ones.

    Accepts multipart ``files`` parts or a JSON body with
    ``base64_files: [{name, data}]`` where ``data`` is a data URL.
    """
    if request.method == 'GET':
        qs = MedicalFile.objects.filter(owner=request.user).order_by('-created_at')
        return Response({'ok': True, 'files': [svc.serialize_file(f) for f in qs]})

    files = request.FILES.getlist('files') if request.FILES else []
    payload = request.data
    if isinstance(payload, QueryDict):
        payload = {'record_id': payload.get('record_id') or None}
    s = UploadSerializer(data=payload)
    s.is_valid(raise_exception=True)
    base64_files = s.validated_data.get('base64_files') or []
    if not files and not base64_files:
        return Response({'ok': False, 'error': {'code': 'no_files', 'message': 'no files were uploaded'}},
                        status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    stored = svc.store_uploads(request.user, files=files, base64_files=base64_files,
                               record_id=s.validated_data.get('record_id'))
    return Response({'ok': True, 'success': True, 'files': [svc.serialize_file(f) for f in stored]},
                    status=status.HTTP_201_CREATED)


medical_files.cls.throttle_scope = 'upload'


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsPatientRole])
def medical_file_detail(request, pk: int):
    svc.delete_upload(request.user, pk)
    return Response({'ok': True})
