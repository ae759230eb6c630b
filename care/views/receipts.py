from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Receipt
from care.permissions import IsStaffRole
from care.serializers.records import ReceiptCreateSerializer
from care.services import pdf
from care.services import receipts as svc
from care.views.common import paginated, pdf_response


def _receipts():
    return Receipt.objects.select_related('patient', 'appointment', 'appointment__doctor', 'issued_by')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def receipts(request):
    """List receipts (``status``/``patientId`` filters) or issue one."""
    if request.method == 'POST':
        s = ReceiptCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        receipt = svc.issue_receipt(request.user, **s.validated_data)
        return Response({'ok': True, 'data': svc.serialize_receipt(receipt)}, status=status.HTTP_201_CREATED)
    qs = _receipts()
    if request.query_params.get('status'):
        qs = qs.filter(status=request.query_params['status'])
    if (request.query_params.get('patientId') or '').isdigit():
        qs = qs.filter(patient_id=int(request.query_params['patientId']))
    page = request.query_params.get('page')
    page_size = request.query_params.get('pageSize')
    return paginated(qs, svc.serialize_receipt,
                     page=int(page) if (page or '').isdigit() and int(page) > 0 else None,
                     page_size=int(page_size) if (page_size or '').isdigit() and int(page_size) > 0 else None)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def receipt_detail(request, pk: int):
    receipt = get_object_or_404(_receipts(), pk=pk)
    if request.method == 'DELETE':
        svc.delete_receipt(request.user, receipt)
        return Response({'ok': True})
    return Response({'ok': True, 'data': svc.serialize_receipt(receipt)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def receipt_pdf(request, pk: int):
    qs = _receipts()
    if request.user.role not in ('staff', 'admin'):
        qs = qs.filter(patient=request.user)
    receipt = get_object_or_404(qs, pk=pk)
    return pdf_response(pdf.render_receipt(receipt), f'{receipt.receipt_number}.pdf')
