import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class BookingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Appointment could not be booked.'
    default_code = 'booking_error'


class SlotUnavailable(BookingError):
    default_detail = 'The selected time slot is no longer available.'
    default_code = 'slot_unavailable'


class InvalidTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Status change not allowed.'
    default_code = 'invalid_transition'


class UploadRejected(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'File upload rejected.'
    default_code = 'upload_rejected'


class ScheduleConflict(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Schedule overlaps an existing window.'
    default_code = 'schedule_conflict'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    code = getattr(exc, 'default_code', None) or 'api_error'
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    if isinstance(exc, APIException) and code in ('error', 'invalid'):
        code = 'api_error'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
