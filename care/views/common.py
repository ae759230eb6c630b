from typing import Callable, Optional

from django.http import HttpResponse
from rest_framework.response import Response


def paginated(qs, serialize: Callable, *, page: Optional[int] = None, page_size: Optional[int] = None,
              extra: Optional[dict] = None) -> Response:
    page = page or 1
    page_size = min(100, page_size or 20)
    total = qs.count()
    start = (page - 1) * page_size
    payload = {
        'ok': True,
        'data': [serialize(obj) for obj in qs[start:start + page_size]],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size},
    }
    if extra:
        payload.update(extra)
    return Response(payload)


def pdf_response(content: bytes, filename: str) -> HttpResponse:
    resp = HttpResponse(content, content_type='application/pdf')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    return resp
