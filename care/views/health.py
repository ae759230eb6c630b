"""Liveness probe used by the container orchestrator."""
import logging

from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Ping the default database and cache; 500 when the database is unreachable."""
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        logger.error('health check failed: %s', e)
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=500)
    cache.set('healthz', 1, 5)
    return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'cache': cache.get('healthz') == 1})
