import logging
import time

logger = logging.getLogger(__name__)


class ActivityLogMiddleware:
    """Log method, path, user and status for every API request."""
    PREFIX = '/api/'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ''
        if not path.startswith(self.PREFIX):
            return self.get_response(request)
        started = time.monotonic()
        response = self.get_response(request)
        user = getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else None
        logger.info(
            '%s %s user=%s status=%s %.1fms',
            request.method, path, user_id, response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response
