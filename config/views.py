from django.db import connection
from django.db.utils import OperationalError
from django.http import JsonResponse
from rest_framework.views import exception_handler


def api_exception_handler(exc, context):
    """DRF errors (401, 403, 405...) in the ``{success, error}`` shape."""
    response = exception_handler(exc, context)
    if response is not None:
        data = response.data
        if isinstance(data, dict) and 'detail' in data:
            data = data['detail']
        response.data = {'success': False, 'error': data}
    return response


def health_check(request):
    """Liveness probe; reports whether the database answers."""
    try:
        connection.ensure_connection()
    except OperationalError:
        return JsonResponse({'status': 'unhealthy', 'database': 'unavailable'}, status=503)
    return JsonResponse({'status': 'ok', 'database': 'ok'})


def error_404(request, exception):
    """Custom 404 handler."""
    return JsonResponse({
        'success': False,
        'error': 'Not found',
        'status': 404
    }, status=404)


def error_500(request):
    """Custom 500 handler."""
    return JsonResponse({
        'success': False,
        'error': 'Internal server error',
        'status': 500
    }, status=500)
