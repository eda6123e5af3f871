import logging

from django.db import connection
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)


@csrf_exempt
@require_GET
def health_check(request):
    """Liveness plus a trivial database round trip"""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        database = "error"

    status_code = 200 if database == "ok" else 503
    return JsonResponse({"status": "ok" if database == "ok" else "degraded", "database": database}, status=status_code)
