"""
AMENADE Monitoring & Health Check Endpoints
===========================================

Provides:
1. /health/ - Liveness check (load balancers/Docker)
2. /health/ready/ - Readiness check (database, cache, channel layer)
3. /health/detailed/ - Marketplace counters (staff only)
"""

import time
import logging
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger('amenade.monitoring')

SERVICE_NAME = 'amenade-api'


def _timed(check):
    """Run check() and return (result, elapsed_ms)."""
    start = time.time()
    result = check()
    return result, round((time.time() - start) * 1000, 2)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return connection.vendor


def _check_cache():
    cache.set('_healthcheck_ping', 'pong', 10)
    if cache.get('_healthcheck_ping') != 'pong':
        raise RuntimeError("Cache read/write mismatch")
    return cache.__class__.__name__


def _check_channel_layer():
    from channels.layers import get_channel_layer
    layer = get_channel_layer()
    if layer is None:
        raise RuntimeError("No channel layer configured")
    return layer.__class__.__name__


@csrf_exempt
@require_GET
def health_check(request):
    """Returns 200 while the Django process is alive."""
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    200 when the database and cache answer, 503 otherwise.
    A missing channel layer only degrades real-time features.
    """
    checks = {}
    all_healthy = True

    for name, check, critical in (
        ('database', _check_database, True),
        ('cache', _check_cache, True),
        ('channels', _check_channel_layer, False),
    ):
        try:
            backend, elapsed = _timed(check)
            checks[name] = {
                'status': 'healthy',
                'backend': backend,
                'response_time_ms': elapsed,
            }
        except Exception as e:
            checks[name] = {
                'status': 'unhealthy' if critical else 'degraded',
                'error': str(e),
            }
            if critical:
                all_healthy = False
                logger.error(f"Health check - {name} unhealthy: {e}")
            else:
                logger.warning(f"Health check - {name} degraded: {e}")

    return JsonResponse({
        'status': 'healthy' if all_healthy else 'unhealthy',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if all_healthy else 503)


@csrf_exempt
@require_GET
def detailed_health(request):
    if not request.user.is_authenticated or not request.user.is_staff:
        return JsonResponse({
            'error': 'Unauthorized',
            'message': 'Staff access required for detailed diagnostics',
        }, status=403)

    from core.models import User
    from logistics.models import Package, PackageStatus, Trip, TripStatus
    from finance.models import Transaction

    today = timezone.now().date()
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'stats': {
            'users': {
                'total': User.objects.count(),
                'verified': User.objects.filter(is_verified=True).count(),
            },
            'packages': {
                'posted': Package.objects.filter(status=PackageStatus.POSTED).count(),
                'in_transit': Package.objects.filter(status=PackageStatus.IN_TRANSIT).count(),
                'delivered_today': Package.objects.filter(delivered_at__date=today).count(),
            },
            'trips': {
                'open': Trip.objects.filter(status__in=[TripStatus.POSTED, TripStatus.ACTIVE]).count(),
            },
            'transactions_today': Transaction.objects.filter(created_at__date=today).count(),
        },
    })
