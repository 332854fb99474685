"""
DASHBOARD App - Celery Tasks
"""

import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def refresh_overview_metrics():
    """Recompute the cached dashboard overview. Scheduled every 120 s."""
    from dashboard.services import DashboardMetricsService

    data = DashboardMetricsService.overview(refresh=True)
    logger.info(f"[CELERY] Dashboard overview refreshed at {data['generated_at']}")
    return {'generated_at': data['generated_at']}
