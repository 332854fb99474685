"""
AMENADE Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.health import health_check, readiness_check, detailed_health


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "AMENADE Administration"
admin.site.site_title = "AMENADE Admin"
admin.site.index_title = "Marketplace operations"


@api_view(['GET'])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'AMENADE API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'login': '/api/auth/login/',
                'refresh': '/api/auth/refresh/',
                'register': '/api/auth/register/',
            },
            'users': '/api/users/',
            'packages': '/api/packages/',
            'trips': '/api/trips/',
            'assignments': '/api/assignments/',
            'chats': '/api/chats/',
            'messages': '/api/messages/',
            'notifications': '/api/notifications/',
            'wallet': '/api/wallet/',
            'transactions': '/api/transactions/',
            'disputes': '/api/disputes/',
            'dashboard': '/api/dashboard/overview/',
            'docs': '/api/docs/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Health
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),
    path('health/detailed/', detailed_health, name='health-detailed'),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API Root
    path('api/', api_root, name='api-root'),

    # Admin dashboard
    path('api/dashboard/', include('dashboard.urls')),

    # App URLs
    path('api/', include('core.urls')),
    path('api/', include('logistics.urls')),
    path('api/', include('messaging.urls')),
    path('api/', include('finance.urls')),
    path('api/', include('support.urls')),
]
