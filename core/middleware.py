"""
AMENADE Request Middleware
==========================

1. Per-IP request throttling backed by the Django cache
2. Response hardening headers
"""

import logging
from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('amenade.security')

# (max_requests, window_seconds) per path prefix; the longest matching prefix wins
DEFAULT_RATE_LIMITS = {
    '/api/auth/login/': (10, 60),
    '/api/auth/refresh/': (20, 60),
    '/api/auth/register/': (10, 60),
    '/api/auth/forgot-password/': (5, 300),
    '/api/auth/send-phone-code/': (5, 300),
    '/api/auth/verify-phone/': (5, 300),
    '/api/': (100, 60),
}


def client_ip(request) -> str:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


class RateLimitMiddleware(MiddlewareMixin):
    """
    Fixed-window counter per (client IP, rule).

    Rules come from settings.RATE_LIMITS when defined. Throttled requests
    get 429 with Retry-After; others carry X-RateLimit-* headers.
    """

    def _rule_for(self, path):
        rules = getattr(settings, 'RATE_LIMITS', DEFAULT_RATE_LIMITS)
        matches = [prefix for prefix in rules if path.startswith(prefix)]
        if not matches:
            return None, None
        prefix = max(matches, key=len)
        return prefix, rules[prefix]

    def process_request(self, request):
        if settings.DEBUG and not getattr(settings, 'RATE_LIMIT_IN_DEBUG', False):
            return None

        prefix, rule = self._rule_for(request.path)
        if rule is None:
            return None

        limit, window = rule
        ip = client_ip(request)
        key = f"throttle:{prefix}:{ip}"

        # add() only sets the key when missing, so the window starts at the first hit
        cache.add(key, 0, window)
        try:
            count = cache.incr(key)
        except ValueError:
            cache.set(key, 1, window)
            count = 1

        if count > limit:
            logger.warning(f"[THROTTLE] {ip} over {limit}/{window}s on {prefix}")
            response = JsonResponse(
                {'error': 'Too many requests. Please try again later.', 'retry_after': window},
                status=429,
            )
            response['Retry-After'] = str(window)
            response['X-RateLimit-Limit'] = str(limit)
            response['X-RateLimit-Remaining'] = '0'
            return response

        request.rate_limit = (limit, limit - count)
        return None

    def process_response(self, request, response):
        rate_limit = getattr(request, 'rate_limit', None)
        if rate_limit is not None:
            response['X-RateLimit-Limit'] = str(rate_limit[0])
            response['X-RateLimit-Remaining'] = str(rate_limit[1])
        return response


class SecurityHeadersMiddleware(MiddlewareMixin):

    HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'geolocation=(self), camera=(self), microphone=(), payment=()',
        'Cross-Origin-Opener-Policy': 'same-origin',
    }

    def process_response(self, request, response):
        for header, value in self.HEADERS.items():
            response.setdefault(header, value)

        # The Django admin uses frames for its popups
        if not request.path.startswith('/admin/'):
            response['X-Frame-Options'] = 'DENY'

        if not settings.DEBUG:
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        if 'Server' in response:
            del response['Server']
        return response
