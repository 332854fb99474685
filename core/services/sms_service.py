"""
Nalo Solutions SMS Service for AMENADE

Sends phone verification codes. The gateway is a plain GET endpoint that
answers with a status code in the body: 1701 means accepted.
"""

import re
import logging
import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class SMSError(Exception):
    """The gateway refused or could not be reached."""


class SMSRateLimited(SMSError):
    pass


class NaloSMSService:
    """
    Nalo Solutions client.

    Per-phone rate limiting uses the Django cache so it holds across
    worker processes (SMS_RATE_LIMIT = (max_requests, window_seconds)).
    """

    SUCCESS_CODE = '1701'

    ERROR_MESSAGES = {
        '1702': 'Invalid phone number',
        '1703': 'Insufficient balance',
        '1704': 'Invalid API configuration',
        '1705': 'Message too long',
        '1706': 'Invalid destination number',
        '1707': 'Invalid sender ID',
        '1708': 'Invalid delivery receipt configuration',
    }

    RATE_LIMIT_KEY = "sms_rl:{phone}"

    @staticmethod
    def clean_phone(phone_number: str) -> str:
        """Keep digits and a leading +."""
        return re.sub(r'[^\d+]', '', phone_number or '')

    @classmethod
    def is_configured(cls) -> bool:
        return bool(getattr(settings, 'NALO_API_KEY', ''))

    @classmethod
    def check_rate_limit(cls, phone_number: str):
        """
        Count this request against the phone's window.

        Raises:
            SMSRateLimited: window already full
        """
        max_requests, window = getattr(settings, 'SMS_RATE_LIMIT', (2, 60))
        key = cls.RATE_LIMIT_KEY.format(phone=cls.clean_phone(phone_number))

        # add() only sets when missing, so the window starts at the first request
        if cache.add(key, 1, window):
            return
        try:
            count = cache.incr(key)
        except ValueError:
            cache.set(key, 1, window)
            return
        if count > max_requests:
            logger.warning(f"[NALO SMS] Rate limit hit for {phone_number}")
            raise SMSRateLimited('Too many SMS requests. Please wait before requesting another code.')

    @classmethod
    def parse_response(cls, body: str) -> str:
        """
        Return the body on success.

        Raises:
            SMSError: with a user-facing message mapped from the gateway code
        """
        text = (body or '').strip()
        if cls.SUCCESS_CODE in text or 'success' in text.lower():
            return text
        for code, message in cls.ERROR_MESSAGES.items():
            if code in text:
                raise SMSError(message)
        raise SMSError('Failed to send SMS')

    @classmethod
    def send_sms(cls, to_number: str, text: str) -> str:
        """
        Send an SMS through Nalo.

        Returns:
            Raw gateway response on success

        Raises:
            SMSError
        """
        if not cls.is_configured():
            raise SMSError('SMS service not configured')

        destination = cls.clean_phone(to_number)
        params = {
            'key': settings.NALO_API_KEY,
            'destination': destination,
            'source': settings.NALO_SENDER_ID,
            'message': text,
            'type': '0',
            'dlr': '1',
        }

        try:
            response = requests.get(settings.NALO_API_URL, params=params, timeout=15)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"[NALO SMS] Request failed for {destination}: {e}")
            raise SMSError('SMS gateway unreachable') from e

        result = cls.parse_response(response.text)
        logger.info(f"[NALO SMS] Sent to {destination}: {result}")
        return result
