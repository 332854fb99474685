"""
Password strength validation.

Accounts must use at least one lowercase letter, one uppercase letter,
one digit and one special character (@$!%*?&).
"""

import re
from django.core.exceptions import ValidationError


class PasswordStrengthValidator:
    """Plugged into AUTH_PASSWORD_VALIDATORS."""

    SPECIAL_CHARACTERS = '@$!%*?&'

    def __init__(self, min_length=8):
        self.min_length = min_length

    def validate(self, password, user=None):
        errors = []
        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters")
        if not re.search(r'[a-z]', password):
            errors.append("Password must contain a lowercase letter")
        if not re.search(r'[A-Z]', password):
            errors.append("Password must contain an uppercase letter")
        if not re.search(r'\d', password):
            errors.append("Password must contain a number")
        if not any(char in self.SPECIAL_CHARACTERS for char in password):
            errors.append(
                f"Password must contain a special character ({self.SPECIAL_CHARACTERS})"
            )

        if errors:
            raise ValidationError(errors, code='password_too_weak')

    def get_help_text(self):
        return (
            "Your password must contain uppercase, lowercase, number, "
            "and special character."
        )
