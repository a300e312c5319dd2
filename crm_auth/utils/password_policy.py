"""
Password Policy

Strength rules for new passwords. The minimum length and the character-class
requirements come from Settings.
"""

import re
from dataclasses import dataclass, field

from crm_auth.config import Settings

_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

# Length at which a password that passes every rule counts as strong
STRONG_LENGTH = 12


@dataclass
class PasswordValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    strength: str = "weak"  # weak | medium | strong


def validate_password_strength(password: str, settings: Settings) -> PasswordValidation:
    """
    Validate password meets security requirements.

    Returns:
        PasswordValidation with every rule violation listed in ``errors``
    """
    errors = []

    if len(password) < settings.password_min_length:
        errors.append(f"Password must be at least {settings.password_min_length} characters long")
    if settings.password_require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if settings.password_require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if settings.password_require_digit and not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if settings.password_require_special and not _SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")

    strength = "weak"
    if not errors:
        strength = "strong" if len(password) >= STRONG_LENGTH else "medium"

    return PasswordValidation(valid=not errors, errors=errors, strength=strength)
