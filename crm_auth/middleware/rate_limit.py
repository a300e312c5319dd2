"""
Rate Limiting

Per-client-address limits on the unauthenticated auth entry points (login,
platform admin login, register, refresh, invitation acceptance) to slow down
credential stuffing and token guessing.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from crm_auth.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    headers_enabled=True,
)


def auth_rate_limit() -> str:
    """Limit string for auth endpoints, read when the route is hit."""
    return settings.login_rate_limit


def configure_rate_limiting(app, enabled: bool = True) -> None:
    """
    Attach the limiter to the application.

    The RateLimitExceeded handler is registered by register_exception_handlers
    so throttled responses share the common error body.
    """
    limiter.enabled = enabled
    app.state.limiter = limiter
