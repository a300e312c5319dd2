"""
Authentication Constants

Cookie names and paths for the session and refresh tokens.
"""

SESSION_COOKIE_NAME = "session-token"
REFRESH_COOKIE_NAME = "refresh-token"

SESSION_COOKIE_PATH = "/"
REFRESH_COOKIE_PATH = "/api/auth/refresh"

CREDENTIAL_PROVIDER = "credential"

# One message for every failed authentication at the HTTP boundary
GENERIC_AUTH_FAILURE = "Authentication required"
