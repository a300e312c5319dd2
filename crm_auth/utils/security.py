"""
Security Utilities

Password hashing, opaque token generation and token digests.
"""

import hashlib
import re
import secrets
from datetime import datetime, timezone

from passlib.context import CryptContext

PASSWORD_ALGORITHM = "bcrypt"

# 32 random bytes rendered as 64 lowercase hex characters
TOKEN_BYTES = 32
_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def build_password_context(rounds: int = 12) -> CryptContext:
    """Password hashing context; rounds are configurable so tests can stay fast."""
    return CryptContext(schemes=[PASSWORD_ALGORITHM], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, context: CryptContext) -> str:
    return context.hash(password)


def verify_password(plain_password: str, hashed_password: str, context: CryptContext) -> bool:
    try:
        return context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or foreign hash in the credential row
        return False


def generate_token() -> str:
    """Generate a 256-bit cryptographically random opaque token."""
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed_token(token: str | None) -> bool:
    return bool(token) and _TOKEN_PATTERN.match(token) is not None


def token_digest(token: str) -> str:
    """SHA-256 digest used to store tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
