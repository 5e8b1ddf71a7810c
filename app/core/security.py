"""Password hashing for protected files."""

from typing import Optional

from passlib.context import CryptContext

from app.core.logging_config import get_logger


logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a file password with argon2."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a supplied password against a stored hash.

    A malformed or unknown hash counts as a failed verification.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as exc:
        logger.warning(
            "password_hash_unverifiable",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return False
