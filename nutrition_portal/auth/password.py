"""
Nutrition Portal - Password Hashing Utilities

Password hashing using bcrypt.
Work factor comes from settings and defaults to 12.

Security:
- Never log or expose plaintext passwords
- bcrypt includes salt automatically
- Supports hash upgrades on login
"""

import bcrypt

from nutrition_portal.config import settings


# bcrypt only uses the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, work_factor: int = None) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plaintext password
        work_factor: Override the configured bcrypt cost

    Returns:
        bcrypt hash string (includes salt)

    Example:
        >>> hashed = hash_password("Abcdef1")
        >>> hashed.startswith("$2b$")
        True
    """
    salt = bcrypt.gensalt(rounds=work_factor or settings.BCRYPT_WORK_FACTOR)
    hashed = bcrypt.hashpw(_password_bytes(password), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Uses constant-time comparison to prevent timing attacks.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        # Invalid hash format
        return False


def needs_rehash(hashed_password: str, target_work_factor: int = None) -> bool:
    """
    Check if a password hash was produced with a lower work factor.

    Seeded accounts created with a cheap cost are upgraded on their next login.
    """
    target = target_work_factor or settings.BCRYPT_WORK_FACTOR
    try:
        # bcrypt hash format: $2b$XX$...
        _, work_factor_str, _ = hashed_password.split("$")[1:4]
        return int(work_factor_str) < target
    except (ValueError, IndexError):
        return True
