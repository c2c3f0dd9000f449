"""
Password hashing with bcrypt.
"""

import bcrypt

MIN_BCRYPT_COST = 10


def hash_password(password: str, cost: int = MIN_BCRYPT_COST) -> str:
    """Hash password using bcrypt with the given cost factor."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=cost)).decode()


def check_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison of a password against a stored hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False
