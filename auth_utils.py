"""
Authentication utilities: Password hashing and JWT token management
"""

import jwt
from datetime import timedelta
from passlib.context import CryptContext
from typing import Optional

from config.secrets import JWT_SECRET
from utils.shared_utils import utcnow

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(days=30)


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(password, password_hash)


def create_jwt(user_id: str, email: str, subscription_status: str = "free") -> str:
    """
    Create a JWT for a user.

    The subscription tier is a snapshot taken at login. Premium checks
    never trust it and always read the subscriptions table.
    """
    payload = {
        "id": user_id,
        "email": email,
        "subscription_status": subscription_status,
        "exp": utcnow() + TOKEN_LIFETIME,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=ALGORITHM)


def decode_jwt(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns None if invalid or expired."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def create_expired_jwt(user_id: str, email: str, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Args:
        user_id: User ID to include in token
        email: Email to include in token
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string
    """
    payload = {
        "id": user_id,
        "email": email,
        "subscription_status": "free",
        "exp": utcnow() - timedelta(seconds=expired_seconds_ago),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=ALGORITHM)
