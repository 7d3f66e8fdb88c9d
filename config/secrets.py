"""
JWT secret resolution. Production refuses to start without JWT_SECRET.
"""
import logging
from typing import Optional

from config.settings import settings, IS_PRODUCTION

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "dev-insecure-secret-placeholder"


def resolve_jwt_secret(secret: Optional[str], is_production: bool) -> str:
    """
    Return the configured JWT secret.

    Raises:
        RuntimeError: if the secret is missing in production
    """
    if secret:
        return secret
    if is_production:
        logger.critical("FATAL: JWT_SECRET is required in production!")
        raise RuntimeError("JWT_SECRET is required in production")
    logger.warning("JWT_SECRET not set. Using insecure dev-only placeholder. DO NOT USE IN PRODUCTION.")
    return DEV_JWT_SECRET


JWT_SECRET = resolve_jwt_secret(settings.jwt_secret, IS_PRODUCTION)
