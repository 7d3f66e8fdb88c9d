"""
Shared utility functions for routers and services
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; stored timestamps are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        # Take first IP in the list
        return xff.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def log_endpoint_event(endpoint: str, user_id: Optional[str] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    log_data = {
        "endpoint": endpoint,
        "user_id": user_id or "anonymous",
        "result": result,
        "timestamp": utcnow().isoformat()
    }
    if details:
        log_data.update(details)
    if result == "success":
        logger.info(f"[{endpoint}] {log_data}")
    else:
        logger.warning(f"[{endpoint}] {log_data}")
