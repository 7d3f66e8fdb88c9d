"""
Newsletter Router - footer sign-up form
"""

import logging
import re

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crud.newsletter import NewsletterRepository
from database import get_db
from models.account import NewsletterRequest
from utils.rate_limit import newsletter_rate_limit
from utils.responses import error_response

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Create newsletter router
newsletter_router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])


@newsletter_router.post("/subscribe", status_code=201, dependencies=[Depends(newsletter_rate_limit)])
async def subscribe(request: NewsletterRequest, db: AsyncSession = Depends(get_db)):
    if not EMAIL_PATTERN.match(request.email):
        return error_response("Please enter a valid email address.", status=400)

    repo = NewsletterRepository(db)
    if await repo.get_by_email(request.email):
        return error_response("This email is already subscribed.", status=409)

    try:
        await repo.subscribe(request.email, request.source)
    except IntegrityError:
        # Lost a race with a concurrent sign-up for the same address
        await db.rollback()
        return error_response("This email is already subscribed.", status=409)

    logger.info(f"Newsletter subscription from source={request.source}")
    return {"success": True, "message": "Subscribed! Thank you."}
