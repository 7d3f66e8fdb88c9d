"""
Mentor Router - chat with the Star Mentor
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from database import get_db
from models.divination import MentorChatRequest
from services.ai_gateway import AIGateway, get_ai_gateway
from services.feature_policy import FEATURE_MENTOR, UPGRADE_CTA, apply_gate
from services.journal_service import JournalWriter, get_journal_writer
from services.mentor_service import MentorService
from services.premium_service import PremiumAccess, get_premium_access
from utils.rate_limit import ai_rate_limit
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

# Create mentor router
mentor_router = APIRouter(prefix="/api/mentor", tags=["mentor"])


@mentor_router.post("/chat", dependencies=[Depends(ai_rate_limit)])
async def chat(
    request: MentorChatRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
    db: AsyncSession = Depends(get_db),
):
    """
    One chat turn. Free users get a few messages per day, then a teaser
    reply that never reaches the AI.
    """
    apply_gate(FEATURE_MENTOR, access)

    result = await MentorService(db, gateway).chat(user["id"], request.message, access)
    if result["is_teaser"]:
        log_endpoint_event("/api/mentor/chat", user["id"], "teaser")
        return {
            "success": True,
            "response": result["reply"],
            "isTeaser": True,
            "remainingFreeMessages": 0,
            "cta": UPGRADE_CTA,
        }

    background_tasks.add_task(journal.save_mentor_reply, user["id"], result["reply"])
    log_endpoint_event("/api/mentor/chat", user["id"])
    body = {"success": True, "response": result["reply"], "isTeaser": False}
    if result["remaining"] is not None:
        body["remainingFreeMessages"] = result["remaining"]
    return body


@mentor_router.get("/history")
async def history(user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Last 50 messages, oldest first"""
    messages = await MentorService(db, gateway=None).history(user["id"])
    return {"success": True, "history": messages}
