"""
Journal Service - best-effort persistence of readings and mentor messages

Writes run as background tasks after the response is sent, each in its own
session. A failed write is logged and dropped.
"""
import logging
from typing import Optional

from fastapi import BackgroundTasks

from crud.mentor import MentorMessageRepository
from crud.reading import ReadingRepository
from database import AsyncSessionLocal

logger = logging.getLogger(__name__)


class JournalWriter:

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def save_reading(self, user_id: str, reading_type: str, data: dict) -> None:
        try:
            async with self.session_factory() as session:
                await ReadingRepository(session).create(user_id, reading_type, data)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to save {reading_type} reading for user {user_id}: {e}", exc_info=True)

    async def save_mentor_reply(self, user_id: str, reply: str) -> None:
        """The user message is written in the request transaction; only the reply lands here."""
        try:
            async with self.session_factory() as session:
                await MentorMessageRepository(session).add(user_id, "mentor", reply)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to save mentor reply for user {user_id}: {e}", exc_info=True)

    def schedule_reading(self, background_tasks: BackgroundTasks, user: Optional[dict], reading_type: str, data: dict) -> None:
        """Queue a journal entry for authenticated users; anonymous calls are not journaled."""
        if not user:
            return
        background_tasks.add_task(self.save_reading, user["id"], reading_type, data)


_journal_writer = JournalWriter()


def get_journal_writer() -> JournalWriter:
    return _journal_writer
