"""
Readings Router - the user's reading journal and password change
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from auth_utils import hash_password, verify_password
from crud.reading import ReadingRepository, reading_to_dict
from crud.user import UserRepository
from database import get_db
from models.account import PasswordChangeRequest, ReadingCreateRequest
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

# Create readings router
readings_router = APIRouter(prefix="/api/user", tags=["readings"])


@readings_router.get("/readings")
async def list_readings(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    type: Optional[str] = Query(default=None, max_length=50),
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    readings = await ReadingRepository(db).list_for_user(user["id"], limit=limit, offset=offset, reading_type=type)
    return {"success": True, "readings": [reading_to_dict(r) for r in readings]}


@readings_router.post("/readings", status_code=201)
async def create_reading(
    request: ReadingCreateRequest,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reading = await ReadingRepository(db).create(user["id"], request.type, request.data)
    log_endpoint_event("/api/user/readings", user["id"], details={"type": request.type})
    return {"success": True, "reading": reading_to_dict(reading)}


@readings_router.get("/readings/{reading_id}")
async def get_reading(reading_id: str, user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    reading = await ReadingRepository(db).get_for_user(user["id"], reading_id)
    if not reading:
        raise HTTPException(status_code=404, detail="Reading not found")
    return {"success": True, "reading": reading_to_dict(reading)}


@readings_router.patch("/readings/{reading_id}/favorite")
async def toggle_favorite(reading_id: str, user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    reading = await ReadingRepository(db).toggle_favorite(user["id"], reading_id)
    if not reading:
        raise HTTPException(status_code=404, detail="Reading not found")
    return {"success": True, "is_favorite": reading.is_favorite}


@readings_router.delete("/readings/{reading_id}")
async def delete_reading(reading_id: str, user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    deleted = await ReadingRepository(db).delete_for_user(user["id"], reading_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Reading not found")
    log_endpoint_event("/api/user/readings", user["id"], details={"action": "delete"})
    return {"success": True}


@readings_router.put("/password")
async def change_password(
    request: PasswordChangeRequest,
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_repo = UserRepository(db)
    db_user = await user_repo.get_user_by_id(user["id"])
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(request.current_password, db_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    await user_repo.update_user(db_user, {"hashed_password": hash_password(request.new_password)})
    log_endpoint_event("/api/user/password", user["id"])
    return {"success": True, "message": "Password changed"}
