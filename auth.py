"""
Authentication routes and dependencies
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import create_jwt, decode_jwt, hash_password, verify_password
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from database import get_db
from utils.rate_limit import auth_rate_limit
from utils.shared_utils import as_utc, log_endpoint_event

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


# Request models
class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    first_name: Optional[str] = Field(default=None, alias="firstName")
    birth_date: Optional[str] = Field(default=None, alias="birthDate")
    birth_time: Optional[str] = Field(default=None, alias="birthTime")
    birth_place: Optional[str] = Field(default=None, alias="birthPlace")


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(default=None, alias="firstName", max_length=100)
    birth_date: Optional[str] = Field(default=None, alias="birthDate", max_length=10)
    birth_time: Optional[str] = Field(default=None, alias="birthTime", max_length=8)
    birth_place: Optional[str] = Field(default=None, alias="birthPlace", max_length=200)


def validate_email(email: str) -> bool:
    """Validate email format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def user_to_dict(user, subscription=None) -> dict:
    period_end = as_utc(subscription.current_period_end) if subscription else None
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "birth_date": user.birth_date,
        "birth_time": user.birth_time,
        "birth_place": user.birth_place,
        "is_premium": user.is_premium,
        "subscription_status": subscription.plan_type if subscription else "free",
        "subscription_state": subscription.status if subscription else "inactive",
        "current_period_end": period_end.isoformat() if period_end else None,
    }


# Dependencies for protected routes
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        return token or None
    return None


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> dict:
    """
    Dependency returning the identity carried by the bearer token.

    Missing token -> 401, invalid or expired token -> 403. No database
    lookup: the embedded subscription_status is informational only.
    """
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication token")

    payload = decode_jwt(token)
    if not payload or not payload.get("id"):
        raise HTTPException(status_code=403, detail="Invalid or expired token")

    return {
        "id": payload["id"],
        "email": payload.get("email"),
        "subscription_status": payload.get("subscription_status", "free"),
    }


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[dict]:
    """Like get_current_user, but anonymous and broken tokens yield None."""
    token = _extract_bearer(authorization)
    if not token:
        return None
    payload = decode_jwt(token)
    if not payload or not payload.get("id"):
        return None
    return {
        "id": payload["id"],
        "email": payload.get("email"),
        "subscription_status": payload.get("subscription_status", "free"),
    }


@auth_router.post("/register", status_code=201, dependencies=[Depends(auth_rate_limit)])
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account with a default free subscription"""
    email = request.email.strip().lower()
    if not validate_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user_repo = UserRepository(db)
    if await user_repo.get_user_by_email(email):
        # Same wording for every failure so addresses cannot be enumerated
        raise HTTPException(status_code=400, detail="Registration failed. Please check your details.")

    user = await user_repo.create_user({
        "email": email,
        "hashed_password": hash_password(request.password),
        "first_name": request.first_name,
        "birth_date": request.birth_date,
        "birth_time": request.birth_time,
        "birth_place": request.birth_place,
    })
    await SubscriptionRepository(db).ensure_default(user.id)

    log_endpoint_event("/api/auth/register", user.id)
    return {"success": True, "message": "Registration successful. You can now sign in."}


@auth_router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get JWT token"""
    user_repo = UserRepository(db)

    user = await user_repo.get_user_by_email(request.email.strip().lower())
    if not user or not verify_password(request.password, user.hashed_password):
        log_endpoint_event("/api/auth/login", None, "error", {"reason": "invalid_credentials"})
        raise HTTPException(status_code=401, detail="Invalid email or password")

    subscription = await SubscriptionRepository(db).ensure_default(user.id)
    token = create_jwt(user.id, user.email, subscription.plan_type)

    log_endpoint_event("/api/auth/login", user.id)
    return {
        "success": True,
        "token": token,
        "user": user_to_dict(user, subscription),
    }


@auth_router.get("/profile")
async def get_profile(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Current user's profile with flattened subscription fields"""
    user = await UserRepository(db).get_user_by_id(current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    subscription = await SubscriptionRepository(db).get_by_user_id(user.id)
    return {"success": True, "user": user_to_dict(user, subscription)}


@auth_router.put("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_id(current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user = await user_repo.update_profile(user, request.model_dump())
    subscription = await SubscriptionRepository(db).get_by_user_id(user.id)
    log_endpoint_event("/api/auth/profile", user.id, details={"action": "update"})
    return {"success": True, "user": user_to_dict(user, subscription)}
