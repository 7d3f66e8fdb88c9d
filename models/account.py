"""
Request models for account, journal, payment and newsletter endpoints
"""
from typing import Optional

from pydantic import Field

from models.divination import CamelModel, NonBlankStr


class ReadingCreateRequest(CamelModel):
    type: NonBlankStr = Field(..., max_length=50)
    data: dict = Field(default_factory=dict)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword", min_length=8)


class CheckoutRequest(CamelModel):
    plan_id: Optional[str] = Field(default=None, alias="planId")


class SubscriptionOverrideRequest(CamelModel):
    plan_type: str = Field(..., alias="planType")


class NewsletterRequest(CamelModel):
    email: NonBlankStr = Field(..., max_length=254)
    source: str = Field(default="web_footer", max_length=50)
