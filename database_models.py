import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from utils.shared_utils import utcnow


def new_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Registered user. Rows are never hard-deleted.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    birth_date = Column(String, nullable=True)
    birth_time = Column(String, nullable=True)
    birth_place = Column(String, nullable=True)
    role = Column(String, default="user", nullable=False)
    is_premium = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    subscription = relationship("Subscription", back_populates="user", uselist=False, lazy="selectin")


class Subscription(Base):
    """
    One subscription row per user. Premium access is derived from
    plan_type, status and current_period_end together.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)
    plan_type = Column(String, default="free", nullable=False)
    status = Column(String, default="inactive", nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    credits = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="subscription")


class Reading(Base):
    """Journal entry. Only is_favorite changes after insert."""
    __tablename__ = "readings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_favorite = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class MentorMessage(Base):
    __tablename__ = "mentor_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # user | mentor
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class HoroscopeCacheEntry(Base):
    """
    Cached horoscope text keyed by sign, period, calendar day and journal
    context fingerprint. Entries are never evicted.
    """
    __tablename__ = "cache_horoscopes"
    __table_args__ = (
        UniqueConstraint("sign", "period", "cache_date", "context_hash", name="uq_cache_horoscopes_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sign = Column(String, nullable=False)
    period = Column(String, nullable=False)
    cache_date = Column(String(10), nullable=False)
    context_hash = Column(String(32), nullable=False, default="nocontext")
    response = Column(Text, nullable=False)
    affirmation = Column(Text, nullable=True)
    lucky_numbers = Column(JSON, nullable=True)
    period_label = Column(String, nullable=True)
    generated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class NumerologyCacheEntry(Base):
    __tablename__ = "cache_numerology"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_key = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    birth_date = Column(String, nullable=True)
    birth_time = Column(String, nullable=True)
    life_path = Column(Integer, nullable=True)
    destiny = Column(Integer, nullable=True)
    soul = Column(Integer, nullable=True)
    personality = Column(Integer, nullable=True)
    response = Column(Text, nullable=False)
    generated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    source = Column(String, default="web_footer", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
