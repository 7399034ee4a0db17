"""
SQLAlchemy ORM models for accounts, users and their subscriptions.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTableUUID
from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class UserType(str, enum.Enum):
    OWNER = "OWNER"
    MEMBER = "MEMBER"


class SubscriptionStatus(str, enum.Enum):
    IN_TRIAL = "IN_TRIAL"
    ACTIVE = "ACTIVE"
    NON_RENEWING = "NON_RENEWING"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    api_key = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    users = relationship("User", back_populates="account")


class User(SQLAlchemyBaseUserTableUUID, Base):
    """Login identity; ``email`` doubles as the username."""

    __tablename__ = "users"

    salt = Column(String(64), nullable=True)
    name = Column(String(128))
    type = Column(Enum(UserType), nullable=False, default=UserType.OWNER)
    account_id = Column(GUID, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    account = relationship("Account", back_populates="users")
    credentials = relationship("UserCredential", back_populates="user", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")


class UserCredential(Base):
    """A WebAuthn authenticator registered by a user."""

    __tablename__ = "user_credentials"

    id = Column(String(255), primary_key=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    public_key = Column(Text, nullable=False)
    transports = Column(String(255), nullable=True)
    counter = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="credentials")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    status = Column(Enum(SubscriptionStatus), nullable=False)
    type = Column(String(64), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="subscriptions")
