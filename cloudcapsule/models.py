from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow():
    """timezone-aware UTC now"""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    reset_token: Optional[str] = Field(default=None, index=True)
    reset_token_expiry: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class Capsule(SQLModel, table=True):
    __tablename__ = "capsules"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    title: str
    open_date: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Content(SQLModel, table=True):
    __tablename__ = "contents"

    id: Optional[int] = Field(default=None, primary_key=True)
    capsule_id: int = Field(unique=True, foreign_key="capsules.id")
    letter: Optional[str] = ""
    secret: Optional[str] = ""
    feeling: Optional[str] = "happy"
    rating: Optional[int] = 0
    song: Optional[str] = ""
    photo_refs: Optional[str] = "[]"  # JSON array of blob references


class OpenedNotification(SQLModel, table=True):
    __tablename__ = "opened_notifications"
    __table_args__ = (UniqueConstraint("user_id", "capsule_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    capsule_id: int = Field(index=True, foreign_key="capsules.id")
    notified_at: datetime = Field(default_factory=utcnow)
