"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Clubs are users with the `club` role; members follow them through
`Follow` rows.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    MEMBER = "member"
    CLUB = "club"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """A registered account.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `UserRole`; only clubs can be followed
    - `followers_count`: denormalized number of `Follow` rows targeting
      this user, changed only by the follow toggle
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default=UserRole.MEMBER.value, index=True)
    display_name: Optional[str] = None
    followers_count: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=utcnow)


class Follow(SQLModel, table=True):
    """A directed "actor follows target" edge.

    Edges are inserted on follow and hard-deleted on unfollow, never
    updated in place. `actor_id` and `target_id` are plain references
    without a database foreign key: a missing target is detected when the
    follower counter is updated.
    """
    __table_args__ = (UniqueConstraint("actor_id", "target_id", name="uq_follow_actor_target"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: int = Field(index=True, nullable=False)
    target_id: int = Field(index=True, nullable=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
