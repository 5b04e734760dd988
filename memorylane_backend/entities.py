"""
Entity schema for MemoryLane.

Each entity has a ``*Create`` model describing the fields a caller
supplies and a full model adding the id and creation timestamp that
storage assigns.  Both storage backings return these models, so the
API layer never sees ORM rows or internal dicts.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

FriendStatus = Literal["pending", "accepted", "rejected"]
GroupRole = Literal["admin", "member"]
NotificationType = Literal["friend_request", "friend_accepted", "new_comment", "group_invite"]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Entity(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Users

class UserCreate(Entity):
    username: str
    password: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None


class User(UserCreate):
    id: int
    created_at: datetime


# Memories

class MemoryCreate(Entity):
    user_id: int
    title: str
    content: str
    images: List[str] = Field(default_factory=list)
    date: datetime
    location: Optional[str] = None
    is_private: bool = False

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class Memory(MemoryCreate):
    id: int
    created_at: datetime


# Friends

class FriendCreate(Entity):
    user_id: int
    friend_id: int
    status: FriendStatus = "pending"


class Friend(FriendCreate):
    id: int
    created_at: datetime

    def other_party(self, user_id: int) -> int:
        """The id on the opposite side of the record from ``user_id``."""
        return self.friend_id if self.user_id == user_id else self.user_id


# Groups

class GroupCreate(Entity):
    name: str
    description: Optional[str] = None
    created_by: int
    avatar: Optional[str] = None


class Group(GroupCreate):
    id: int
    created_at: datetime


class GroupMemberCreate(Entity):
    group_id: int
    user_id: int
    role: GroupRole = "member"


class GroupMember(GroupMemberCreate):
    id: int
    joined_at: datetime


# Notifications

class NotificationCreate(Entity):
    user_id: int
    type: NotificationType
    content: str
    read: bool = False
    related_id: Optional[int] = None


class Notification(NotificationCreate):
    id: int
    created_at: datetime


# Comments

class CommentCreate(Entity):
    memory_id: int
    user_id: int
    content: str


class Comment(CommentCreate):
    id: int
    created_at: datetime
