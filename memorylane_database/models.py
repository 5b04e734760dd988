from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

# PUBLIC_INTERFACE
class User(Base):
    """
    SQLAlchemy model for a MemoryLane user and their profile.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, index=True, nullable=False)
    password = Column(String(256), nullable=False)
    display_name = Column(String(128), nullable=True)
    bio = Column(Text, nullable=True)
    avatar = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memories = relationship("Memory", back_populates="owner")

# PUBLIC_INTERFACE
class Memory(Base):
    """
    SQLAlchemy model for a memory (dated journal entry with optional images).
    """
    __tablename__ = "memories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(128), nullable=False)
    content = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    date = Column(DateTime, nullable=False, index=True)
    location = Column(String(256), nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    owner = relationship("User", back_populates="memories")
    comments = relationship(
        "Comment",
        back_populates="memory",
        cascade="all, delete-orphan",
    )

# PUBLIC_INTERFACE
class Friend(Base):
    """
    Directed friend request/relationship record. One row per unordered pair;
    the pair check in both orderings lives in the storage layer.
    """
    __tablename__ = "friends"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friends_pair"),
    )

# PUBLIC_INTERFACE
class Group(Base):
    """
    SQLAlchemy model for a group of users.
    """
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    avatar = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    members = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
    )

# PUBLIC_INTERFACE
class GroupMember(Base):
    """
    Join row between a group and a user, tagged with a role (admin | member).
    """
    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="member")
    joined_at = Column(DateTime, default=_utcnow, nullable=False)

    group = relationship("Group", back_populates="members")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_pair"),
    )

# PUBLIC_INTERFACE
class Notification(Base):
    """
    SQLAlchemy model for a notification addressed to a user.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False)  # friend_request, friend_accepted, new_comment, group_invite
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    related_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

# PUBLIC_INTERFACE
class Comment(Base):
    """
    SQLAlchemy model for a comment on a memory.
    """
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    memory_id = Column(Integer, ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memory = relationship("Memory", back_populates="comments")
