"""
SQLAlchemy storage backing.

Every public method opens one session, does all of its reads and
writes there and commits once, so multi-write operations (group plus
admin membership, memory plus comment cascade, writes with their
notifications) land together or roll back together.  Rows are
converted to entity models before the session closes.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, sessionmaker

from memorylane_database import models as orm

from ..entities import (
    Comment,
    CommentCreate,
    Entity,
    Friend,
    Group,
    GroupCreate,
    GroupMember,
    GroupMemberCreate,
    GroupRole,
    Memory,
    MemoryCreate,
    Notification,
    NotificationCreate,
    User,
    UserCreate,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from .base import (
    FRIEND_ACCEPTED_TEXT,
    FRIEND_REQUEST_TEXT,
    GROUP_INVITE_TEXT,
    NEW_COMMENT_TEXT,
    IStorage,
    clean_changes,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


def _to(entity: Type[E], row: Any) -> Optional[E]:
    return entity.model_validate(row) if row is not None else None


def _pair_filter(user_id: int, friend_id: int):
    return or_(
        and_(orm.Friend.user_id == user_id, orm.Friend.friend_id == friend_id),
        and_(orm.Friend.user_id == friend_id, orm.Friend.friend_id == user_id),
    )


class DatabaseStorage(IStorage):
    """Storage over the relational schema in ``memorylane_database.models``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _require(session: Session, model: Any, record_id: int, label: str) -> Any:
        row = session.get(model, record_id)
        if row is None:
            raise NotFoundError(f"{label} not found")
        return row

    def _merge(self, model: Any, entity: Type[E], record_id: int, changes: Dict[str, Any], label: str) -> E:
        with self._session() as session:
            row = self._require(session, model, record_id, label)
            # Validate the merged record through the entity before touching the row.
            merged = entity.model_validate({**entity.model_validate(row).model_dump(), **clean_changes(changes)})
            for field, value in merged.model_dump().items():
                setattr(row, field, value)
            session.flush()
            return entity.model_validate(row)

    @staticmethod
    def _notify(session: Session, data: NotificationCreate) -> orm.Notification:
        row = orm.Notification(**data.model_dump())
        session.add(row)
        return row

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as session:
            return _to(User, session.get(orm.User, user_id))

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._session() as session:
            row = session.query(orm.User).filter(orm.User.username == username).first()
            return _to(User, row)

    def create_user(self, data: UserCreate) -> User:
        with self._session() as session:
            if session.query(orm.User).filter(orm.User.username == data.username).first():
                raise ConflictError("Username already taken.")
            row = orm.User(**data.model_dump())
            session.add(row)
            session.flush()
            user = User.model_validate(row)
        logger.info("Created user %s (%s)", user.id, user.username)
        return user

    def update_user(self, user_id: int, changes: Dict[str, Any]) -> User:
        username = changes.get("username")
        if username is not None:
            with self._session() as session:
                taken = (
                    session.query(orm.User)
                    .filter(orm.User.username == username, orm.User.id != user_id)
                    .first()
                )
                if taken:
                    raise ConflictError("Username already taken.")
        return self._merge(orm.User, User, user_id, changes, "User")

    def get_all_users(self) -> List[User]:
        with self._session() as session:
            return [User.model_validate(r) for r in session.query(orm.User).order_by(orm.User.id)]

    # Memories

    def get_memory(self, memory_id: int) -> Optional[Memory]:
        with self._session() as session:
            return _to(Memory, session.get(orm.Memory, memory_id))

    def create_memory(self, data: MemoryCreate) -> Memory:
        with self._session() as session:
            self._require(session, orm.User, data.user_id, "User")
            row = orm.Memory(**data.model_dump())
            session.add(row)
            session.flush()
            memory = Memory.model_validate(row)
        logger.info("User %s created memory %s", memory.user_id, memory.id)
        return memory

    def update_memory(self, memory_id: int, changes: Dict[str, Any]) -> Memory:
        return self._merge(orm.Memory, Memory, memory_id, changes, "Memory")

    def delete_memory(self, memory_id: int) -> None:
        with self._session() as session:
            row = self._require(session, orm.Memory, memory_id, "Memory")
            count = len(row.comments)
            session.delete(row)  # comments go with it (delete-orphan)
        logger.info("Deleted memory %s and %d comment(s)", memory_id, count)

    def _memories(self, session: Session, *criteria) -> List[Memory]:
        rows = (
            session.query(orm.Memory)
            .filter(*criteria)
            .order_by(orm.Memory.date.desc(), orm.Memory.id.desc())
        )
        return [Memory.model_validate(r) for r in rows]

    def get_user_memories(self, user_id: int) -> List[Memory]:
        with self._session() as session:
            return self._memories(session, orm.Memory.user_id == user_id)

    def get_user_public_memories(self, user_id: int) -> List[Memory]:
        with self._session() as session:
            return self._memories(
                session, orm.Memory.user_id == user_id, orm.Memory.is_private.is_(False)
            )

    def get_accessible_memories(self, user_id: int) -> List[Memory]:
        with self._session() as session:
            accepted = (
                session.query(orm.Friend)
                .filter(
                    orm.Friend.status == "accepted",
                    or_(orm.Friend.user_id == user_id, orm.Friend.friend_id == user_id),
                )
                .all()
            )
            friend_ids = {f.friend_id if f.user_id == user_id else f.user_id for f in accepted}
            visible = orm.Memory.user_id == user_id
            if friend_ids:
                visible = or_(
                    visible,
                    and_(orm.Memory.user_id.in_(friend_ids), orm.Memory.is_private.is_(False)),
                )
            return self._memories(session, visible)

    def get_group_memories(self, group_id: int) -> List[Memory]:
        with self._session() as session:
            self._require(session, orm.Group, group_id, "Group")
            member_ids = select(orm.GroupMember.user_id).where(orm.GroupMember.group_id == group_id)
            return self._memories(
                session, orm.Memory.user_id.in_(member_ids), orm.Memory.is_private.is_(False)
            )

    # Friends

    def get_user_friends(self, user_id: int) -> List[Friend]:
        with self._session() as session:
            rows = (
                session.query(orm.Friend)
                .filter(or_(orm.Friend.user_id == user_id, orm.Friend.friend_id == user_id))
                .order_by(orm.Friend.id)
            )
            return [Friend.model_validate(r) for r in rows]

    def get_friend_request(self, request_id: int) -> Optional[Friend]:
        with self._session() as session:
            return _to(Friend, session.get(orm.Friend, request_id))

    def create_friend_request(self, user_id: int, friend_id: int) -> Friend:
        if user_id == friend_id:
            raise ValidationError("You cannot send a friend request to yourself")
        with self._session() as session:
            self._require(session, orm.User, user_id, "User")
            self._require(session, orm.User, friend_id, "User")
            if session.query(orm.Friend).filter(_pair_filter(user_id, friend_id)).first():
                raise ConflictError("Friend request already exists")
            row = orm.Friend(user_id=user_id, friend_id=friend_id, status="pending")
            session.add(row)
            session.flush()
            self._notify(session, NotificationCreate(
                user_id=friend_id,
                type="friend_request",
                content=FRIEND_REQUEST_TEXT,
                related_id=row.id,
            ))
            request = Friend.model_validate(row)
        logger.info("User %s sent friend request %s to %s", user_id, request.id, friend_id)
        return request

    def _resolve_request(self, session: Session, request_id: int, status: str) -> orm.Friend:
        row = self._require(session, orm.Friend, request_id, "Friend request")
        if row.status != "pending":
            raise ConflictError(f"Friend request already {row.status}")
        row.status = status
        return row

    def accept_friend_request(self, request_id: int) -> Friend:
        with self._session() as session:
            row = self._resolve_request(session, request_id, "accepted")
            self._notify(session, NotificationCreate(
                user_id=row.user_id,
                type="friend_accepted",
                content=FRIEND_ACCEPTED_TEXT,
                related_id=request_id,
            ))
            session.flush()
            request = Friend.model_validate(row)
        logger.info("Friend request %s accepted", request_id)
        return request

    def reject_friend_request(self, request_id: int) -> Friend:
        with self._session() as session:
            row = self._resolve_request(session, request_id, "rejected")
            session.flush()
            request = Friend.model_validate(row)
        logger.info("Friend request %s rejected", request_id)
        return request

    def remove_friend(self, user_id: int, friend_id: int) -> None:
        with self._session() as session:
            removed = (
                session.query(orm.Friend)
                .filter(_pair_filter(user_id, friend_id))
                .delete(synchronize_session=False)
            )
        if removed:
            logger.info("Removed friendship between %s and %s", user_id, friend_id)

    # Groups

    def get_group(self, group_id: int) -> Optional[Group]:
        with self._session() as session:
            return _to(Group, session.get(orm.Group, group_id))

    def create_group(self, data: GroupCreate) -> Group:
        with self._session() as session:
            self._require(session, orm.User, data.created_by, "User")
            row = orm.Group(**data.model_dump())
            row.members.append(orm.GroupMember(user_id=data.created_by, role="admin"))
            session.add(row)
            session.flush()
            group = Group.model_validate(row)
        logger.info("User %s created group %s", data.created_by, group.id)
        return group

    def update_group(self, group_id: int, changes: Dict[str, Any]) -> Group:
        return self._merge(orm.Group, Group, group_id, changes, "Group")

    def delete_group(self, group_id: int) -> None:
        with self._session() as session:
            row = self._require(session, orm.Group, group_id, "Group")
            count = len(row.members)
            session.delete(row)  # memberships go with it (delete-orphan)
        logger.info("Deleted group %s and %d membership(s)", group_id, count)

    def get_all_groups(self) -> List[Group]:
        with self._session() as session:
            return [Group.model_validate(r) for r in session.query(orm.Group).order_by(orm.Group.id)]

    def get_user_groups(self, user_id: int) -> List[Group]:
        with self._session() as session:
            rows = (
                session.query(orm.Group)
                .join(orm.GroupMember, orm.GroupMember.group_id == orm.Group.id)
                .filter(orm.GroupMember.user_id == user_id)
                .order_by(orm.Group.id)
            )
            return [Group.model_validate(r) for r in rows]

    # Group members

    def get_group_members(self, group_id: int) -> List[GroupMember]:
        with self._session() as session:
            rows = (
                session.query(orm.GroupMember)
                .filter(orm.GroupMember.group_id == group_id)
                .order_by(orm.GroupMember.id)
            )
            return [GroupMember.model_validate(r) for r in rows]

    @staticmethod
    def _membership(session: Session, group_id: int, user_id: int) -> Optional[orm.GroupMember]:
        return (
            session.query(orm.GroupMember)
            .filter(orm.GroupMember.group_id == group_id, orm.GroupMember.user_id == user_id)
            .first()
        )

    def get_group_membership(self, group_id: int, user_id: int) -> Optional[GroupMember]:
        with self._session() as session:
            return _to(GroupMember, self._membership(session, group_id, user_id))

    def _add_member(self, session: Session, data: GroupMemberCreate) -> orm.GroupMember:
        self._require(session, orm.Group, data.group_id, "Group")
        self._require(session, orm.User, data.user_id, "User")
        if self._membership(session, data.group_id, data.user_id) is not None:
            raise ConflictError("Already a member of this group")
        row = orm.GroupMember(**data.model_dump())
        session.add(row)
        session.flush()
        return row

    def add_group_member(self, data: GroupMemberCreate) -> GroupMember:
        with self._session() as session:
            member = GroupMember.model_validate(self._add_member(session, data))
        logger.info("User %s joined group %s as %s", member.user_id, member.group_id, member.role)
        return member

    def invite_group_member(self, group_id: int, user_id: int, invited_by: int) -> GroupMember:
        with self._session() as session:
            row = self._add_member(session, GroupMemberCreate(group_id=group_id, user_id=user_id, role="member"))
            group = session.get(orm.Group, group_id)
            self._notify(session, NotificationCreate(
                user_id=user_id,
                type="group_invite",
                content=GROUP_INVITE_TEXT.format(name=group.name),
                related_id=group_id,
            ))
            member = GroupMember.model_validate(row)
        logger.info("User %s added user %s to group %s", invited_by, user_id, group_id)
        return member

    def update_group_member(self, group_id: int, user_id: int, role: GroupRole) -> GroupMember:
        with self._session() as session:
            row = self._membership(session, group_id, user_id)
            if row is None:
                raise NotFoundError("Group membership not found")
            row.role = role
            session.flush()
            return GroupMember.model_validate(row)

    def remove_group_member(self, group_id: int, user_id: int) -> None:
        with self._session() as session:
            row = self._membership(session, group_id, user_id)
            if row is None:
                raise NotFoundError("Group membership not found")
            session.delete(row)
        logger.info("User %s removed from group %s", user_id, group_id)

    # Notifications

    def get_notification(self, notification_id: int) -> Optional[Notification]:
        with self._session() as session:
            return _to(Notification, session.get(orm.Notification, notification_id))

    def get_user_notifications(self, user_id: int) -> List[Notification]:
        with self._session() as session:
            rows = (
                session.query(orm.Notification)
                .filter(orm.Notification.user_id == user_id)
                .order_by(orm.Notification.created_at.desc(), orm.Notification.id.desc())
            )
            return [Notification.model_validate(r) for r in rows]

    def create_notification(self, data: NotificationCreate) -> Notification:
        with self._session() as session:
            row = self._notify(session, data)
            session.flush()
            return Notification.model_validate(row)

    def mark_notification_as_read(self, notification_id: int) -> Notification:
        return self._merge(orm.Notification, Notification, notification_id, {"read": True}, "Notification")

    # Comments

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self._session() as session:
            return _to(Comment, session.get(orm.Comment, comment_id))

    def get_memory_comments(self, memory_id: int) -> List[Comment]:
        with self._session() as session:
            rows = (
                session.query(orm.Comment)
                .filter(orm.Comment.memory_id == memory_id)
                .order_by(orm.Comment.created_at, orm.Comment.id)
            )
            return [Comment.model_validate(r) for r in rows]

    def create_comment(self, data: CommentCreate) -> Comment:
        with self._session() as session:
            memory = self._require(session, orm.Memory, data.memory_id, "Memory")
            row = orm.Comment(**data.model_dump())
            session.add(row)
            session.flush()
            if memory.user_id != data.user_id:
                self._notify(session, NotificationCreate(
                    user_id=memory.user_id,
                    type="new_comment",
                    content=NEW_COMMENT_TEXT,
                    related_id=row.id,
                ))
            comment = Comment.model_validate(row)
        logger.info("User %s commented on memory %s", data.user_id, data.memory_id)
        return comment

    def delete_comment(self, comment_id: int) -> None:
        with self._session() as session:
            row = self._require(session, orm.Comment, comment_id, "Comment")
            session.delete(row)
        logger.info("Deleted comment %s", comment_id)
