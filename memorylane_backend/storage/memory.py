"""
In-memory storage backing.

Each entity type lives in a dict keyed by id with its own id counter.
A re-entrant lock serializes every read and write, so id assignment
and insert are atomic even when FastAPI runs handlers on worker
threads.  Writes go through a unit of work that records an undo step
for each change; if any step of a multi-write operation raises, the
earlier steps are reverted before the error propagates.  Records are
handed out as deep copies, so callers can only change the store
through its methods.
"""

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional

from ..entities import (
    Comment,
    CommentCreate,
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
    utcnow,
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


def _detached(record):
    """Deep copy for callers; edits to it never reach the stored record."""
    return record.model_copy(deep=True) if record is not None else None


def _newest_first(memories: Iterable[Memory]) -> List[Memory]:
    return [_detached(m) for m in sorted(memories, key=lambda m: (m.date, m.id), reverse=True)]


class _UnitOfWork:
    """Applies dict writes immediately and remembers how to undo them."""

    def __init__(self) -> None:
        self._undo: List[Callable[[], None]] = []

    def put(self, table: Dict[Any, Any], key: Any, value: Any) -> None:
        if key in table:
            previous = table[key]
            self._undo.append(lambda: table.__setitem__(key, previous))
        else:
            self._undo.append(lambda: table.pop(key, None))
        table[key] = value

    def pop(self, table: Dict[Any, Any], key: Any) -> Any:
        previous = table.pop(key)
        self._undo.append(lambda: table.__setitem__(key, previous))
        return previous

    def rollback(self) -> None:
        for step in reversed(self._undo):
            step()
        self._undo.clear()


class MemStorage(IStorage):
    """Process-lifetime storage; construct one per app (or per test)."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: Dict[int, User] = {}
        self._memories: Dict[int, Memory] = {}
        self._friends: Dict[int, Friend] = {}
        self._groups: Dict[int, Group] = {}
        self._group_members: Dict[int, GroupMember] = {}
        self._notifications: Dict[int, Notification] = {}
        self._comments: Dict[int, Comment] = {}
        # unordered user pair -> friend record id
        self._friend_pairs: Dict[FrozenSet[int], int] = {}
        self._ids = {
            name: itertools.count(1)
            for name in ("user", "memory", "friend", "group", "group_member", "notification", "comment")
        }

    @contextmanager
    def _unit_of_work(self) -> Iterator[_UnitOfWork]:
        with self._lock:
            uow = _UnitOfWork()
            try:
                yield uow
            except Exception:
                uow.rollback()
                raise

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    def _merge(self, table: Dict[int, Any], record_id: int, changes: Dict[str, Any], label: str) -> Any:
        with self._unit_of_work() as uow:
            current = table.get(record_id)
            if current is None:
                raise NotFoundError(f"{label} not found")
            merged = {**current.model_dump(), **clean_changes(changes)}
            updated = type(current).model_validate(merged)
            uow.put(table, record_id, updated)
            return _detached(updated)

    def _notify(self, uow: _UnitOfWork, data: NotificationCreate) -> Notification:
        notification = Notification(id=self._next_id("notification"), created_at=utcnow(), **data.model_dump())
        uow.put(self._notifications, notification.id, notification)
        return notification

    def _require_user(self, user_id: int) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _require_group(self, group_id: int) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return _detached(self._users.get(user_id))

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            return _detached(next((u for u in self._users.values() if u.username == username), None))

    def create_user(self, data: UserCreate) -> User:
        with self._unit_of_work() as uow:
            if self.get_user_by_username(data.username) is not None:
                raise ConflictError("Username already taken.")
            user = User(id=self._next_id("user"), created_at=utcnow(), **data.model_dump())
            uow.put(self._users, user.id, user)
        logger.info("Created user %s (%s)", user.id, user.username)
        return _detached(user)

    def update_user(self, user_id: int, changes: Dict[str, Any]) -> User:
        with self._lock:
            username = changes.get("username")
            if username is not None:
                existing = self.get_user_by_username(username)
                if existing is not None and existing.id != user_id:
                    raise ConflictError("Username already taken.")
            return self._merge(self._users, user_id, changes, "User")

    def get_all_users(self) -> List[User]:
        with self._lock:
            return [_detached(u) for u in self._users.values()]

    # Memories

    def get_memory(self, memory_id: int) -> Optional[Memory]:
        with self._lock:
            return _detached(self._memories.get(memory_id))

    def create_memory(self, data: MemoryCreate) -> Memory:
        with self._unit_of_work() as uow:
            self._require_user(data.user_id)
            memory = Memory(id=self._next_id("memory"), created_at=utcnow(), **data.model_dump())
            uow.put(self._memories, memory.id, memory)
        logger.info("User %s created memory %s", memory.user_id, memory.id)
        return _detached(memory)

    def update_memory(self, memory_id: int, changes: Dict[str, Any]) -> Memory:
        return self._merge(self._memories, memory_id, changes, "Memory")

    def delete_memory(self, memory_id: int) -> None:
        with self._unit_of_work() as uow:
            if memory_id not in self._memories:
                raise NotFoundError("Memory not found")
            doomed = [c.id for c in self._comments.values() if c.memory_id == memory_id]
            for comment_id in doomed:
                uow.pop(self._comments, comment_id)
            uow.pop(self._memories, memory_id)
        logger.info("Deleted memory %s and %d comment(s)", memory_id, len(doomed))

    def get_user_memories(self, user_id: int) -> List[Memory]:
        with self._lock:
            return _newest_first(m for m in self._memories.values() if m.user_id == user_id)

    def get_user_public_memories(self, user_id: int) -> List[Memory]:
        with self._lock:
            return _newest_first(
                m for m in self._memories.values() if m.user_id == user_id and not m.is_private
            )

    def get_accessible_memories(self, user_id: int) -> List[Memory]:
        with self._lock:
            friend_ids = {
                f.other_party(user_id)
                for f in self._friends.values()
                if f.status == "accepted" and user_id in (f.user_id, f.friend_id)
            }
            return _newest_first(
                m
                for m in self._memories.values()
                if m.user_id == user_id or (not m.is_private and m.user_id in friend_ids)
            )

    def get_group_memories(self, group_id: int) -> List[Memory]:
        with self._lock:
            self._require_group(group_id)
            member_ids = {m.user_id for m in self._group_members.values() if m.group_id == group_id}
            return _newest_first(
                m for m in self._memories.values() if m.user_id in member_ids and not m.is_private
            )

    # Friends

    def get_user_friends(self, user_id: int) -> List[Friend]:
        with self._lock:
            return [_detached(f) for f in self._friends.values() if user_id in (f.user_id, f.friend_id)]

    def get_friend_request(self, request_id: int) -> Optional[Friend]:
        with self._lock:
            return _detached(self._friends.get(request_id))

    def create_friend_request(self, user_id: int, friend_id: int) -> Friend:
        if user_id == friend_id:
            raise ValidationError("You cannot send a friend request to yourself")
        pair = frozenset((user_id, friend_id))
        with self._unit_of_work() as uow:
            self._require_user(user_id)
            self._require_user(friend_id)
            if pair in self._friend_pairs:
                raise ConflictError("Friend request already exists")
            request = Friend(
                id=self._next_id("friend"),
                created_at=utcnow(),
                user_id=user_id,
                friend_id=friend_id,
                status="pending",
            )
            uow.put(self._friends, request.id, request)
            uow.put(self._friend_pairs, pair, request.id)
            self._notify(uow, NotificationCreate(
                user_id=friend_id,
                type="friend_request",
                content=FRIEND_REQUEST_TEXT,
                related_id=request.id,
            ))
        logger.info("User %s sent friend request %s to %s", user_id, request.id, friend_id)
        return _detached(request)

    def _resolve_request(self, uow: _UnitOfWork, request_id: int, status: str) -> Friend:
        request = self._friends.get(request_id)
        if request is None:
            raise NotFoundError("Friend request not found")
        if request.status != "pending":
            raise ConflictError(f"Friend request already {request.status}")
        updated = request.model_copy(update={"status": status})
        uow.put(self._friends, request_id, updated)
        return updated

    def accept_friend_request(self, request_id: int) -> Friend:
        with self._unit_of_work() as uow:
            request = self._resolve_request(uow, request_id, "accepted")
            self._notify(uow, NotificationCreate(
                user_id=request.user_id,
                type="friend_accepted",
                content=FRIEND_ACCEPTED_TEXT,
                related_id=request_id,
            ))
        logger.info("Friend request %s accepted", request_id)
        return _detached(request)

    def reject_friend_request(self, request_id: int) -> Friend:
        with self._unit_of_work() as uow:
            request = self._resolve_request(uow, request_id, "rejected")
        logger.info("Friend request %s rejected", request_id)
        return _detached(request)

    def remove_friend(self, user_id: int, friend_id: int) -> None:
        pair = frozenset((user_id, friend_id))
        with self._unit_of_work() as uow:
            doomed = [
                f.id for f in self._friends.values()
                if frozenset((f.user_id, f.friend_id)) == pair
            ]
            for record_id in doomed:
                uow.pop(self._friends, record_id)
            if pair in self._friend_pairs:
                uow.pop(self._friend_pairs, pair)
        if doomed:
            logger.info("Removed friendship between %s and %s", user_id, friend_id)

    # Groups

    def get_group(self, group_id: int) -> Optional[Group]:
        with self._lock:
            return _detached(self._groups.get(group_id))

    def create_group(self, data: GroupCreate) -> Group:
        with self._unit_of_work() as uow:
            self._require_user(data.created_by)
            group = Group(id=self._next_id("group"), created_at=utcnow(), **data.model_dump())
            uow.put(self._groups, group.id, group)
            self._add_member(uow, GroupMemberCreate(group_id=group.id, user_id=data.created_by, role="admin"))
        logger.info("User %s created group %s", data.created_by, group.id)
        return _detached(group)

    def update_group(self, group_id: int, changes: Dict[str, Any]) -> Group:
        return self._merge(self._groups, group_id, changes, "Group")

    def delete_group(self, group_id: int) -> None:
        with self._unit_of_work() as uow:
            self._require_group(group_id)
            doomed = [m.id for m in self._group_members.values() if m.group_id == group_id]
            for member_id in doomed:
                uow.pop(self._group_members, member_id)
            uow.pop(self._groups, group_id)
        logger.info("Deleted group %s and %d membership(s)", group_id, len(doomed))

    def get_all_groups(self) -> List[Group]:
        with self._lock:
            return [_detached(g) for g in self._groups.values()]

    def get_user_groups(self, user_id: int) -> List[Group]:
        with self._lock:
            group_ids = {m.group_id for m in self._group_members.values() if m.user_id == user_id}
            return [_detached(g) for g in self._groups.values() if g.id in group_ids]

    # Group members

    def get_group_members(self, group_id: int) -> List[GroupMember]:
        with self._lock:
            return [_detached(m) for m in self._group_members.values() if m.group_id == group_id]

    def get_group_membership(self, group_id: int, user_id: int) -> Optional[GroupMember]:
        with self._lock:
            return _detached(next(
                (m for m in self._group_members.values() if m.group_id == group_id and m.user_id == user_id),
                None,
            ))

    def _add_member(self, uow: _UnitOfWork, data: GroupMemberCreate) -> GroupMember:
        self._require_group(data.group_id)
        self._require_user(data.user_id)
        if self.get_group_membership(data.group_id, data.user_id) is not None:
            raise ConflictError("Already a member of this group")
        member = GroupMember(id=self._next_id("group_member"), joined_at=utcnow(), **data.model_dump())
        uow.put(self._group_members, member.id, member)
        return member

    def add_group_member(self, data: GroupMemberCreate) -> GroupMember:
        with self._unit_of_work() as uow:
            member = self._add_member(uow, data)
        logger.info("User %s joined group %s as %s", member.user_id, member.group_id, member.role)
        return _detached(member)

    def invite_group_member(self, group_id: int, user_id: int, invited_by: int) -> GroupMember:
        with self._unit_of_work() as uow:
            member = self._add_member(uow, GroupMemberCreate(group_id=group_id, user_id=user_id, role="member"))
            group = self._groups[group_id]
            self._notify(uow, NotificationCreate(
                user_id=user_id,
                type="group_invite",
                content=GROUP_INVITE_TEXT.format(name=group.name),
                related_id=group_id,
            ))
        logger.info("User %s added user %s to group %s", invited_by, user_id, group_id)
        return _detached(member)

    def update_group_member(self, group_id: int, user_id: int, role: GroupRole) -> GroupMember:
        with self._lock:
            membership = self.get_group_membership(group_id, user_id)
            if membership is None:
                raise NotFoundError("Group membership not found")
            return self._merge(self._group_members, membership.id, {"role": role}, "Group membership")

    def remove_group_member(self, group_id: int, user_id: int) -> None:
        with self._unit_of_work() as uow:
            membership = self.get_group_membership(group_id, user_id)
            if membership is None:
                raise NotFoundError("Group membership not found")
            uow.pop(self._group_members, membership.id)
        logger.info("User %s removed from group %s", user_id, group_id)

    # Notifications

    def get_notification(self, notification_id: int) -> Optional[Notification]:
        with self._lock:
            return _detached(self._notifications.get(notification_id))

    def get_user_notifications(self, user_id: int) -> List[Notification]:
        with self._lock:
            notifications = sorted(
                (n for n in self._notifications.values() if n.user_id == user_id),
                key=lambda n: (n.created_at, n.id),
                reverse=True,
            )
            return [_detached(n) for n in notifications]

    def create_notification(self, data: NotificationCreate) -> Notification:
        with self._unit_of_work() as uow:
            return _detached(self._notify(uow, data))

    def mark_notification_as_read(self, notification_id: int) -> Notification:
        return self._merge(self._notifications, notification_id, {"read": True}, "Notification")

    # Comments

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self._lock:
            return _detached(self._comments.get(comment_id))

    def get_memory_comments(self, memory_id: int) -> List[Comment]:
        with self._lock:
            comments = sorted(
                (c for c in self._comments.values() if c.memory_id == memory_id),
                key=lambda c: (c.created_at, c.id),
            )
            return [_detached(c) for c in comments]

    def create_comment(self, data: CommentCreate) -> Comment:
        with self._unit_of_work() as uow:
            memory = self._memories.get(data.memory_id)
            if memory is None:
                raise NotFoundError("Memory not found")
            comment = Comment(id=self._next_id("comment"), created_at=utcnow(), **data.model_dump())
            uow.put(self._comments, comment.id, comment)
            if memory.user_id != data.user_id:
                self._notify(uow, NotificationCreate(
                    user_id=memory.user_id,
                    type="new_comment",
                    content=NEW_COMMENT_TEXT,
                    related_id=comment.id,
                ))
        logger.info("User %s commented on memory %s", data.user_id, data.memory_id)
        return _detached(comment)

    def delete_comment(self, comment_id: int) -> None:
        with self._unit_of_work() as uow:
            if comment_id not in self._comments:
                raise NotFoundError("Comment not found")
            uow.pop(self._comments, comment_id)
        logger.info("Deleted comment %s", comment_id)
