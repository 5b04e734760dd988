"""
Repository interface for MemoryLane data.

``IStorage`` is what the API layer depends on.  Implementations differ
only in backing (process memory vs. a SQL database); contracts,
ordering and notification side effects are identical.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

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
)

# Fields no update may overwrite.
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "joined_at"})

FRIEND_REQUEST_TEXT = "You have a new friend request"
FRIEND_ACCEPTED_TEXT = "Your friend request was accepted"
NEW_COMMENT_TEXT = "Someone commented on your memory"
GROUP_INVITE_TEXT = "You were added to the group {name}"


def clean_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}


class IStorage(ABC):
    """
    Data access layer.

    Lookups by id return ``None`` when the record is missing; mutations
    on a missing record raise ``NotFoundError``.  Multi-write operations
    (group creation, cascading deletes, writes with notifications) are
    applied as one unit: either every write lands or none does.
    """

    # Users

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, data: UserCreate) -> User:
        """Raises ``ConflictError`` when the username is taken."""

    @abstractmethod
    def update_user(self, user_id: int, changes: Dict[str, Any]) -> User: ...

    @abstractmethod
    def get_all_users(self) -> List[User]: ...

    # Memories

    @abstractmethod
    def get_memory(self, memory_id: int) -> Optional[Memory]: ...

    @abstractmethod
    def create_memory(self, data: MemoryCreate) -> Memory: ...

    @abstractmethod
    def update_memory(self, memory_id: int, changes: Dict[str, Any]) -> Memory: ...

    @abstractmethod
    def delete_memory(self, memory_id: int) -> None:
        """Delete a memory together with all of its comments."""

    @abstractmethod
    def get_user_memories(self, user_id: int) -> List[Memory]: ...

    @abstractmethod
    def get_user_public_memories(self, user_id: int) -> List[Memory]: ...

    @abstractmethod
    def get_accessible_memories(self, user_id: int) -> List[Memory]:
        """
        The user's own memories plus non-private memories of accepted
        friends, newest event date first.
        """

    @abstractmethod
    def get_group_memories(self, group_id: int) -> List[Memory]:
        """
        Non-private memories written by current members of the group,
        newest first.  There is no explicit memory-to-group link; a
        memory belongs to a group through its author's membership.
        """

    # Friends

    @abstractmethod
    def get_user_friends(self, user_id: int) -> List[Friend]:
        """Every friend record (any status) with the user on either side."""

    @abstractmethod
    def get_friend_request(self, request_id: int) -> Optional[Friend]: ...

    @abstractmethod
    def create_friend_request(self, user_id: int, friend_id: int) -> Friend:
        """
        Create a pending request and notify ``friend_id``.

        Raises ``ConflictError`` when any record already links the pair,
        in either direction.
        """

    @abstractmethod
    def accept_friend_request(self, request_id: int) -> Friend:
        """Mark a pending request accepted and notify the requester."""

    @abstractmethod
    def reject_friend_request(self, request_id: int) -> Friend: ...

    @abstractmethod
    def remove_friend(self, user_id: int, friend_id: int) -> None: ...

    # Groups

    @abstractmethod
    def get_group(self, group_id: int) -> Optional[Group]: ...

    @abstractmethod
    def create_group(self, data: GroupCreate) -> Group:
        """Create the group and make its creator an admin member."""

    @abstractmethod
    def update_group(self, group_id: int, changes: Dict[str, Any]) -> Group: ...

    @abstractmethod
    def delete_group(self, group_id: int) -> None:
        """Delete a group together with all of its memberships."""

    @abstractmethod
    def get_all_groups(self) -> List[Group]: ...

    @abstractmethod
    def get_user_groups(self, user_id: int) -> List[Group]: ...

    # Group members

    @abstractmethod
    def get_group_members(self, group_id: int) -> List[GroupMember]: ...

    @abstractmethod
    def get_group_membership(self, group_id: int, user_id: int) -> Optional[GroupMember]: ...

    @abstractmethod
    def add_group_member(self, data: GroupMemberCreate) -> GroupMember:
        """Raises ``ConflictError`` when the user already belongs to the group."""

    @abstractmethod
    def invite_group_member(self, group_id: int, user_id: int, invited_by: int) -> GroupMember:
        """Add ``user_id`` as a member and send them a group invite notification."""

    @abstractmethod
    def update_group_member(self, group_id: int, user_id: int, role: GroupRole) -> GroupMember: ...

    @abstractmethod
    def remove_group_member(self, group_id: int, user_id: int) -> None: ...

    # Notifications

    @abstractmethod
    def get_notification(self, notification_id: int) -> Optional[Notification]: ...

    @abstractmethod
    def get_user_notifications(self, user_id: int) -> List[Notification]:
        """Newest first."""

    @abstractmethod
    def create_notification(self, data: NotificationCreate) -> Notification: ...

    @abstractmethod
    def mark_notification_as_read(self, notification_id: int) -> Notification: ...

    # Comments

    @abstractmethod
    def get_comment(self, comment_id: int) -> Optional[Comment]: ...

    @abstractmethod
    def get_memory_comments(self, memory_id: int) -> List[Comment]:
        """Oldest first."""

    @abstractmethod
    def create_comment(self, data: CommentCreate) -> Comment:
        """Create the comment; notify the memory owner unless they wrote it."""

    @abstractmethod
    def delete_comment(self, comment_id: int) -> None: ...
