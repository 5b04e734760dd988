from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...entities import Group, GroupCreate, GroupMember, GroupMemberCreate, Memory, User
from ...errors import ForbiddenError, NotFoundError, ValidationError
from ...storage import IStorage
from ..deps import get_current_user, get_storage, require_group_admin
from ..schemas import GroupIn, GroupUpdate, MemberRoleUpdate

router = APIRouter(prefix="/groups")


def get_existing_group(storage: IStorage, group_id: int) -> Group:
    group = storage.get_group(group_id)
    if group is None:
        raise NotFoundError("Group not found")
    return group


# PUBLIC_INTERFACE
@router.get("", response_model=List[Group], summary="List all groups")
def list_groups(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return storage.get_all_groups()

# PUBLIC_INTERFACE
@router.get("/{group_id}", response_model=Group, summary="Get a group")
def get_group(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return get_existing_group(storage, group_id)

# PUBLIC_INTERFACE
@router.post("", response_model=Group, status_code=201, summary="Create a group")
def create_group(group: GroupIn, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Create a group. The caller becomes its first admin.
    """
    return storage.create_group(GroupCreate(created_by=current_user.id, **group.model_dump()))

# PUBLIC_INTERFACE
@router.put("/{group_id}", response_model=Group, summary="Update a group")
def update_group(
    group_id: int,
    group_update: GroupUpdate,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    Update name, description or avatar. Admins only.
    """
    get_existing_group(storage, group_id)
    require_group_admin(storage, group_id, current_user)
    return storage.update_group(group_id, group_update.model_dump(exclude_unset=True, exclude_none=True))

# PUBLIC_INTERFACE
@router.delete("/{group_id}", status_code=204, summary="Delete a group")
def delete_group(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Delete a group and all of its memberships. Admins only.
    """
    get_existing_group(storage, group_id)
    require_group_admin(storage, group_id, current_user)
    storage.delete_group(group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# PUBLIC_INTERFACE
@router.post("/{group_id}/join", response_model=GroupMember, status_code=201, summary="Join a group")
def join_group(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    get_existing_group(storage, group_id)
    return storage.add_group_member(GroupMemberCreate(group_id=group_id, user_id=current_user.id, role="member"))

# PUBLIC_INTERFACE
@router.post("/{group_id}/leave", status_code=204, summary="Leave a group")
def leave_group(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    if storage.get_group_membership(group_id, current_user.id) is None:
        raise ValidationError("Not a member of this group")
    storage.remove_group_member(group_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# PUBLIC_INTERFACE
@router.get("/{group_id}/members", response_model=List[GroupMember], summary="List group members")
def list_members(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return storage.get_group_members(group_id)

# PUBLIC_INTERFACE
@router.post("/{group_id}/invite/{user_id}", response_model=GroupMember, status_code=201, summary="Add a user to a group")
def invite_member(
    group_id: int,
    user_id: int,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    Add another user as a member and notify them. Admins only.
    """
    get_existing_group(storage, group_id)
    require_group_admin(storage, group_id, current_user)
    return storage.invite_group_member(group_id, user_id, invited_by=current_user.id)

# PUBLIC_INTERFACE
@router.put("/{group_id}/members/{user_id}", response_model=GroupMember, summary="Change a member's role")
def update_member_role(
    group_id: int,
    user_id: int,
    role_update: MemberRoleUpdate,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    require_group_admin(storage, group_id, current_user)
    return storage.update_group_member(group_id, user_id, role_update.role)

# PUBLIC_INTERFACE
@router.delete("/{group_id}/members/{user_id}", status_code=204, summary="Remove a member")
def remove_member(
    group_id: int,
    user_id: int,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    require_group_admin(storage, group_id, current_user)
    storage.remove_group_member(group_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# PUBLIC_INTERFACE
@router.get("/{group_id}/memories", response_model=List[Memory], summary="List group memories")
def list_group_memories(group_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Public memories written by the group's members. Members only.
    """
    get_existing_group(storage, group_id)
    if storage.get_group_membership(group_id, current_user.id) is None:
        raise ForbiddenError("Access denied")
    return storage.get_group_memories(group_id)
