from typing import List

from fastapi import APIRouter, Depends

from ...entities import Group, User
from ...errors import NotFoundError
from ...storage import IStorage
from ..deps import get_current_user, get_storage
from ..schemas import UserOut

router = APIRouter(prefix="/users")


# PUBLIC_INTERFACE
@router.get("", response_model=List[UserOut], summary="List users")
def list_users(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return storage.get_all_users()

# Declared before /{user_id} so "groups" is not parsed as an id.
# PUBLIC_INTERFACE
@router.get("/groups", response_model=List[Group], summary="List the caller's groups")
def list_my_groups(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return storage.get_user_groups(current_user.id)

# PUBLIC_INTERFACE
@router.get("/{user_id}", response_model=UserOut, summary="Get a user profile")
def get_user(user_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    user = storage.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
