from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...entities import Friend, User
from ...errors import ForbiddenError, NotFoundError
from ...storage import IStorage
from ..deps import get_current_user, get_storage

router = APIRouter(prefix="/friends")


def get_incoming_request(storage: IStorage, request_id: int, user: User) -> Friend:
    request = storage.get_friend_request(request_id)
    if request is None:
        raise NotFoundError("Friend request not found")
    if request.friend_id != user.id:
        raise ForbiddenError("Access denied")
    return request


# PUBLIC_INTERFACE
@router.get("", response_model=List[Friend], summary="List friend records")
def list_friends(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Every friend record involving the caller: sent and received requests
    in any status.
    """
    return storage.get_user_friends(current_user.id)

# PUBLIC_INTERFACE
@router.post("/request/{user_id}", response_model=Friend, status_code=201, summary="Send a friend request")
def send_friend_request(user_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Send a friend request. Fails with 409 if any record already links the
    two users, whoever sent it.
    """
    return storage.create_friend_request(current_user.id, user_id)

# PUBLIC_INTERFACE
@router.post("/accept/{request_id}", response_model=Friend, summary="Accept a friend request")
def accept_friend_request(request_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Accept a pending request addressed to the caller; the requester is notified.
    """
    get_incoming_request(storage, request_id, current_user)
    return storage.accept_friend_request(request_id)

# PUBLIC_INTERFACE
@router.post("/reject/{request_id}", status_code=204, summary="Reject a friend request")
def reject_friend_request(request_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    get_incoming_request(storage, request_id, current_user)
    storage.reject_friend_request(request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# PUBLIC_INTERFACE
@router.delete("/{friend_id}", status_code=204, summary="Unfriend a user")
def remove_friend(friend_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Remove any friend record between the caller and ``friend_id``.
    """
    storage.remove_friend(current_user.id, friend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
