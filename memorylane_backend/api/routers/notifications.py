from typing import List

from fastapi import APIRouter, Depends

from ...entities import Notification, User
from ...errors import ForbiddenError, NotFoundError
from ...storage import IStorage
from ..deps import get_current_user, get_storage

router = APIRouter(prefix="/notifications")


# PUBLIC_INTERFACE
@router.get("", response_model=List[Notification], summary="List notifications")
def list_notifications(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Notifications addressed to the caller, newest first.
    """
    return storage.get_user_notifications(current_user.id)

# PUBLIC_INTERFACE
@router.put("/{notification_id}/read", response_model=Notification, summary="Mark a notification read")
def mark_read(notification_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    notification = storage.get_notification(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != current_user.id:
        raise ForbiddenError("Access denied")
    return storage.mark_notification_as_read(notification_id)
