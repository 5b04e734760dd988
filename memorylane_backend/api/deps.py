"""
FastAPI dependencies shared by every router.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from ..entities import User
from ..errors import ForbiddenError
from ..storage import IStorage
from .security import decode_access_token, verify_password

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")


# STORAGE Dependency
def get_storage(request: Request) -> IStorage:
    return request.app.state.storage

def authenticate_user(storage: IStorage, username: str, password: str):
    user = storage.get_user_by_username(username)
    if not user or not verify_password(password, user.password):
        return None
    return user

def get_current_user(token: str = Depends(oauth2_scheme), storage: IStorage = Depends(get_storage)) -> User:
    """Decodes JWT and retrieves the user from storage."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception
    user = storage.get_user(user_id)
    if user is None:
        raise credentials_exception
    return user

def require_group_admin(storage: IStorage, group_id: int, user: User) -> None:
    membership = storage.get_group_membership(group_id, user.id)
    if membership is None or membership.role != "admin":
        raise ForbiddenError("Access denied")
