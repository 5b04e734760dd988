from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...entities import Comment, CommentCreate, Memory, MemoryCreate, User
from ...errors import ForbiddenError, NotFoundError
from ...storage import IStorage
from ..deps import get_current_user, get_storage
from ..schemas import CommentIn, MemoryIn, MemoryUpdate

router = APIRouter()


def get_readable_memory(storage: IStorage, memory_id: int, user: User) -> Memory:
    """A memory the user may view: their own, or anyone's non-private one."""
    memory = storage.get_memory(memory_id)
    if memory is None:
        raise NotFoundError("Memory not found")
    if memory.user_id != user.id and memory.is_private:
        raise ForbiddenError("Access denied")
    return memory

def get_owned_memory(storage: IStorage, memory_id: int, user: User) -> Memory:
    memory = storage.get_memory(memory_id)
    if memory is None:
        raise NotFoundError("Memory not found")
    if memory.user_id != user.id:
        raise ForbiddenError("Access denied")
    return memory


#####################
# MEMORIES ENDPOINTS
#####################

# PUBLIC_INTERFACE
@router.get("/memories", response_model=List[Memory], summary="List accessible memories")
def list_memories(storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    The caller's own memories plus public memories of accepted friends,
    newest event date first.
    """
    return storage.get_accessible_memories(current_user.id)

# PUBLIC_INTERFACE
@router.get("/memories/user/{user_id}", response_model=List[Memory], summary="List a user's memories")
def list_user_memories(user_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    All of the caller's own memories, or only the public ones of another user.
    """
    if user_id == current_user.id:
        return storage.get_user_memories(user_id)
    return storage.get_user_public_memories(user_id)

# PUBLIC_INTERFACE
@router.get("/memories/{memory_id}", response_model=Memory, summary="Get a single memory")
def get_memory(memory_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    return get_readable_memory(storage, memory_id, current_user)

# PUBLIC_INTERFACE
@router.post("/memories", response_model=Memory, status_code=201, summary="Create a memory")
def create_memory(memory: MemoryIn, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Create a new memory owned by the authenticated user.
    """
    return storage.create_memory(MemoryCreate(user_id=current_user.id, **memory.model_dump()))

# PUBLIC_INTERFACE
@router.put("/memories/{memory_id}", response_model=Memory, summary="Update a memory")
def update_memory(
    memory_id: int,
    memory_update: MemoryUpdate,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    Update a memory owned by the authenticated user. Only supplied fields change.
    """
    get_owned_memory(storage, memory_id, current_user)
    return storage.update_memory(memory_id, memory_update.model_dump(exclude_unset=True, exclude_none=True))

# PUBLIC_INTERFACE
@router.delete("/memories/{memory_id}", status_code=204, summary="Delete a memory")
def delete_memory(memory_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Delete a memory owned by the authenticated user, along with its comments.
    """
    get_owned_memory(storage, memory_id, current_user)
    storage.delete_memory(memory_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


#####################
# COMMENTS ENDPOINTS
#####################

# PUBLIC_INTERFACE
@router.get("/memories/{memory_id}/comments", response_model=List[Comment], summary="List comments on a memory")
def list_comments(memory_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    get_readable_memory(storage, memory_id, current_user)
    return storage.get_memory_comments(memory_id)

# PUBLIC_INTERFACE
@router.post("/memories/{memory_id}/comments", response_model=Comment, status_code=201, summary="Comment on a memory")
def create_comment(
    memory_id: int,
    comment: CommentIn,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    Add a comment. The memory's owner is notified unless they wrote it.
    """
    get_readable_memory(storage, memory_id, current_user)
    return storage.create_comment(
        CommentCreate(memory_id=memory_id, user_id=current_user.id, content=comment.content)
    )

# PUBLIC_INTERFACE
@router.delete("/comments/{comment_id}", status_code=204, summary="Delete a comment")
def delete_comment(comment_id: int, storage: IStorage = Depends(get_storage), current_user: User = Depends(get_current_user)):
    """
    Delete a comment written by the authenticated user.
    """
    comment = storage.get_comment(comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")
    if comment.user_id != current_user.id:
        raise ForbiddenError("Access denied")
    storage.delete_comment(comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
