"""
Request and response bodies for the HTTP API.

Stored records come back as the entity models in
``memorylane_backend.entities``; this module only adds the shapes the
API accepts from clients and the few it returns that differ from a
stored record (no password on users, upload and calendar payloads).
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entities import GroupRole


# Users / auth

class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, description="Unique username")
    password: str = Field(..., min_length=5, max_length=72)
    display_name: Optional[str] = Field(None, max_length=128)
    bio: Optional[str] = None
    avatar: Optional[str] = Field(None, max_length=512, description="Avatar image URL")

class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=64)
    display_name: Optional[str] = Field(None, max_length=128)
    bio: Optional[str] = None
    avatar: Optional[str] = Field(None, max_length=512)

class UserOut(BaseModel):
    id: int
    username: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class Token(BaseModel):
    access_token: str
    token_type: str


# Memories / comments

class MemoryIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=128)
    content: str = Field(..., description="Free-text body of the memory")
    images: List[str] = Field(default_factory=list, description="Ordered image URLs")
    date: datetime = Field(..., description="When the remembered event happened")
    location: Optional[str] = Field(None, max_length=256)
    is_private: bool = False

class MemoryUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=128)
    content: Optional[str] = None
    images: Optional[List[str]] = None
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=256)
    is_private: Optional[bool] = None

class CommentIn(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


# Groups

class GroupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    avatar: Optional[str] = Field(None, max_length=512)

class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    avatar: Optional[str] = Field(None, max_length=512)

class MemberRoleUpdate(BaseModel):
    role: GroupRole


# Uploads / calendar

class UploadOut(BaseModel):
    urls: List[str]

class CalendarDayOut(BaseModel):
    date: date
    in_month: bool
    has_memory: bool
    memory_ids: List[int]
    label: str
