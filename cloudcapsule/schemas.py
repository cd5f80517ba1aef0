from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional, Union


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    token: str = ""
    password: str = ""


class UserRead(BaseModel):
    id: int
    username: str
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class MessageResponse(BaseModel):
    message: str


class CapsuleCreate(BaseModel):
    title: Optional[str] = None
    open_date: Optional[Union[datetime, str]] = None
    letter: Optional[str] = None
    secret: Optional[str] = None
    feeling: Optional[str] = None
    rating: Optional[int] = None
    song: Optional[str] = None
    photo_refs: List[str] = Field(default_factory=list)


class CapsuleUpdate(BaseModel):
    """Every field is optional; photo_refs are appended to the existing ones."""
    title: Optional[str] = None
    open_date: Optional[Union[datetime, str]] = None
    letter: Optional[str] = None
    secret: Optional[str] = None
    feeling: Optional[str] = None
    rating: Optional[int] = None
    song: Optional[str] = None
    photo_refs: List[str] = Field(default_factory=list)


class CapsuleCreated(BaseModel):
    id: int
    message: str = "Capsule created successfully"


class CapsuleRead(BaseModel):
    id: int
    user_id: int
    title: str
    open_date: datetime
    created_at: datetime
    is_open: bool
    letter: Optional[str] = None
    secret: Optional[str] = None
    feeling: Optional[str] = None
    rating: Optional[int] = None
    song: Optional[str] = None
    photo_refs: List[str] = Field(default_factory=list)


class OpenedCapsule(BaseModel):
    id: int
    title: str
    open_date: datetime


class UploadResponse(BaseModel):
    urls: List[str] = Field(default_factory=list)
