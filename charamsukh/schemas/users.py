from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


class RegisterIn(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    # admin is never self-assigned
    role: Literal['reader', 'author'] = 'reader'

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v


class LoginIn(CamelModel):
    email: str
    password: str


class PreferencesIn(CamelModel):
    dark_mode: Optional[bool] = None
    notifications: Optional[bool] = None
    auto_play: Optional[bool] = None


class ProfileUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=255)
    preferences: Optional[PreferencesIn] = None


class ProgressIn(CamelModel):
    progress: int = Field(ge=0, le=100)
    time_spent: float = Field(default=0, ge=0)


class AdminUserUpdateIn(CamelModel):
    is_active: Optional[bool] = None
    role: Optional[Literal['reader', 'author', 'admin']] = None


class UserStatsOut(CamelModel):
    stories_read: int
    hours_listened: float
    bookmarks: int


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    role: str
    avatar: str
    bio: str
    is_active: bool
    preferences: dict
    stats: UserStatsOut
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> 'UserOut':
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            avatar=user.avatar or '',
            bio=user.bio or '',
            is_active=user.is_active,
            preferences=user.preferences or {},
            stats=UserStatsOut(
                stories_read=user.stories_read,
                hours_listened=round(user.hours_listened or 0, 2),
                bookmarks=user.bookmarks_count,
            ),
            last_login=user.last_login,
            created_at=user.created_at,
        )
