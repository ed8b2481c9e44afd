"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class RegisterIn(BaseModel):
    """Payload for the registration endpoint."""
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)
    role: Literal["member", "club"] = "member"
    display_name: Optional[str] = None


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class UserOut(BaseModel):
    id: int
    username: str
    role: str
    display_name: Optional[str] = None


class ClubOut(BaseModel):
    """A club as seen by a viewer; `is_following` is None when not computed."""
    id: int
    username: str
    display_name: Optional[str] = None
    followers_count: int = 0
    is_following: Optional[bool] = None


class FollowStatus(BaseModel):
    """Result of a follow toggle."""
    target_id: int
    is_following: bool
    follower_count: int = Field(ge=0)


class FollowToggleOut(BaseModel):
    success: bool = True
    message: str
    data: FollowStatus


class PaginationParams(BaseModel):
    """Raw pagination query values; normalized by `utils.pagination`."""
    page: Optional[int] = None
    limit: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class FollowOut(BaseModel):
    """A follow edge with the followed club expanded."""
    id: int
    actor_id: int
    target_id: int
    created_at: datetime
    updated_at: datetime
    target: Optional[ClubOut] = None


class FollowPage(BaseModel):
    meta: PageMeta
    data: List[FollowOut]


class ClubPage(BaseModel):
    meta: PageMeta
    data: List[ClubOut]
