"""
Pydantic schemas for the forum API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

Role = Literal["user", "admin"]
Status = Literal["active", "banned"]


class PostPayload(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("category_id", "categoryId")
    )


class ReplyPayload(BaseModel):
    content: Optional[str] = None


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class SendCodeRequest(BaseModel):
    email: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)


class PasswordChangeRequest(BaseModel):
    new_password: str = Field(
        ..., validation_alias=AliasChoices("new_password", "newPassword")
    )
    confirm_password: str = Field(
        ..., validation_alias=AliasChoices("confirm_password", "confirmPassword")
    )


class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    description: Optional[str] = None


class AdminUserCreateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str
    password: str
    role: Role = "user"


class BulkUserItem(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str
    password: str


class BulkUsersRequest(BaseModel):
    users: list[BulkUserItem] = Field(..., min_length=1)


class AdminUserUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=1, max_length=64)
    role: Optional[Role] = None
    status: Optional[Status] = None


class ClientErrorReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: Any = None
    context: Optional[str] = None
    timestamp: Optional[str] = None
    user_agent: Optional[str] = Field(None, alias="userAgent")
    url: Optional[str] = None


class AuthorSummary(BaseModel):
    id: Optional[str] = None
    username: str
    avatar: Optional[str] = None


class CategorySummary(BaseModel):
    id: Optional[int] = None
    name: str


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    content_html: str
    created_at: datetime
    status: str
    author: AuthorSummary
    category: CategorySummary
    reply_count: int = 0


class ReplyResponse(BaseModel):
    id: int
    post_id: int
    content: str
    content_html: str
    created_at: datetime
    status: str
    author: AuthorSummary


class AdminReplyResponse(ReplyResponse):
    post_title: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    role: str
    status: str
    avatar: Optional[str] = None
    created_at: datetime


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"
    user: UserResponse


class SendCodeResponse(BaseModel):
    success: bool
    message: str
    code: Optional[str] = None


class VerifiedUser(BaseModel):
    id: str
    email: str
    username: str


class VerifyCodeResponse(BaseModel):
    success: bool
    user: VerifiedUser
    session: SessionResponse


class UploadResponse(BaseModel):
    success: bool
    url: str
    path: str
    type: str


class UploadConfigResponse(BaseModel):
    maxImageSize: int
    maxAudioSize: int
    allowedImageTypes: list[str]
    allowedAudioTypes: list[str]
    storageUrl: str


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class StatusToggleResponse(BaseModel):
    id: int | str
    status: Status


class BulkUserResult(BaseModel):
    username: str
    created: bool
    error: Optional[str] = None


class BulkUsersResponse(BaseModel):
    results: list[BulkUserResult]


class StatsResponse(BaseModel):
    users: int
    posts: int
    replies: int
    categories: int


class LogErrorResponse(BaseModel):
    logged: bool
    timestamp: str
