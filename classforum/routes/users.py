"""
Routes for the logged-in user's own profile.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile

from classforum.auth import AuthClient
from classforum.config import Settings, get_settings
from classforum.db import DbClient, DuplicateRecordError, UserRecord
from classforum.dependencies import (
    get_access_token,
    get_active_user,
    get_auth_client,
    get_db_client,
    get_storage_client,
)
from classforum.errors import BadRequest, Conflict, NotFound
from classforum.routes.common import clean, upstream
from classforum.routes.uploads import ensure_multipart, read_upload, store_upload
from classforum.schemas import (
    PasswordChangeRequest,
    ProfileUpdateRequest,
    SuccessResponse,
    UserResponse,
)
from classforum.serializers import user_response
from classforum.storage import StorageClient
from classforum.uploads import IMAGE_RULE, build_avatar_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users/me", tags=["users"])


@router.put("", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    token: str = Depends(get_access_token),
    user: UserRecord = Depends(get_active_user),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    username = clean(payload.username)
    if not username:
        raise BadRequest("Username cannot be empty")
    with upstream("Failed to update profile"):
        try:
            updated = db.update_user(user.id, username=username)
        except DuplicateRecordError as exc:
            raise Conflict("Username already taken") from exc
        if updated is None:
            raise NotFound("User not found")
        auth.update_user(token, data={"full_name": username})
    logger.info("User %s renamed to %s", user.id, username)
    return user_response(updated)


@router.put("/password", response_model=SuccessResponse)
def change_password(
    payload: PasswordChangeRequest,
    token: str = Depends(get_access_token),
    user: UserRecord = Depends(get_active_user),
    auth: AuthClient = Depends(get_auth_client),
):
    if payload.new_password != payload.confirm_password:
        raise BadRequest("New password and confirmation do not match")
    if not payload.new_password:
        raise BadRequest("New password cannot be empty")
    with upstream("Failed to change password"):
        auth.update_user(token, password=payload.new_password)
    logger.info("User %s changed their password", user.id)
    return SuccessResponse(success=True, message="Password changed")


@router.post("/avatar", response_model=UserResponse)
async def upload_avatar(
    request: Request,
    file: Optional[UploadFile] = File(None),
    user: UserRecord = Depends(get_active_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    ensure_multipart(request)
    data = await read_upload(file, IMAGE_RULE)
    path = build_avatar_path(user.id, file.filename, file.content_type)
    url = store_upload(storage, path, data, file.content_type, settings)
    with upstream("Failed to update avatar"):
        updated = db.update_user(user.id, avatar=url)
    if updated is None:
        raise NotFound("User not found")
    logger.info("User %s updated avatar to %s", user.id, path)
    return user_response(updated)
