"""
Admin routes for managing users and moderating content.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from classforum.auth import AuthClient, AuthError
from classforum.config import Settings, get_settings
from classforum.db import (
    DbClient,
    DuplicateRecordError,
    ROLE_ADMIN,
    STATUS_ACTIVE,
    STATUS_BANNED,
    UserRecord,
)
from classforum.dependencies import get_auth_client, get_db_client, require_admin
from classforum.errors import BadRequest, Conflict, NotFound, UpstreamError
from classforum.routes.common import clean, upstream
from classforum.routes.posts import delete_post_with_replies
from classforum.schemas import (
    AdminReplyResponse,
    AdminUserCreateRequest,
    AdminUserUpdateRequest,
    BulkUserResult,
    BulkUsersRequest,
    BulkUsersResponse,
    PostResponse,
    StatsResponse,
    StatusToggleResponse,
    SuccessResponse,
    UserResponse,
)
from classforum.serializers import admin_reply_responses, post_responses, user_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _flip(status: str) -> str:
    return STATUS_BANNED if status == STATUS_ACTIVE else STATUS_ACTIVE


def create_account(
    auth: AuthClient,
    db: DbClient,
    *,
    username: str,
    email: str,
    password: str,
    role: str,
) -> UserRecord:
    """Create the provider account and the matching `users` row."""
    username = clean(username)
    email = clean(email).lower()
    if not username or not email or not password:
        raise BadRequest("Username, email and password are required")
    if db.get_user_by_username(username):
        raise Conflict("Username already taken", username)
    if db.get_user_by_email(email):
        raise Conflict("Email already registered", email)

    try:
        auth_user = auth.admin_create_user(email, password, {"username": username})
    except AuthError as exc:
        raise UpstreamError("Failed to create account", exc.message) from exc
    try:
        return db.create_user(auth_user.id, username, email, role=role)
    except DuplicateRecordError as exc:
        raise Conflict("Username or email already registered") from exc


# users


@router.get("/users", response_model=list[UserResponse])
def list_users(
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to fetch users"):
        return [user_response(u) for u in db.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    payload: AdminUserCreateRequest,
    admin: UserRecord = Depends(require_admin),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to add user"):
        user = create_account(
            auth,
            db,
            username=payload.username,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    logger.info("Admin %s added user %s (%s)", admin.id, user.id, user.role)
    return user_response(user)


@router.post("/users/bulk", response_model=BulkUsersResponse)
def bulk_create_users(
    payload: BulkUsersRequest,
    admin: UserRecord = Depends(require_admin),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    results = []
    for item in payload.users:
        try:
            with upstream("Failed to add user"):
                create_account(
                    auth,
                    db,
                    username=item.username,
                    email=item.email,
                    password=item.password,
                    role="user",
                )
        except (BadRequest, Conflict, UpstreamError) as exc:
            logger.warning("Bulk add skipped %s: %s", item.username, exc.message)
            detail = f"{exc.message}: {exc.details}" if exc.details else exc.message
            results.append(
                BulkUserResult(username=item.username, created=False, error=detail)
            )
            continue
        results.append(BulkUserResult(username=item.username, created=True))
    created = sum(1 for r in results if r.created)
    logger.info("Admin %s bulk-added %d/%d users", admin.id, created, len(results))
    return BulkUsersResponse(results=results)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: AdminUserUpdateRequest,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if user_id == admin.id:
        if payload.status == STATUS_BANNED:
            raise BadRequest("Admins cannot ban themselves")
        if payload.role and payload.role != ROLE_ADMIN:
            raise BadRequest("Admins cannot remove their own admin role")
    with upstream("Failed to update user"):
        try:
            user = db.update_user(
                user_id,
                username=clean(payload.username) or None,
                role=payload.role,
                status=payload.status,
            )
        except DuplicateRecordError as exc:
            raise Conflict("Username already taken", payload.username) from exc
    if user is None:
        raise NotFound("User not found")
    logger.info("Admin %s updated user %s", admin.id, user_id)
    return user_response(user)


@router.post("/users/{user_id}/toggle-status", response_model=StatusToggleResponse)
def toggle_user_status(
    user_id: str,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if user_id == admin.id:
        raise BadRequest("Admins cannot ban themselves")
    with upstream("Failed to update user status"):
        user = db.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        updated = db.update_user(user_id, status=_flip(user.status))
    logger.info("Admin %s set user %s to %s", admin.id, user_id, updated.status)
    return StatusToggleResponse(id=user_id, status=updated.status)


@router.delete("/users/{user_id}", response_model=SuccessResponse)
def delete_user(
    user_id: str,
    admin: UserRecord = Depends(require_admin),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    if user_id == admin.id:
        raise BadRequest("Admins cannot delete themselves")
    with upstream("Failed to delete user"):
        if db.get_user(user_id) is None:
            raise NotFound("User not found")

        try:
            removed = db.delete_replies_by_author(user_id)
            logger.info("Deleted %d replies by %s", removed, user_id)
        except Exception:
            logger.exception("Failed to delete replies by %s", user_id)

        try:
            for post in db.list_posts(author_id=user_id):
                delete_post_with_replies(db, post.id)
        except Exception:
            logger.exception("Failed to delete posts by %s", user_id)

        db.delete_user(user_id)

    try:
        auth.admin_delete_user(user_id)
    except AuthError as exc:
        logger.error("User %s row deleted but auth account remains: %s", user_id, exc.message)

    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return SuccessResponse(success=True, message="User deleted")


# content


@router.get("/posts", response_model=list[PostResponse])
def list_all_posts(
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with upstream("Failed to fetch posts"):
        return post_responses(
            db, db.list_posts(), settings.storage_public_url, reply_status=None
        )


@router.delete("/posts/{post_id}", response_model=SuccessResponse)
def delete_post(
    post_id: int,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to delete post"):
        if not delete_post_with_replies(db, post_id):
            raise NotFound("Post not found")
    logger.info("Admin %s deleted post %s", admin.id, post_id)
    return SuccessResponse(success=True, message="Post deleted")


@router.post("/posts/{post_id}/toggle-status", response_model=StatusToggleResponse)
def toggle_post_status(
    post_id: int,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to update post status"):
        post = db.get_post(post_id)
        if post is None:
            raise NotFound("Post not found")
        updated = db.update_post(post_id, status=_flip(post.status))
    logger.info("Admin %s set post %s to %s", admin.id, post_id, updated.status)
    return StatusToggleResponse(id=post_id, status=updated.status)


@router.get("/replies", response_model=list[AdminReplyResponse])
def list_all_replies(
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with upstream("Failed to fetch replies"):
        replies = list(reversed(db.list_replies()))
        return admin_reply_responses(db, replies, settings.storage_public_url)


@router.delete("/replies/{reply_id}", response_model=SuccessResponse)
def delete_reply(
    reply_id: int,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to delete reply"):
        if not db.delete_reply(reply_id):
            raise NotFound("Reply not found")
    logger.info("Admin %s deleted reply %s", admin.id, reply_id)
    return SuccessResponse(success=True, message="Reply deleted")


@router.post("/replies/{reply_id}/toggle-status", response_model=StatusToggleResponse)
def toggle_reply_status(
    reply_id: int,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to update reply status"):
        reply = db.get_reply(reply_id)
        if reply is None:
            raise NotFound("Reply not found")
        updated = db.update_reply_status(reply_id, _flip(reply.status))
    logger.info("Admin %s set reply %s to %s", admin.id, reply_id, updated.status)
    return StatusToggleResponse(id=reply_id, status=updated.status)


@router.get("/stats", response_model=StatsResponse)
def stats(
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to fetch stats"):
        return StatsResponse(**db.counts())
