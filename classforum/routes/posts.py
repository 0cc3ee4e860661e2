"""
Post routes: list, create, read, update, delete.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from classforum.config import Settings, get_settings
from classforum.db import DbClient, STATUS_ACTIVE, UserRecord
from classforum.dependencies import get_active_user, get_db_client, get_optional_user
from classforum.errors import BadRequest, NotFound
from classforum.routes.common import (
    clean,
    ensure_can_modify,
    load_visible_post,
    require_fields,
    upstream,
)
from classforum.schemas import PostPayload, PostResponse, SuccessResponse
from classforum.serializers import post_response, post_responses

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])


def _check_category(db: DbClient, category_id: int) -> None:
    if db.get_category(category_id) is None:
        raise BadRequest("Invalid category", f"Category {category_id} does not exist")


@router.get("/posts", response_model=list[PostResponse])
def list_posts(
    category_id: Optional[int] = Query(None),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with upstream("Failed to fetch posts"):
        posts = db.list_posts(status=STATUS_ACTIVE, category_id=category_id)
        results = post_responses(db, posts, settings.storage_public_url)
    logger.info("Fetched %d posts", len(results))
    return results


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    payload: PostPayload,
    user: UserRecord = Depends(get_active_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    require_fields(
        "Title, content and category are required",
        title=payload.title,
        content=payload.content,
        category_id=payload.category_id,
    )
    with upstream("Failed to create post"):
        _check_category(db, payload.category_id)
        post = db.create_post(
            title=clean(payload.title),
            content=payload.content,
            author_id=user.id,
            category_id=payload.category_id,
        )
        logger.info("Post %s created by %s", post.id, user.id)
        return post_response(db, post, settings.storage_public_url)


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(
    post_id: int,
    viewer: Optional[UserRecord] = Depends(get_optional_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with upstream("Failed to fetch post"):
        post = load_visible_post(db, post_id, viewer)
        return post_response(db, post, settings.storage_public_url)


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    payload: PostPayload,
    user: UserRecord = Depends(get_active_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    require_fields(
        "Title, content and category are required",
        title=payload.title,
        content=payload.content,
        category_id=payload.category_id,
    )
    with upstream("Failed to update post"):
        post = db.get_post(post_id)
        if post is None:
            raise NotFound("Post not found")
        ensure_can_modify(user, post.author_id)
        _check_category(db, payload.category_id)
        updated = db.update_post(
            post_id,
            title=clean(payload.title),
            content=payload.content,
            category_id=payload.category_id,
        )
        if updated is None:
            raise NotFound("Post not found")
        logger.info("Post %s updated by %s", post_id, user.id)
        return post_response(db, updated, settings.storage_public_url)


def delete_post_with_replies(db: DbClient, post_id: int) -> bool:
    """Delete a post's replies, then the post. Reply cleanup is best-effort."""
    try:
        removed = db.delete_replies_for_post(post_id)
        logger.info("Deleted %d replies of post %s", removed, post_id)
    except Exception:
        logger.exception("Failed to delete replies of post %s", post_id)
    return db.delete_post(post_id)


@router.delete("/posts/{post_id}", response_model=SuccessResponse)
def delete_post(
    post_id: int,
    user: UserRecord = Depends(get_active_user),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to delete post"):
        post = db.get_post(post_id)
        if post is None:
            raise NotFound("Post not found")
        ensure_can_modify(user, post.author_id)
        delete_post_with_replies(db, post_id)
    logger.info("Post %s deleted by %s", post_id, user.id)
    return SuccessResponse(success=True)
