"""
Reply routes for a single post.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from classforum.config import Settings, get_settings
from classforum.db import DbClient, STATUS_ACTIVE, UserRecord
from classforum.dependencies import get_active_user, get_db_client, get_optional_user
from classforum.routes.common import load_visible_post, require_fields, upstream
from classforum.schemas import ReplyPayload, ReplyResponse
from classforum.serializers import reply_responses

logger = logging.getLogger(__name__)

router = APIRouter(tags=["replies"])


@router.get("/posts/{post_id}/replies", response_model=list[ReplyResponse])
def list_replies(
    post_id: int,
    viewer: Optional[UserRecord] = Depends(get_optional_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with upstream("Failed to fetch replies"):
        load_visible_post(db, post_id, viewer)
        replies = db.list_replies(post_id=post_id, status=STATUS_ACTIVE)
        return reply_responses(db, replies, settings.storage_public_url)


@router.post(
    "/posts/{post_id}/replies", response_model=ReplyResponse, status_code=201
)
def create_reply(
    post_id: int,
    payload: ReplyPayload,
    user: UserRecord = Depends(get_active_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    require_fields("Reply content is required", content=payload.content)
    with upstream("Failed to create reply"):
        load_visible_post(db, post_id, user)
        reply = db.create_reply(
            content=payload.content, author_id=user.id, post_id=post_id
        )
        logger.info("Reply %s added to post %s by %s", reply.id, post_id, user.id)
        return reply_responses(db, [reply], settings.storage_public_url)[0]
