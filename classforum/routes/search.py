"""
Full-text-ish search over post titles and bodies.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from classforum.config import Settings, get_settings
from classforum.db import DbClient, STATUS_ACTIVE
from classforum.dependencies import get_db_client
from classforum.errors import BadRequest
from classforum.routes.common import clean, upstream
from classforum.schemas import PostResponse
from classforum.serializers import post_responses

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.get("/search", response_model=list[PostResponse])
def search_posts(
    q: Optional[str] = Query(None, max_length=200),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    query = clean(q)
    if not query:
        raise BadRequest("Search query cannot be empty", "Please enter a keyword")
    with upstream("Search failed"):
        posts = db.search_posts(query, status=STATUS_ACTIVE)
        results = post_responses(db, posts, settings.storage_public_url)
    logger.info("Search %r matched %d posts", query, len(results))
    return results
