"""
Helpers shared by the route modules.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from classforum.auth import AuthError
from classforum.db import DbClient, PostRecord, STATUS_ACTIVE, UserRecord
from classforum.errors import BadRequest, Forbidden, NotFound, UpstreamError

logger = logging.getLogger(__name__)


def clean(value: Optional[str]) -> str:
    return (value or "").strip()


def require_fields(details: str, **fields: Optional[object]) -> None:
    """Raise 400 unless every field is present and non-blank."""
    missing = [
        name
        for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        logger.warning("Missing required fields: %s", ", ".join(missing))
        raise BadRequest("Missing required fields", details)


@contextmanager
def upstream(action: str) -> Iterator[None]:
    """Turn database, auth and storage failures into a 500 envelope."""
    try:
        yield
    except AuthError as exc:
        logger.error("%s: auth provider error: %s", action, exc.message)
        raise UpstreamError(action, exc.message) from exc
    except SQLAlchemyError as exc:
        logger.error("%s: database error: %s", action, exc)
        raise UpstreamError(action, str(exc)) from exc
    except (BotoCoreError, ClientError) as exc:
        logger.error("%s: storage error: %s", action, exc)
        raise UpstreamError(action, str(exc)) from exc
    except RedisError as exc:
        logger.error("%s: redis error: %s", action, exc)
        raise UpstreamError(action, str(exc)) from exc


def load_visible_post(db: DbClient, post_id: int, viewer: Optional[UserRecord] = None) -> PostRecord:
    """Fetch a post; banned posts are only visible to admins."""
    post = db.get_post(post_id)
    if post is None:
        raise NotFound("Post not found")
    if post.status != STATUS_ACTIVE and not (viewer and viewer.is_admin):
        raise NotFound("Post not found")
    return post


def ensure_can_modify(user: UserRecord, author_id: str) -> None:
    if user.id != author_id and not user.is_admin:
        raise Forbidden("Only the author or an admin can change this post")
