"""
Shape database records into API responses.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from classforum.db import (
    CategoryRecord,
    DbClient,
    PostRecord,
    ReplyRecord,
    STATUS_ACTIVE,
    UserRecord,
)
from classforum.rendering import render_content
from classforum.schemas import (
    AdminReplyResponse,
    AuthorSummary,
    CategoryResponse,
    CategorySummary,
    PostResponse,
    ReplyResponse,
    UserResponse,
)

UNKNOWN_AUTHOR = "Unknown user"
UNCATEGORIZED = "Uncategorized"


def user_response(user: UserRecord) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        status=user.status,
        avatar=user.avatar,
        created_at=user.created_at,
    )


def category_response(category: CategoryRecord) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        created_at=category.created_at,
    )


def _author(author_id: str, users: Dict[str, UserRecord]) -> AuthorSummary:
    user = users.get(author_id)
    if user is None:
        return AuthorSummary(id=author_id, username=UNKNOWN_AUTHOR)
    return AuthorSummary(id=user.id, username=user.username, avatar=user.avatar)


def post_responses(
    db: DbClient,
    posts: Iterable[PostRecord],
    storage_url: str,
    *,
    reply_status: Optional[str] = STATUS_ACTIVE,
) -> list[PostResponse]:
    posts = list(posts)
    if not posts:
        return []
    users = db.get_users(p.author_id for p in posts)
    categories = {c.id: c for c in db.list_categories()}
    reply_counts = db.count_replies_by_post(
        (p.id for p in posts), status=reply_status
    )
    results = []
    for post in posts:
        category = categories.get(post.category_id)
        results.append(
            PostResponse(
                id=post.id,
                title=post.title,
                content=post.content,
                content_html=render_content(post.content, storage_url),
                created_at=post.created_at,
                status=post.status,
                author=_author(post.author_id, users),
                category=CategorySummary(
                    id=post.category_id,
                    name=category.name if category else UNCATEGORIZED,
                ),
                reply_count=reply_counts.get(post.id, 0),
            )
        )
    return results


def post_response(
    db: DbClient,
    post: PostRecord,
    storage_url: str,
    *,
    reply_status: Optional[str] = STATUS_ACTIVE,
) -> PostResponse:
    return post_responses(db, [post], storage_url, reply_status=reply_status)[0]


def reply_responses(
    db: DbClient, replies: Iterable[ReplyRecord], storage_url: str
) -> list[ReplyResponse]:
    replies = list(replies)
    users = db.get_users(r.author_id for r in replies)
    return [
        ReplyResponse(
            id=reply.id,
            post_id=reply.post_id,
            content=reply.content,
            content_html=render_content(reply.content, storage_url),
            created_at=reply.created_at,
            status=reply.status,
            author=_author(reply.author_id, users),
        )
        for reply in replies
    ]


def admin_reply_responses(
    db: DbClient, replies: Iterable[ReplyRecord], storage_url: str
) -> list[AdminReplyResponse]:
    replies = list(replies)
    titles: Dict[int, str] = {}
    for post_id in {r.post_id for r in replies}:
        post = db.get_post(post_id)
        if post:
            titles[post_id] = post.title
    return [
        AdminReplyResponse(**base.model_dump(), post_title=titles.get(base.post_id))
        for base in reply_responses(db, replies, storage_url)
    ]
