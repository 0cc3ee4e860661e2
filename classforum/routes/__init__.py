"""
HTTP routes for the forum API.
"""

from fastapi import APIRouter

from classforum.routes import (
    admin,
    auth,
    categories,
    logs,
    posts,
    replies,
    search,
    uploads,
    users,
)

router = APIRouter()
for module in (posts, replies, search, auth, users, uploads, categories, admin, logs):
    router.include_router(module.router)
