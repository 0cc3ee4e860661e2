"""
Category routes: public listing plus admin management.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from classforum.db import DbClient, DuplicateRecordError, UserRecord
from classforum.dependencies import get_db_client, require_admin
from classforum.errors import BadRequest, Conflict, NotFound
from classforum.routes.common import clean, upstream
from classforum.schemas import (
    CategoryCreateRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    SuccessResponse,
)
from classforum.serializers import category_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["categories"])


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(db: DbClient = Depends(get_db_client)):
    with upstream("Failed to fetch categories"):
        return [category_response(c) for c in db.list_categories()]


@router.post(
    "/admin/categories", response_model=CategoryResponse, status_code=201
)
def create_category(
    payload: CategoryCreateRequest,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    name = clean(payload.name)
    if not name:
        raise BadRequest("Category name cannot be empty")
    with upstream("Failed to create category"):
        try:
            category = db.create_category(name, payload.description)
        except DuplicateRecordError as exc:
            raise Conflict("Category already exists", name) from exc
    logger.info("Admin %s created category %s", admin.id, category.id)
    return category_response(category)


@router.put("/admin/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryUpdateRequest,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to update category"):
        try:
            category = db.update_category(
                category_id,
                name=clean(payload.name) or None,
                description=payload.description,
            )
        except DuplicateRecordError as exc:
            raise Conflict("Category already exists", payload.name) from exc
    if category is None:
        raise NotFound("Category not found")
    logger.info("Admin %s updated category %s", admin.id, category_id)
    return category_response(category)


@router.delete("/admin/categories/{category_id}", response_model=SuccessResponse)
def delete_category(
    category_id: int,
    admin: UserRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    with upstream("Failed to delete category"):
        if db.get_category(category_id) is None:
            raise NotFound("Category not found")
        in_use = db.count_posts_in_category(category_id)
        if in_use:
            raise BadRequest(
                "Category is still in use",
                f"{in_use} post(s) use this category; delete them first",
            )
        db.delete_category(category_id)
    logger.info("Admin %s deleted category %s", admin.id, category_id)
    return SuccessResponse(success=True)
