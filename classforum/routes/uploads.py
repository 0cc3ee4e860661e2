"""
File upload routes backed by object storage.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from classforum.config import Settings, get_settings
from classforum.db import UserRecord
from classforum.dependencies import get_active_user, get_storage_client
from classforum.errors import BadRequest
from classforum.routes.common import upstream
from classforum.schemas import UploadConfigResponse, UploadResponse
from classforum.storage import StorageClient, rewrite_storage_url
from classforum.uploads import (
    UploadRule,
    build_object_path,
    get_rule,
    upload_config,
    validate_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


def ensure_multipart(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        logger.warning("Rejected upload with content type %r", content_type)
        raise BadRequest("Invalid request format", "Please use multipart/form-data")


async def read_upload(file: Optional[UploadFile], rule: UploadRule) -> bytes:
    if file is None:
        raise BadRequest("No file", "Please choose a file to upload")
    if file.size is not None:
        validate_upload(rule, file.size, file.content_type)
    data = await file.read()
    validate_upload(rule, len(data), file.content_type)
    return data


def store_upload(
    storage: StorageClient, path: str, data: bytes, content_type: str, settings: Settings
) -> str:
    """Upload bytes and return the public URL on the custom domain."""
    with upstream("Upload failed"):
        storage.upload_bytes(path, data, content_type)
        public_url = storage.public_url(path)
    return rewrite_storage_url(public_url, settings.storage_public_url)


@router.get("/upload", response_model=UploadConfigResponse)
def get_upload_config(settings: Settings = Depends(get_settings)):
    return upload_config(settings.storage_public_url)


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    upload_type: str = Form("image", alias="type"),
    user: UserRecord = Depends(get_active_user),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    ensure_multipart(request)
    rule = get_rule(upload_type or "image")
    data = await read_upload(file, rule)

    path = build_object_path(rule, file.filename, file.content_type)
    url = store_upload(storage, path, data, file.content_type, settings)
    logger.info("User %s uploaded %s (%d bytes)", user.id, path, len(data))
    return UploadResponse(success=True, url=url, path=path, type=rule.kind)
