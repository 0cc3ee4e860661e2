"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from classforum.auth import AuthClient, AuthError, InMemoryAuthClient, SupabaseAuthClient
from classforum.codes import CodeStore, DbCodeStore, RedisCodeStore
from classforum.config import get_settings
from classforum.db import DbClient, InMemoryDbClient, PostgresDbClient, UserRecord
from classforum.errors import Forbidden, Unauthorized, UpstreamError
from classforum.mailer import LogMailer, Mailer, SmtpMailer
from classforum.storage import (
    InMemoryStorageClient,
    StorageClient,
    SupabaseStorageClient,
    default_s3_endpoint,
)

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None
_code_store: CodeStore | None = None
_mailer: Mailer | None = None


def reset_backends() -> None:
    """Drop cached clients so the next request rebuilds them (tests)."""
    global _db_client, _auth_client, _storage_client, _code_store, _mailer
    _db_client = None
    _auth_client = None
    _storage_client = None
    _code_store = None
    _mailer = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.supabase_url:
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = SupabaseAuthClient(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key or "",
            service_key=settings.supabase_service_key or "",
        )
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_access_key_id:
        _storage_client = InMemoryStorageClient(bucket=settings.storage_bucket)
    else:
        _storage_client = SupabaseStorageClient(
            bucket=settings.storage_bucket,
            project_url=settings.supabase_url or "",
            endpoint=settings.storage_s3_endpoint
            or default_s3_endpoint(settings.supabase_url)
            or "",
            region=settings.storage_region or "",
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
        )
    return _storage_client


def get_code_store() -> CodeStore:
    global _code_store
    if _code_store:
        return _code_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _code_store = RedisCodeStore(
            url=settings.redis_url, key_prefix=settings.redis_code_prefix
        )
    else:
        _code_store = DbCodeStore(get_db_client())
    return _code_store


def get_mailer() -> Mailer:
    global _mailer
    if _mailer:
        return _mailer

    settings = get_settings()
    if settings.smtp_host:
        _mailer = SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
        )
    else:
        _mailer = LogMailer()
    return _mailer


def get_access_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise Unauthorized("Not logged in", "Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Not logged in", "Expected a Bearer token")
    return token.strip()


def get_current_user(
    token: str = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
) -> UserRecord:
    try:
        auth_user = auth.get_user(token)
    except AuthError as exc:
        logger.error("Token lookup failed: %s", exc.message)
        raise UpstreamError("Authentication failed", exc.message) from exc
    if auth_user is None:
        raise Unauthorized("Invalid or expired session")

    user = db.get_user(auth_user.id)
    if user is None:
        raise Unauthorized("User record not found")
    return user


def get_optional_user(
    authorization: Optional[str] = Header(None),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
) -> Optional[UserRecord]:
    """The current user when a valid token is sent, otherwise None."""
    if not authorization:
        return None
    try:
        token = get_access_token(authorization)
        return get_current_user(token=token, auth=auth, db=db)
    except (Unauthorized, UpstreamError):
        return None


def get_active_user(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """The current user, refused when an admin has banned the account."""
    if not user.is_active:
        raise Forbidden("Account is banned")
    return user


def require_admin(user: UserRecord = Depends(get_active_user)) -> UserRecord:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user
