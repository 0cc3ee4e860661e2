"""
Account routes: registration, password login, and emailed login codes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from classforum.auth import AuthClient, AuthError, AuthSession
from classforum.codes import CodeStore, new_code_record
from classforum.config import Settings, get_settings
from classforum.db import DbClient, DuplicateRecordError, UserRecord
from classforum.dependencies import (
    get_auth_client,
    get_code_store,
    get_current_user,
    get_db_client,
    get_mailer,
)
from classforum.errors import BadRequest, Conflict, Forbidden, Unauthorized, UpstreamError
from classforum.mailer import Mailer
from classforum.routes.common import clean, require_fields, upstream
from classforum.schemas import (
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    SendCodeRequest,
    SendCodeResponse,
    SessionResponse,
    UserResponse,
    VerifiedUser,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from classforum.serializers import user_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def session_response(session: AuthSession, user: UserRecord) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user=user_response(user),
    )


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    payload: RegisterRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    require_fields(
        "Email, password and username are required",
        email=payload.email,
        password=payload.password,
        username=payload.username,
    )
    email = clean(payload.email).lower()
    username = clean(payload.username)

    with upstream("Registration failed"):
        if db.get_user_by_username(username):
            raise Conflict("Username already taken")
        if db.get_user_by_email(email):
            raise Conflict("Email already registered")

    try:
        auth_user = auth.sign_up(email, payload.password, {"username": username})
    except AuthError as exc:
        logger.error("Sign-up rejected for %s: %s", email, exc.message)
        raise UpstreamError("Registration failed", exc.message) from exc

    try:
        user = db.create_user(auth_user.id, username, auth_user.email or email)
    except DuplicateRecordError as exc:
        logger.error("User row for %s already exists: %s", email, exc)
        raise Conflict("Username or email already registered") from exc
    except Exception as exc:
        logger.exception("Registered %s but creating the user record failed", email)
        raise UpstreamError(
            "Registered but creating the user record failed", str(exc)
        ) from exc

    logger.info("Registered user %s (%s)", user.id, username)
    return RegisterResponse(message="User registered", user=user_response(user))


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
):
    require_fields(
        "Please enter username and password",
        username=payload.username,
        password=payload.password,
    )
    with upstream("Login failed"):
        user = db.get_user_by_username(clean(payload.username))
    if user is None:
        raise BadRequest("Username does not exist")
    if not user.is_active:
        raise Forbidden("Account is banned")

    try:
        session = auth.sign_in_with_password(user.email, payload.password)
    except AuthError as exc:
        if exc.status_code < 500:
            logger.warning("Login rejected for %s: %s", user.username, exc.message)
            raise Unauthorized("Login failed", exc.message) from exc
        raise UpstreamError("Login failed", exc.message) from exc

    logger.info("User %s logged in", user.id)
    return session_response(session, user)


@router.post("/send-code", response_model=SendCodeResponse)
def send_code(
    payload: SendCodeRequest,
    db: DbClient = Depends(get_db_client),
    codes: CodeStore = Depends(get_code_store),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    require_fields("Email is required", email=payload.email)
    email = clean(payload.email).lower()

    with upstream("Failed to send code"):
        user = db.get_user_by_email(email)
        if user is None:
            raise BadRequest(
                "This email is not registered", "Please register an account first"
            )
        record = new_code_record(email, settings.verification_code_ttl_seconds)
        codes.save(record)

    minutes = max(settings.verification_code_ttl_seconds // 60, 1)
    try:
        mailer.send(
            email,
            "Your login code",
            f"Your login code is {record.code}. It expires in {minutes} minutes.",
        )
    except Exception as exc:
        logger.exception("Failed to deliver login code to %s", email)
        raise UpstreamError("Failed to send code", str(exc)) from exc

    logger.info("Login code issued for %s", email)
    return SendCodeResponse(
        success=True,
        message="A code has been sent to your email",
        code=record.code if settings.is_development else None,
    )


@router.post("/verify-code", response_model=VerifyCodeResponse)
def verify_code(
    payload: VerifyCodeRequest,
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
    codes: CodeStore = Depends(get_code_store),
    settings: Settings = Depends(get_settings),
):
    require_fields(
        "Email and code are both required", email=payload.email, code=payload.code
    )
    email = clean(payload.email).lower()

    with upstream("Code verification failed"):
        user = db.get_user_by_email(email)
        if user is None:
            raise BadRequest("User does not exist")
        if not user.is_active:
            raise Forbidden("Account is banned")

        record = codes.find(email, clean(payload.code))
        if record is None:
            failures = codes.record_failure(email)
            logger.warning("Rejected login code for %s (%d failures)", email, failures)
            if failures >= settings.verification_code_max_attempts:
                codes.consume(email)
                logger.warning("Too many wrong codes for %s; code revoked", email)
            raise BadRequest("Invalid or expired code")
        codes.consume(email)

        auth.admin_update_user(user.id, password=record.temp_password)
        session = auth.sign_in_with_password(user.email, record.temp_password)

    logger.info("User %s logged in with an email code", user.id)
    return VerifyCodeResponse(
        success=True,
        user=VerifiedUser(id=user.id, email=user.email, username=user.username),
        session=session_response(session, user),
    )


@router.get("/me", response_model=UserResponse)
def me(user: UserRecord = Depends(get_current_user)):
    return user_response(user)
