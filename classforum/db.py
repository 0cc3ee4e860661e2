"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

ROLE_USER = "user"
ROLE_ADMIN = "admin"
STATUS_ACTIVE = "active"
STATUS_BANNED = "banned"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DuplicateRecordError(Exception):
    """Raised when a unique column (username, email, category name) clashes."""


class DbClient(Protocol):
    """Interface for database access."""

    # users
    def create_user(
        self,
        user_id: str,
        username: str,
        email: str,
        role: str = ROLE_USER,
        status: str = STATUS_ACTIVE,
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_username(self, username: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, "UserRecord"]:
        ...

    def list_users(self) -> list["UserRecord"]:
        ...

    def update_user(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional["UserRecord"]:
        ...

    def delete_user(self, user_id: str) -> bool:
        ...

    # categories
    def create_category(
        self, name: str, description: Optional[str] = None
    ) -> "CategoryRecord":
        ...

    def get_category(self, category_id: int) -> Optional["CategoryRecord"]:
        ...

    def list_categories(self) -> list["CategoryRecord"]:
        ...

    def update_category(
        self,
        category_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional["CategoryRecord"]:
        ...

    def delete_category(self, category_id: int) -> bool:
        ...

    # posts
    def create_post(
        self, title: str, content: str, author_id: str, category_id: int
    ) -> "PostRecord":
        ...

    def get_post(self, post_id: int) -> Optional["PostRecord"]:
        ...

    def list_posts(
        self,
        *,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        author_id: Optional[str] = None,
    ) -> list["PostRecord"]:
        ...

    def search_posts(
        self, query: str, *, status: Optional[str] = STATUS_ACTIVE
    ) -> list["PostRecord"]:
        ...

    def update_post(
        self,
        post_id: int,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Optional["PostRecord"]:
        ...

    def delete_post(self, post_id: int) -> bool:
        ...

    def count_posts_in_category(self, category_id: int) -> int:
        ...

    # replies
    def create_reply(
        self, content: str, author_id: str, post_id: int
    ) -> "ReplyRecord":
        ...

    def get_reply(self, reply_id: int) -> Optional["ReplyRecord"]:
        ...

    def list_replies(
        self,
        *,
        post_id: Optional[int] = None,
        author_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list["ReplyRecord"]:
        ...

    def count_replies_by_post(
        self, post_ids: Iterable[int], *, status: Optional[str] = STATUS_ACTIVE
    ) -> Dict[int, int]:
        ...

    def update_reply_status(
        self, reply_id: int, status: str
    ) -> Optional["ReplyRecord"]:
        ...

    def delete_reply(self, reply_id: int) -> bool:
        ...

    def delete_replies_for_post(self, post_id: int) -> int:
        ...

    def delete_replies_by_author(self, author_id: str) -> int:
        ...

    # verification codes
    def save_verification_code(self, record: "VerificationCodeRecord") -> None:
        ...

    def get_verification_code(
        self, email: str, code: str
    ) -> Optional["VerificationCodeRecord"]:
        ...

    def delete_verification_codes(self, email: str) -> int:
        ...

    def increment_code_attempts(self, email: str) -> int:
        ...

    def counts(self) -> Dict[str, int]:
        ...


@dataclass
class UserRecord:
    id: str
    username: str
    email: str
    role: str = ROLE_USER
    status: str = STATUS_ACTIVE
    avatar: Optional[str] = None
    created_at: datetime = field(default_factory=_now)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "avatar": self.avatar,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class CategoryRecord:
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class PostRecord:
    id: int
    title: str
    content: str
    author_id: str
    category_id: int
    status: str = STATUS_ACTIVE
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "author_id": self.author_id,
            "category_id": self.category_id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ReplyRecord:
    id: int
    content: str
    author_id: str
    post_id: int
    status: str = STATUS_ACTIVE
    created_at: datetime = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "author_id": self.author_id,
            "post_id": self.post_id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class VerificationCodeRecord:
    email: str
    code: str
    temp_password: str
    expires_at: datetime
    attempts: int = 0

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _now()) >= self.expires_at


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.categories: Dict[int, CategoryRecord] = {}
        self.posts: Dict[int, PostRecord] = {}
        self.replies: Dict[int, ReplyRecord] = {}
        self.codes: list[VerificationCodeRecord] = []
        self._ids = itertools.count(1)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.categories.clear()
        self.posts.clear()
        self.replies.clear()
        self.codes.clear()
        self._ids = itertools.count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    # users

    def create_user(
        self,
        user_id: str,
        username: str,
        email: str,
        role: str = ROLE_USER,
        status: str = STATUS_ACTIVE,
    ) -> UserRecord:
        for existing in self.users.values():
            if existing.username == username or existing.email == email:
                raise DuplicateRecordError("username or email already exists")
        if user_id in self.users:
            raise DuplicateRecordError("user id already exists")
        record = UserRecord(
            id=user_id, username=username, email=email, role=role, status=status
        )
        self.users[user_id] = record
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.username == username:
                return user
        return None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        return {uid: self.users[uid] for uid in set(user_ids) if uid in self.users}

    def list_users(self) -> list[UserRecord]:
        return sorted(self.users.values(), key=lambda u: u.created_at, reverse=True)

    def update_user(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if not user:
            return None
        if username and username != user.username:
            if self.get_user_by_username(username):
                raise DuplicateRecordError("username already exists")
            user.username = username
        if role:
            user.role = role
        if status:
            user.status = status
        if avatar is not None:
            user.avatar = avatar
        return user

    def delete_user(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None

    # categories

    def create_category(
        self, name: str, description: Optional[str] = None
    ) -> CategoryRecord:
        if any(c.name == name for c in self.categories.values()):
            raise DuplicateRecordError("category name already exists")
        record = CategoryRecord(
            id=self._next_id(), name=name, description=description
        )
        self.categories[record.id] = record
        return record

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        return self.categories.get(category_id)

    def list_categories(self) -> list[CategoryRecord]:
        return sorted(self.categories.values(), key=lambda c: c.name)

    def update_category(
        self,
        category_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[CategoryRecord]:
        category = self.categories.get(category_id)
        if not category:
            return None
        if name and name != category.name:
            if any(c.name == name for c in self.categories.values()):
                raise DuplicateRecordError("category name already exists")
            category.name = name
        if description is not None:
            category.description = description
        return category

    def delete_category(self, category_id: int) -> bool:
        return self.categories.pop(category_id, None) is not None

    # posts

    def create_post(
        self, title: str, content: str, author_id: str, category_id: int
    ) -> PostRecord:
        record = PostRecord(
            id=self._next_id(),
            title=title,
            content=content,
            author_id=author_id,
            category_id=category_id,
        )
        self.posts[record.id] = record
        return record

    def get_post(self, post_id: int) -> Optional[PostRecord]:
        return self.posts.get(post_id)

    def list_posts(
        self,
        *,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        author_id: Optional[str] = None,
    ) -> list[PostRecord]:
        posts = [
            post
            for post in self.posts.values()
            if (status is None or post.status == status)
            and (category_id is None or post.category_id == category_id)
            and (author_id is None or post.author_id == author_id)
        ]
        return sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)

    def search_posts(
        self, query: str, *, status: Optional[str] = STATUS_ACTIVE
    ) -> list[PostRecord]:
        needle = query.lower()
        return [
            post
            for post in self.list_posts(status=status)
            if needle in post.title.lower() or needle in post.content.lower()
        ]

    def update_post(
        self,
        post_id: int,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        if not post:
            return None
        if title is not None:
            post.title = title
        if content is not None:
            post.content = content
        if category_id is not None:
            post.category_id = category_id
        if status:
            post.status = status
        return post

    def delete_post(self, post_id: int) -> bool:
        return self.posts.pop(post_id, None) is not None

    def count_posts_in_category(self, category_id: int) -> int:
        return sum(1 for p in self.posts.values() if p.category_id == category_id)

    # replies

    def create_reply(self, content: str, author_id: str, post_id: int) -> ReplyRecord:
        record = ReplyRecord(
            id=self._next_id(), content=content, author_id=author_id, post_id=post_id
        )
        self.replies[record.id] = record
        return record

    def get_reply(self, reply_id: int) -> Optional[ReplyRecord]:
        return self.replies.get(reply_id)

    def list_replies(
        self,
        *,
        post_id: Optional[int] = None,
        author_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[ReplyRecord]:
        replies = [
            reply
            for reply in self.replies.values()
            if (post_id is None or reply.post_id == post_id)
            and (author_id is None or reply.author_id == author_id)
            and (status is None or reply.status == status)
        ]
        return sorted(replies, key=lambda r: (r.created_at, r.id))

    def count_replies_by_post(
        self, post_ids: Iterable[int], *, status: Optional[str] = STATUS_ACTIVE
    ) -> Dict[int, int]:
        wanted = set(post_ids)
        counts: Dict[int, int] = {}
        for reply in self.replies.values():
            if reply.post_id in wanted and (status is None or reply.status == status):
                counts[reply.post_id] = counts.get(reply.post_id, 0) + 1
        return counts

    def update_reply_status(self, reply_id: int, status: str) -> Optional[ReplyRecord]:
        reply = self.replies.get(reply_id)
        if reply:
            reply.status = status
        return reply

    def delete_reply(self, reply_id: int) -> bool:
        return self.replies.pop(reply_id, None) is not None

    def delete_replies_for_post(self, post_id: int) -> int:
        doomed = [rid for rid, r in self.replies.items() if r.post_id == post_id]
        for reply_id in doomed:
            del self.replies[reply_id]
        return len(doomed)

    def delete_replies_by_author(self, author_id: str) -> int:
        doomed = [rid for rid, r in self.replies.items() if r.author_id == author_id]
        for reply_id in doomed:
            del self.replies[reply_id]
        return len(doomed)

    # verification codes

    def save_verification_code(self, record: VerificationCodeRecord) -> None:
        self.codes.append(record)

    def get_verification_code(
        self, email: str, code: str
    ) -> Optional[VerificationCodeRecord]:
        matches = [c for c in self.codes if c.email == email and c.code == code]
        if not matches:
            return None
        return max(matches, key=lambda c: c.expires_at)

    def delete_verification_codes(self, email: str) -> int:
        before = len(self.codes)
        self.codes = [c for c in self.codes if c.email != email]
        return before - len(self.codes)

    def increment_code_attempts(self, email: str) -> int:
        attempts = 0
        for record in self.codes:
            if record.email == email:
                record.attempts += 1
                attempts = max(attempts, record.attempts)
        return attempts

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "posts": len(self.posts),
            "replies": len(self.replies),
            "categories": len(self.categories),
        }


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, **engine_kwargs):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        engine_kwargs.setdefault("pool_pre_ping", True)
        if not database_url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_recycle", 1800)
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_user(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            email=row.email,
            role=row.role,
            status=row.status,
            avatar=row.avatar,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_category(row: "CategoryRow") -> CategoryRecord:
        return CategoryRecord(
            id=row.id,
            name=row.name,
            description=row.description,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_post(row: "PostRow") -> PostRecord:
        return PostRecord(
            id=row.id,
            title=row.title,
            content=row.content,
            author_id=row.author_id,
            category_id=row.category_id,
            status=row.status,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_reply(row: "ReplyRow") -> ReplyRecord:
        return ReplyRecord(
            id=row.id,
            content=row.content,
            author_id=row.author_id,
            post_id=row.post_id,
            status=row.status,
            created_at=row.created_at,
        )

    def _commit(self, session: Session) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateRecordError(str(exc.orig)) from exc

    # users

    def create_user(
        self,
        user_id: str,
        username: str,
        email: str,
        role: str = ROLE_USER,
        status: str = STATUS_ACTIVE,
    ) -> UserRecord:
        with self.Session() as session:
            row = UserRow(
                id=user_id,
                username=username,
                email=email,
                role=role,
                status=status,
                created_at=_now(),
            )
            session.add(row)
            self._commit(session)
            session.refresh(row)
            return self._to_user(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == username)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.email == email)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user(row) if row else None

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        with self.Session() as session:
            rows = session.execute(select(UserRow).where(UserRow.id.in_(ids))).scalars()
            return {row.id: self._to_user(row) for row in rows}

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.created_at.desc())
            ).scalars()
            return [self._to_user(row) for row in rows]

    def update_user(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            if username:
                row.username = username
            if role:
                row.role = role
            if status:
                row.status = status
            if avatar is not None:
                row.avatar = avatar
            self._commit(session)
            session.refresh(row)
            return self._to_user(row)

    def delete_user(self, user_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(UserRow).where(UserRow.id == user_id))
            session.commit()
            return bool(result.rowcount)

    # categories

    def create_category(
        self, name: str, description: Optional[str] = None
    ) -> CategoryRecord:
        with self.Session() as session:
            row = CategoryRow(name=name, description=description, created_at=_now())
            session.add(row)
            self._commit(session)
            session.refresh(row)
            return self._to_category(row)

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            return self._to_category(row) if row else None

    def list_categories(self) -> list[CategoryRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(CategoryRow).order_by(CategoryRow.name.asc())
            ).scalars()
            return [self._to_category(row) for row in rows]

    def update_category(
        self,
        category_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            if not row:
                return None
            if name:
                row.name = name
            if description is not None:
                row.description = description
            self._commit(session)
            session.refresh(row)
            return self._to_category(row)

    def delete_category(self, category_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(CategoryRow).where(CategoryRow.id == category_id)
            )
            session.commit()
            return bool(result.rowcount)

    # posts

    def create_post(
        self, title: str, content: str, author_id: str, category_id: int
    ) -> PostRecord:
        with self.Session() as session:
            row = PostRow(
                title=title,
                content=content,
                author_id=author_id,
                category_id=category_id,
                status=STATUS_ACTIVE,
                created_at=_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_post(row)

    def get_post(self, post_id: int) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            return self._to_post(row) if row else None

    def list_posts(
        self,
        *,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        author_id: Optional[str] = None,
    ) -> list[PostRecord]:
        stmt = select(PostRow)
        if status is not None:
            stmt = stmt.where(PostRow.status == status)
        if category_id is not None:
            stmt = stmt.where(PostRow.category_id == category_id)
        if author_id is not None:
            stmt = stmt.where(PostRow.author_id == author_id)
        stmt = stmt.order_by(PostRow.created_at.desc(), PostRow.id.desc())
        with self.Session() as session:
            return [self._to_post(row) for row in session.execute(stmt).scalars()]

    def search_posts(
        self, query: str, *, status: Optional[str] = STATUS_ACTIVE
    ) -> list[PostRecord]:
        pattern = f"%{_escape_like(query)}%"
        stmt = select(PostRow).where(
            or_(
                PostRow.title.ilike(pattern, escape="\\"),
                PostRow.content.ilike(pattern, escape="\\"),
            )
        )
        if status is not None:
            stmt = stmt.where(PostRow.status == status)
        stmt = stmt.order_by(PostRow.created_at.desc(), PostRow.id.desc())
        with self.Session() as session:
            return [self._to_post(row) for row in session.execute(stmt).scalars()]

    def update_post(
        self,
        post_id: int,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return None
            if title is not None:
                row.title = title
            if content is not None:
                row.content = content
            if category_id is not None:
                row.category_id = category_id
            if status:
                row.status = status
            session.commit()
            session.refresh(row)
            return self._to_post(row)

    def delete_post(self, post_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(delete(PostRow).where(PostRow.id == post_id))
            session.commit()
            return bool(result.rowcount)

    def count_posts_in_category(self, category_id: int) -> int:
        with self.Session() as session:
            stmt = (
                select(func.count())
                .select_from(PostRow)
                .where(PostRow.category_id == category_id)
            )
            return session.execute(stmt).scalar_one()

    # replies

    def create_reply(self, content: str, author_id: str, post_id: int) -> ReplyRecord:
        with self.Session() as session:
            row = ReplyRow(
                content=content,
                author_id=author_id,
                post_id=post_id,
                status=STATUS_ACTIVE,
                created_at=_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_reply(row)

    def get_reply(self, reply_id: int) -> Optional[ReplyRecord]:
        with self.Session() as session:
            row = session.get(ReplyRow, reply_id)
            return self._to_reply(row) if row else None

    def list_replies(
        self,
        *,
        post_id: Optional[int] = None,
        author_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[ReplyRecord]:
        stmt = select(ReplyRow)
        if post_id is not None:
            stmt = stmt.where(ReplyRow.post_id == post_id)
        if author_id is not None:
            stmt = stmt.where(ReplyRow.author_id == author_id)
        if status is not None:
            stmt = stmt.where(ReplyRow.status == status)
        stmt = stmt.order_by(ReplyRow.created_at.asc(), ReplyRow.id.asc())
        with self.Session() as session:
            return [self._to_reply(row) for row in session.execute(stmt).scalars()]

    def count_replies_by_post(
        self, post_ids: Iterable[int], *, status: Optional[str] = STATUS_ACTIVE
    ) -> Dict[int, int]:
        ids = list(set(post_ids))
        if not ids:
            return {}
        stmt = (
            select(ReplyRow.post_id, func.count())
            .where(ReplyRow.post_id.in_(ids))
            .group_by(ReplyRow.post_id)
        )
        if status is not None:
            stmt = stmt.where(ReplyRow.status == status)
        with self.Session() as session:
            return {post_id: count for post_id, count in session.execute(stmt)}

    def update_reply_status(self, reply_id: int, status: str) -> Optional[ReplyRecord]:
        with self.Session() as session:
            row = session.get(ReplyRow, reply_id)
            if not row:
                return None
            row.status = status
            session.commit()
            session.refresh(row)
            return self._to_reply(row)

    def delete_reply(self, reply_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(delete(ReplyRow).where(ReplyRow.id == reply_id))
            session.commit()
            return bool(result.rowcount)

    def delete_replies_for_post(self, post_id: int) -> int:
        with self.Session() as session:
            result = session.execute(delete(ReplyRow).where(ReplyRow.post_id == post_id))
            session.commit()
            return result.rowcount or 0

    def delete_replies_by_author(self, author_id: str) -> int:
        with self.Session() as session:
            result = session.execute(
                delete(ReplyRow).where(ReplyRow.author_id == author_id)
            )
            session.commit()
            return result.rowcount or 0

    # verification codes

    def save_verification_code(self, record: VerificationCodeRecord) -> None:
        with self.Session() as session:
            session.add(
                VerificationCodeRow(
                    email=record.email,
                    code=record.code,
                    temp_password=record.temp_password,
                    expires_at=record.expires_at,
                    attempts=record.attempts,
                )
            )
            session.commit()

    def get_verification_code(
        self, email: str, code: str
    ) -> Optional[VerificationCodeRecord]:
        stmt = (
            select(VerificationCodeRow)
            .where(VerificationCodeRow.email == email, VerificationCodeRow.code == code)
            .order_by(VerificationCodeRow.expires_at.desc())
            .limit(1)
        )
        with self.Session() as session:
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            expires_at = row.expires_at
            # SQLite drops tzinfo on the way back.
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            return VerificationCodeRecord(
                email=row.email,
                code=row.code,
                temp_password=row.temp_password,
                expires_at=expires_at,
                attempts=row.attempts or 0,
            )

    def delete_verification_codes(self, email: str) -> int:
        with self.Session() as session:
            result = session.execute(
                delete(VerificationCodeRow).where(VerificationCodeRow.email == email)
            )
            session.commit()
            return result.rowcount or 0

    def increment_code_attempts(self, email: str) -> int:
        with self.Session() as session:
            session.execute(
                update(VerificationCodeRow)
                .where(VerificationCodeRow.email == email)
                .values(attempts=VerificationCodeRow.attempts + 1)
            )
            session.commit()
            stmt = select(func.max(VerificationCodeRow.attempts)).where(
                VerificationCodeRow.email == email
            )
            return session.execute(stmt).scalar_one() or 0

    def counts(self) -> Dict[str, int]:
        with self.Session() as session:

            def _count(model) -> int:
                return session.execute(
                    select(func.count()).select_from(model)
                ).scalar_one()

            return {
                "users": _count(UserRow),
                "posts": _count(PostRow),
                "replies": _count(ReplyRow),
                "categories": _count(CategoryRow),
            }


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    role = Column(String, nullable=False, default=ROLE_USER)
    status = Column(String, nullable=False, default=STATUS_ACTIVE)
    avatar = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(
        Integer, ForeignKey("categories.id"), nullable=False, index=True
    )
    status = Column(String, nullable=False, default=STATUS_ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class ReplyRow(Base):
    __tablename__ = "replies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    author_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default=STATUS_ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False)


class VerificationCodeRow(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, index=True)
    code = Column(String, nullable=False)
    temp_password = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
