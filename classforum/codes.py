"""
Storage for one-time email login codes.

Codes live in the `verification_codes` table by default; when Redis is
configured they are kept there instead so expiry is handled by key TTLs.
"""

from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import redis

from classforum.db import DbClient, VerificationCodeRecord


def generate_code() -> str:
    """Six random digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


def generate_temp_password() -> str:
    return f"temp_{int(time.time() * 1000)}_{secrets.token_urlsafe(9)}"


def new_code_record(email: str, ttl_seconds: int) -> VerificationCodeRecord:
    return VerificationCodeRecord(
        email=email,
        code=generate_code(),
        temp_password=generate_temp_password(),
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
    )


class CodeStore(Protocol):
    def save(self, record: VerificationCodeRecord) -> None:
        ...

    def find(self, email: str, code: str) -> Optional[VerificationCodeRecord]:
        ...

    def consume(self, email: str) -> None:
        ...

    def record_failure(self, email: str) -> int:
        """Count a wrong guess and return the failures so far."""
        ...


@dataclass
class DbCodeStore:
    """Keeps the most recent code per email in the database."""

    db: DbClient

    def save(self, record: VerificationCodeRecord) -> None:
        self.db.delete_verification_codes(record.email)
        self.db.save_verification_code(record)

    def find(self, email: str, code: str) -> Optional[VerificationCodeRecord]:
        record = self.db.get_verification_code(email, code)
        if record is None or record.is_expired():
            return None
        return record

    def consume(self, email: str) -> None:
        self.db.delete_verification_codes(email)

    def record_failure(self, email: str) -> int:
        return self.db.increment_code_attempts(email)


@dataclass
class RedisCodeStore:
    """Redis-backed store; one key per email, expiring with the code."""

    url: str
    key_prefix: str = "forum:codes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, email: str) -> str:
        return f"{self.key_prefix}:{email.lower()}"

    def _attempts_key(self, email: str) -> str:
        return f"{self._key(email)}:attempts"

    def save(self, record: VerificationCodeRecord) -> None:
        ttl = int((record.expires_at - datetime.now(timezone.utc)).total_seconds())
        payload = json.dumps(
            {
                "code": record.code,
                "temp_password": record.temp_password,
                "expires_at": record.expires_at.isoformat(),
            }
        )
        self.client.set(self._key(record.email), payload, ex=max(ttl, 1))
        self.client.delete(self._attempts_key(record.email))

    def find(self, email: str, code: str) -> Optional[VerificationCodeRecord]:
        raw = self.client.get(self._key(email))
        if raw is None:
            return None
        payload = json.loads(raw)
        if not secrets.compare_digest(payload["code"], code):
            return None
        record = VerificationCodeRecord(
            email=email,
            code=payload["code"],
            temp_password=payload["temp_password"],
            expires_at=datetime.fromisoformat(payload["expires_at"]),
        )
        return None if record.is_expired() else record

    def consume(self, email: str) -> None:
        self.client.delete(self._key(email), self._attempts_key(email))

    def record_failure(self, email: str) -> int:
        key = self._attempts_key(email)
        attempts = self.client.incr(key)
        ttl = self.client.ttl(self._key(email))
        self.client.expire(key, ttl if ttl and ttl > 0 else 1)
        return int(attempts)
