"""
Shared fixtures: an app wired to in-memory backends.
"""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from classforum.app import create_app
from classforum.auth import InMemoryAuthClient
from classforum.codes import DbCodeStore
from classforum.config import Settings, get_settings
from classforum.db import InMemoryDbClient, ROLE_USER
from classforum.dependencies import (
    get_auth_client,
    get_code_store,
    get_db_client,
    get_mailer,
    get_storage_client,
)
from classforum.mailer import LogMailer
from classforum.storage import InMemoryStorageClient


class RecordingMailer(LogMailer):
    """Keeps every message so tests can read the codes back."""

    def __init__(self):
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append((to, subject, body))
        super().send(to, subject, body)


class ForumTestCase(unittest.TestCase):
    environment = "development"

    def setUp(self):
        self.settings = Settings(
            _env_file=None,
            environment=self.environment,
            use_in_memory_backends=True,
            storage_public_url="https://cdn.example.test",
        )
        self.db = InMemoryDbClient()
        self.auth = InMemoryAuthClient()
        self.storage = InMemoryStorageClient(base_url="https://proj.supabase.co")
        self.codes = DbCodeStore(self.db)
        self.mailer = RecordingMailer()

        app = create_app()
        app.dependency_overrides.update(
            {
                get_settings: lambda: self.settings,
                get_db_client: lambda: self.db,
                get_auth_client: lambda: self.auth,
                get_storage_client: lambda: self.storage,
                get_code_store: lambda: self.codes,
                get_mailer: lambda: self.mailer,
            }
        )
        self.client = TestClient(app)

    def make_user(self, username="alice", role=ROLE_USER, password="secret123"):
        """Create an account and return (user, auth headers)."""
        auth_user = self.auth.sign_up(f"{username}@example.com", password)
        user = self.db.create_user(auth_user.id, username, auth_user.email, role=role)
        token = self.auth.issue_token(user.id)
        return user, {"Authorization": f"Bearer {token}"}

    def make_post(self, author, title="Hello", content="First post", category=None):
        category = category or self.db.create_category(f"General {title}")
        return self.db.create_post(title, content, author.id, category.id)
