import unittest
from datetime import datetime, timedelta, timezone

from classforum.codes import DbCodeStore, new_code_record
from classforum.db import (
    DuplicateRecordError,
    PostgresDbClient,
    ROLE_ADMIN,
    STATUS_BANNED,
    VerificationCodeRecord,
)


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")
        self.user = self.db.create_user("u1", "alice", "alice@example.com")
        self.category = self.db.create_category("General", "Anything goes")

    def test_create_and_get_user(self):
        fetched = self.db.get_user("u1")
        self.assertEqual(fetched.username, "alice")
        self.assertEqual(fetched.role, "user")
        self.assertTrue(fetched.is_active)
        self.assertEqual(self.db.get_user_by_email("alice@example.com").id, "u1")
        self.assertIsNone(self.db.get_user("missing"))

    def test_duplicate_username_rejected(self):
        with self.assertRaises(DuplicateRecordError):
            self.db.create_user("u2", "alice", "other@example.com")
        self.db.create_user("u2", "bob", "bob@example.com")
        with self.assertRaises(DuplicateRecordError):
            self.db.update_user("u2", username="alice")
        self.assertEqual(self.db.get_user("u2").username, "bob")

    def test_update_user(self):
        updated = self.db.update_user(
            "u1", role=ROLE_ADMIN, status=STATUS_BANNED, avatar="https://cdn/a.png"
        )
        self.assertTrue(updated.is_admin)
        self.assertFalse(updated.is_active)
        self.assertEqual(updated.avatar, "https://cdn/a.png")
        self.assertIsNone(self.db.update_user("missing", role=ROLE_ADMIN))

    def test_get_users_by_ids(self):
        self.db.create_user("u2", "bob", "bob@example.com")
        users = self.db.get_users(["u1", "u2", "u3", "u1"])
        self.assertEqual(sorted(users), ["u1", "u2"])
        self.assertEqual(self.db.get_users([]), {})

    def test_categories(self):
        self.db.create_category("Announcements")
        names = [c.name for c in self.db.list_categories()]
        self.assertEqual(names, ["Announcements", "General"])
        with self.assertRaises(DuplicateRecordError):
            self.db.create_category("General")

        renamed = self.db.update_category(self.category.id, name="Chat")
        self.assertEqual(renamed.name, "Chat")
        self.assertEqual(renamed.description, "Anything goes")
        self.assertTrue(self.db.delete_category(self.category.id))
        self.assertFalse(self.db.delete_category(self.category.id))

    def test_posts_newest_first_with_filters(self):
        other = self.db.create_category("Other")
        first = self.db.create_post("one", "body", "u1", self.category.id)
        second = self.db.create_post("two", "body", "u1", other.id)
        self.db.update_post(first.id, status=STATUS_BANNED)

        self.assertEqual([p.id for p in self.db.list_posts()], [second.id, first.id])
        self.assertEqual(
            [p.id for p in self.db.list_posts(status="active")], [second.id]
        )
        self.assertEqual(
            [p.id for p in self.db.list_posts(category_id=self.category.id)], [first.id]
        )
        self.assertEqual(len(self.db.list_posts(author_id="u1")), 2)
        self.assertEqual(self.db.count_posts_in_category(self.category.id), 1)

    def test_update_and_delete_post(self):
        post = self.db.create_post("title", "body", "u1", self.category.id)
        updated = self.db.update_post(post.id, title="new title", content="new body")
        self.assertEqual(updated.title, "new title")
        self.assertEqual(updated.content, "new body")
        self.assertEqual(updated.status, "active")
        self.assertTrue(self.db.delete_post(post.id))
        self.assertIsNone(self.db.get_post(post.id))
        self.assertIsNone(self.db.update_post(post.id, title="gone"))

    def test_search_is_case_insensitive_and_literal(self):
        self.db.create_post("Homework Week 3", "due friday", "u1", self.category.id)
        self.db.create_post("Party", "100% fun_times", "u1", self.category.id)
        self.db.create_post("Other", "1000 fun times", "u1", self.category.id)

        self.assertEqual(
            [p.title for p in self.db.search_posts("homework")], ["Homework Week 3"]
        )
        self.assertEqual([p.title for p in self.db.search_posts("FRIDAY")], ["Homework Week 3"])
        self.assertEqual([p.title for p in self.db.search_posts("100%")], ["Party"])
        self.assertEqual([p.title for p in self.db.search_posts("n_t")], ["Party"])

    def test_search_skips_banned_posts(self):
        post = self.db.create_post("hidden", "secret", "u1", self.category.id)
        self.db.update_post(post.id, status=STATUS_BANNED)
        self.assertEqual(self.db.search_posts("secret"), [])
        self.assertEqual(len(self.db.search_posts("secret", status=None)), 1)

    def test_replies(self):
        self.db.create_user("u2", "bob", "bob@example.com")
        post = self.db.create_post("title", "body", "u1", self.category.id)
        first = self.db.create_reply("first", "u2", post.id)
        second = self.db.create_reply("second", "u1", post.id)
        self.db.update_reply_status(second.id, STATUS_BANNED)

        self.assertEqual(
            [r.id for r in self.db.list_replies(post_id=post.id)], [first.id, second.id]
        )
        self.assertEqual(self.db.count_replies_by_post([post.id]), {post.id: 1})
        self.assertEqual(self.db.count_replies_by_post([post.id], status=None), {post.id: 2})
        self.assertEqual(self.db.delete_replies_by_author("u2"), 1)
        self.assertEqual(self.db.delete_replies_for_post(post.id), 1)
        self.assertEqual(self.db.list_replies(), [])

    def test_counts(self):
        post = self.db.create_post("title", "body", "u1", self.category.id)
        self.db.create_reply("hi", "u1", post.id)
        self.assertEqual(
            self.db.counts(), {"users": 1, "posts": 1, "replies": 1, "categories": 1}
        )

    def test_verification_codes_keep_timezone(self):
        expires = datetime.now(timezone.utc) + timedelta(minutes=10)
        self.db.save_verification_code(
            VerificationCodeRecord(
                email="alice@example.com",
                code="123456",
                temp_password="temp_1_x",
                expires_at=expires,
            )
        )
        record = self.db.get_verification_code("alice@example.com", "123456")
        self.assertIsNotNone(record.expires_at.tzinfo)
        self.assertFalse(record.is_expired())
        self.assertIsNone(self.db.get_verification_code("alice@example.com", "000000"))
        self.assertEqual(self.db.increment_code_attempts("alice@example.com"), 1)
        self.assertEqual(self.db.increment_code_attempts("alice@example.com"), 2)
        self.assertEqual(
            self.db.get_verification_code("alice@example.com", "123456").attempts, 2
        )
        self.assertEqual(self.db.increment_code_attempts("bob@example.com"), 0)
        self.assertEqual(self.db.delete_verification_codes("alice@example.com"), 1)


class DbCodeStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")
        self.store = DbCodeStore(self.db)

    def test_new_code_replaces_previous(self):
        old = new_code_record("a@example.com", 600)
        self.store.save(old)
        new = new_code_record("a@example.com", 600)
        self.store.save(new)
        if old.code != new.code:
            self.assertIsNone(self.store.find("a@example.com", old.code))
        found = self.store.find("a@example.com", new.code)
        self.assertEqual(found.temp_password, new.temp_password)

    def test_expired_code_rejected(self):
        record = new_code_record("a@example.com", 600)
        record.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        self.store.save(record)
        self.assertIsNone(self.store.find("a@example.com", record.code))

    def test_consume(self):
        record = new_code_record("a@example.com", 600)
        self.store.save(record)
        self.store.consume("a@example.com")
        self.assertIsNone(self.store.find("a@example.com", record.code))


if __name__ == "__main__":
    unittest.main()
