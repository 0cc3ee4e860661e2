import unittest
from datetime import datetime, timedelta, timezone

from classforum.db import STATUS_BANNED, VerificationCodeRecord
from classforum.tests.helpers import ForumTestCase


class RegisterAndLoginTests(ForumTestCase):
    def _register(self, **overrides):
        body = {"email": "Carol@Example.com", "password": "secret123", "username": "carol"}
        body.update(overrides)
        return self.client.post("/api/auth/register", json=body)

    def test_register_creates_user_row(self):
        response = self._register()
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["user"]["username"], "carol")
        self.assertEqual(payload["user"]["role"], "user")
        self.assertEqual(payload["user"]["status"], "active")

        user = self.db.get_user_by_email("carol@example.com")
        self.assertIsNotNone(user)
        self.assertIn(user.id, self.auth.accounts)

    def test_register_missing_fields(self):
        response = self._register(username="")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Missing required fields")

    def test_register_duplicate_username(self):
        self._register()
        response = self._register(email="other@example.com")
        self.assertEqual(response.status_code, 409)

    def test_register_provider_rejection_is_500(self):
        response = self._register(password="123")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Registration failed")
        self.assertIn("6 characters", response.json()["details"])

    def test_login_and_me(self):
        self._register()
        response = self.client.post(
            "/api/auth/login", json={"username": "carol", "password": "secret123"}
        )
        self.assertEqual(response.status_code, 200)
        session = response.json()
        self.assertEqual(session["token_type"], "bearer")

        me = self.client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {session['access_token']}"},
        )
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["username"], "carol")

    def test_login_wrong_password(self):
        self._register()
        response = self.client.post(
            "/api/auth/login", json={"username": "carol", "password": "nope-nope"}
        )
        self.assertEqual(response.status_code, 401)

    def test_login_unknown_username(self):
        response = self.client.post(
            "/api/auth/login", json={"username": "nobody", "password": "x"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Username does not exist")

    def test_login_banned_user(self):
        user, _ = self.make_user("dave")
        self.db.update_user(user.id, status=STATUS_BANNED)
        response = self.client.post(
            "/api/auth/login", json={"username": "dave", "password": "secret123"}
        )
        self.assertEqual(response.status_code, 403)

    def test_me_rejects_bad_token(self):
        response = self.client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)
        response = self.client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
        self.assertEqual(response.status_code, 401)


class EmailCodeTests(ForumTestCase):
    def setUp(self):
        super().setUp()
        self.user, _ = self.make_user("erin")

    def test_send_code_unknown_email(self):
        response = self.client.post(
            "/api/auth/send-code", json={"email": "ghost@example.com"}
        )
        self.assertEqual(response.status_code, 400)

    def test_send_code_requires_email(self):
        response = self.client.post("/api/auth/send-code", json={})
        self.assertEqual(response.status_code, 400)

    def test_send_and_verify_code(self):
        response = self.client.post(
            "/api/auth/send-code", json={"email": "erin@example.com"}
        )
        self.assertEqual(response.status_code, 200)
        code = response.json()["code"]
        self.assertEqual(len(code), 6)
        self.assertEqual(len(self.mailer.sent), 1)
        self.assertIn(code, self.mailer.sent[0][2])

        verified = self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com", "code": code}
        )
        self.assertEqual(verified.status_code, 200)
        payload = verified.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["user"]["username"], "erin")
        token = payload["session"]["access_token"]
        self.assertEqual(self.auth.get_user(token).id, self.user.id)

        # Codes are single use.
        again = self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com", "code": code}
        )
        self.assertEqual(again.status_code, 400)

    def test_verify_wrong_code(self):
        self.client.post("/api/auth/send-code", json={"email": "erin@example.com"})
        response = self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com", "code": "000000"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid or expired code")

    def _guess(self, code):
        return self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com", "code": code}
        )

    def test_code_revoked_after_too_many_wrong_guesses(self):
        sent = self.client.post(
            "/api/auth/send-code", json={"email": "erin@example.com"}
        )
        code = sent.json()["code"]
        for _ in range(self.settings.verification_code_max_attempts):
            self.assertEqual(self._guess("000000").status_code, 400)
        self.assertEqual(self._guess(code).status_code, 400)
        self.assertEqual(self.db.codes, [])

    def test_code_still_valid_below_attempt_limit(self):
        sent = self.client.post(
            "/api/auth/send-code", json={"email": "erin@example.com"}
        )
        code = sent.json()["code"]
        for _ in range(self.settings.verification_code_max_attempts - 1):
            self._guess("000000")
        self.assertEqual(self._guess(code).status_code, 200)

    def test_new_code_resets_failures(self):
        self.client.post("/api/auth/send-code", json={"email": "erin@example.com"})
        for _ in range(self.settings.verification_code_max_attempts - 1):
            self._guess("000000")
        code = self.client.post(
            "/api/auth/send-code", json={"email": "erin@example.com"}
        ).json()["code"]
        self._guess("000000")
        self.assertEqual(self._guess(code).status_code, 200)

    def test_verify_expired_code(self):
        self.db.save_verification_code(
            VerificationCodeRecord(
                email="erin@example.com",
                code="123456",
                temp_password="temp_1_abc",
                expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
            )
        )
        response = self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com", "code": "123456"}
        )
        self.assertEqual(response.status_code, 400)

    def test_verify_missing_fields(self):
        response = self.client.post(
            "/api/auth/verify-code", json={"email": "erin@example.com"}
        )
        self.assertEqual(response.status_code, 400)


class ProductionCodeTests(ForumTestCase):
    environment = "production"

    def test_code_not_echoed_outside_development(self):
        self.make_user("frank")
        response = self.client.post(
            "/api/auth/send-code", json={"email": "frank@example.com"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["code"])


if __name__ == "__main__":
    unittest.main()
