import asyncio
import unittest
from unittest import mock

from fastapi import UploadFile
from starlette.datastructures import Headers

from classforum.db import STATUS_BANNED
from classforum.errors import BadRequest
from classforum.routes.uploads import read_upload
from classforum.tests.helpers import ForumTestCase
from classforum.uploads import IMAGE_RULE, MB

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class UploadRoutesTests(ForumTestCase):
    def setUp(self):
        super().setUp()
        self.user, self.headers = self.make_user("alice")

    def _upload(self, filename, data, content_type, upload_type=None):
        form = {"type": upload_type} if upload_type else {}
        return self.client.post(
            "/api/upload",
            files={"file": (filename, data, content_type)},
            data=form,
            headers=self.headers,
        )

    def test_upload_config(self):
        response = self.client.get("/api/upload")
        self.assertEqual(response.status_code, 200)
        config = response.json()
        self.assertEqual(config["maxImageSize"], 5 * MB)
        self.assertEqual(config["maxAudioSize"], 10 * MB)
        self.assertIn("image/webp", config["allowedImageTypes"])
        self.assertEqual(config["storageUrl"], "https://cdn.example.test")

    def test_image_upload_rewrites_public_url(self):
        response = self._upload("cat.PNG", PNG_BYTES, "image/png")
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["type"], "image")
        self.assertTrue(payload["path"].startswith("photo/"))
        self.assertTrue(payload["path"].endswith(".png"))
        self.assertEqual(
            payload["url"], f"https://cdn.example.test/files/{payload['path']}"
        )
        data, content_type = self.storage.stored_objects[payload["path"]]
        self.assertEqual(data, PNG_BYTES)
        self.assertEqual(content_type, "image/png")

    def test_audio_upload_goes_to_music(self):
        response = self._upload("song.mp3", b"ID3" + b"\x00" * 10, "audio/mpeg", "audio")
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["path"].startswith("music/"))

    def test_rejects_wrong_type(self):
        response = self._upload("notes.txt", b"hello", "text/plain")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid file type")

        response = self._upload("cat.png", PNG_BYTES, "image/png", "audio")
        self.assertEqual(response.status_code, 400)

    def test_rejects_oversize_image(self):
        response = self._upload("big.png", b"\x00" * (5 * MB + 1), "image/png")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "File too large")
        self.assertEqual(response.json()["details"], "File size cannot exceed 5MB")

    def test_rejects_empty_file(self):
        response = self._upload("empty.png", b"", "image/png")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "File is empty")

    def test_rejects_unknown_upload_type(self):
        response = self._upload("clip.mp4", b"\x00" * 8, "video/mp4", "video")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid upload type")

    def test_rejects_non_multipart(self):
        response = self.client.post("/api/upload", json={}, headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid request format")

    def test_rejects_missing_file(self):
        response = self.client.post(
            "/api/upload",
            data={"type": "image"},
            files={"other": ("x.txt", b"x", "text/plain")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "No file")

    def test_upload_requires_login(self):
        response = self.client.post(
            "/api/upload", files={"file": ("cat.png", PNG_BYTES, "image/png")}
        )
        self.assertEqual(response.status_code, 401)


class ProfileRoutesTests(ForumTestCase):
    def setUp(self):
        super().setUp()
        self.user, self.headers = self.make_user("alice")

    def test_avatar_upload_updates_user(self):
        response = self.client.post(
            "/api/users/me/avatar",
            files={"file": ("me.png", PNG_BYTES, "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        avatar = response.json()["avatar"]
        self.assertTrue(
            avatar.startswith(f"https://cdn.example.test/files/avatars/avatar_{self.user.id}_")
        )
        self.assertEqual(self.db.get_user(self.user.id).avatar, avatar)

    def test_rename(self):
        response = self.client.put(
            "/api/users/me", json={"username": "alicia"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.db.get_user(self.user.id).username, "alicia")
        self.assertEqual(
            self.auth.accounts[self.user.id]["metadata"]["full_name"], "alicia"
        )

    def test_rename_to_taken_username(self):
        self.make_user("bob")
        response = self.client.put(
            "/api/users/me", json={"username": "bob"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 409)

    def test_change_password(self):
        response = self.client.put(
            "/api/users/me/password",
            json={"newPassword": "another123", "confirmPassword": "another123"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.auth.accounts[self.user.id]["password"], "another123")

    def test_change_password_mismatch(self):
        response = self.client.put(
            "/api/users/me/password",
            json={"new_password": "a1b2c3d4", "confirm_password": "different"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_banned_user_cannot_change_password(self):
        self.db.update_user(self.user.id, status=STATUS_BANNED)
        response = self.client.put(
            "/api/users/me/password",
            json={"new_password": "another123", "confirm_password": "another123"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.auth.accounts[self.user.id]["password"], "secret123")


class ReadUploadTests(unittest.TestCase):
    def _upload(self, size, content_type="image/png"):
        raw = mock.MagicMock()
        upload = UploadFile(
            raw,
            size=size,
            filename="big.png",
            headers=Headers({"content-type": content_type}),
        )
        return upload, raw

    def test_oversize_rejected_before_reading(self):
        upload, raw = self._upload(IMAGE_RULE.max_size + 1)
        with self.assertRaises(BadRequest) as ctx:
            asyncio.run(read_upload(upload, IMAGE_RULE))
        self.assertEqual(ctx.exception.message, "File too large")
        raw.read.assert_not_called()

    def test_wrong_type_rejected_before_reading(self):
        upload, raw = self._upload(10, content_type="text/plain")
        with self.assertRaises(BadRequest):
            asyncio.run(read_upload(upload, IMAGE_RULE))
        raw.read.assert_not_called()


if __name__ == "__main__":
    unittest.main()
