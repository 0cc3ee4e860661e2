import re
import unittest

from classforum.errors import BadRequest
from classforum.storage import InMemoryStorageClient, rewrite_storage_url
from classforum.uploads import (
    AUDIO_RULE,
    IMAGE_RULE,
    MB,
    build_avatar_path,
    build_object_path,
    file_extension,
    get_rule,
    upload_config,
    validate_upload,
)


class RewriteStorageUrlTests(unittest.TestCase):
    def test_rewrites_public_object_prefix(self):
        url = "https://abc.supabase.co/storage/v1/object/public/files/photo/a.png"
        self.assertEqual(
            rewrite_storage_url(url, "https://ph.20204.xyz/"),
            "https://ph.20204.xyz/files/photo/a.png",
        )

    def test_other_urls_untouched(self):
        url = "https://example.com/storage/v2/a.png"
        self.assertEqual(rewrite_storage_url(url, "https://cdn.test"), url)
        self.assertEqual(rewrite_storage_url("", "https://cdn.test"), "")
        self.assertEqual(rewrite_storage_url(url, ""), url)

    def test_in_memory_client_stores_objects(self):
        storage = InMemoryStorageClient(base_url="https://abc.supabase.co")
        storage.upload_bytes("photo/a.png", b"png", "image/png")
        self.assertEqual(storage.stored_objects["photo/a.png"], (b"png", "image/png"))
        self.assertEqual(
            storage.public_url("photo/a.png"),
            "https://abc.supabase.co/storage/v1/object/public/files/photo/a.png",
        )


class UploadRuleTests(unittest.TestCase):
    def test_get_rule(self):
        self.assertIs(get_rule("image"), IMAGE_RULE)
        self.assertIs(get_rule("audio"), AUDIO_RULE)
        with self.assertRaises(BadRequest):
            get_rule("video")

    def test_size_limits(self):
        validate_upload(IMAGE_RULE, 5 * MB, "image/png")
        validate_upload(AUDIO_RULE, 10 * MB, "audio/mpeg")
        with self.assertRaises(BadRequest) as ctx:
            validate_upload(IMAGE_RULE, 5 * MB + 1, "image/png")
        self.assertEqual(ctx.exception.details, "File size cannot exceed 5MB")
        with self.assertRaises(BadRequest) as ctx:
            validate_upload(AUDIO_RULE, 0, "audio/mpeg")
        self.assertEqual(ctx.exception.message, "File is empty")

    def test_content_type_checked(self):
        with self.assertRaises(BadRequest) as ctx:
            validate_upload(AUDIO_RULE, 10, "image/png")
        self.assertEqual(ctx.exception.message, "Invalid file type")
        with self.assertRaises(BadRequest):
            validate_upload(IMAGE_RULE, 10, None)

    def test_file_extension(self):
        self.assertEqual(file_extension("Song.MP3", "audio/mpeg"), "mp3")
        self.assertEqual(file_extension("noext", "image/webp"), "webp")
        self.assertEqual(file_extension(None, "application/x-unknown"), "bin")

    def test_object_paths(self):
        self.assertRegex(
            build_object_path(IMAGE_RULE, "cat.png", "image/png"),
            re.compile(r"^photo/\d+_[0-9a-f]{12}\.png$"),
        )
        self.assertRegex(
            build_object_path(AUDIO_RULE, None, "audio/ogg"), r"^music/\d+_[0-9a-f]+\.ogg$"
        )
        self.assertRegex(
            build_avatar_path("u1", "me.jpg", "image/jpeg"), r"^avatars/avatar_u1_\d+\.jpg$"
        )

    def test_upload_config(self):
        config = upload_config("https://cdn.test")
        self.assertEqual(config["maxImageSize"], 5 * MB)
        self.assertEqual(config["maxAudioSize"], 10 * MB)
        self.assertIn("image/webp", config["allowedImageTypes"])
        self.assertEqual(config["storageUrl"], "https://cdn.test")


if __name__ == "__main__":
    unittest.main()
