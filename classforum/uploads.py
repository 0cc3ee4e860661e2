"""
Validation rules and object keys for user uploads.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Optional

from classforum.errors import BadRequest

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadRule:
    kind: str
    folder: str
    max_size: int
    allowed_types: tuple[str, ...]
    label: str


IMAGE_RULE = UploadRule(
    kind="image",
    folder="photo",
    max_size=5 * MB,
    allowed_types=("image/jpeg", "image/png", "image/gif", "image/webp"),
    label="JPEG, PNG, GIF, WebP",
)
AUDIO_RULE = UploadRule(
    kind="audio",
    folder="music",
    max_size=10 * MB,
    allowed_types=("audio/mpeg", "audio/wav", "audio/ogg", "audio/mp4"),
    label="MP3, WAV, OGG, M4A",
)
RULES = {rule.kind: rule for rule in (IMAGE_RULE, AUDIO_RULE)}

_DEFAULT_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "audio/mp4": "m4a",
}


def get_rule(kind: str) -> UploadRule:
    rule = RULES.get(kind)
    if rule is None:
        raise BadRequest(
            "Invalid upload type", f"type must be one of: {', '.join(sorted(RULES))}"
        )
    return rule


def validate_upload(rule: UploadRule, size: int, content_type: Optional[str]) -> None:
    if size == 0:
        raise BadRequest("File is empty", "File size cannot be 0")
    if size > rule.max_size:
        raise BadRequest(
            "File too large",
            f"File size cannot exceed {rule.max_size // MB}MB",
        )
    if content_type not in rule.allowed_types:
        raise BadRequest(
            "Invalid file type",
            f"Please choose a valid {rule.kind} file ({rule.label})",
        )


def file_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum():
            return ext
    return _DEFAULT_EXTENSIONS.get(content_type or "", "bin")


def build_object_path(rule: UploadRule, filename: Optional[str], content_type: str) -> str:
    """`<folder>/<ms timestamp>_<random>.<ext>`"""
    name = f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"
    return f"{rule.folder}/{name}.{file_extension(filename, content_type)}"


def build_avatar_path(user_id: str, filename: Optional[str], content_type: str) -> str:
    ext = file_extension(filename, content_type)
    return f"avatars/avatar_{user_id}_{int(time.time() * 1000)}.{ext}"


def upload_config(storage_public_url: str) -> dict:
    return {
        "maxImageSize": IMAGE_RULE.max_size,
        "maxAudioSize": AUDIO_RULE.max_size,
        "allowedImageTypes": list(IMAGE_RULE.allowed_types),
        "allowedAudioTypes": list(AUDIO_RULE.allowed_types),
        "storageUrl": storage_public_url,
    }
