"""
validation.py — checks applied to untrusted input before it reaches the
analyzer or the database.

  validate_image_upload()  type, extension, filename, size and signature
  sanitize_text()          strips markup/script fragments from free text
  validate_id()            analysis identifiers (UUID shaped)
  RateLimiter              per-client sliding-window request limiter
"""
from __future__ import annotations

import os
import re
import time
from collections import defaultdict, deque
from typing import Optional

import config
from models import InvalidInputError

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})
MAX_TEXT_LENGTH = 1000

_ID_RE = re.compile(r"^[a-fA-F0-9-]{36}$")


def validate_id(analysis_id: str) -> str:
    if not isinstance(analysis_id, str) or not _ID_RE.match(analysis_id):
        raise InvalidInputError("Invalid ID format.")
    return analysis_id


def sanitize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    text = re.sub(r"[<>\"'&]", "", value)
    text = re.sub(r"javascript:", "", text, flags=re.IGNORECASE)
    text = re.sub(r"on\w+=", "", text, flags=re.IGNORECASE)
    text = text.replace("\0", "")
    return text.strip()[:MAX_TEXT_LENGTH]


def clean_notes(value: Optional[str], label: str = "Notes") -> str:
    """Sanitise free text and enforce MAX_NOTES_LENGTH."""
    text = sanitize_text(value)
    if len(text) > config.MAX_NOTES_LENGTH:
        raise InvalidInputError(
            f"{label} too long. Maximum {config.MAX_NOTES_LENGTH} characters allowed."
        )
    return text


def has_image_signature(data: bytes) -> bool:
    is_jpeg = data[:2] == b"\xff\xd8"
    is_png  = data[:8] == b"\x89PNG\r\n\x1a\n"
    is_webp = data[:4] == b"RIFF"
    return is_jpeg or is_png or is_webp


def validate_image_upload(filename: str, content_type: str, data: bytes) -> None:
    """Raise InvalidInputError unless the upload looks like a safe image."""
    if content_type not in ALLOWED_MIME_TYPES:
        raise InvalidInputError("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")
    if os.path.splitext(filename or "")[1].lower() not in ALLOWED_EXTENSIONS:
        raise InvalidInputError("Invalid file extension.")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise InvalidInputError("Invalid filename.")
    if not data:
        raise InvalidInputError("Invalid or empty image file.")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise InvalidInputError("File size too large.")
    if not has_image_signature(data):
        raise InvalidInputError("Invalid file format or corrupted image.")


class RateLimiter:
    """At most max_requests per client within any window_secs window."""

    def __init__(self, max_requests: int, window_secs: float):
        self.max_requests = max_requests
        self.window_secs = window_secs
        self._buckets: dict[str, deque] = defaultdict(deque)
        self._last_sweep = time.monotonic()

    def _expire(self, bucket: deque, now: float) -> None:
        while bucket and now - bucket[0] > self.window_secs:
            bucket.popleft()

    def _sweep(self, now: float) -> None:
        """Drop buckets of clients with no request inside the window."""
        for client in list(self._buckets):
            self._expire(self._buckets[client], now)
            if not self._buckets[client]:
                del self._buckets[client]
        self._last_sweep = now

    def is_limited(self, client: str) -> bool:
        now = time.monotonic()
        if now - self._last_sweep > self.window_secs:
            self._sweep(now)

        bucket = self._buckets[client]
        self._expire(bucket, now)
        if len(bucket) >= self.max_requests:
            if not bucket:
                del self._buckets[client]
            return True
        bucket.append(now)
        return False

    @property
    def client_count(self) -> int:
        return len(self._buckets)

    def clear(self) -> None:
        self._buckets.clear()
