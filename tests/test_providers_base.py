"""
Tests for providers/base.py — prompt, schema and parse_json_response.

Covers:
  - build_prompt(): notes section only when notes are given
  - RESPONSE_SCHEMA: five required score keys, enum-constrained classification
  - detect_mime_type(): png / gif / webp / jpeg default
  - parse_json_response: plain JSON, markdown-fenced JSON, empty, invalid JSON
"""
from __future__ import annotations

import pytest

from models import SCORE_KEYS, UNDETERMINED_MODEL
from providers.base import (
    RESPONSE_SCHEMA,
    SYSTEM_PROMPT,
    build_prompt,
    detect_mime_type,
    parse_json_response,
)


# ── build_prompt ──────────────────────────────────────────────────────────────

class TestBuildPrompt:
    def test_without_notes(self):
        prompt = build_prompt()
        assert prompt.startswith(SYSTEM_PROMPT)
        assert "CUSTOMER NOTES" not in prompt

    def test_blank_notes_treated_as_none(self):
        assert "CUSTOMER NOTES" not in build_prompt("   ")

    def test_with_notes(self):
        prompt = build_prompt("Taban ilk gün ayrıldı")
        assert "CUSTOMER NOTES" in prompt
        assert "Taban ilk gün ayrıldı" in prompt

    def test_mentions_sentinel(self):
        assert UNDETERMINED_MODEL in SYSTEM_PROMPT


# ── RESPONSE_SCHEMA ───────────────────────────────────────────────────────────

class TestResponseSchema:
    def test_classification_enum(self):
        assert RESPONSE_SCHEMA["properties"]["classification"]["enum"] == list(SCORE_KEYS)

    def test_score_keys_required(self):
        scores = RESPONSE_SCHEMA["properties"]["scores"]
        assert scores["required"] == list(SCORE_KEYS)
        assert set(scores["properties"]) == set(SCORE_KEYS)

    def test_scores_bounded(self):
        for key, prop in RESPONSE_SCHEMA["properties"]["scores"]["properties"].items():
            assert prop["minimum"] == 0, key
            assert prop["maximum"] == 1, key

    def test_all_fields_required(self):
        assert set(RESPONSE_SCHEMA["required"]) == set(RESPONSE_SCHEMA["properties"])


# ── detect_mime_type ──────────────────────────────────────────────────────────

class TestDetectMimeType:
    def test_png(self):
        assert detect_mime_type(b"\x89PNG\r\n\x1a\n" + b"\x00" * 8) == "image/png"

    def test_gif(self):
        assert detect_mime_type(b"GIF89a") == "image/gif"

    def test_webp(self):
        assert detect_mime_type(b"RIFF\x00\x00\x00\x00WEBP") == "image/webp"

    def test_jpeg_default(self):
        assert detect_mime_type(b"\xff\xd8\xff\xe0") == "image/jpeg"


# ── parse_json_response ───────────────────────────────────────────────────────

class TestParseJsonResponse:
    def test_plain_json(self):
        raw = '{"classification": "donation", "confidence": 0.7}'
        data = parse_json_response(raw, "testbackend")
        assert data["classification"] == "donation"
        assert data["confidence"] == 0.7

    def test_json_fenced_with_backticks(self):
        raw = "```json\n{\"classification\": \"disposal\"}\n```"
        data = parse_json_response(raw, "testbackend")
        assert data["classification"] == "disposal"

    def test_json_fenced_without_language_hint(self):
        raw = "```\n{\"classification\": \"disposal\"}\n```"
        data = parse_json_response(raw, "testbackend")
        assert data["classification"] == "disposal"

    def test_leading_trailing_whitespace(self):
        raw = '  \n  {"classification": "returnable"}  \n  '
        data = parse_json_response(raw, "testbackend")
        assert data["classification"] == "returnable"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_raises_value_error(self, raw):
        with pytest.raises(ValueError, match="Empty response"):
            parse_json_response(raw, "testbackend")

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError, match="JSON parse error"):
            parse_json_response("This is not JSON at all.", "testbackend")

    def test_truncated_json_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_json_response('{"classification": "ret', "testbackend")
