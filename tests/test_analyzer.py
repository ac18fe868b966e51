"""
Tests for analyzer.py — ShoeAnalyzer with a fake backend.

Covers:
  - classify(): Classified on a good response, Unavailable on any failure
  - warranty table overrides the backend's guess for a known model
  - score normalisation applied to backend scores
  - user-error rules depend on customer notes
  - analyze(): falls back to a tagged canned result, never raises, no retry
"""
from __future__ import annotations

import json
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from analyzer import Classified, ShoeAnalyzer, Unavailable
from fallback import FallbackSelector
from models import (
    DEFAULT_USER_ERROR_REASON,
    SCORE_KEYS,
    UNDETERMINED_MODEL,
    ClassificationCategory,
)
from providers.base import VisionBackend

IMAGE = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def backend_json(**overrides) -> str:
    data = {
        "classification": "returnable",
        "confidence": 0.93,
        "scores": {"returnable": 0.4, "not_returnable": 0.1, "send_back": 0.1,
                   "donation": 0.3, "disposal": 0.1},
        "features": ["temiz yüzey"],
        "reasoning": "Yeni gibi.",
        "damageReasons": [],
        "shoeModel": "Adidas Stan Smith",
        "warrantyPeriod": 6,
        "isUserError": False,
        "userErrorReason": "",
    }
    data.update(overrides)
    return json.dumps(data, ensure_ascii=False)


def fake_backend(reply=None, error: Exception | None = None) -> VisionBackend:
    backend = MagicMock(spec=VisionBackend)
    backend.full_name = "fake/vision-1"
    if error is not None:
        backend.generate = AsyncMock(side_effect=error)
    else:
        backend.generate = AsyncMock(return_value=reply)
    return backend


# ── classify(): success ───────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestClassifySuccess:
    async def test_known_model_uses_table_warranty(self):
        analyzer = ShoeAnalyzer(backend=fake_backend(backend_json()))
        outcome = await analyzer.classify(IMAGE)
        assert isinstance(outcome, Classified)
        result = outcome.result
        assert result.warranty_period == 24
        assert result.scores == {"returnable": 0.4, "not_returnable": 0.1, "send_back": 0.1,
                                 "donation": 0.3, "disposal": 0.1}
        assert result.is_fallback is False

    async def test_scores_normalised(self):
        scores = {"returnable": 2, "not_returnable": 1, "send_back": 1, "donation": 0, "disposal": 0}
        analyzer = ShoeAnalyzer(backend=fake_backend(backend_json(scores=scores)))
        outcome = await analyzer.classify(IMAGE)
        assert outcome.result.scores["returnable"] == 0.5
        assert abs(sum(outcome.result.scores.values()) - 1.0) <= 0.01

    async def test_unknown_brand_gets_default(self):
        analyzer = ShoeAnalyzer(backend=fake_backend(backend_json(shoeModel="Noname Runner")))
        outcome = await analyzer.classify(IMAGE)
        assert outcome.result.warranty_period == 12

    async def test_sentinel_keeps_backend_estimate(self):
        reply = backend_json(shoeModel=UNDETERMINED_MODEL, warrantyPeriod=18)
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE)
        assert outcome.result.warranty_period == 18

    async def test_sentinel_without_estimate_gets_default(self):
        reply = backend_json(shoeModel=UNDETERMINED_MODEL, warrantyPeriod=0)
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE)
        assert outcome.result.warranty_period == 12

    async def test_injected_warranty_table(self):
        analyzer = ShoeAnalyzer(
            backend=fake_backend(backend_json()), warranty_table=[("stan smith", 36)],
        )
        outcome = await analyzer.classify(IMAGE)
        assert outcome.result.warranty_period == 36

    async def test_notes_reach_prompt(self):
        backend = fake_backend(backend_json())
        await ShoeAnalyzer(backend=backend).classify(IMAGE, "Topuk kırık geldi")
        prompt = backend.generate.await_args.args[1]
        assert "Topuk kırık geldi" in prompt


# ── classify(): user-error rules ──────────────────────────────────────────────

@pytest.mark.asyncio
class TestUserError:
    async def test_ignored_without_notes(self):
        reply = backend_json(isUserError=True, userErrorReason="Kullanıcı Hatası - Normal aşınma")
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE, "")
        assert outcome.result.is_user_error is False
        assert outcome.result.user_error_reason == ""

    async def test_kept_with_notes(self):
        reason = "Kullanıcı Hatası - Normal aşınma"
        reply = backend_json(isUserError=True, userErrorReason=reason)
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE, "Eskidi")
        assert outcome.result.is_user_error is True
        assert outcome.result.user_error_reason == reason

    async def test_default_reason(self):
        reply = backend_json(isUserError=True, userErrorReason="")
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE, "Eskidi")
        assert outcome.result.user_error_reason == DEFAULT_USER_ERROR_REASON

    async def test_reason_cleared_when_not_user_error(self):
        reply = backend_json(isUserError=False, userErrorReason="leftover")
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE, "Eskidi")
        assert outcome.result.user_error_reason == ""


# ── classify(): failures ──────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestClassifyFailure:
    async def test_backend_error(self):
        backend = fake_backend(error=ConnectionError("network down"))
        outcome = await ShoeAnalyzer(backend=backend).classify(IMAGE)
        assert isinstance(outcome, Unavailable)
        assert "network down" in outcome.reason

    @pytest.mark.parametrize("reply", ["", "not json", '{"classification": "returnable"}',
                                       backend_json(classification="recycle")])
    async def test_bad_reply(self, reply):
        outcome = await ShoeAnalyzer(backend=fake_backend(reply)).classify(IMAGE)
        assert isinstance(outcome, Unavailable)

    async def test_no_retry(self):
        backend = fake_backend(error=TimeoutError())
        await ShoeAnalyzer(backend=backend).classify(IMAGE)
        assert backend.generate.await_count == 1

    async def test_missing_backend(self, monkeypatch):
        import providers.manager as manager

        def boom():
            raise RuntimeError("GEMINI_API_KEY is not set")

        monkeypatch.setattr(manager, "get_backend", boom)
        outcome = await ShoeAnalyzer().classify(IMAGE)
        assert isinstance(outcome, Unavailable)
        assert "GEMINI_API_KEY" in outcome.reason


# ── analyze() ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestAnalyze:
    async def test_success_passes_through(self):
        result = await ShoeAnalyzer(backend=fake_backend(backend_json())).analyze(IMAGE)
        assert result.shoe_model == "Adidas Stan Smith"
        assert result.is_fallback is False

    async def test_failure_returns_valid_fallback(self):
        backend = fake_backend(error=RuntimeError("500 from upstream"))
        result = await ShoeAnalyzer(backend=backend).analyze(IMAGE)
        assert result.is_fallback is True
        assert isinstance(result.classification, ClassificationCategory)
        assert set(result.scores) == set(SCORE_KEYS)
        assert abs(sum(result.scores.values()) - 1.0) <= 0.01
        assert result.reasoning
        assert result.features

    async def test_seeded_fallback_is_repeatable(self):
        def run():
            analyzer = ShoeAnalyzer(
                backend=fake_backend(""),
                fallback=FallbackSelector(chooser=random.Random(42)),
            )
            return analyzer.analyze(IMAGE)

        first = await run()
        second = await run()
        assert first.classification is second.classification

    async def test_none_notes_accepted(self):
        result = await ShoeAnalyzer(backend=fake_backend(backend_json())).analyze(IMAGE, None)
        assert result.is_user_error is False
