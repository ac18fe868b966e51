"""
Backend Manager — builds and caches the classification backend.

CLASSIFIER_BACKEND selects which one:
  gemini  — Google Gemini (GEMINI_API_KEY, or GOOGLE_GEMINI_API_KEY)
  openai  — OpenAI (OPENAI_API_KEY)

A missing key raises RuntimeError; the analyzer treats that the same as a
failed call and serves a fallback result.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from providers.base import VisionBackend

logger = logging.getLogger(__name__)

# Module-level cache, cleared by reset_backend()
_backend: Optional[VisionBackend] = None


def _build_backend() -> VisionBackend:
    kind = config.CLASSIFIER_BACKEND

    if kind == "gemini":
        if not config.GEMINI_API_KEY:
            raise RuntimeError("GEMINI_API_KEY is not set")
        from providers.gemini_provider import GeminiBackend
        backend = GeminiBackend(config.GEMINI_API_KEY, config.GEMINI_MODEL)

    elif kind == "openai":
        if not config.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is not set")
        from providers.openai_provider import OpenAIBackend
        backend = OpenAIBackend(config.OPENAI_API_KEY, config.OPENAI_MODEL)

    else:
        raise RuntimeError(
            f"Unknown CLASSIFIER_BACKEND '{kind}'. Use 'gemini' or 'openai'."
        )

    logger.info("Loaded classification backend: %s", backend.full_name)
    return backend


def get_backend() -> VisionBackend:
    global _backend
    if _backend is None:
        _backend = _build_backend()
    return _backend


def reset_backend() -> None:
    global _backend
    _backend = None
