"""
analyzer.py — turns one shoe photo (+ optional customer notes) into an
AnalysisResult.

  classify()  one backend call, decode, normalise scores, apply the warranty
              table. Returns Classified(result) or Unavailable(reason); it
              never raises for backend-side problems and never retries.
  analyze()   classify(), falling back to a canned result on Unavailable.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from fallback import FallbackSelector
from models import DEFAULT_USER_ERROR_REASON, AnalysisResult
from providers.base import VisionBackend, build_prompt, parse_json_response
from scoring import normalize_scores
from warranty import BRAND_WARRANTY_TABLE, DEFAULT_WARRANTY_MONTHS, resolve_warranty

logger = logging.getLogger(__name__)


# ── Adapter outcome ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Classified:
    result: AnalysisResult


@dataclass(frozen=True)
class Unavailable:
    reason: str


ClassifierOutcome = Union[Classified, Unavailable]


# ── Analyzer ──────────────────────────────────────────────────────────────────

class ShoeAnalyzer:
    """
    backend defaults to the one configured in providers.manager, resolved on
    first use so a missing API key only degrades to fallback results.
    """

    def __init__(
        self,
        backend: Optional[VisionBackend] = None,
        warranty_table: Sequence[tuple[str, int]] = BRAND_WARRANTY_TABLE,
        fallback: Optional[FallbackSelector] = None,
    ):
        self._backend = backend
        self._warranty_table = warranty_table
        self._fallback = fallback or FallbackSelector()

    def _get_backend(self) -> VisionBackend:
        if self._backend is None:
            from providers.manager import get_backend
            self._backend = get_backend()
        return self._backend

    async def classify(self, image_bytes: bytes, customer_notes: str = "") -> ClassifierOutcome:
        try:
            backend = self._get_backend()
        except Exception as exc:
            logger.error("No classification backend: %s", exc)
            return Unavailable(f"no backend: {exc}")

        t0 = time.monotonic()
        try:
            raw = await backend.generate(image_bytes, build_prompt(customer_notes))
            data = parse_json_response(raw, backend.full_name)
            result = AnalysisResult.from_backend(data)
        except Exception as exc:
            logger.error("[%s] Failed: %s", backend.full_name, exc)
            return Unavailable(f"{backend.full_name}: {exc}")

        latency_ms = int((time.monotonic() - t0) * 1000)
        result = self._finish(result, has_notes=bool((customer_notes or "").strip()))
        logger.info(
            "[%s] OK: %s confidence=%.2f model=%s latency=%dms",
            backend.full_name, result.classification.value, result.confidence,
            result.shoe_model, latency_ms,
        )
        return Classified(result)

    def _finish(self, result: AnalysisResult, has_notes: bool) -> AnalysisResult:
        scores = normalize_scores(result.scores)

        if result.has_known_model:
            warranty = resolve_warranty(result.shoe_model, self._warranty_table)
        elif result.warranty_period > 0:
            warranty = result.warranty_period
        else:
            warranty = DEFAULT_WARRANTY_MONTHS

        # A mismatch needs a customer claim to compare against
        is_user_error = result.is_user_error and has_notes
        if is_user_error:
            reason = result.user_error_reason or DEFAULT_USER_ERROR_REASON
        else:
            reason = ""

        return result.copy(
            scores=scores,
            warranty_period=warranty,
            is_user_error=is_user_error,
            user_error_reason=reason,
            is_fallback=False,
        )

    async def analyze(self, image_bytes: bytes, customer_notes: str = "") -> AnalysisResult:
        outcome = await self.classify(image_bytes, customer_notes or "")
        if isinstance(outcome, Classified):
            return outcome.result
        return self._fallback.select(outcome.reason)


_default_analyzer: Optional[ShoeAnalyzer] = None


async def analyze(image_bytes: bytes, customer_notes: str = "") -> AnalysisResult:
    """Analyse with the configured backend. Always returns a result."""
    global _default_analyzer
    if _default_analyzer is None:
        _default_analyzer = ShoeAnalyzer()
    return await _default_analyzer.analyze(image_bytes, customer_notes)
