"""
Canned results served when the classification backend cannot produce one.

These do not describe the uploaded photo. Every result handed out is a copy
tagged is_fallback=True so reviewers can tell it apart from a real analysis.
"""
from __future__ import annotations

import logging
import random
from typing import Optional, Protocol, Sequence

from models import AnalysisResult, ClassificationCategory

logger = logging.getLogger(__name__)


class Chooser(Protocol):
    def choice(self, seq: Sequence[AnalysisResult]) -> AnalysisResult: ...


FALLBACK_RESULTS: tuple[AnalysisResult, ...] = (
    AnalysisResult(
        classification=ClassificationCategory.RETURNABLE,
        confidence=0.95,
        scores={"returnable": 0.85, "not_returnable": 0.03, "send_back": 0.02,
                "donation": 0.08, "disposal": 0.02},
        features=["iyi durum", "temiz yüzey", "sağlam yapı"],
        reasoning="Ayakkabı genel olarak iyi durumda, müşteriye iade edilebilir.",
        damage_reasons=[],
        shoe_model="Nike Air Max",
        warranty_period=24,
    ),
    AnalysisResult(
        classification=ClassificationCategory.DISPOSAL,
        confidence=0.92,
        scores={"returnable": 0.02, "not_returnable": 0.03, "send_back": 0.03,
                "donation": 0.12, "disposal": 0.80},
        features=["ağır hasar", "taban ayrılması", "hijyen sorunu"],
        reasoning="Ayakkabıda ağır hasar tespit edildi, imha gereklidir.",
        damage_reasons=["taban ayrılması", "aşırı kullanım", "hijyen sorunu"],
        shoe_model="Adidas Stan Smith",
        warranty_period=24,
    ),
    AnalysisResult(
        classification=ClassificationCategory.DONATION,
        confidence=0.88,
        scores={"returnable": 0.05, "not_returnable": 0.05, "send_back": 0.05,
                "donation": 0.75, "disposal": 0.10},
        features=["kullanımlı", "hafif aşınma", "işlevsel"],
        reasoning="Ayakkabı kullanımlı ama hala işlevsel, bağış için uygun.",
        damage_reasons=["normal aşınma"],
        shoe_model="Puma Suede Classic",
        warranty_period=12,
    ),
)


class FallbackSelector:
    """Pick one canned result. Pass a seeded random.Random for repeatable picks."""

    def __init__(
        self,
        results: Sequence[AnalysisResult] = FALLBACK_RESULTS,
        chooser: Optional[Chooser] = None,
    ):
        if not results:
            raise ValueError("FallbackSelector needs at least one canned result")
        self._results = tuple(results)
        self._chooser = chooser or random.Random()

    def select(self, reason: str = "") -> AnalysisResult:
        picked = self._chooser.choice(self._results)
        logger.warning(
            "Serving fallback result (%s): %s",
            picked.classification.value, reason or "backend unavailable",
        )
        return picked.copy(is_fallback=True)
