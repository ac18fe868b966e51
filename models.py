"""
Shared types for the shoe-return classification pipeline.

AnalysisResult is what the analyzer produces for one photo; AnalysisRecord
is the persisted form with its approval lifecycle. Both serialise to the
camelCase JSON shape the web client and the classification backend use.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional


# ── Errors ─────────────────────────────────────────────────────────────────────

class InvalidInputError(ValueError):
    """Caller supplied a malformed identifier, note or other input."""


class InvalidCategoryError(InvalidInputError):
    """A classification string is not one of the five known categories."""


class AnalysisNotFoundError(LookupError):
    """No stored analysis has the requested identifier."""


# ── Classification ────────────────────────────────────────────────────────────

class ClassificationCategory(str, Enum):
    RETURNABLE     = "returnable"
    NOT_RETURNABLE = "not_returnable"
    SEND_BACK      = "send_back"
    DONATION       = "donation"
    DISPOSAL       = "disposal"

    @classmethod
    def parse(cls, value: Any) -> "ClassificationCategory":
        """Convert an untrusted value into a category or raise InvalidCategoryError."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip())
            except ValueError:
                pass
        raise InvalidCategoryError(f"Invalid classification: {value!r}")


CATEGORIES: tuple[ClassificationCategory, ...] = tuple(ClassificationCategory)
SCORE_KEYS: tuple[str, ...] = tuple(c.value for c in CATEGORIES)


class ApprovalState(IntEnum):
    PENDING  = 0
    APPROVED = 1
    # -1 is reserved in storage for a rejected state; nothing writes it.


# Sentinel the backend uses when the brand/model cannot be read from the photo
UNDETERMINED_MODEL = "Belirlenemedi"
DEFAULT_USER_ERROR_REASON = "Kullanıcı Hatası"


# ── Analysis result ───────────────────────────────────────────────────────────

def _require(data: Mapping[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"Missing field: {key}")
    return data[key]


def _number(value: Any, name: str) -> float:
    # bool is an int subclass; a JSON true/false is never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field {name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"Field {name} must be finite, got {value!r}")
    return float(value)


def _string_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Field {name} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


@dataclass
class AnalysisResult:
    """Classification of one returned shoe photo."""
    classification: ClassificationCategory
    confidence: float                    # 0..1, certainty in classification
    scores: dict[str, float]             # one entry per category, sums to ~1
    features: list[str]
    reasoning: str
    damage_reasons: list[str] = field(default_factory=list)
    shoe_model: Optional[str] = None     # None or UNDETERMINED_MODEL when unknown
    warranty_period: int = 12            # months
    is_user_error: bool = False
    user_error_reason: str = ""
    is_fallback: bool = False            # canned result, image was not classified

    @property
    def has_known_model(self) -> bool:
        return bool(self.shoe_model) and self.shoe_model != UNDETERMINED_MODEL

    def copy(self, **changes: Any) -> "AnalysisResult":
        """Deep-enough copy: lists and the scores dict are never shared."""
        base = replace(
            self,
            scores=dict(self.scores),
            features=list(self.features),
            damage_reasons=list(self.damage_reasons),
        )
        return replace(base, **changes) if changes else base

    def to_dict(self) -> dict[str, Any]:
        return {
            "classification":  self.classification.value,
            "confidence":      self.confidence,
            "scores":          {k: self.scores[k] for k in SCORE_KEYS},
            "features":        list(self.features),
            "reasoning":       self.reasoning,
            "damageReasons":   list(self.damage_reasons),
            "shoeModel":       self.shoe_model,
            "warrantyPeriod":  self.warranty_period,
            "isUserError":     self.is_user_error,
            "userErrorReason": self.user_error_reason,
            "isFallback":      self.is_fallback,
        }

    @classmethod
    def from_backend(cls, data: Any) -> "AnalysisResult":
        """
        Validate a decoded backend response.
        Raises ValueError (InvalidCategoryError for a bad classification) when
        the object does not have the required shape. Scores are returned raw;
        normalisation and warranty lookup are the analyzer's job.
        """
        if not isinstance(data, dict):
            raise ValueError("Backend response is not a JSON object")

        classification = ClassificationCategory.parse(_require(data, "classification"))
        confidence = min(max(_number(_require(data, "confidence"), "confidence"), 0.0), 1.0)

        raw_scores = _require(data, "scores")
        if not isinstance(raw_scores, dict):
            raise ValueError("Field scores must be an object")
        scores = {
            key: max(_number(_require(raw_scores, key), f"scores.{key}"), 0.0)
            for key in SCORE_KEYS
        }

        reasoning = _require(data, "reasoning")
        if not isinstance(reasoning, str) or not reasoning.strip():
            raise ValueError("Field reasoning must be a non-empty string")

        shoe_model = data.get("shoeModel")
        if shoe_model is not None and not isinstance(shoe_model, str):
            raise ValueError("Field shoeModel must be a string")
        shoe_model = (shoe_model or "").strip() or None

        warranty = data.get("warrantyPeriod")
        try:
            warranty_months = int(_number(warranty, "warrantyPeriod"))
        except ValueError:
            warranty_months = 0

        reason = data.get("userErrorReason") or ""
        if not isinstance(reason, str):
            raise ValueError("Field userErrorReason must be a string")

        return cls(
            classification=classification,
            confidence=confidence,
            scores=scores,
            features=_string_list(_require(data, "features"), "features"),
            reasoning=reasoning.strip(),
            damage_reasons=_string_list(data.get("damageReasons", []), "damageReasons"),
            shoe_model=shoe_model,
            warranty_period=warranty_months,
            is_user_error=data.get("isUserError") is True,
            user_error_reason=reason.strip(),
        )


# ── Persisted record ──────────────────────────────────────────────────────────

@dataclass
class AnalysisRecord:
    id: str
    image_url: str
    original_filename: str
    result: AnalysisResult
    customer_notes: Optional[str]
    is_approved: ApprovalState
    manual_override: Optional[ClassificationCategory]
    user_notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    @property
    def effective_classification(self) -> ClassificationCategory:
        """Human override wins over the AI classification for reporting."""
        return self.manual_override or self.result.classification

    def to_dict(self) -> dict[str, Any]:
        data = self.result.to_dict()
        data.update({
            "id":               self.id,
            "imageUrl":         self.image_url,
            "originalFilename": self.original_filename,
            "customerNotes":    self.customer_notes,
            "isApproved":       int(self.is_approved),
            "manualOverride":   self.manual_override.value if self.manual_override else None,
            "userNotes":        self.user_notes,
            "createdAt":        self.created_at.isoformat(),
            "updatedAt":        self.updated_at.isoformat(),
        })
        return data


@dataclass
class DailyStats:
    """Effective classification counts for one calendar day."""
    counts: dict[str, int]
    total: int

    @classmethod
    def empty(cls) -> "DailyStats":
        return cls(counts={k: 0 for k in SCORE_KEYS}, total=0)

    def to_dict(self) -> dict[str, int]:
        data = {k: self.counts.get(k, 0) for k in SCORE_KEYS}
        data["total"] = self.total
        return data
