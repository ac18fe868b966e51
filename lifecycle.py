"""
lifecycle.py — creation and approval of stored analyses.

Approval states: pending → approved. approve() may attach a manual
override; edit_manually() always does, together with reviewer notes.
Nothing moves a record back to pending, and there is no rejected state.

Every input is validated before the database is touched, so a rejected
call leaves the record unchanged.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import database as db
from models import (
    SCORE_KEYS,
    AnalysisNotFoundError,
    AnalysisRecord,
    AnalysisResult,
    ClassificationCategory,
    DailyStats,
    InvalidInputError,
)
from validation import validate_id

logger = logging.getLogger(__name__)

MAX_RECENT = 100


async def create_record(
    result: AnalysisResult,
    image_url: str,
    original_filename: str,
    customer_notes: Optional[str] = None,
) -> AnalysisRecord:
    """Persist a freshly produced result as a pending record."""
    record = await db.insert_analysis(result, image_url, original_filename, customer_notes)
    logger.info(
        "Stored analysis %s: %s%s",
        record.id, result.classification.value, " (fallback)" if result.is_fallback else "",
    )
    return record


async def get_record(analysis_id: str) -> AnalysisRecord:
    record = await db.get_analysis(validate_id(analysis_id))
    if record is None:
        raise AnalysisNotFoundError(analysis_id)
    return record


async def get_recent_records(limit: int = 10) -> list[AnalysisRecord]:
    return await db.get_recent_analyses(min(max(int(limit), 1), MAX_RECENT))


async def approve(
    analysis_id: str,
    manual_override: Optional[str] = None,
) -> AnalysisRecord:
    """Approve a record, optionally overriding the AI classification."""
    validate_id(analysis_id)
    override = ClassificationCategory.parse(manual_override) if manual_override else None

    updated = await db.set_approval(analysis_id, override.value if override else None)
    if not updated:
        raise AnalysisNotFoundError(analysis_id)
    logger.info("Approved analysis %s (override=%s)", analysis_id, override.value if override else None)
    return await get_record(analysis_id)


async def edit_manually(
    analysis_id: str,
    manual_override: str,
    user_notes: str,
) -> AnalysisRecord:
    """Approve with a mandatory override and reviewer notes."""
    validate_id(analysis_id)
    if not manual_override:
        raise InvalidInputError("manualOverride is required for a manual edit")
    override = ClassificationCategory.parse(manual_override)

    updated = await db.set_approval(
        analysis_id, override.value, user_notes or "", update_notes=True,
    )
    if not updated:
        raise AnalysisNotFoundError(analysis_id)
    logger.info("Manually edited analysis %s → %s", analysis_id, override.value)
    return await get_record(analysis_id)


def day_window(day: date) -> tuple[datetime, datetime]:
    """UTC bounds [start, end) of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def get_daily_counts(day: date) -> DailyStats:
    """Per-category counts for the day, using manual overrides where set."""
    start, end = day_window(day)
    counts, total = await db.count_effective_classifications(start, end)
    stats = DailyStats.empty()
    for key in SCORE_KEYS:
        stats.counts[key] = counts.get(key, 0)
    stats.total = total
    return stats
