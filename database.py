"""
database.py — async SQLite persistence via aiosqlite.

Tables:
  shoe_analyses — one row per analysed photo, with its approval state

Scores, features and damage reasons are stored as JSON text. Timestamps are
ISO-8601 UTC strings, so lexical order is time order.

The DB file is created automatically on first run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from models import (
    AnalysisRecord,
    AnalysisResult,
    ApprovalState,
    ClassificationCategory,
)

logger = logging.getLogger(__name__)

# Store the DB in a dedicated data/ directory so Docker volume mounts work
# correctly (mount ./data:/app/data) and the file survives container restarts.
_DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
_DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = str(_DATA_DIR / "shoe_returns.db")
_lock = asyncio.Lock()          # serialise schema migrations


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS shoe_analyses (
    id                TEXT    PRIMARY KEY,
    image_url         TEXT    NOT NULL,
    original_filename TEXT    NOT NULL,
    classification    TEXT    NOT NULL,
    confidence        REAL    NOT NULL,
    scores            TEXT    NOT NULL,
    features          TEXT    NOT NULL DEFAULT '[]',
    reasoning         TEXT    NOT NULL,
    damage_reasons    TEXT    NOT NULL DEFAULT '[]',
    shoe_model        TEXT,
    warranty_period   INTEGER,
    is_approved       INTEGER NOT NULL DEFAULT 0,   -- 0 pending, 1 approved, -1 reserved
    manual_override   TEXT,
    customer_notes    TEXT,
    user_notes        TEXT,
    is_user_error     INTEGER NOT NULL DEFAULT 0,
    user_error_reason TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_shoe_analyses_created ON shoe_analyses (created_at);
"""

_MIGRATIONS = [
    # Tag canned results served while the classification backend was down
    "ALTER TABLE shoe_analyses ADD COLUMN is_fallback INTEGER NOT NULL DEFAULT 0",
]


async def init_db() -> None:
    """Create tables if they don't exist. Safe to call multiple times."""
    async with _lock:
        async with aiosqlite.connect(DB_PATH) as db:
            await db.executescript(_SCHEMA)
            # SQLite raises if a column already exists, which means applied
            for sql in _MIGRATIONS:
                try:
                    await db.execute(sql)
                except aiosqlite.OperationalError:
                    pass
            await db.commit()
    logger.info("Database initialised at %s", DB_PATH)


# ── Row mapping ───────────────────────────────────────────────────────────────

def _row_to_record(r: aiosqlite.Row) -> AnalysisRecord:
    result = AnalysisResult(
        classification=ClassificationCategory.parse(r["classification"]),
        confidence=r["confidence"],
        scores=json.loads(r["scores"]),
        features=json.loads(r["features"]),
        reasoning=r["reasoning"],
        damage_reasons=json.loads(r["damage_reasons"]),
        shoe_model=r["shoe_model"],
        warranty_period=r["warranty_period"] or 0,
        is_user_error=bool(r["is_user_error"]),
        user_error_reason=r["user_error_reason"] or "",
        is_fallback=bool(r["is_fallback"]),
    )
    override = r["manual_override"]
    return AnalysisRecord(
        id=r["id"],
        image_url=r["image_url"],
        original_filename=r["original_filename"],
        result=result,
        customer_notes=r["customer_notes"],
        is_approved=ApprovalState(r["is_approved"]),
        manual_override=ClassificationCategory.parse(override) if override else None,
        user_notes=r["user_notes"],
        created_at=datetime.fromisoformat(r["created_at"]),
        updated_at=datetime.fromisoformat(r["updated_at"]),
    )


# ── Analysis operations ───────────────────────────────────────────────────────

async def insert_analysis(
    result: AnalysisResult,
    image_url: str,
    original_filename: str,
    customer_notes: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> AnalysisRecord:
    """Insert a new pending analysis and return the stored record."""
    analysis_id = str(uuid.uuid4())
    now = (created_at or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat()
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """INSERT INTO shoe_analyses
               (id, image_url, original_filename, classification, confidence, scores,
                features, reasoning, damage_reasons, shoe_model, warranty_period,
                is_approved, manual_override, customer_notes, user_notes,
                is_user_error, user_error_reason, is_fallback, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, NULL, ?, ?, ?, ?, ?)""",
            (
                analysis_id, image_url, original_filename,
                result.classification.value, result.confidence,
                json.dumps(result.scores), json.dumps(result.features, ensure_ascii=False),
                result.reasoning, json.dumps(result.damage_reasons, ensure_ascii=False),
                result.shoe_model, result.warranty_period,
                int(ApprovalState.PENDING), customer_notes or None,
                1 if result.is_user_error else 0, result.user_error_reason or None,
                1 if result.is_fallback else 0, now, now,
            ),
        )
        await db.commit()

    record = await get_analysis(analysis_id)
    assert record is not None
    return record


async def get_analysis(analysis_id: str) -> Optional[AnalysisRecord]:
    """Return the analysis with this id, or None."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM shoe_analyses WHERE id = ?", (analysis_id,)
        ) as cur:
            row = await cur.fetchone()
    return _row_to_record(row) if row else None


async def get_recent_analyses(limit: int = 10) -> list[AnalysisRecord]:
    """Return the newest analyses first."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM shoe_analyses ORDER BY created_at DESC LIMIT ?", (limit,)
        ) as cur:
            rows = await cur.fetchall()
    return [_row_to_record(r) for r in rows]


async def set_approval(
    analysis_id: str,
    manual_override: Optional[str],
    user_notes: Optional[str] = None,
    update_notes: bool = False,
) -> bool:
    """
    Mark an analysis approved with an optional override in a single UPDATE.
    user_notes is only written when update_notes=True.
    Returns True if a row was updated.
    """
    now = datetime.now(timezone.utc).isoformat()
    async with aiosqlite.connect(DB_PATH) as db:
        if update_notes:
            cursor = await db.execute(
                """UPDATE shoe_analyses
                   SET is_approved = ?, manual_override = ?, user_notes = ?, updated_at = ?
                   WHERE id = ?""",
                (int(ApprovalState.APPROVED), manual_override, user_notes, now, analysis_id),
            )
        else:
            cursor = await db.execute(
                """UPDATE shoe_analyses
                   SET is_approved = ?, manual_override = ?, updated_at = ?
                   WHERE id = ?""",
                (int(ApprovalState.APPROVED), manual_override, now, analysis_id),
            )
        await db.commit()
        return cursor.rowcount > 0


async def count_effective_classifications(
    start: datetime, end: datetime
) -> tuple[dict[str, int], int]:
    """
    Count analyses created in [start, end) by effective classification
    (manual override if set, otherwise the AI classification).
    Returns ({classification: count}, total).
    """
    since = start.astimezone(timezone.utc).isoformat()
    until = end.astimezone(timezone.utc).isoformat()
    async with aiosqlite.connect(DB_PATH) as db:
        async with db.execute(
            """SELECT COALESCE(manual_override, classification) AS effective, COUNT(*)
               FROM shoe_analyses
               WHERE created_at >= ? AND created_at < ?
               GROUP BY effective""",
            (since, until),
        ) as cur:
            rows = await cur.fetchall()
    counts = {effective: n for effective, n in rows}
    return counts, sum(counts.values())
