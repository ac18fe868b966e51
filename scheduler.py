"""
scheduler.py — Daily disposition report.

Every day at REPORT_HOUR (in REPORT_TIMEZONE, default Europe/Istanbul) the
previous UTC day's effective counts are written to
DATA_DIR/reports/YYYY-MM-DD.json and summarised in the log.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

_running = False


def _now_local() -> datetime:
    """Return current datetime in the configured local timezone."""
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
    import config
    try:
        return datetime.now(ZoneInfo(config.REPORT_TIMEZONE))
    except ZoneInfoNotFoundError:
        logger.warning("Unknown REPORT_TIMEZONE %r, using UTC", config.REPORT_TIMEZONE)
        return datetime.now(timezone.utc)


def format_summary(day: date, stats: dict[str, int]) -> str:
    parts = ", ".join(f"{k}={v}" for k, v in stats.items() if k != "total")
    return f"Daily report {day.isoformat()}: total={stats['total']} ({parts})"


async def write_report(day: date) -> Path:
    """Compute counts for *day* and write them to the reports directory."""
    import config
    import lifecycle

    stats = (await lifecycle.get_daily_counts(day)).to_dict()
    reports_dir = Path(config.DATA_DIR) / "reports"
    reports_dir.mkdir(parents=True, exist_ok=True)
    path = reports_dir / f"{day.isoformat()}.json"
    path.write_text(
        json.dumps({"date": day.isoformat(), **stats}, indent=2),
        encoding="utf-8",
    )
    logger.info("%s", format_summary(day, stats))
    return path


async def _scheduler_loop() -> None:
    """Background coroutine — wakes every 30 s and fires the report at the right time."""
    import config

    last_fired_day: int = -1   # day-of-year we last fired the report

    logger.info("Scheduler started (reports at %02d:00 %s)",
                config.REPORT_HOUR, config.REPORT_TIMEZONE)

    while _running:
        await asyncio.sleep(30)
        try:
            now = _now_local()
            if now.hour != config.REPORT_HOUR or now.minute > 1:
                continue
            if now.timetuple().tm_yday == last_fired_day:
                continue   # already fired today

            last_fired_day = now.timetuple().tm_yday
            yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
            await write_report(yesterday)

        except asyncio.CancelledError:
            break
        except Exception as exc:
            logger.error("Scheduler loop error: %s", exc)


def start() -> asyncio.Task:
    """Start the scheduler as a background asyncio Task."""
    global _running
    _running = True
    return asyncio.create_task(_scheduler_loop())


def stop() -> None:
    global _running
    _running = False
