"""
server.py — aiohttp JSON API for the shoe returns desk.

Endpoints:
  POST /api/analyze-shoe            multipart: image (required), customerNotes
  GET  /api/recent-analyses?limit=N newest first, at most 100
  GET  /api/daily-stats?date=Y-M-D  effective counts per category (UTC day)
  GET  /api/analysis/{id}           one stored analysis
  POST /api/approve-analysis/{id}   JSON: {"manualOverride": optional}
  POST /api/manual-edit/{id}        JSON: {"manualOverride", "userNotes"}
  GET  /uploads/{name}              stored photos
  GET  /health                      plain-text health check

Errors are JSON {"error": "..."}: 400 bad input, 404 unknown id,
429 rate limited, 500 anything else (details only in the log).
"""
from __future__ import annotations

import logging
import os
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from aiohttp import web

import config
import lifecycle
from analyzer import ShoeAnalyzer
from models import AnalysisNotFoundError, InvalidInputError
from validation import RateLimiter, clean_notes, validate_image_upload

logger = logging.getLogger(__name__)

ANALYZER        = web.AppKey("analyzer", ShoeAnalyzer)
UPLOAD_DIR      = web.AppKey("upload_dir", Path)
ANALYZE_LIMITER = web.AppKey("analyze_limiter", RateLimiter)
API_LIMITER     = web.AppKey("api_limiter", RateLimiter)

ANALYZE_PATH = "/api/analyze-shoe"


def _client_ip(request: web.Request) -> str:
    if config.TRUSTED_PROXY:
        forwarded = request.headers.get("X-Real-IP")
        if forwarded:
            return forwarded
    return request.remote or "unknown"


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


# ── Middleware ────────────────────────────────────────────────────────────────

@web.middleware
async def rate_limit_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.path.startswith("/api"):
        client = _client_ip(request)
        if request.app[API_LIMITER].is_limited(client):
            return _error(429, "Too many requests, please try again later.")
        if (
            request.method == "POST"
            and request.path == ANALYZE_PATH
            and request.app[ANALYZE_LIMITER].is_limited(client)
        ):
            return _error(429, "Too many analysis requests, please try again later.")
    return await handler(request)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except InvalidInputError as exc:
        return _error(400, str(exc))
    except AnalysisNotFoundError:
        return _error(404, "Analysis not found")
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(500, "Internal server error")


# ── Helpers ───────────────────────────────────────────────────────────────────

async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInputError("Invalid JSON body.") from None
    if not isinstance(body, dict):
        raise InvalidInputError("JSON body must be an object.")
    return body


def _optional_str(body: dict[str, Any], key: str) -> Optional[str]:
    value = body.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{key} must be a string.")
    return value


def _store_upload(upload_dir: Path, data: bytes, filename: str) -> Path:
    """Write the photo under a random name; return the stored path."""
    ext = os.path.splitext(filename)[1].lower()
    path = upload_dir / f"{uuid.uuid4().hex}{ext}"
    path.write_bytes(data)
    return path


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_analyze(request: web.Request) -> web.Response:
    form = await request.post()
    image = form.get("image")
    if not isinstance(image, web.FileField):
        raise InvalidInputError("No image file provided")

    data = image.file.read()
    validate_image_upload(image.filename, image.content_type, data)

    notes = form.get("customerNotes")
    customer_notes = clean_notes(notes if isinstance(notes, str) else None, "Customer notes")

    logger.info("Analyzing image: %s, size: %d bytes", image.filename, len(data))
    result = await request.app[ANALYZER].analyze(data, customer_notes)

    stored = _store_upload(request.app[UPLOAD_DIR], data, image.filename)
    try:
        record = await lifecycle.create_record(
            result, f"/uploads/{stored.name}", image.filename, customer_notes or None,
        )
    except Exception:
        # No record points at the photo, so it must not stay on disk
        stored.unlink(missing_ok=True)
        raise

    payload = {"id": record.id, **result.to_dict(), "createdAt": record.created_at.isoformat()}
    return web.json_response(payload)


async def handle_recent(request: web.Request) -> web.Response:
    try:
        limit = int(request.query.get("limit", "10"))
    except ValueError:
        limit = 10
    records = await lifecycle.get_recent_records(limit)
    return web.json_response([r.to_dict() for r in records])


async def handle_daily_stats(request: web.Request) -> web.Response:
    raw = request.query.get("date", "")
    try:
        day = date.fromisoformat(raw) if raw else datetime.now(timezone.utc).date()
    except ValueError:
        raise InvalidInputError("Invalid date. Use YYYY-MM-DD.") from None
    stats = await lifecycle.get_daily_counts(day)
    return web.json_response(stats.to_dict())


async def handle_get_analysis(request: web.Request) -> web.Response:
    record = await lifecycle.get_record(request.match_info["id"])
    return web.json_response(record.to_dict())


async def handle_approve(request: web.Request) -> web.Response:
    body = await _json_body(request)
    await lifecycle.approve(request.match_info["id"], _optional_str(body, "manualOverride"))
    return web.json_response({"success": True})


async def handle_manual_edit(request: web.Request) -> web.Response:
    body = await _json_body(request)
    user_notes = clean_notes(_optional_str(body, "userNotes"), "User notes")
    await lifecycle.edit_manually(
        request.match_info["id"], _optional_str(body, "manualOverride"), user_notes,
    )
    return web.json_response({"success": True})


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="OK", content_type="text/plain")


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app(analyzer: Optional[ShoeAnalyzer] = None) -> web.Application:
    # Multipart framing adds a little on top of the image itself
    app = web.Application(
        client_max_size=config.MAX_UPLOAD_BYTES + 64 * 1024,
        middlewares=[rate_limit_middleware, error_middleware],
    )
    upload_dir = Path(config.DATA_DIR) / "uploads"
    upload_dir.mkdir(parents=True, exist_ok=True)

    app[ANALYZER]        = analyzer or ShoeAnalyzer()
    app[UPLOAD_DIR]      = upload_dir
    app[ANALYZE_LIMITER] = RateLimiter(config.ANALYZE_RATE_MAX, config.RATE_WINDOW_SECS)
    app[API_LIMITER]     = RateLimiter(config.API_RATE_MAX, config.RATE_WINDOW_SECS)

    app.router.add_get("/health",                      handle_health)
    app.router.add_post(ANALYZE_PATH,                  handle_analyze)
    app.router.add_get("/api/recent-analyses",         handle_recent)
    app.router.add_get("/api/daily-stats",             handle_daily_stats)
    app.router.add_get("/api/analysis/{id}",           handle_get_analysis)
    app.router.add_post("/api/approve-analysis/{id}",  handle_approve)
    app.router.add_post("/api/manual-edit/{id}",       handle_manual_edit)
    app.router.add_static("/uploads", upload_dir)
    return app


async def start_server(analyzer: Optional[ShoeAnalyzer] = None) -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app(analyzer)
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.HOST, config.PORT)
    await site.start()
    logger.info("Shoe returns API listening on %s:%d", config.HOST, config.PORT)
    return runner
