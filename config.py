"""
Central configuration — reads from .env file.

Every value is read once at import time. Tests and the server patch the
module attributes directly (config.X) when they need different values.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Storage ───────────────────────────────────────────────────────────────────
# Database, uploaded images, reports and the log file all live under DATA_DIR
# so a single Docker volume mount (./data:/app/data) captures everything.
DATA_DIR: Path = Path(os.getenv("DATA_DIR", "data"))

# ── HTTP server ───────────────────────────────────────────────────────────────
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "5000"))

# ── Classification backend ────────────────────────────────────────────────────
#   gemini → Google Gemini via google-genai (default)
#   openai → OpenAI chat completions with a strict JSON schema
CLASSIFIER_BACKEND: str = os.getenv("CLASSIFIER_BACKEND", "gemini").strip().lower()

GEMINI_API_KEY: str | None = (
    os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_GEMINI_API_KEY") or None
)
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")

OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY") or None
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")

# ── Upload limits ─────────────────────────────────────────────────────────────
MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
MAX_NOTES_LENGTH: int = int(os.getenv("MAX_NOTES_LENGTH", "500"))

# ── Rate limiting (per client IP, sliding window) ─────────────────────────────
RATE_WINDOW_SECS: int = int(os.getenv("RATE_WINDOW_SECS", str(15 * 60)))
ANALYZE_RATE_MAX: int = int(os.getenv("ANALYZE_RATE_MAX", "10"))
API_RATE_MAX: int = int(os.getenv("API_RATE_MAX", "100"))
# Honour X-Real-IP only when a reverse proxy sets it; clients can forge it
TRUSTED_PROXY: bool = os.getenv("TRUSTED_PROXY", "false").lower() == "true"

# ── Daily reports ─────────────────────────────────────────────────────────────
REPORTS_ENABLED: bool = os.getenv("REPORTS_ENABLED", "true").lower() == "true"
REPORT_HOUR: int = int(os.getenv("REPORT_HOUR", "8"))
REPORT_TIMEZONE: str = os.getenv("REPORT_TIMEZONE", "Europe/Istanbul")
