"""
Shared prompt, response schema and base class for classification backends.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from models import SCORE_KEYS, UNDETERMINED_MODEL

logger = logging.getLogger(__name__)

# ── Prompt (shared across all backends) ───────────────────────────────────────

SYSTEM_PROMPT = f"""You are an expert footwear returns inspector for a shoe retailer.
Carefully analyse the uploaded photo and classify the returned item.

FIRST CHECK:
- Is this really a shoe? If not (blurry, a hand, a face, another object),
  answer "not_returnable" with reasoning "Ürün tespit edilemedi".
- If the photo quality is very poor, give a confidence below 0.3.

CATEGORIES:
1. returnable      Excellent or good condition, new or barely used
2. not_returnable  Not a shoe, OR serious damage caused by the customer
3. send_back       Manufacturing defect or quality problem, goes back to the brand
4. donation        Moderately used but fully functional
5. disposal        Heavy damage, hygiene problem, no longer functional

NEW / CLEAN SHOE RULES:
- Clean, shiny, no wear, box labels present: "returnable" (confidence 0.95+)
- Only dust or dirt, no wear: "returnable" (confidence 0.90+)
- Lightly used, very slight wear: "returnable" (confidence 0.85+)

Give every category a score between 0 and 1 and list the observed condition
features: wear level, surface cleanliness, structural integrity, sole
condition, material condition and hygiene.

For damaged shoes list the damage causes you can see, e.g. sole separation,
overuse, improper storage, normal wear, hygiene problem, material ageing,
manufacturing defect, physical damage.

BRAND / MODEL:
- Look closely at logos (Nike swoosh, Adidas three stripes, Puma cat ...),
  printed text and design details (Air Max air unit, Stan Smith perforations).
- Report the brand and model in shoeModel, or "{UNDETERMINED_MODEL}" if it
  cannot be determined.
- Estimate warrantyPeriod in months (unknown brands: 12).

Write features, reasoning, damageReasons and userErrorReason in Turkish.
Answer with JSON only."""

CUSTOMER_NOTES_SECTION = """

CUSTOMER NOTES: "{notes}"
Compare the customer's complaint with what the photo shows and decide whether
this is a user error (isUserError). Use one of these reasons:
- "Kullanıcı Hatası - Fotoğrafta belirti yok"  complaint but no visible problem
- "Kullanıcı Hatası - Açıklama uyumsuz"        described damage is not visible
- "Kullanıcı Hatası - Normal aşınma"           complaint about normal wear
- "Kullanıcı Hatası - Temizlik sorunu"         clean shoe returned as dirty
If there is no user error set isUserError to false and userErrorReason to "".
"""

NO_NOTES_SECTION = """

No customer notes were provided: set isUserError to false and userErrorReason to ""."""


def build_prompt(customer_notes: Optional[str] = None) -> str:
    """Return the full instruction text, with the notes section when notes are given."""
    notes = (customer_notes or "").strip()
    if notes:
        return SYSTEM_PROMPT + CUSTOMER_NOTES_SECTION.format(notes=notes)
    return SYSTEM_PROMPT + NO_NOTES_SECTION


# ── Structured-output contract ────────────────────────────────────────────────

RESPONSE_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "classification": {"type": "string", "enum": list(SCORE_KEYS)},
        "confidence":     {"type": "number"},
        "scores": {
            "type": "object",
            "properties": {
                key: {"type": "number", "minimum": 0, "maximum": 1}
                for key in SCORE_KEYS
            },
            "required": list(SCORE_KEYS),
        },
        "features":        {"type": "array", "items": {"type": "string"}},
        "reasoning":       {"type": "string"},
        "damageReasons":   {"type": "array", "items": {"type": "string"}},
        "shoeModel":       {"type": "string"},
        "warrantyPeriod":  {"type": "number"},
        "isUserError":     {"type": "boolean"},
        "userErrorReason": {"type": "string"},
    },
    "required": [
        "classification", "confidence", "scores", "features", "reasoning",
        "damageReasons", "shoeModel", "warrantyPeriod", "isUserError",
        "userErrorReason",
    ],
}


def detect_mime_type(image_bytes: bytes) -> str:
    """Guess the image MIME type from its signature (default jpeg)."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"GIF8":
        return "image/gif"
    if image_bytes[:4] == b"RIFF":
        return "image/webp"
    return "image/jpeg"


def parse_json_response(raw: Optional[str], backend_name: str) -> dict:
    """
    Parse JSON from a model response, handling markdown fences gracefully.
    Raises ValueError on an empty response or parse failure.
    """
    if not raw or not raw.strip():
        raise ValueError(f"[{backend_name}] Empty response")
    text = raw.strip()
    # Strip ```json ... ``` or ``` ... ``` fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("[%s] Non-JSON response: %s", backend_name, raw[:300])
        raise ValueError(f"[{backend_name}] JSON parse error: {exc}") from exc


# ── Abstract base ──────────────────────────────────────────────────────────────

class VisionBackend(ABC):
    """Base class all classification backends must implement."""

    name: str           # e.g. "google"
    model_id: str       # e.g. "gemini-2.5-pro"

    @abstractmethod
    async def generate(self, image_bytes: bytes, prompt: str) -> str:
        """Send one image plus instructions; return the raw JSON text."""
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
