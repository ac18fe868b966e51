"""
Google Gemini classification backend — uses the google-genai SDK.

The response schema is passed to the API so Gemini returns a JSON object in
exactly the AnalysisResult shape (responseMimeType=application/json).
"""
from __future__ import annotations

import logging

from google import genai
from google.genai import types as genai_types

from providers.base import RESPONSE_SCHEMA, VisionBackend, detect_mime_type

logger = logging.getLogger(__name__)


class GeminiBackend(VisionBackend):

    def __init__(self, api_key: str, model: str = "gemini-2.5-pro"):
        self.name     = "google"
        self.model_id = model
        self._client  = genai.Client(api_key=api_key)

    async def generate(self, image_bytes: bytes, prompt: str) -> str:
        gen_config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
        )

        response = await self._client.aio.models.generate_content(
            model=self.model_id,
            contents=[
                genai_types.Part.from_bytes(
                    data=image_bytes, mime_type=detect_mime_type(image_bytes),
                ),
                prompt,
            ],
            config=gen_config,
        )
        return response.text or ""
