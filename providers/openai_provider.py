"""
OpenAI classification backend — chat completions with a strict JSON schema.

Strict structured outputs require every object in the schema to forbid
additional properties, so a strict copy of RESPONSE_SCHEMA is built here.
"""
from __future__ import annotations

import base64
import copy
import logging

from openai import AsyncOpenAI

from providers.base import RESPONSE_SCHEMA, VisionBackend, detect_mime_type

logger = logging.getLogger(__name__)

USER_PROMPT = "Classify the returned shoe in this photo and return the JSON."


def _strict_schema() -> dict:
    schema = copy.deepcopy(RESPONSE_SCHEMA)
    schema["additionalProperties"] = False
    schema["properties"]["scores"]["additionalProperties"] = False
    return schema


class OpenAIBackend(VisionBackend):

    def __init__(self, api_key: str, model: str = "gpt-4o"):
        self.name = "openai"
        self.model_id = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def generate(self, image_bytes: bytes, prompt: str) -> str:
        b64 = base64.b64encode(image_bytes).decode()
        mime = detect_mime_type(image_bytes)

        response = await self._client.chat.completions.create(
            model=self.model_id,
            temperature=0,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "shoe_analysis",
                    "strict": True,
                    "schema": _strict_schema(),
                },
            },
            messages=[
                {"role": "system", "content": prompt},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{mime};base64,{b64}",
                                "detail": "high",
                            },
                        },
                        {"type": "text", "text": USER_PROMPT},
                    ],
                },
            ],
        )
        return response.choices[0].message.content or ""
