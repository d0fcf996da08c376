"""
Google Gemini Client
Calls the generateContent REST endpoint with httpx
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ... import config

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"

HARM_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]
SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"} for category in HARM_CATEGORIES
]


class GeminiError(Exception):
    """Gemini could not be reached or returned an error status"""


@dataclass
class GeminiResult:
    text: str
    block_reason: Optional[str] = None


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls) -> "GeminiClient":
        return cls(config.GOOGLE_GEMINI_API_KEY, config.GEMINI_MODEL, config.GEMINI_HTTP_TIMEOUT)

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> GeminiResult:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "safetySettings": SAFETY_SETTINGS,
        }
        url = f"{GEMINI_API_URL}/models/{self.model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http_client:
                response = await http_client.post(
                    url,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            raise GeminiError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Gemini API error: {response.status_code} {response.text}")
            raise GeminiError(f"Gemini API returned {response.status_code}")

        return self.parse_response(response.json())

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> GeminiResult:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")

        texts = []
        for candidate in data.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                if part.get("text"):
                    texts.append(part["text"])
            if not texts and candidate.get("finishReason") == "SAFETY" and not block_reason:
                block_reason = "SAFETY"
            if texts:
                break

        return GeminiResult(text="".join(texts).strip(), block_reason=block_reason)
