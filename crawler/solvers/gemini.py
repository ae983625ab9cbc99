"""
Vision-language model CAPTCHA solver over the Generative Language REST API.

This module provides:
- Inline base64 image requests to the generateContent endpoint
- Overload detection (HTTP 429 / 503, "overloaded" messages)
- Comprehensive error handling with custom exceptions
"""

import base64
from typing import Any, Dict, Optional

import httpx

from crawler.solvers.base import CaptchaSolver, CAPTCHA_LENGTH, normalize_answer
from core.exceptions import SolverError, SolverOverloadedError
import logging

logger = logging.getLogger(__name__)

PROMPT = f"Output only the {CAPTCHA_LENGTH} characters in this image. No markdown, no spaces."
OVERLOAD_STATUS_CODES = {429, 503}


def is_overload_message(message: str) -> bool:
    text = (message or "").lower()
    return "503" in text or "overloaded" in text


class GeminiCaptchaSolver(CaptchaSolver):
    """
    Solve CAPTCHAs with a hosted vision-language model.

    Attributes:
        model: Model name (default: gemma-3-27b-it)
        timeout: Request timeout in seconds (default: 30.0)
    """

    engine = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemma-3-27b-it",
        api_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/{self.model}:generateContent"

    def build_payload(self, image: bytes) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": PROMPT},
                        {
                            "inline_data": {
                                "mime_type": "image/png",
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def solve(self, image: bytes) -> Optional[str]:
        logger.info(f"[AI] Solving CAPTCHA ({self.model})...")
        context = {"engine": self.engine, "model": self.model}

        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": self.api_key},
                json=self.build_payload(image),
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise SolverError("Recognition request timed out", context=context, original_exception=e)
        except httpx.HTTPError as e:
            raise SolverError("Recognition request failed", context=context, original_exception=e)

        if response.status_code in OVERLOAD_STATUS_CODES or (
            response.status_code >= 400 and is_overload_message(response.text)
        ):
            raise SolverOverloadedError(
                "Recognition service overloaded",
                context={**context, "status_code": response.status_code}
            )

        if response.status_code >= 400:
            raise SolverError(
                f"Recognition service returned HTTP {response.status_code}",
                context={**context, "status_code": response.status_code, "response_body": response.text[:500]}
            )

        try:
            text = self.extract_text(response.json())
        except ValueError as e:
            raise SolverError("Failed to parse recognition response", context=context, original_exception=e)

        prediction = normalize_answer(text)
        logger.info(f"[AI] Predicted: {prediction}")
        return prediction or None

    async def close(self):
        await self._client.aclose()
