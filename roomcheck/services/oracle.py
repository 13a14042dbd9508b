"""
Oracle Client

HTTP client for the Gemini generateContent API used to score room photos.
"""

import asyncio
import base64
import logging
from typing import Any, Optional, Sequence

import httpx

from roomcheck.config import Settings, get_settings
from roomcheck.prompts import CONNECTION_TEST_PROMPT

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
)


class OracleError(Exception):
    """The oracle could not be reached or answered with something unusable."""


class OracleClient:
    """
    Thin async wrapper around a single generateContent call.

    One attempt per request, bounded by ``oracle_timeout_seconds``. All
    transport and protocol problems surface as ``OracleError``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.settings.gemini_api_key.strip())

    def build_request(self, prompt: str, images: Sequence[bytes] = ()) -> dict[str, Any]:
        """Request body: prompt text followed by inline JPEG images."""
        parts: list[dict[str, Any]] = [{"text": prompt}]
        for image in images:
            parts.append({
                "inline_data": {
                    "mime_type": "image/jpeg",
                    "data": base64.b64encode(image).decode("ascii"),
                }
            })

        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": 0.1,
                "maxOutputTokens": self.settings.oracle_max_tokens,
                "topP": 0.8,
                "topK": 10,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in SAFETY_CATEGORIES
            ],
        }

    async def generate(self, prompt: str, images: Sequence[bytes] = ()) -> dict[str, Any]:
        """
        Send one generateContent request.

        Returns:
            The decoded JSON response

        Raises:
            OracleError: non-200 status, transport failure, timeout or a body
                that is not a JSON object
        """
        return await self._post(self.build_request(prompt, images))

    async def check_connection(self) -> bool:
        """Send a tiny text-only request and report whether it succeeded."""
        if not self.configured:
            return False
        body = {
            "contents": [{"parts": [{"text": CONNECTION_TEST_PROMPT}]}],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 100},
        }
        try:
            await self._post(body)
            logger.info("Oracle connection test succeeded")
            return True
        except OracleError as e:
            logger.error("Oracle connection test failed: %s", e)
            return False

    def diagnostics(self) -> dict[str, Any]:
        """Static configuration summary; never exposes the key."""
        return {
            "api_url": self.settings.gemini_api_url,
            "has_api_key": self.configured,
            "timeout_seconds": self.settings.oracle_timeout_seconds,
            "max_tokens": self.settings.oracle_max_tokens,
            "fallback_enabled": self.settings.fallback_enabled,
            "fallback_band": [self.settings.fallback_score_min, self.settings.fallback_score_max],
        }

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        # httpx timeouts are per phase; wait_for bounds the whole exchange
        timeout = self.settings.oracle_timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await asyncio.wait_for(
                    client.post(
                        self.settings.gemini_api_url,
                        params={"key": self.settings.gemini_api_key},
                        json=body,
                    ),
                    timeout,
                )
        except asyncio.TimeoutError as e:
            raise OracleError(f"Oracle request exceeded {timeout}s") from e
        except httpx.TimeoutException as e:
            raise OracleError(f"Oracle request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise OracleError(f"Oracle request failed: {e}") from e

        if response.status_code != 200:
            logger.error("Oracle returned %s: %s", response.status_code, response.text[:500])
            raise OracleError(f"Oracle returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise OracleError("Oracle returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise OracleError("Oracle returned an unexpected JSON shape")
        return data
