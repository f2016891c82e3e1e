# text_generators/gemini.py
"""Gemini text generator using the google-genai SDK."""
from __future__ import annotations

import logging
import os
from typing import Any

from .base import TextGeneratorAPI

_LOG = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"


class GeminiTextGenerator(TextGeneratorAPI):
    """Text-generation backend for Google Gemini models.

    Uses the google-genai SDK. The API key comes from the constructor or
    GEMINI_API_KEY / GOOGLE_API_KEY in the environment.

    SDK errors are not caught here: ``google.genai.errors.APIError`` carries
    the HTTP status in ``code``, which the retry wrapper inspects to tell a
    503 overload apart from everything else.
    """

    def __init__(self, model: str = DEFAULT_MODEL, *, api_key: str | None = None) -> None:
        self.model = model
        self._api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Get or create the Gemini client."""
        if self._client is None:
            from google import genai

            api_key = self._api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
            if not api_key:
                raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY environment variable required")

            self._client = genai.Client(api_key=api_key)
        return self._client

    async def generate(self, prompt: str, *, temperature: float = 1.0) -> str:
        """Generate text for a single user prompt.

        Returns:
            Generated text, or an empty string when the model returns nothing.
        """
        from google.genai import types

        client = self._get_client()
        config = types.GenerateContentConfig(temperature=temperature)

        _LOG.debug("Gemini: generating with model=%s, prompt_len=%d", self.model, len(prompt))
        response = await client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=config,
        )

        text = getattr(response, "text", None)
        if text:
            return text.strip()

        # Fallback: try to extract from candidates
        if getattr(response, "candidates", None):
            candidate = response.candidates[0]
            parts = getattr(getattr(candidate, "content", None), "parts", None) or []
            text_parts = [part.text for part in parts if getattr(part, "text", None)]
            if text_parts:
                return "\n".join(text_parts).strip()

        _LOG.warning("Gemini returned empty response for model=%s", self.model)
        return ""
