"""Gemini API vision backend for reading product labels."""

from __future__ import annotations

from ..scoring.models import ProductRecord
from ..sources import SourceError
from . import LABEL_PROMPT, VisionBackend, parse_product_json


class GeminiVisionBackend(VisionBackend):
    """Read product labels using Google Gemini's vision capability."""

    name = "gemini"

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def extract_product(
        self, image_data: bytes, media_type: str = "image/jpeg"
    ) -> ProductRecord:
        if not self._api_key:
            raise ValueError(
                "Gemini API key is not set. "
                "Check the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install 'foodrisk[gemini]'"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(
            self._model,
            generation_config={"response_mime_type": "application/json"},
        )

        parts = [{"mime_type": media_type, "data": image_data}, LABEL_PROMPT]
        try:
            response = await model.generate_content_async(parts)
        except Exception as e:
            raise SourceError(f"Gemini label extraction failed: {e}") from e
        return parse_product_json(response.text, source=self.name)
