"""Claude API vision backend for reading product labels."""

from __future__ import annotations

import base64

from ..scoring.models import ProductRecord
from ..sources import SourceError
from . import LABEL_PROMPT, VisionBackend, parse_product_json


class ClaudeVisionBackend(VisionBackend):
    """Read product labels using Claude's vision capability."""

    name = "claude"

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def extract_product(
        self, image_data: bytes, media_type: str = "image/jpeg"
    ) -> ProductRecord:
        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install 'foodrisk[claude]'"
            ) from None

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.standard_b64encode(image_data).decode(),
                },
            },
            {"type": "text", "text": LABEL_PROMPT},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        try:
            response = await client.messages.create(
                model=self._model,
                max_tokens=2048,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as e:
            raise SourceError(f"Claude label extraction failed: {e}") from e

        text = response.content[0].text
        return parse_product_json(text, source=self.name)
