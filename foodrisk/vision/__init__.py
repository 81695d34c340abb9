"""Vision backend base class, label parsing helpers, and factory."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import mimetypes
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from ..scoring.models import ProductRecord
from ..sources import ProductNotFoundError, SourceError

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)

LABEL_PROMPT = """\
This image shows a packaged food product or its nutrition label.
Extract the product name, the ingredient list and these nutrients:
sugar (g), sodium (mg), transFat (g), fiber (g), protein (g), calories (kcal).

Return JSON ONLY, no other text, in this shape:
{"productName": "...", "ingredients": ["..."],
 "nutrition": {"sugar": 0, "sodium": 0, "transFat": 0, "fiber": 0, "protein": 0, "calories": 0}}

Use 0 for any nutrient that is not printed. If sodium is given as salt,
convert it to sodium in mg (salt in g x 400).
If no food product is visible, return {"productName": null, "ingredients": [], "nutrition": null}.
"""

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


class VisionBackend(ABC):
    """Abstract base for reading product data from a label photo."""

    name: str = ""

    @abstractmethod
    async def extract_product(
        self, image_data: bytes, media_type: str = "image/jpeg"
    ) -> ProductRecord:
        """Extract a ProductRecord from one image.

        Raises:
            ProductNotFoundError: If the model sees no food product.
            SourceError: If the model's reply is not usable JSON.
        """
        ...


def decode_data_url(value: str) -> tuple[bytes, str]:
    """Decode a ``data:image/...;base64,...`` string (or bare base64).

    Returns:
        The raw image bytes and the media type.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    media_type = "image/jpeg"
    payload = value.strip()
    m = _DATA_URL_RE.match(payload)
    if m:
        media_type = m.group("mime") or media_type
        payload = m.group("data")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 image data: {e}") from e
    if not data:
        raise ValueError("empty image data")
    return data, media_type


def load_image(path: str | Path) -> tuple[bytes, str]:
    """Read an image file and guess its media type."""
    data = Path(path).read_bytes()
    media_type = mimetypes.guess_type(str(path))[0] or "image/jpeg"
    return data, media_type


def parse_product_json(text: str, source: str = "vision") -> ProductRecord:
    """Parse the JSON object a vision model returned into a ProductRecord."""
    # Strip markdown fences if present
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SourceError(f"Vision model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SourceError("Vision model returned JSON that is not an object")

    nutrition = data.get("nutrition")
    if nutrition is not None and not isinstance(nutrition, dict):
        raise SourceError(
            f"Vision model returned nutrition as {type(nutrition).__name__}, expected an object"
        )
    ingredients = data.get("ingredients")
    if ingredients is not None and not isinstance(ingredients, (list, str)):
        raise SourceError(
            f"Vision model returned ingredients as {type(ingredients).__name__}, "
            f"expected a list or string"
        )

    if not data.get("productName") and not data.get("ingredients") and not data.get("nutrition"):
        raise ProductNotFoundError("No food product found in the image")
    if not data.get("nutrition"):
        logger.warning("Vision model returned no nutrition data; scoring on zeros")

    return ProductRecord.from_dict(data, source=source)


def create_backend(config: AppConfig, backend: str | None = None) -> VisionBackend:
    """Create a vision backend based on configuration."""
    backend_name = backend or config.vision.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeVisionBackend

            return ClaudeVisionBackend(
                api_key=config.vision.claude.api_key,
                model=config.vision.claude.model,
            )
        case "gemini":
            from .gemini import GeminiVisionBackend

            return GeminiVisionBackend(
                api_key=config.vision.gemini.api_key,
                model=config.vision.gemini.model,
            )
        case _:
            raise ValueError(
                f"Unknown vision backend: {backend_name!r} "
                f"(choose claude / gemini)"
            )
