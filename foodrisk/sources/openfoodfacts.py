"""Open Food Facts text search source.

Unit conversion: OFF reports nutrients in g per 100 g. ``sodium_100g`` is
multiplied by 1000 to get mg; when only ``salt_100g`` is present it is
multiplied by 400 (salt is roughly 40 % sodium by mass, g → mg).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..scoring.models import Nutrition, ProductRecord, split_ingredients
from . import ProductNotFoundError, ProductSource, SourceError, first_value

logger = logging.getLogger(__name__)

SALT_TO_SODIUM_MG = 400
SODIUM_G_TO_MG = 1000

# Nutrition field -> OFF nutriment keys, first present wins
_NUTRIMENT_KEYS: dict[str, tuple[str, ...]] = {
    "sugar": ("sugars_100g", "sugars_value"),
    "trans_fat": ("trans-fat_100g", "trans_fat_100g", "trans-fat_value"),
    "fiber": ("fiber_100g", "fiber_value"),
    "protein": ("proteins_100g", "proteins_value"),
    "calories": ("energy-kcal_100g", "energy-kcal_value"),
}

# Keys that feed a scoring rule; calories are display only
_SCORED_KEYS: tuple[str, ...] = (
    "sodium_100g",
    "salt_100g",
    *(key for attr, keys in _NUTRIMENT_KEYS.items() if attr != "calories" for key in keys),
)

SEARCH_FIELDS = ",".join([
    "code",
    "product_name",
    "generic_name",
    "ingredients_text",
    "nutriments",
])


class OpenFoodFactsSource(ProductSource):
    """Look up products through the public Open Food Facts search API."""

    name = "openfoodfacts"

    def __init__(
        self,
        base_url: str = "https://world.openfoodfacts.org",
        timeout: float = 15.0,
        user_agent: str = "foodrisk/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    async def search(self, query: str) -> dict[str, Any]:
        """Return the raw OFF product dict of the best match.

        Raises:
            ProductNotFoundError: If the search returns no products.
            SourceError: On HTTP or decoding errors.
        """
        url = f"{self._base_url}/cgi/search.pl"
        params = {
            "search_terms": query,
            "search_simple": 1,
            "action": "process",
            "json": 1,
            "page_size": 1,
            "fields": SEARCH_FIELDS,
        }
        logger.info("Searching Open Food Facts for %r", query)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
                transport=self._transport,
            ) as client:
                r = await client.get(url, params=params)
            r.raise_for_status()
            payload = r.json()
        except httpx.HTTPError as e:
            raise SourceError(f"Open Food Facts request failed: {e}") from e
        except ValueError as e:
            raise SourceError(f"Open Food Facts returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise SourceError("Open Food Facts returned an unexpected payload")
        products = payload.get("products") or []
        if not products:
            raise ProductNotFoundError(f"No product found for {query!r}")
        return products[0]

    async def fetch(self, query: str) -> ProductRecord:
        product = await self.search(query)
        return product_to_record(product, fallback_name=query, source=self.name)


def product_to_record(
    product: dict[str, Any], fallback_name: str = "", source: str = "openfoodfacts"
) -> ProductRecord:
    """Convert an OFF product dict to a normalized ProductRecord.

    Raises:
        ProductNotFoundError: If the product lists neither ingredients nor
            any of the scored nutrients.
    """
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}

    if nutriments.get("sodium_100g") is not None:
        sodium = first_value(nutriments, ["sodium_100g"]) * SODIUM_G_TO_MG
    else:
        sodium = first_value(nutriments, ["salt_100g"]) * SALT_TO_SODIUM_MG

    nutrition = Nutrition(
        sodium=sodium,
        **{attr: first_value(nutriments, keys) for attr, keys in _NUTRIMENT_KEYS.items()},
    )

    name = product.get("product_name") or product.get("generic_name") or fallback_name
    ingredients = split_ingredients(product.get("ingredients_text"))
    has_nutrients = any(nutriments.get(key) is not None for key in _SCORED_KEYS)
    if not ingredients and not has_nutrients:
        raise ProductNotFoundError(
            f"Open Food Facts has no ingredient or nutrition data for {name!r}"
        )
    if not ingredients:
        logger.warning("Open Food Facts product %r lists no ingredients", name)

    return ProductRecord(
        product_name=name or "Unknown Product",
        ingredients=ingredients,
        nutrition=nutrition,
        source=source,
    )
