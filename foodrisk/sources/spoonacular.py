"""Spoonacular grocery product source.

Unit conversion: none. Spoonacular already reports sodium in mg and the
other nutrients in g, per serving rather than per 100 g.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..scoring.models import Nutrition, ProductRecord, split_ingredients, to_number
from . import ProductNotFoundError, ProductSource, SourceError

logger = logging.getLogger(__name__)


class SpoonacularSource(ProductSource):
    """Look up products through the Spoonacular food products API."""

    name = "spoonacular"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.spoonacular.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, query: str) -> ProductRecord:
        if not self._api_key:
            raise ValueError(
                "Spoonacular API key is not set. "
                "Check the config file or the SPOONACULAR_API_KEY environment variable."
            )

        logger.info("Searching Spoonacular for %r", query)
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            search = await self._get(
                client,
                "/food/products/search",
                {"query": query, "number": 1},
            )
            products = search.get("products") or []
            if not products:
                raise ProductNotFoundError(f"No product found for {query!r}")

            product_id = products[0].get("id")
            if product_id is None:
                raise SourceError("Spoonacular search result has no product id")
            title = products[0].get("title") or query
            info = await self._get(client, f"/food/products/{product_id}", {})

        return info_to_record(info, title=title, source=self.name)

    async def _get(
        self, client: httpx.AsyncClient, path: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            r = await client.get(
                f"{self._base_url}{path}",
                params={**params, "apiKey": self._api_key},
            )
        except httpx.HTTPError as e:
            raise SourceError(f"Spoonacular request failed: {e}") from e

        if r.status_code == 402:
            raise SourceError("Spoonacular daily quota reached")
        if r.is_error:
            raise SourceError(f"Spoonacular returned HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise SourceError(f"Spoonacular returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SourceError("Spoonacular returned an unexpected payload")
        return data


def info_to_record(
    info: dict[str, Any], title: str = "", source: str = "spoonacular"
) -> ProductRecord:
    """Convert a Spoonacular product-information dict to a ProductRecord."""
    nutrients = (info.get("nutrition") or {}).get("nutrients") or []

    def amount(name: str) -> float:
        needle = name.lower()
        for item in nutrients:
            if needle in str(item.get("name", "")).lower():
                return to_number(item.get("amount"))
        return 0.0

    return ProductRecord(
        product_name=info.get("title") or title or "Unknown Product",
        ingredients=split_ingredients(info.get("ingredientList")),
        nutrition=Nutrition(
            sugar=amount("Sugar"),
            sodium=amount("Sodium"),
            trans_fat=amount("Trans Fat"),
            fiber=amount("Fiber"),
            protein=amount("Protein"),
            calories=amount("Calories"),
        ),
        source=source,
    )
