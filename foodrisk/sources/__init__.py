"""Product data sources: base class, errors, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from ..scoring.models import ProductRecord, to_number

if TYPE_CHECKING:
    from ..config import AppConfig


class SourceError(RuntimeError):
    """A source could not produce product data (network, quota, bad payload)."""


class ProductNotFoundError(SourceError):
    """The upstream service has no product matching the query."""


class ProductSource(ABC):
    """Abstract base for text-query product lookups.

    Implementations return a :class:`ProductRecord` with every nutrient
    zero-filled and converted to the units the scoring engine expects
    (sodium in mg, everything else in g).
    """

    name: str = ""

    @abstractmethod
    async def fetch(self, query: str) -> ProductRecord:
        """Look up a product by free-text name.

        Raises:
            ProductNotFoundError: If nothing matches ``query``.
            SourceError: On network failures or malformed responses.
        """
        ...


def first_value(data: Mapping[str, Any], keys: Iterable[str]) -> float:
    """Return the first present value among ``keys`` as a float, else 0.0."""
    for key in keys:
        if data.get(key) is not None:
            return to_number(data[key])
    return 0.0


def create_source(config: AppConfig, backend: str | None = None) -> ProductSource:
    """Create a product source based on configuration."""
    backend_name = backend or config.source.backend

    match backend_name:
        case "openfoodfacts":
            from .openfoodfacts import OpenFoodFactsSource

            return OpenFoodFactsSource(
                base_url=config.source.openfoodfacts.base_url,
                timeout=config.source.timeout,
                user_agent=config.source.user_agent,
            )
        case "spoonacular":
            from .spoonacular import SpoonacularSource

            return SpoonacularSource(
                api_key=config.source.spoonacular.api_key,
                base_url=config.source.spoonacular.base_url,
                timeout=config.source.timeout,
            )
        case "scraper":
            from .scraper import OpenFoodFactsPageScraper

            return OpenFoodFactsPageScraper(
                base_url=config.source.openfoodfacts.base_url,
                timeout=config.source.timeout,
                user_agent=config.source.user_agent,
            )
        case _:
            raise ValueError(
                f"Unknown product source: {backend_name!r} "
                f"(choose openfoodfacts / spoonacular / scraper)"
            )
