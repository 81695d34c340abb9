"""Open Food Facts product page scraper.

Resolves a product code through the OFF search API, downloads the public
product page and reads the name, ingredient panel and nutrition facts table
from the HTML.

Unit conversion: the page's "Salt" row (g) is multiplied by 400 to get
sodium in mg; a "Sodium" row (g), when present, is multiplied by 1000 and
takes precedence.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser

import httpx

from ..scoring.models import Nutrition, ProductRecord, split_ingredients, to_number
from . import ProductNotFoundError, ProductSource, SourceError
from .openfoodfacts import SALT_TO_SODIUM_MG, SODIUM_G_TO_MG, OpenFoodFactsSource

logger = logging.getLogger(__name__)

_INGREDIENTS_PANEL_ID = "panel_ingredients_content"
_NUTRITION_PANEL_ID = "panel_nutrition_facts_table_content"

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img",
    "input", "link", "meta", "source", "track", "wbr",
})

_KCAL_RE = re.compile(r"(\d+(?:\.\d+)?)\s*kcal", re.IGNORECASE)


@dataclass
class ProductPage:
    """Raw text pulled out of a product page."""

    title: str = ""
    ingredients_text: str = ""
    nutrition_rows: list[tuple[str, str]] = field(default_factory=list)

    def nutrient(self, *labels: str) -> float:
        """First number in the value cell of the first row matching a label."""
        for row_label, value in self.nutrition_rows:
            lowered = row_label.lower()
            if any(label in lowered for label in labels):
                return to_number(value)
        return 0.0

    def has_row(self, label: str) -> bool:
        return any(label in row_label.lower() for row_label, _ in self.nutrition_rows)


class _ProductPageParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._stack: list[tuple[str, frozenset[str]]] = []
        self._title_done = False
        self._row: list[str] | None = None
        self._cell: list[str] | None = None
        self.title_parts: list[str] = []
        self.ingredient_parts: list[str] = []
        self.rows: list[list[str]] = []

    def _inside(self, mark: str) -> bool:
        return any(mark in marks for _, marks in self._stack)

    def handle_starttag(self, tag, attrs):
        if tag in _VOID_TAGS:
            return
        a = dict(attrs)
        classes = (a.get("class") or "").split()
        marks = set()
        if a.get("id") == _INGREDIENTS_PANEL_ID:
            marks.add("ingredients_panel")
        if "panel_text" in classes and self._inside("ingredients_panel"):
            marks.add("ingredients_text")
        if a.get("id") == _NUTRITION_PANEL_ID:
            marks.add("nutrition_panel")
        if tag == "h1" and not self._title_done:
            marks.add("title")
        if tag == "tr" and self._inside("nutrition_panel"):
            self._row = []
        if tag in ("td", "th") and self._row is not None:
            self._cell = []
        self._stack.append((tag, frozenset(marks)))

    def handle_endtag(self, tag):
        if tag in _VOID_TAGS:
            return
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i][0] == tag:
                closed = self._stack[i:]
                del self._stack[i:]
                break
        else:
            return

        # Innermost first, so a cell is flushed before its row
        for t, marks in reversed(closed):
            if "title" in marks:
                self._title_done = True
            if t in ("td", "th") and self._cell is not None and self._row is not None:
                self._row.append(" ".join("".join(self._cell).split()))
                self._cell = None
            if t == "tr" and self._row is not None:
                if self._row:
                    self.rows.append(self._row)
                self._row = None

    def handle_data(self, data):
        if not self._title_done and self._inside("title"):
            self.title_parts.append(data)
        if self._inside("ingredients_text"):
            self.ingredient_parts.append(data)
        if self._cell is not None:
            self._cell.append(data)


def parse_product_page(html: str) -> ProductPage:
    """Extract title, ingredient text and nutrition rows from page HTML."""
    parser = _ProductPageParser()
    parser.feed(html)
    parser.close()
    return ProductPage(
        title=" ".join("".join(parser.title_parts).split()),
        ingredients_text=" ".join("".join(parser.ingredient_parts).split()),
        nutrition_rows=[(row[0], row[1]) for row in parser.rows if len(row) >= 2],
    )


def page_to_record(page: ProductPage, source: str = "scraper") -> ProductRecord:
    """Convert a parsed product page to a normalized ProductRecord.

    Raises:
        ProductNotFoundError: If the page has neither an ingredient panel
            nor a nutrition table.
    """
    if not page.ingredients_text and not page.nutrition_rows:
        raise ProductNotFoundError(
            f"Product page for {page.title or 'unknown product'!r} has no "
            f"ingredient or nutrition data"
        )

    if page.has_row("sodium"):
        sodium = page.nutrient("sodium") * SODIUM_G_TO_MG
    else:
        sodium = page.nutrient("salt") * SALT_TO_SODIUM_MG

    calories = 0.0
    for label, value in page.nutrition_rows:
        if "energy" in label.lower():
            m = _KCAL_RE.search(value)
            if m:
                calories = float(m.group(1))
                break

    return ProductRecord(
        product_name=page.title or "Unknown Product",
        ingredients=split_ingredients(page.ingredients_text),
        nutrition=Nutrition(
            sugar=page.nutrient("sugars"),
            sodium=sodium,
            trans_fat=page.nutrient("trans fat"),
            fiber=page.nutrient("fiber", "fibre"),
            protein=page.nutrient("proteins"),
            calories=calories,
        ),
        source=source,
    )


class OpenFoodFactsPageScraper(ProductSource):
    """Scrape the Open Food Facts product page for the best search match."""

    name = "scraper"

    def __init__(
        self,
        base_url: str = "https://world.openfoodfacts.org",
        timeout: float = 30.0,
        user_agent: str = "foodrisk/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._search = OpenFoodFactsSource(
            base_url=base_url,
            timeout=timeout,
            user_agent=user_agent,
            transport=transport,
        )

    async def fetch(self, query: str) -> ProductRecord:
        product = await self._search.search(query)
        code = product.get("code")
        if not code:
            raise ProductNotFoundError(f"No product page found for {query!r}")

        url = f"{self._base_url}/product/{code}"
        logger.info("Scraping product page %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                r = await client.get(url)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceError(f"Failed to download {url}: {e}") from e

        page = parse_product_page(r.text)
        if not page.title:
            page.title = product.get("product_name") or query
        if not page.nutrition_rows:
            logger.warning("No nutrition table found on %s", url)
        return page_to_record(page, source=self.name)
