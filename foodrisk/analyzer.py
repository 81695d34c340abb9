"""Acquire product data, score it, and record the scan."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .scoring.engine import ScoringEngine
from .scoring.models import ProductRecord, ScoreResult
from .sources import ProductNotFoundError, ProductSource, SourceError

if TYPE_CHECKING:
    from .config import AppConfig
    from .db.scan_history import ScanHistoryDB
    from .vision import VisionBackend

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one analysis request.

    ``result`` is set only when ``status`` is ``"ok"``. Not-found and error
    outcomes carry a message and are never scored.
    """

    status: str
    result: ScoreResult | None = None
    record: ProductRecord | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict:
        if self.result is None:
            return {"status": self.status, "error": self.error}
        data = {"status": self.status, **self.result.to_dict()}
        if self.record is not None:
            data["ingredients"] = list(self.record.ingredients)
            data["source"] = self.record.source
        return data


class Analyzer:
    """Runs the acquire → score → history pipeline.

    Acquirers and history are optional so the same analyzer can serve text
    lookups, label photos, or pre-built records.
    """

    def __init__(
        self,
        source: ProductSource | None = None,
        vision: VisionBackend | None = None,
        engine: ScoringEngine | None = None,
        history: ScanHistoryDB | None = None,
    ) -> None:
        self._source = source
        self._vision = vision
        self._engine = engine or ScoringEngine()
        self._history = history

    @classmethod
    def from_config(cls, config: AppConfig) -> Analyzer:
        """Build an analyzer with the configured source, vision and history."""
        from .config import build_reference
        from .db.scan_history import ScanHistoryDB
        from .sources import create_source
        from .vision import create_backend

        history = None
        if config.history.enabled:
            history = ScanHistoryDB(
                db_path=config.history.db_path,
                max_entries=config.history.max_entries,
            )
        return cls(
            source=create_source(config),
            vision=create_backend(config),
            engine=ScoringEngine(build_reference(config)),
            history=history,
        )

    @property
    def engine(self) -> ScoringEngine:
        return self._engine

    @property
    def history(self) -> ScanHistoryDB | None:
        return self._history

    async def analyze_text(self, query: str) -> AnalysisOutcome:
        """Look up a product by name and score it."""
        if self._source is None:
            raise RuntimeError("No product source configured")
        try:
            record = await self._source.fetch(query)
        except ProductNotFoundError as e:
            logger.info("Product not found: %s", e)
            return AnalysisOutcome(status=STATUS_NOT_FOUND, error=str(e))
        except SourceError as e:
            logger.warning("Lookup for %r failed: %s", query, e)
            return AnalysisOutcome(status=STATUS_ERROR, error=str(e))
        return self.analyze_record(record)

    async def analyze_image(
        self, image_data: bytes, media_type: str = "image/jpeg"
    ) -> AnalysisOutcome:
        """Read a product label photo and score it."""
        if self._vision is None:
            raise RuntimeError("No vision backend configured")
        try:
            record = await self._vision.extract_product(image_data, media_type)
        except ProductNotFoundError as e:
            logger.info("No product in image: %s", e)
            return AnalysisOutcome(status=STATUS_NOT_FOUND, error=str(e))
        except SourceError as e:
            logger.warning("Label extraction failed: %s", e)
            return AnalysisOutcome(status=STATUS_ERROR, error=str(e))
        return self.analyze_record(record)

    def analyze_record(self, record: ProductRecord) -> AnalysisOutcome:
        """Score an already normalized record and record it in history."""
        result = self._engine.score(record)
        logger.info(
            "Scored %r: %d (%s)", result.product_name, result.score, result.risk_level.value
        )
        if self._history is not None:
            try:
                self._history.add(result, source=record.source)
            except sqlite3.Error:
                logger.exception("Failed to save scan history")
        return AnalysisOutcome(status=STATUS_OK, result=result, record=record)
