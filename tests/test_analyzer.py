"""Tests for the acquire → score → history pipeline."""

import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from foodrisk.analyzer import (
    STATUS_ERROR,
    STATUS_NOT_FOUND,
    STATUS_OK,
    AnalysisOutcome,
    Analyzer,
)
from foodrisk.config import load_config
from foodrisk.db.scan_history import ScanHistoryDB
from foodrisk.scoring.engine import ScoringEngine
from foodrisk.scoring.models import Nutrition, ProductRecord
from foodrisk.sources import ProductNotFoundError, ProductSource, SourceError
from foodrisk.sources.openfoodfacts import OpenFoodFactsSource
from foodrisk.vision import VisionBackend
from foodrisk.vision.claude import ClaudeVisionBackend

CHIPS = ProductRecord(
    product_name="Mega Cheez Chips",
    ingredients=("Potatoes", "Salt", "Monosodium Glutamate", "Red 40", "Yellow 6"),
    nutrition=Nutrition(sugar=12, sodium=450, fiber=1, protein=2),
    source="fake",
)


class FakeSource(ProductSource):
    name = "fake"

    def __init__(self, record=None, error=None):
        self.record = record
        self.error = error
        self.queries = []

    async def fetch(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.record


class FakeVision(VisionBackend):
    name = "fake-vision"

    def __init__(self, record=None, error=None):
        self.record = record
        self.error = error

    async def extract_product(self, image_data, media_type="image/jpeg"):
        if self.error is not None:
            raise self.error
        return self.record


@pytest.fixture
def history(tmp_path):
    db = ScanHistoryDB(db_path=tmp_path / "history.db")
    yield db
    db.close()


class TestAnalyzeText:
    @pytest.mark.asyncio
    async def test_ok(self, history):
        source = FakeSource(record=CHIPS)
        analyzer = Analyzer(source=source, history=history)

        outcome = await analyzer.analyze_text("cheez chips")

        assert outcome.ok
        assert outcome.result.score == 60
        assert outcome.record is CHIPS
        assert source.queries == ["cheez chips"]
        entries = history.get_recent()
        assert entries[0]["product_name"] == "Mega Cheez Chips"
        assert entries[0]["source"] == "fake"

    @pytest.mark.asyncio
    async def test_not_found_is_not_scored(self, history):
        engine = MagicMock(wraps=ScoringEngine())
        analyzer = Analyzer(
            source=FakeSource(error=ProductNotFoundError("No product found for 'xyzzy'")),
            engine=engine,
            history=history,
        )

        outcome = await analyzer.analyze_text("xyzzy")

        assert outcome.status == STATUS_NOT_FOUND
        assert outcome.result is None
        assert "xyzzy" in outcome.error
        engine.score.assert_not_called()
        assert history.get_recent() == []

    @pytest.mark.asyncio
    async def test_source_error(self, history):
        analyzer = Analyzer(source=FakeSource(error=SourceError("timeout")), history=history)

        outcome = await analyzer.analyze_text("chips")

        assert outcome.status == STATUS_ERROR
        assert outcome.error == "timeout"
        assert history.get_recent() == []

    @pytest.mark.asyncio
    async def test_configuration_errors_propagate(self):
        analyzer = Analyzer(source=FakeSource(error=ValueError("API key is not set")))
        with pytest.raises(ValueError):
            await analyzer.analyze_text("chips")

    @pytest.mark.asyncio
    async def test_no_source(self):
        with pytest.raises(RuntimeError, match="No product source"):
            await Analyzer().analyze_text("chips")


class TestAnalyzeImage:
    @pytest.mark.asyncio
    async def test_ok(self, history):
        analyzer = Analyzer(vision=FakeVision(record=CHIPS), history=history)
        outcome = await analyzer.analyze_image(b"img", "image/png")
        assert outcome.ok
        assert outcome.result.risk_level.value == "High"
        assert len(history.get_recent()) == 1

    @pytest.mark.asyncio
    async def test_nothing_in_image(self, history):
        analyzer = Analyzer(
            vision=FakeVision(error=ProductNotFoundError("No food product found in the image")),
            history=history,
        )
        outcome = await analyzer.analyze_image(b"img")
        assert outcome.status == STATUS_NOT_FOUND
        assert history.get_recent() == []

    @pytest.mark.asyncio
    async def test_unparseable_reply(self):
        analyzer = Analyzer(vision=FakeVision(error=SourceError("invalid JSON")))
        outcome = await analyzer.analyze_image(b"img")
        assert outcome.status == STATUS_ERROR

    @pytest.mark.asyncio
    async def test_no_vision(self):
        with pytest.raises(RuntimeError, match="No vision backend"):
            await Analyzer().analyze_image(b"img")


class TestAnalyzeRecord:
    def test_without_history(self):
        outcome = Analyzer().analyze_record(CHIPS)
        assert outcome.status == STATUS_OK
        assert outcome.result.score == 60

    def test_history_failure_does_not_fail_scoring(self):
        history = MagicMock()
        history.add.side_effect = sqlite3.OperationalError("disk I/O error")
        outcome = Analyzer(history=history).analyze_record(CHIPS)
        assert outcome.ok
        history.add.assert_called_once()

    def test_uses_engine_reference(self):
        from foodrisk.scoring.reference import DEFAULT_REFERENCE

        engine = ScoringEngine(
            DEFAULT_REFERENCE.with_overrides(limits={"sugar": {"threshold": 50}})
        )
        outcome = Analyzer(engine=engine).analyze_record(CHIPS)
        assert outcome.result.score == 40


class TestAnalysisOutcome:
    def test_ok_to_dict(self):
        outcome = Analyzer().analyze_record(CHIPS)
        data = outcome.to_dict()
        assert data["status"] == "ok"
        assert data["productName"] == "Mega Cheez Chips"
        assert data["riskLevel"] == "High"
        assert data["ingredients"] == list(CHIPS.ingredients)
        assert data["source"] == "fake"

    def test_error_to_dict(self):
        outcome = AnalysisOutcome(status=STATUS_NOT_FOUND, error="nothing")
        assert outcome.to_dict() == {"status": "not_found", "error": "nothing"}
        assert not outcome.ok


def test_from_config(tmp_path):
    config = load_config()
    config.history.db_path = str(tmp_path / "history.db")
    analyzer = Analyzer.from_config(config)
    assert isinstance(analyzer._source, OpenFoodFactsSource)
    assert isinstance(analyzer._vision, ClaudeVisionBackend)
    assert analyzer.history is not None
    assert analyzer.history.max_entries == 10
    analyzer.history.close()


def test_from_config_history_disabled():
    config = load_config()
    config.history.enabled = False
    assert Analyzer.from_config(config).history is None


@pytest.mark.asyncio
async def test_async_mock_source():
    source = MagicMock(spec=ProductSource)
    source.fetch = AsyncMock(return_value=CHIPS)
    outcome = await Analyzer(source=source).analyze_text("chips")
    assert outcome.ok
    source.fetch.assert_awaited_once_with("chips")
