"""Tests for the HTTP API."""

import base64

import pytest
from fastapi.testclient import TestClient

from foodrisk.analyzer import Analyzer
from foodrisk.api import create_app
from foodrisk.config import load_config
from foodrisk.db.scan_history import ScanHistoryDB
from foodrisk.scoring.models import Nutrition, ProductRecord
from foodrisk.sources import ProductNotFoundError, ProductSource, SourceError
from foodrisk.vision import VisionBackend

CHIPS = ProductRecord(
    product_name="Mega Cheez Chips",
    ingredients=(
        "Potatoes",
        "Vegetable Oil",
        "Salt",
        "Sugar",
        "Monosodium Glutamate",
        "Red 40",
        "Yellow 6",
    ),
    nutrition=Nutrition(sugar=12, sodium=450, trans_fat=0, fiber=1, protein=2),
    source="openfoodfacts",
)


class DictSource(ProductSource):
    name = "dict"

    def __init__(self, products):
        self.products = products

    async def fetch(self, query):
        if query == "broken":
            raise SourceError("upstream timeout")
        if query == "nokey":
            raise ValueError("Spoonacular API key is not set.")
        try:
            return self.products[query]
        except KeyError:
            raise ProductNotFoundError(f"No product found for {query!r}") from None


class StaticVision(VisionBackend):
    name = "static"

    def __init__(self):
        self.calls = []

    async def extract_product(self, image_data, media_type="image/jpeg"):
        self.calls.append((image_data, media_type))
        if image_data == b"blank":
            raise ProductNotFoundError("No food product found in the image")
        return CHIPS


@pytest.fixture
def vision():
    return StaticVision()


@pytest.fixture
def history(tmp_path):
    db = ScanHistoryDB(db_path=tmp_path / "history.db")
    yield db
    db.close()


@pytest.fixture
def client(vision, history):
    config = load_config()
    config.api.max_image_mb = 1
    analyzer = Analyzer(
        source=DictSource({"cheez chips": CHIPS}),
        vision=vision,
        history=history,
    )
    return TestClient(create_app(config, analyzer=analyzer))


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True


class TestAnalyzeText:
    def test_ok(self, client):
        r = client.post("/api/analyze-text", json={"productName": "cheez chips"})
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["productName"] == "Mega Cheez Chips"
        assert data["score"] == 60
        assert data["riskLevel"] == "High"
        assert data["recommendation"] == "Avoid / Eat Sparingly"
        assert data["colorCode"] == "#ef4444"
        assert data["warnings"][0] == "Excessive Sugar (12g)"
        assert data["nutrition"]["sodium"] == 450
        assert data["source"] == "openfoodfacts"

    def test_query_is_trimmed(self, client):
        r = client.post("/api/analyze-text", json={"productName": "  cheez chips "})
        assert r.status_code == 200

    def test_not_found(self, client, history):
        r = client.post("/api/analyze-text", json={"productName": "xyzzy"})
        assert r.status_code == 404
        assert r.json()["status"] == "not_found"
        assert "score" not in r.json()
        assert history.get_recent() == []

    def test_upstream_error(self, client):
        r = client.post("/api/analyze-text", json={"productName": "broken"})
        assert r.status_code == 502
        assert r.json() == {"status": "error", "error": "upstream timeout"}

    def test_misconfigured_source(self, client):
        r = client.post("/api/analyze-text", json={"productName": "nokey"})
        assert r.status_code == 503
        assert r.json()["status"] == "error"
        assert "API key" in r.json()["error"]

    def test_empty_name_rejected(self, client):
        r = client.post("/api/analyze-text", json={"productName": ""})
        assert r.status_code == 422

    def test_blank_name_rejected(self, client, history):
        r = client.post("/api/analyze-text", json={"productName": "   "})
        assert r.status_code == 422
        assert history.get_recent() == []


class TestAnalyzeImage:
    def test_data_url(self, client, vision):
        encoded = base64.b64encode(b"photo").decode()
        r = client.post(
            "/api/analyze-image",
            json={"imageBase64": f"data:image/png;base64,{encoded}"},
        )
        assert r.status_code == 200
        assert r.json()["score"] == 60
        assert vision.calls == [(b"photo", "image/png")]

    def test_no_product_visible(self, client):
        encoded = base64.b64encode(b"blank").decode()
        r = client.post("/api/analyze-image", json={"imageBase64": encoded})
        assert r.status_code == 404
        assert r.json()["status"] == "not_found"

    def test_bad_base64(self, client):
        r = client.post("/api/analyze-image", json={"imageBase64": "data:image/png;base64,@@"})
        assert r.status_code == 400
        assert r.json()["status"] == "error"

    def test_too_large(self, client):
        r = client.post("/api/analyze-image", json={"imageBase64": "A" * (2 * 1024 * 1024)})
        assert r.status_code == 413


class TestScore:
    def test_score_record(self, client, history):
        r = client.post(
            "/api/score",
            json={
                "productName": "Oat Bar",
                "ingredients": "Whole Grain Oats, Honey, Palm Oil",
                "nutrition": {"sugar": 8, "fiber": 4, "protein": 6},
            },
        )
        assert r.status_code == 200
        data = r.json()
        # Palm Oil 5, minus fiber, protein and whole grain bonuses
        assert data["score"] == 0
        assert data["riskLevel"] == "Low"
        assert data["benefits"] == [
            "Good Source of Fiber",
            "High Protein",
            "Contains Whole Grains",
        ]
        assert data["source"] == "api"
        assert history.get_recent()[0]["product_name"] == "Oat Bar"

    def test_score_without_nutrition(self, client):
        r = client.post("/api/score", json={"ingredients": ["Red 40"]})
        assert r.status_code == 200
        assert r.json()["productName"] == "Unknown Product"
        assert r.json()["score"] == 10


def test_ingredient_limits(client):
    r = client.get("/api/ingredient-limits")
    assert r.status_code == 200
    data = r.json()
    assert data["limits"]["sugar"]["threshold"] == 10
    assert data["harmfulAdditives"][0]["name"] == "High Fructose Corn Syrup"


class TestHistory:
    def test_list_and_clear(self, client):
        client.post("/api/analyze-text", json={"productName": "cheez chips"})
        client.post("/api/score", json={"productName": "Water"})

        r = client.get("/api/history")
        assert [e["product_name"] for e in r.json()] == ["Water", "Mega Cheez Chips"]

        r = client.get("/api/history", params={"limit": 1})
        assert len(r.json()) == 1

        r = client.delete("/api/history")
        assert r.json() == {"removed": 2}
        assert client.get("/api/history").json() == []

    def test_history_disabled(self):
        app = create_app(load_config(), analyzer=Analyzer(source=DictSource({})))
        client = TestClient(app)
        assert client.get("/api/history").json() == []
        assert client.delete("/api/history").json() == {"removed": 0}
