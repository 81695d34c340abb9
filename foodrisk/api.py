"""HTTP API exposing product analysis, the rule set and scan history."""

from __future__ import annotations

import logging
from typing import Any, Union

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from .analyzer import STATUS_NOT_FOUND, AnalysisOutcome, Analyzer
from .config import AppConfig, load_config
from .scoring.models import ProductRecord
from .vision import decode_data_url

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class AnalyzeTextRequest(BaseModel):
    productName: str = Field(..., min_length=1, description="Free-text product name")

    @field_validator("productName")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("productName must not be blank")
        return v


class AnalyzeImageRequest(BaseModel):
    imageBase64: str = Field(..., min_length=1, description="data: URL or bare base64")


class ScoreRequest(BaseModel):
    productName: str = "Unknown Product"
    ingredients: Union[list[str], str] = Field(default_factory=list)
    nutrition: dict[str, Any] | None = None


def _outcome_response(outcome: AnalysisOutcome) -> JSONResponse:
    if outcome.ok:
        return JSONResponse(outcome.to_dict())
    status_code = 404 if outcome.status == STATUS_NOT_FOUND else 502
    return JSONResponse(outcome.to_dict(), status_code=status_code)


def _build_router(analyzer: Analyzer, config: AppConfig) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["analyze"])
    # base64 inflates payloads by 4/3
    max_image_chars = config.api.max_image_mb * 1024 * 1024 * 4 // 3

    @router.post("/analyze-text")
    async def analyze_text(req: AnalyzeTextRequest):
        logger.info("Received text request: %s", req.productName)
        try:
            outcome = await analyzer.analyze_text(req.productName)
        except (ValueError, ImportError) as e:
            raise HTTPException(status_code=503, detail=str(e))
        return _outcome_response(outcome)

    @router.post("/analyze-image")
    async def analyze_image(req: AnalyzeImageRequest):
        logger.info("Received image request (%d chars)", len(req.imageBase64))
        if len(req.imageBase64) > max_image_chars:
            raise HTTPException(status_code=413, detail="Image too large")
        try:
            data, media_type = decode_data_url(req.imageBase64)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            outcome = await analyzer.analyze_image(data, media_type)
        except (ValueError, ImportError) as e:
            raise HTTPException(status_code=503, detail=str(e))
        return _outcome_response(outcome)

    @router.post("/score")
    def score(req: ScoreRequest):
        record = ProductRecord.from_dict(req.model_dump(), source="api")
        return _outcome_response(analyzer.analyze_record(record))

    @router.get("/ingredient-limits")
    def ingredient_limits():
        return analyzer.engine.reference.to_dict()

    @router.get("/history")
    def history(limit: int | None = None):
        if analyzer.history is None:
            return []
        return analyzer.history.get_recent(limit)

    @router.delete("/history")
    def clear_history():
        removed = analyzer.history.clear() if analyzer.history is not None else 0
        return {"removed": removed}

    return router


def create_app(
    config: AppConfig | None = None, analyzer: Analyzer | None = None
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Loaded configuration; defaults are used when omitted.
        analyzer: Pre-built analyzer, mainly for tests. Built from
            ``config`` when omitted.
    """
    config = config or load_config()
    analyzer = analyzer or Analyzer.from_config(config)

    app = FastAPI(title="foodrisk API", version=VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "error": exc.detail},
        )

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "version": VERSION}

    app.include_router(_build_router(analyzer, config))
    return app


def run(argv: list[str] | None = None) -> None:
    """Console entry point: serve the API with uvicorn."""
    import argparse

    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "uvicorn is required to serve the API: pip install 'foodrisk[api]'"
        ) from None

    parser = argparse.ArgumentParser(prog="foodrisk-api")
    parser.add_argument("--config", "-c", type=str, default=None)
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    config = load_config(args.config)
    uvicorn.run(
        create_app(config),
        host=args.host or config.api.host,
        port=args.port or config.api.port,
    )
