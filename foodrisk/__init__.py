"""Packaged-food health risk scoring."""

from .analyzer import AnalysisOutcome, Analyzer
from .config import (
    APIConfig,
    AppConfig,
    HistoryConfig,
    ScoringConfig,
    SourceConfig,
    VisionConfig,
    build_reference,
    load_config,
)
from .scoring import (
    DEFAULT_REFERENCE,
    Nutrition,
    ProductRecord,
    ReferenceDatabase,
    RiskLevel,
    ScoreResult,
    ScoringEngine,
    score_product,
)
from .sources import ProductNotFoundError, ProductSource, SourceError, create_source
from .vision import VisionBackend, create_backend

__all__ = [
    "ScoringEngine",
    "score_product",
    "ReferenceDatabase",
    "DEFAULT_REFERENCE",
    "Nutrition",
    "ProductRecord",
    "ScoreResult",
    "RiskLevel",
    "Analyzer",
    "AnalysisOutcome",
    "ProductSource",
    "SourceError",
    "ProductNotFoundError",
    "create_source",
    "VisionBackend",
    "create_backend",
    "AppConfig",
    "SourceConfig",
    "VisionConfig",
    "HistoryConfig",
    "ScoringConfig",
    "APIConfig",
    "load_config",
    "build_reference",
]
