"""Health risk scoring: reference rules, data models and the engine."""

from .engine import ScoringEngine, classify, score_product
from .models import (
    Nutrition,
    ProductRecord,
    RiskLevel,
    ScoreResult,
    split_ingredients,
)
from .reference import (
    DEFAULT_REFERENCE,
    BeneficialNutrient,
    HarmfulAdditive,
    NutrientLimit,
    ReferenceDatabase,
)

__all__ = [
    "ScoringEngine",
    "score_product",
    "classify",
    "Nutrition",
    "ProductRecord",
    "RiskLevel",
    "ScoreResult",
    "split_ingredients",
    "ReferenceDatabase",
    "NutrientLimit",
    "HarmfulAdditive",
    "BeneficialNutrient",
    "DEFAULT_REFERENCE",
]
