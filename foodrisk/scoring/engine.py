"""Health risk scoring engine."""

from __future__ import annotations

from .models import (
    Nutrition,
    ProductRecord,
    RiskLevel,
    ScoreResult,
    format_amount,
)
from .reference import DEFAULT_REFERENCE, ReferenceDatabase

MIN_SCORE = 0
MAX_SCORE = 100
MEDIUM_RISK_FROM = 30
HIGH_RISK_FROM = 60

# Ingredient phrase that implies trans fat even when the label reports 0 g
_TRANS_FAT_KEYWORD = "partially hydrogenated"


def classify(score: int) -> RiskLevel:
    """Map a clamped score to its risk tier.

    Bands are closed at the lower end: 30 is Medium, 60 is High.
    """
    if score >= HIGH_RISK_FROM:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_FROM:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class ScoringEngine:
    """Scores products against a reference database.

    The engine holds no per-call state and may be shared between threads
    and event-loop tasks. ``swap_reference`` replaces the rule set in one
    assignment; each ``score`` call reads it once on entry.
    """

    def __init__(self, reference: ReferenceDatabase | None = None) -> None:
        self._db = reference or DEFAULT_REFERENCE

    @property
    def reference(self) -> ReferenceDatabase:
        return self._db

    def swap_reference(self, reference: ReferenceDatabase) -> None:
        self._db = reference

    def score(self, record: ProductRecord) -> ScoreResult:
        """Compute the risk score, tier, warnings and benefits for a product.

        Never raises for a well-typed record. Missing nutrients count as 0;
        negative amounts are used as given. Only the final score is clamped.
        """
        db = self._db
        nutrition = (record.nutrition or Nutrition()).normalized()
        text = ", ".join(record.ingredients or ()).lower()

        score = 0
        warnings: list[str] = []
        benefits: list[str] = []

        sugar = db.limits["sugar"]
        if nutrition.sugar > sugar.threshold:
            score += sugar.penalty
            warnings.append(
                f"{sugar.warning} ({format_amount(nutrition.sugar)}{sugar.unit})"
            )

        sodium = db.limits["sodium"]
        if nutrition.sodium > sodium.threshold:
            score += sodium.penalty
            warnings.append(
                f"{sodium.warning} ({format_amount(nutrition.sodium)}{sodium.unit})"
            )

        trans_fat = db.limits["transFat"]
        if nutrition.trans_fat > trans_fat.threshold or _TRANS_FAT_KEYWORD in text:
            score += trans_fat.penalty
            warnings.append(trans_fat.warning)

        for additive in db.harmful_additives:
            if additive.name.lower() in text:
                score += additive.penalty
                warnings.append(f"Contains {additive.name} ({additive.category})")

        for bonus in db.beneficial_nutrients:
            if bonus.keyword is not None:
                earned = bonus.keyword.lower() in text
            else:
                earned = getattr(nutrition, bonus.nutrient or "", 0.0) >= bonus.min
            if earned:
                score -= bonus.bonus
                benefits.append(bonus.benefit)

        score = max(MIN_SCORE, min(MAX_SCORE, score))

        return ScoreResult(
            product_name=record.product_name or "Unknown Product",
            score=score,
            risk_level=classify(score),
            warnings=tuple(warnings),
            benefits=tuple(benefits),
            nutrition=nutrition,
        )


def score_product(
    record: ProductRecord, reference: ReferenceDatabase | None = None
) -> ScoreResult:
    """Score a single product with the given (or default) reference database."""
    return ScoringEngine(reference).score(record)
