"""Data models for scoring input and output."""

from __future__ import annotations

import enum
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

# Accepted spellings per nutrient field, first match wins
_NUTRIENT_KEYS: dict[str, tuple[str, ...]] = {
    "sugar": ("sugar", "sugars"),
    "sodium": ("sodium",),
    "trans_fat": ("trans_fat", "transFat", "trans-fat"),
    "fiber": ("fiber", "fibre"),
    "protein": ("protein", "proteins"),
    "calories": ("calories", "energy_kcal"),
}


def to_number(value: Any) -> float:
    """Coerce a loosely typed amount to float; unknown becomes 0.0.

    Accepts numbers, numeric strings and strings with a trailing unit such
    as ``"12 g"``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        m = _NUMBER_RE.search(value)
        return float(m.group(0)) if m else 0.0
    return 0.0


@dataclass(frozen=True)
class Nutrition:
    """Nutrient amounts on the acquirer's reporting basis (usually per 100 g).

    ``sodium`` is in mg, the rest in g. ``calories`` is echoed for display
    only and never scored.
    """

    sugar: float = 0.0
    sodium: float = 0.0
    trans_fat: float = 0.0
    fiber: float = 0.0
    protein: float = 0.0
    calories: float = 0.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Nutrition:
        """Build from a dict with camelCase or snake_case keys."""
        if not data:
            return cls()
        values: dict[str, float] = {}
        for attr, keys in _NUTRIENT_KEYS.items():
            raw = None
            for key in keys:
                if data.get(key) is not None:
                    raw = data[key]
                    break
            values[attr] = to_number(raw)
        return cls(**values)

    def normalized(self) -> Nutrition:
        """Return a copy with every missing field forced to 0.0."""
        return Nutrition(**{k: to_number(v) for k, v in asdict(self).items()})

    def to_dict(self) -> dict[str, float]:
        return {
            "sugar": self.sugar,
            "sodium": self.sodium,
            "transFat": self.trans_fat,
            "fiber": self.fiber,
            "protein": self.protein,
            "calories": self.calories,
        }


@dataclass(frozen=True)
class ProductRecord:
    """Normalized product data handed to the scoring engine."""

    product_name: str = "Unknown Product"
    ingredients: tuple[str, ...] = ()
    nutrition: Nutrition = field(default_factory=Nutrition)
    source: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "ingredients", tuple(self.ingredients or ()))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, source: str = "") -> ProductRecord:
        """Build from the loose JSON shape returned by acquirers.

        ``ingredients`` may be a list or a comma-separated string; the
        ``nutrition`` object may be missing entirely.
        """
        name = data.get("productName") or data.get("product_name") or data.get("name")
        return cls(
            product_name=str(name).strip() if name else "Unknown Product",
            ingredients=split_ingredients(data.get("ingredients")),
            nutrition=Nutrition.from_mapping(data.get("nutrition")),
            source=source or str(data.get("source") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "productName": self.product_name,
            "ingredients": list(self.ingredients),
            "nutrition": self.nutrition.to_dict(),
            "source": self.source,
        }


def split_ingredients(raw: Any) -> tuple[str, ...]:
    """Turn a list or comma-separated string into trimmed ingredient tokens."""
    if not raw:
        return ()
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = [str(p) for p in raw if p is not None]
    return tuple(p.strip() for p in parts if p.strip())


class RiskLevel(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def recommendation(self) -> str:
        return _RECOMMENDATIONS[self]

    @property
    def color_code(self) -> str:
        return _COLORS[self]


_RECOMMENDATIONS = {
    RiskLevel.LOW: "Safe to Eat",
    RiskLevel.MEDIUM: "Limit Consumption",
    RiskLevel.HIGH: "Avoid / Eat Sparingly",
}

_COLORS = {
    RiskLevel.LOW: "#22c55e",
    RiskLevel.MEDIUM: "#eab308",
    RiskLevel.HIGH: "#ef4444",
}


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one product."""

    product_name: str
    score: int
    risk_level: RiskLevel
    warnings: tuple[str, ...] = ()
    benefits: tuple[str, ...] = ()
    nutrition: Nutrition = field(default_factory=Nutrition)

    @property
    def recommendation(self) -> str:
        return self.risk_level.recommendation

    @property
    def color_code(self) -> str:
        return self.risk_level.color_code

    def to_dict(self) -> dict:
        return {
            "productName": self.product_name,
            "score": self.score,
            "riskLevel": self.risk_level.value,
            "recommendation": self.recommendation,
            "colorCode": self.color_code,
            "warnings": list(self.warnings),
            "benefits": list(self.benefits),
            "nutrition": self.nutrition.to_dict(),
        }

    def display(self, reference=None) -> str:
        """Format for terminal output, with a nutrient-vs-limit table."""
        from .reference import DEFAULT_REFERENCE

        db = reference or DEFAULT_REFERENCE
        lines = [
            f"{self.product_name}",
            f"  Score: {self.score}/100  [{self.risk_level.value}] {self.recommendation}",
            "",
            f"  {'Nutrient':<10} {'Value':>10} {'Limit':>10}",
        ]
        rows = [
            ("Calories", self.nutrition.calories, None, "kcal"),
            ("Sugar", self.nutrition.sugar, db.limits["sugar"].threshold, "g"),
            ("Sodium", self.nutrition.sodium, db.limits["sodium"].threshold, "mg"),
            ("Trans Fat", self.nutrition.trans_fat, db.limits["transFat"].threshold, "g"),
        ]
        for b in db.beneficial_nutrients:
            if b.nutrient is not None:
                rows.append((b.name, getattr(self.nutrition, b.nutrient), b.min, b.unit))
        for label, value, limit, unit in rows:
            lim = f"{format_amount(limit)} {unit}" if limit is not None else "-"
            lines.append(f"  {label:<10} {format_amount(value) + ' ' + unit:>10} {lim:>10}")

        if self.warnings:
            lines.append("")
            lines.append("  Warnings:")
            lines.extend(f"    ! {w}" for w in self.warnings)
        if self.benefits:
            lines.append("")
            lines.append("  Benefits:")
            lines.extend(f"    + {b}" for b in self.benefits)
        return "\n".join(lines)


def format_amount(value: float) -> str:
    """Render 12.0 as "12" and 0.456 as "0.46"."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{round(value, 2):g}"
