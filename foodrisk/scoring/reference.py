"""Reference database of nutrient limits, harmful additives and bonuses.

Values follow common FDA/WHO guidance for packaged foods. A database is
immutable once built; use :meth:`ReferenceDatabase.with_overrides` to derive
a new snapshot instead of changing one in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True)
class NutrientLimit:
    """Upper limit for a nutrient; exceeding it adds ``penalty``."""

    threshold: float
    unit: str
    penalty: int
    warning: str


@dataclass(frozen=True)
class HarmfulAdditive:
    """Ingredient substring flagged as harmful."""

    name: str
    penalty: int
    category: str


@dataclass(frozen=True)
class BeneficialNutrient:
    """Bonus awarded either for a nutrient amount or for an ingredient keyword.

    Nutrient-based entries set ``nutrient`` (a :class:`Nutrition` field name)
    and ``min``; keyword-based entries set ``keyword`` instead.
    """

    name: str
    bonus: int
    benefit: str
    nutrient: str | None = None
    min: float = 0.0
    unit: str = "g"
    keyword: str | None = None


_DEFAULT_LIMITS: dict[str, NutrientLimit] = {
    "sugar": NutrientLimit(10, "g", 20, "Excessive Sugar"),
    "sodium": NutrientLimit(200, "mg", 15, "High Sodium"),
    # Not scored yet, kept so the rule set can grow without a schema change
    "saturatedFat": NutrientLimit(5, "g", 10, "High Saturated Fat"),
    "transFat": NutrientLimit(0, "g", 30, "Contains Trans Fats"),
}

_DEFAULT_ADDITIVES: tuple[HarmfulAdditive, ...] = (
    HarmfulAdditive("High Fructose Corn Syrup", 10, "Sweetener"),
    HarmfulAdditive("Red 40", 10, "Artificial Color"),
    HarmfulAdditive("Blue 1", 10, "Artificial Color"),
    HarmfulAdditive("Yellow 5", 10, "Artificial Color"),
    HarmfulAdditive("Yellow 6", 10, "Artificial Color"),
    HarmfulAdditive("Sodium Benzoate", 10, "Preservative"),
    HarmfulAdditive("Potassium Sorbate", 10, "Preservative"),
    HarmfulAdditive("Aspartame", 10, "Artificial Sweetener"),
    HarmfulAdditive("Hydrogenated", 30, "Trans Fat Source"),
    HarmfulAdditive("Monosodium Glutamate", 5, "Flavor Enhancer"),
    HarmfulAdditive("Palm Oil", 5, "Environmental/Health"),
)

_DEFAULT_BENEFITS: tuple[BeneficialNutrient, ...] = (
    BeneficialNutrient("Fiber", 5, "Good Source of Fiber", nutrient="fiber", min=3),
    BeneficialNutrient("Protein", 5, "High Protein", nutrient="protein", min=5),
    BeneficialNutrient("Whole Grain", 5, "Contains Whole Grains", keyword="whole grain"),
)


@dataclass(frozen=True)
class ReferenceDatabase:
    """Thresholds, penalties and bonuses consulted by the scoring engine."""

    limits: Mapping[str, NutrientLimit] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_LIMITS))
    )
    harmful_additives: tuple[HarmfulAdditive, ...] = _DEFAULT_ADDITIVES
    beneficial_nutrients: tuple[BeneficialNutrient, ...] = _DEFAULT_BENEFITS

    def __post_init__(self) -> None:
        # Freeze whatever the caller handed in
        if not isinstance(self.limits, MappingProxyType):
            object.__setattr__(self, "limits", MappingProxyType(dict(self.limits)))
        object.__setattr__(self, "harmful_additives", tuple(self.harmful_additives))
        object.__setattr__(
            self, "beneficial_nutrients", tuple(self.beneficial_nutrients)
        )

    def limit(self, nutrient: str) -> NutrientLimit:
        return self.limits[nutrient]

    def with_overrides(
        self,
        *,
        limits: Mapping[str, Mapping[str, float]] | None = None,
        extra_additives: Iterable[HarmfulAdditive] = (),
        keyword_benefits: bool = True,
    ) -> ReferenceDatabase:
        """Return a new database with the given changes applied.

        Args:
            limits: Per-nutrient ``threshold`` / ``penalty`` overrides,
                e.g. ``{"sugar": {"threshold": 12}}``.
            extra_additives: Additives appended after the built-in list.
            keyword_benefits: When False, keyword-based bonuses are dropped.

        Raises:
            KeyError: If an override names an unknown nutrient.
            ValueError: If a threshold or penalty is not numeric.
        """
        new_limits = dict(self.limits)
        for name, values in (limits or {}).items():
            current = new_limits[name]
            new_limits[name] = replace(
                current,
                threshold=float(values.get("threshold", current.threshold)),
                penalty=int(values.get("penalty", current.penalty)),
            )

        benefits = self.beneficial_nutrients
        if not keyword_benefits:
            benefits = tuple(b for b in benefits if b.keyword is None)

        return ReferenceDatabase(
            limits=new_limits,
            harmful_additives=self.harmful_additives + tuple(extra_additives),
            beneficial_nutrients=benefits,
        )

    def to_dict(self) -> dict:
        """Return the rule set as plain JSON-serializable data."""
        return {
            "limits": {
                name: {
                    "threshold": lim.threshold,
                    "unit": lim.unit,
                    "penalty": lim.penalty,
                    "warning": lim.warning,
                }
                for name, lim in self.limits.items()
            },
            "harmfulAdditives": [
                {"name": a.name, "penalty": a.penalty, "category": a.category}
                for a in self.harmful_additives
            ],
            "beneficialNutrients": [_benefit_dict(b) for b in self.beneficial_nutrients],
        }


def _benefit_dict(b: BeneficialNutrient) -> dict:
    d: dict = {"name": b.name, "bonus": b.bonus, "benefit": b.benefit}
    if b.keyword is not None:
        d["keyword"] = b.keyword
    else:
        d["min"] = b.min
        d["unit"] = b.unit
    return d


DEFAULT_REFERENCE = ReferenceDatabase()
