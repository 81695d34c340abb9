"""TOML configuration loader for foodrisk."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .scoring.reference import DEFAULT_REFERENCE, HarmfulAdditive, ReferenceDatabase

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class OpenFoodFactsConfig:
    base_url: str = "https://world.openfoodfacts.org"


@dataclass
class SpoonacularConfig:
    api_key: str = ""
    base_url: str = "https://api.spoonacular.com"


@dataclass
class SourceConfig:
    backend: str = "openfoodfacts"
    timeout: float = 15.0
    user_agent: str = "foodrisk/0.1"
    openfoodfacts: OpenFoodFactsConfig = field(default_factory=OpenFoodFactsConfig)
    spoonacular: SpoonacularConfig = field(default_factory=SpoonacularConfig)


@dataclass
class ClaudeVisionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiVisionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class VisionConfig:
    backend: str = "claude"
    claude: ClaudeVisionConfig = field(default_factory=ClaudeVisionConfig)
    gemini: GeminiVisionConfig = field(default_factory=GeminiVisionConfig)


@dataclass
class HistoryConfig:
    enabled: bool = True
    db_path: str = "~/.config/foodrisk/history.db"
    max_entries: int = 10


@dataclass
class ScoringConfig:
    limits: dict[str, dict[str, float]] = field(default_factory=dict)
    extra_additives: list[dict] = field(default_factory=list)
    keyword_benefits: bool = True


@dataclass
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    max_image_mb: int = 50


@dataclass
class AppConfig:
    source: SourceConfig = field(default_factory=SourceConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    api: APIConfig = field(default_factory=APIConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    src = raw.get("source", {})
    vis = raw.get("vision", {})
    hst = raw.get("history", {})
    scr = raw.get("scoring", {})
    api = raw.get("api", {})

    off_cfg = src.get("openfoodfacts", {})
    spn_cfg = src.get("spoonacular", {})
    claude_cfg = vis.get("claude", {})
    gemini_cfg = vis.get("gemini", {})

    # Resolve API keys: config file → environment variable
    spoonacular_api_key = spn_cfg.get("api_key", "") or os.environ.get(
        "SPOONACULAR_API_KEY", ""
    )
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    return AppConfig(
        source=SourceConfig(
            backend=src.get("backend", "openfoodfacts"),
            timeout=src.get("timeout", 15.0),
            user_agent=src.get("user_agent", "foodrisk/0.1"),
            openfoodfacts=OpenFoodFactsConfig(
                base_url=off_cfg.get("base_url", "https://world.openfoodfacts.org"),
            ),
            spoonacular=SpoonacularConfig(
                api_key=spoonacular_api_key,
                base_url=spn_cfg.get("base_url", "https://api.spoonacular.com"),
            ),
        ),
        vision=VisionConfig(
            backend=vis.get("backend", "claude"),
            claude=ClaudeVisionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiVisionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        history=HistoryConfig(
            enabled=hst.get("enabled", True),
            db_path=hst.get("db_path", "~/.config/foodrisk/history.db"),
            max_entries=hst.get("max_entries", 10),
        ),
        scoring=ScoringConfig(
            limits=scr.get("limits", {}),
            extra_additives=scr.get("extra_additives", []),
            keyword_benefits=scr.get("keyword_benefits", True),
        ),
        api=APIConfig(
            host=api.get("host", "127.0.0.1"),
            port=api.get("port", 3000),
            max_image_mb=api.get("max_image_mb", 50),
        ),
    )


def build_reference(config: AppConfig) -> ReferenceDatabase:
    """Apply the ``[scoring]`` overrides to a fresh reference snapshot.

    Raises:
        KeyError: If a limit override names an unknown nutrient.
        ValueError: If an extra additive is missing ``name``.
    """
    scoring = config.scoring
    if not scoring.limits and not scoring.extra_additives and scoring.keyword_benefits:
        return DEFAULT_REFERENCE

    extra = []
    for item in scoring.extra_additives:
        if not item.get("name"):
            raise ValueError(f"extra additive without a name: {item!r}")
        extra.append(
            HarmfulAdditive(
                name=item["name"],
                penalty=int(item.get("penalty", 10)),
                category=item.get("category", "Other"),
            )
        )

    return DEFAULT_REFERENCE.with_overrides(
        limits=scoring.limits,
        extra_additives=extra,
        keyword_benefits=scoring.keyword_benefits,
    )
