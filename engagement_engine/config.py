"""
Centralized configuration loader for the scoring & analysis engine.

Loads settings from YAML files and environment variables, providing
sensible defaults when configuration files are absent.

Every numeric threshold here is a tunable constant. None of them has been
validated by domain experts; adjust them in ``config/settings.yaml`` or via
``ENGINE_*`` environment variables.

Provides:
    - ScoringConfig: ICP recommendation thresholds and criteria overrides
    - CacheConfig: Research cache TTLs (default and per-source)
    - AnalyzerConfig: Tier weights, similarity provider timeouts/retries
    - VoiceConfig: Training weights and recency decay for the voice learner
    - BatchConfig: Page size and rate limiting for the batch orchestrator
    - Settings: Global application settings loaded from YAML + env vars
    - get_settings(): Singleton accessor for Settings
    - validate_env(): Startup validation of required environment variables
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from engagement_engine.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Project root directory (parent of engagement_engine/)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


def _apply_env_overrides(
    target: Any,
    overrides: Dict[str, Tuple[str, Callable[[str], Any]]],
) -> None:
    """Set ``target`` attributes from environment variables.

    Raises:
        ConfigurationError: If an env var is set but cannot be cast.
    """
    for env_key, (attr_name, cast_fn) in overrides.items():
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue
        try:
            setattr(target, attr_name, cast_fn(env_val))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Invalid value for env var {env_key}='{env_val}': {exc}"
            ) from exc


def _pick(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the YAML keys that are fields of dataclass ``cls``."""
    unknown = set(data) - set(cls.__dataclass_fields__)  # type: ignore[attr-defined]
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}  # type: ignore[attr-defined]


# ===========================================================================
# COMPONENT CONFIGURATION
# ===========================================================================


@dataclass
class ScoringConfig:
    """
    ICP Scoring Engine thresholds.

    ``qualified_threshold`` and ``review_threshold`` are inclusive lower
    bounds: a score equal to the threshold lands in the higher tier.
    Criteria lists left as ``None`` use the engine's built-in defaults.
    """

    qualified_threshold: int = 80
    review_threshold: int = 40
    target_roles: Optional[List[str]] = None
    target_company_sizes: Optional[List[str]] = None
    target_industries: Optional[List[str]] = None
    min_tenure_months: int = 0
    max_tenure_months: int = 24

    def __post_init__(self) -> None:
        _apply_env_overrides(self, {
            "ENGINE_QUALIFIED_THRESHOLD": ("qualified_threshold", int),
            "ENGINE_REVIEW_THRESHOLD": ("review_threshold", int),
        })
        if not 0 <= self.review_threshold <= self.qualified_threshold <= 100:
            raise ConfigurationError(
                "Scoring thresholds must satisfy 0 <= review <= qualified <= 100, "
                f"got review={self.review_threshold}, "
                f"qualified={self.qualified_threshold}"
            )


@dataclass
class CacheConfig:
    """Research cache TTLs in hours."""

    ttl_hours: float = 24.0
    source_ttl_hours: Dict[str, float] = field(default_factory=lambda: {
        "perplexity": 12.0,
    })

    def __post_init__(self) -> None:
        _apply_env_overrides(self, {
            "ENGINE_CACHE_TTL_HOURS": ("ttl_hours", float),
        })
        if self.ttl_hours <= 0:
            raise ConfigurationError(f"ttl_hours must be positive, got {self.ttl_hours}")

    def ttl_for(self, source: str) -> float:
        """TTL in hours for ``source``, falling back to the default TTL."""
        return float(self.source_ttl_hours.get(source, self.ttl_hours))


@dataclass
class AnalyzerConfig:
    """
    Historical Performance Analyzer tuning.

    ``tier_weights`` must be monotonically increasing from ``low`` to
    ``viral``; posts with no tier yet use ``unranked_weight``.
    """

    tier_weights: Dict[str, float] = field(default_factory=lambda: {
        "low": 0.5,
        "mid": 1.0,
        "high": 1.5,
        "viral": 2.0,
    })
    unranked_weight: float = 1.0
    min_similarity: float = 0.05
    opening_words: int = 8
    trigger_weight: float = 0.2
    provider_timeout_seconds: float = 10.0
    provider_max_attempts: int = 3
    provider_base_delay: float = 0.5

    def __post_init__(self) -> None:
        _apply_env_overrides(self, {
            "ENGINE_PROVIDER_TIMEOUT": ("provider_timeout_seconds", float),
            "ENGINE_PROVIDER_MAX_ATTEMPTS": ("provider_max_attempts", int),
            "ENGINE_MIN_SIMILARITY": ("min_similarity", float),
        })
        order = ["low", "mid", "high", "viral"]
        missing = [tier for tier in order if tier not in self.tier_weights]
        if missing:
            raise ConfigurationError(f"tier_weights missing tiers: {missing}")
        weights = [float(self.tier_weights[tier]) for tier in order]
        if any(b <= a for a, b in zip(weights, weights[1:])):
            raise ConfigurationError(
                f"tier_weights must increase low < mid < high < viral, got {weights}"
            )
        if self.provider_max_attempts < 1:
            raise ConfigurationError("provider_max_attempts must be >= 1")


@dataclass
class VoiceConfig:
    """Voice Pattern Learner weighting."""

    post_weight: float = 1.0
    comment_weight: float = 0.3
    recency_half_life_days: float = 180.0
    min_decay: float = 0.1
    top_terms: int = 20

    def __post_init__(self) -> None:
        _apply_env_overrides(self, {
            "ENGINE_COMMENT_WEIGHT": ("comment_weight", float),
            "ENGINE_RECENCY_HALF_LIFE_DAYS": ("recency_half_life_days", float),
        })


@dataclass
class BatchConfig:
    """Batch Orchestrator paging and rate limiting."""

    page_size: int = 50
    page_delay_seconds: float = 0.0
    warm_topics: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        _apply_env_overrides(self, {
            "ENGINE_BATCH_PAGE_SIZE": ("page_size", int),
            "ENGINE_BATCH_PAGE_DELAY": ("page_delay_seconds", float),
        })
        if self.page_size < 1:
            raise ConfigurationError(f"page_size must be >= 1, got {self.page_size}")


# ===========================================================================
# GLOBAL SETTINGS
# ===========================================================================


@dataclass
class Settings:
    """
    Global application settings.

    Loaded from ``config/settings.yaml`` when available, falling back to
    sensible defaults. Environment variables override YAML values for
    secrets and deployment-specific configuration.
    """

    # LLM settings (tone classification)
    llm_model: str = "claude-sonnet-4-5-20250929"

    # Embedding provider
    embedding_model: str = "text-embedding-3-small"
    embedding_api_url: str = "https://api.openai.com/v1/embeddings"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        If the file does not exist, returns an instance with all defaults.
        Environment variables override YAML values for specific keys.

        Args:
            path: Path to the YAML file. Defaults to
                ``<PROJECT_ROOT>/config/settings.yaml``.

        Returns:
            Populated Settings instance.

        Raises:
            ConfigurationError: If the YAML file exists but cannot be parsed,
                or a section holds invalid values.
        """
        path = path or PROJECT_ROOT / "config" / "settings.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Failed to parse settings YAML at {path}: {exc}"
                ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings YAML at {path} must be a mapping")

        sections: Dict[str, Any] = {}
        for name, section_cls in (
            ("scoring", ScoringConfig),
            ("cache", CacheConfig),
            ("analyzer", AnalyzerConfig),
            ("voice", VoiceConfig),
            ("batch", BatchConfig),
        ):
            section_data = data.get(name) or {}
            try:
                sections[name] = section_cls(**_pick(section_cls, section_data))
            except TypeError as exc:
                raise ConfigurationError(f"Invalid '{name}' section: {exc}") from exc

        settings = cls(
            llm_model=os.environ.get("ENGINE_LLM_MODEL", data.get("llm_model", cls.llm_model)),
            embedding_model=os.environ.get(
                "EMBEDDING_MODEL", data.get("embedding_model", cls.embedding_model)
            ),
            embedding_api_url=os.environ.get(
                "EMBEDDING_API_URL", data.get("embedding_api_url", cls.embedding_api_url)
            ),
            log_level=os.environ.get("LOG_LEVEL", data.get("log_level", cls.log_level)),
            log_dir=data.get("log_dir", cls.log_dir),
            **sections,
        )
        logger.debug("Loaded settings from %s", path if path.exists() else "defaults")
        return settings


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global Settings singleton.

    On first call, loads from ``config/settings.yaml`` (or defaults).
    Subsequent calls return the cached instance.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_yaml()
    return _settings_instance


def reset_settings() -> None:
    """Reset the cached Settings singleton (tests, config reloads)."""
    global _settings_instance
    _settings_instance = None


# ===========================================================================
# ENVIRONMENT VARIABLE VALIDATION
# ===========================================================================

# Required only when persisting to Supabase
REQUIRED_ENV_VARS: List[str] = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
]

OPTIONAL_ENV_VARS: List[str] = [
    "ANTHROPIC_API_KEY",
    "EMBEDDING_API_KEY",
    "EMBEDDING_API_URL",
    "EMBEDDING_MODEL",
]


def validate_env(strict: bool = True) -> Dict[str, bool]:
    """
    Validate that required environment variables are set.

    Args:
        strict: If ``True``, raise ``ConfigurationError`` when any required
            variable is missing. If ``False``, return the status dict
            without raising.

    Returns:
        Dict mapping variable name to presence status (``True`` if set).

    Raises:
        ConfigurationError: If ``strict=True`` and required vars are missing.
    """
    status: Dict[str, bool] = {}
    missing: List[str] = []

    for var in REQUIRED_ENV_VARS:
        present = bool(os.environ.get(var))
        status[var] = present
        if not present:
            missing.append(var)

    for var in OPTIONAL_ENV_VARS:
        status[var] = bool(os.environ.get(var))

    if strict and missing:
        raise ConfigurationError(
            f"Missing required environment variables: {missing}. "
            f"Copy .env.example to .env and fill in the values."
        )

    return status


__all__ = [
    "PROJECT_ROOT",
    "ScoringConfig",
    "CacheConfig",
    "AnalyzerConfig",
    "VoiceConfig",
    "BatchConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "validate_env",
    "REQUIRED_ENV_VARS",
    "OPTIONAL_ENV_VARS",
]
