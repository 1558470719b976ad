"""
Tests for engagement_engine.config module.

Covers:
    - ScoringConfig defaults, env overrides and threshold validation
    - CacheConfig TTL lookup
    - AnalyzerConfig tier-weight validation
    - VoiceConfig / BatchConfig defaults and env overrides
    - Settings defaults and from_yaml
    - Singleton get_settings / reset_settings behaviour
    - validate_env
"""

import pytest

from engagement_engine.config import (
    AnalyzerConfig,
    BatchConfig,
    CacheConfig,
    ScoringConfig,
    Settings,
    VoiceConfig,
    get_settings,
    reset_settings,
    validate_env,
)
from engagement_engine.exceptions import ConfigurationError


# ===========================================================================
# 1. ScoringConfig
# ===========================================================================


class TestScoringConfig:
    """Tests for ICP scoring thresholds."""

    def test_defaults(self):
        cfg = ScoringConfig()
        assert cfg.qualified_threshold == 80
        assert cfg.review_threshold == 40
        assert cfg.target_roles is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ENGINE_QUALIFIED_THRESHOLD", "85")
        assert ScoringConfig().qualified_threshold == 85

    def test_env_override_with_bad_value_raises(self, monkeypatch):
        monkeypatch.setenv("ENGINE_REVIEW_THRESHOLD", "forty")
        with pytest.raises(ConfigurationError, match="ENGINE_REVIEW_THRESHOLD"):
            ScoringConfig()

    @pytest.mark.parametrize(
        "qualified, review",
        [(40, 80), (101, 40), (80, -1)],
    )
    def test_inconsistent_thresholds_raise(self, qualified, review):
        with pytest.raises(ConfigurationError):
            ScoringConfig(qualified_threshold=qualified, review_threshold=review)

    def test_equal_thresholds_allowed(self):
        cfg = ScoringConfig(qualified_threshold=60, review_threshold=60)
        assert cfg.review_threshold == cfg.qualified_threshold


# ===========================================================================
# 2. CacheConfig
# ===========================================================================


class TestCacheConfig:
    """Tests for research cache TTLs."""

    def test_ttl_for_known_source(self):
        assert CacheConfig().ttl_for("perplexity") == 12.0

    def test_ttl_for_unknown_source_uses_default(self):
        assert CacheConfig(ttl_hours=6).ttl_for("company") == 6.0

    def test_non_positive_ttl_raises(self):
        with pytest.raises(ConfigurationError):
            CacheConfig(ttl_hours=0)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ENGINE_CACHE_TTL_HOURS", "48")
        assert CacheConfig().ttl_hours == 48.0


# ===========================================================================
# 3. AnalyzerConfig
# ===========================================================================


class TestAnalyzerConfig:
    """Tests for historical analyzer tuning."""

    def test_default_tier_weights_increase(self):
        weights = AnalyzerConfig().tier_weights
        assert weights["low"] < weights["mid"] < weights["high"] < weights["viral"]

    def test_missing_tier_raises(self):
        with pytest.raises(ConfigurationError, match="missing"):
            AnalyzerConfig(tier_weights={"low": 0.5, "mid": 1.0, "high": 1.5})

    def test_non_increasing_weights_raise(self):
        with pytest.raises(ConfigurationError, match="increase"):
            AnalyzerConfig(tier_weights={"low": 1.0, "mid": 1.0, "high": 1.5, "viral": 2.0})

    def test_zero_attempts_raise(self):
        with pytest.raises(ConfigurationError):
            AnalyzerConfig(provider_max_attempts=0)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ENGINE_PROVIDER_TIMEOUT", "2.5")
        monkeypatch.setenv("ENGINE_MIN_SIMILARITY", "0.2")
        cfg = AnalyzerConfig()
        assert cfg.provider_timeout_seconds == 2.5
        assert cfg.min_similarity == 0.2


# ===========================================================================
# 4. VoiceConfig / BatchConfig
# ===========================================================================


class TestVoiceAndBatchConfig:
    """Tests for learner weights and batch paging."""

    def test_voice_defaults(self):
        cfg = VoiceConfig()
        assert cfg.post_weight == 1.0
        assert cfg.comment_weight == 0.3
        assert cfg.recency_half_life_days == 180.0

    def test_voice_env_override(self, monkeypatch):
        monkeypatch.setenv("ENGINE_COMMENT_WEIGHT", "0.5")
        assert VoiceConfig().comment_weight == 0.5

    def test_batch_defaults(self):
        cfg = BatchConfig()
        assert cfg.page_size == 50
        assert cfg.page_delay_seconds == 0.0
        assert cfg.warm_topics == []

    def test_batch_page_size_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            BatchConfig(page_size=0)

    def test_batch_env_override(self, monkeypatch):
        monkeypatch.setenv("ENGINE_BATCH_PAGE_SIZE", "10")
        assert BatchConfig().page_size == 10


# ===========================================================================
# 5. Settings
# ===========================================================================


class TestSettings:
    """Tests for Settings dataclass defaults and from_yaml."""

    def test_default_llm_model_contains_claude(self):
        assert "claude" in Settings().llm_model

    def test_default_log_level(self):
        assert Settings().log_level == "INFO"

    def test_default_sections(self):
        settings = Settings()
        assert isinstance(settings.scoring, ScoringConfig)
        assert isinstance(settings.cache, CacheConfig)
        assert isinstance(settings.analyzer, AnalyzerConfig)
        assert isinstance(settings.voice, VoiceConfig)
        assert isinstance(settings.batch, BatchConfig)

    def test_from_yaml_missing_file_returns_defaults(self, tmp_path):
        """from_yaml with a nonexistent path should return defaults."""
        settings = Settings.from_yaml(tmp_path / "nonexistent.yaml")
        assert settings.scoring.qualified_threshold == 80
        assert settings.batch.page_size == 50

    def test_from_yaml_loads_custom_values(self, tmp_path):
        """from_yaml should load values from a valid YAML file."""
        yaml_path = tmp_path / "settings.yaml"
        yaml_path.write_text(
            "llm_model: claude-test-model\n"
            "log_dir: /tmp/engine-logs\n"
            "scoring:\n"
            "  qualified_threshold: 75\n"
            "  target_industries: [Fintech]\n"
            "cache:\n"
            "  source_ttl_hours:\n"
            "    company: 72\n"
            "batch:\n"
            "  page_size: 20\n"
            "  warm_topics: [leadership]\n",
            encoding="utf-8",
        )

        settings = Settings.from_yaml(yaml_path)

        assert settings.llm_model == "claude-test-model"
        assert settings.log_dir == "/tmp/engine-logs"
        assert settings.scoring.qualified_threshold == 75
        assert settings.scoring.review_threshold == 40
        assert settings.scoring.target_industries == ["Fintech"]
        assert settings.cache.ttl_for("company") == 72.0
        assert settings.batch.page_size == 20
        assert settings.batch.warm_topics == ["leadership"]

    def test_from_yaml_ignores_unknown_keys(self, tmp_path):
        yaml_path = tmp_path / "settings.yaml"
        yaml_path.write_text("voice:\n  comment_weight: 0.4\n  colour: blue\n", encoding="utf-8")

        assert Settings.from_yaml(yaml_path).voice.comment_weight == 0.4

    def test_from_yaml_invalid_yaml_raises(self, tmp_path):
        """from_yaml should raise ConfigurationError for malformed YAML."""
        yaml_path = tmp_path / "bad.yaml"
        yaml_path.write_text("{{{{invalid yaml: [", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to parse"):
            Settings.from_yaml(yaml_path)

    def test_from_yaml_non_mapping_raises(self, tmp_path):
        yaml_path = tmp_path / "list.yaml"
        yaml_path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            Settings.from_yaml(yaml_path)

    def test_from_yaml_invalid_section_raises(self, tmp_path):
        yaml_path = tmp_path / "settings.yaml"
        yaml_path.write_text("scoring:\n  qualified_threshold: 30\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings.from_yaml(yaml_path)

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        yaml_path = tmp_path / "settings.yaml"
        yaml_path.write_text("log_level: DEBUG\nembedding_model: from-yaml\n", encoding="utf-8")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("EMBEDDING_MODEL", "from-env")

        settings = Settings.from_yaml(yaml_path)

        assert settings.log_level == "WARNING"
        assert settings.embedding_model == "from-env"

    def test_shipped_settings_file_matches_defaults(self):
        """config/settings.yaml should load and agree with the code defaults."""
        settings = Settings.from_yaml()
        assert settings.scoring.qualified_threshold == ScoringConfig().qualified_threshold
        assert settings.analyzer.tier_weights == AnalyzerConfig().tier_weights
        assert settings.voice.comment_weight == VoiceConfig().comment_weight


# ===========================================================================
# 6. Singleton
# ===========================================================================


class TestSettingsSingleton:
    """Tests for get_settings / reset_settings."""

    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_reset_settings_creates_new_instance(self):
        first = get_settings()
        reset_settings()
        assert get_settings() is not first


# ===========================================================================
# 7. validate_env
# ===========================================================================


class TestValidateEnv:
    """Tests for startup environment validation."""

    def test_missing_required_vars_raise_when_strict(self):
        with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
            validate_env(strict=True)

    def test_non_strict_returns_status(self):
        status = validate_env(strict=False)
        assert status["SUPABASE_URL"] is False
        assert status["ANTHROPIC_API_KEY"] is False

    def test_all_required_present(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")

        status = validate_env(strict=True)

        assert status["SUPABASE_URL"] is True
        assert status["SUPABASE_SERVICE_KEY"] is True
