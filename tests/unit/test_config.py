"""Unit tests for config module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from image_lite.core.config import (
    Config,
    ConfigurationError,
    MetadataPreservation,
    QualityRule,
    camel_to_snake,
)


class TestCamelToSnake:
    """Tests for camelCase key conversion."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("outputDir", "output_dir"),
            ("qualityRules", "quality_rules"),
            ("minWidth", "min_width"),
            ("webp", "webp"),
            ("already_snake", "already_snake"),
        ],
    )
    def test_conversion(self, key: str, expected: str) -> None:
        """Test camelCase to snake_case conversion."""
        assert camel_to_snake(key) == expected


class TestQualityRule:
    """Tests for QualityRule validation."""

    def test_rule_requires_a_criterion(self) -> None:
        """Test that a rule without criteria is rejected."""
        with pytest.raises(ValidationError):
            QualityRule(quality={"webp": 80})

    def test_blank_pattern_is_no_criterion(self) -> None:
        """Test that an empty pattern does not count as a criterion."""
        with pytest.raises(ValidationError):
            QualityRule(pattern="  ", quality={"webp": 80})

    def test_rule_requires_quality(self) -> None:
        """Test that an empty quality map is rejected."""
        with pytest.raises(ValidationError):
            QualityRule(pattern="*.jpg", quality={})

    @pytest.mark.parametrize("value", [0, 101, -5])
    def test_quality_range(self, value: int) -> None:
        """Test that quality values must be within 1..100."""
        with pytest.raises(ValidationError):
            QualityRule(pattern="*.jpg", quality={"webp": value})

    def test_bounds_must_be_positive(self) -> None:
        """Test that zero-sized bounds are rejected."""
        with pytest.raises(ValidationError):
            QualityRule(min_width=0, quality={"webp": 80})

    def test_size_only_rule_is_valid(self) -> None:
        """Test that a size bound alone is a valid criterion."""
        rule = QualityRule(max_height=500, quality={"webp": 60})
        assert rule.has_size_bounds

    def test_rule_is_immutable(self) -> None:
        """Test that rules are frozen once loaded."""
        rule = QualityRule(pattern="*.jpg", quality={"webp": 80})
        with pytest.raises(ValidationError):
            rule.pattern = "*.png"


class TestConfigDefaults:
    """Tests for default configuration values."""

    def test_defaults(self) -> None:
        """Test the built-in defaults."""
        config = Config()

        assert config.input_dir == Path("original")
        assert config.output_dir == Path("optimized")
        assert config.formats == ["webp", "avif", "original"]
        assert config.quality == {"webp": 80, "avif": 80, "jpeg": 80}
        assert config.generate_thumbnails is True
        assert config.thumbnail_width == 200
        assert config.preserve_metadata is False
        assert config.quality_rules == []
        assert config.error_recovery.continue_on_error is False
        assert config.error_recovery.max_retries == 3
        assert config.error_recovery.retry_delay == 1000
        assert config.error_recovery.exponential_backoff is True
        assert config.error_recovery.checkpoint_interval == 1
        assert config.lfs.auto_pull is False

    def test_quality_merged_over_defaults(self) -> None:
        """Test that partial quality maps keep the other defaults."""
        config = Config(quality={"webp": 90, "thumbnail": 50})
        assert config.quality == {"webp": 90, "avif": 80, "jpeg": 80, "thumbnail": 50}

    def test_quality_out_of_range(self) -> None:
        """Test that default quality values are range-checked."""
        with pytest.raises(ValidationError):
            Config(quality={"webp": 150})

    def test_formats_must_not_be_empty(self) -> None:
        """Test that at least one format is required."""
        with pytest.raises(ValidationError):
            Config(formats=[])

    def test_formats_deduplicated(self) -> None:
        """Test that duplicate formats are dropped in order."""
        config = Config(formats=["webp", "avif", "webp"])
        assert config.formats == ["webp", "avif"]

    def test_unknown_format_rejected(self) -> None:
        """Test that unsupported formats are rejected."""
        with pytest.raises(ValidationError):
            Config(formats=["bmp"])

    def test_thumbnail_width_range(self) -> None:
        """Test thumbnail width bounds."""
        with pytest.raises(ValidationError):
            Config(thumbnail_width=5)

    def test_selective_metadata(self) -> None:
        """Test the object form of preserve_metadata."""
        config = Config(preserve_metadata={"copyright": True, "gps": False})
        assert isinstance(config.preserve_metadata, MetadataPreservation)
        assert config.preserve_metadata.copyright is True


class TestConfigLoad:
    """Tests for Config.load."""

    def test_load_without_file(self, temp_dir: Path) -> None:
        """Test loading defaults when no file exists."""
        config = Config.load(project_root=temp_dir)
        assert config.output_dir == Path("optimized")

    def test_load_camel_case_file(self, temp_dir: Path) -> None:
        """Test that camelCase keys are accepted."""
        (temp_dir / ".imagerc").write_text(
            json.dumps(
                {
                    "outputDir": "dist/img",
                    "generateThumbnails": False,
                    "qualityRules": [{"pattern": "*-hero.*", "minWidth": 100, "quality": {"webp": 95}}],
                    "errorRecovery": {"continueOnError": True, "maxRetries": 5},
                }
            )
        )

        config = Config.load(project_root=temp_dir)

        assert config.output_dir == Path("dist/img")
        assert config.generate_thumbnails is False
        assert config.quality_rules[0].min_width == 100
        assert config.error_recovery.continue_on_error is True
        assert config.error_recovery.max_retries == 5

    def test_imagerc_json_fallback(self, temp_dir: Path) -> None:
        """Test discovery of .imagerc.json."""
        (temp_dir / ".imagerc.json").write_text(json.dumps({"thumbnailWidth": 300}))
        assert Config.load(project_root=temp_dir).thumbnail_width == 300

    def test_explicit_path(self, temp_dir: Path) -> None:
        """Test loading an explicit configuration file."""
        path = temp_dir / "custom.json"
        path.write_text(json.dumps({"inputDir": "src-images"}))
        assert Config.load(path).input_dir == Path("src-images")

    def test_invalid_json(self, temp_dir: Path) -> None:
        """Test that malformed JSON raises ConfigurationError."""
        (temp_dir / ".imagerc").write_text("{not json")
        with pytest.raises(
            ConfigurationError, match="Invalid configuration .* malformed JSON"
        ) as exc_info:
            Config.load(project_root=temp_dir)
        assert exc_info.value.path == temp_dir / ".imagerc"

    def test_invalid_rule_in_file(self, temp_dir: Path) -> None:
        """Test that validation errors become ConfigurationError."""
        (temp_dir / ".imagerc").write_text(json.dumps({"qualityRules": [{"quality": {"webp": 80}}]}))
        with pytest.raises(ConfigurationError) as exc_info:
            Config.load(project_root=temp_dir)
        assert exc_info.value.path == temp_dir / ".imagerc"

    def test_singleton(self, temp_dir: Path) -> None:
        """Test that load returns the cached instance."""
        first = Config.load(project_root=temp_dir)
        assert Config.load() is first
        assert Config.load(project_root=temp_dir, force_reload=True) is not first

    def test_overrides_take_precedence(self, temp_dir: Path) -> None:
        """Test that overrides beat file values and merge nested settings."""
        (temp_dir / ".imagerc").write_text(
            json.dumps({"outputDir": "from-file", "errorRecovery": {"maxRetries": 5}})
        )

        config = Config.load(
            project_root=temp_dir,
            overrides={"output_dir": "from-cli", "error_recovery": {"continue_on_error": True}},
        )

        assert config.output_dir == Path("from-cli")
        assert config.error_recovery.continue_on_error is True
        assert config.error_recovery.max_retries == 5

    def test_environment_override(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test IMAGE_LITE_ environment variables."""
        monkeypatch.setenv("IMAGE_LITE_ERROR_RECOVERY__MAX_RETRIES", "7")
        config = Config.load(project_root=temp_dir)
        assert config.error_recovery.max_retries == 7

    def test_save_and_reload(self, temp_dir: Path) -> None:
        """Test that a saved configuration loads back."""
        config = Config(output_dir="out", quality_rules=[{"directory": "icons", "quality": {"webp": 50}}])
        path = temp_dir / "saved.json"
        config.save(path)

        reloaded = Config.load(path, force_reload=True)
        assert reloaded.output_dir == Path("out")
        assert reloaded.quality_rules[0].directory == "icons"
