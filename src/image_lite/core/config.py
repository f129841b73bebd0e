"""Configuration management for image optimization jobs.

This module loads, validates and saves job settings. Settings come from an
``.imagerc`` (or ``.imagerc.json``) file in the project root, environment
variables prefixed with ``IMAGE_LITE_`` and explicit overrides passed by the
CLI. Keys in the JSON file may be written in camelCase (``outputDir``,
``qualityRules``) or snake_case.

Example:
    >>> from image_lite.core.config import Config
    >>> config = Config.load()
    >>> print(config.output_dir)  # "optimized"
    >>> print(config.error_recovery.max_retries)  # 3

    >>> # Environment variable override
    >>> # IMAGE_LITE_ERROR_RECOVERY__MAX_RETRIES=5
    >>> config = Config.load(force_reload=True)
    >>> print(config.error_recovery.max_retries)  # 5
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
)
from pydantic_settings.sources import JsonConfigSettingsSource

from image_lite import __version__
from image_lite.utils.constants import (
    CONFIG_FILE_NAMES,
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_ERROR_LOG,
    DEFAULT_FORMATS,
    DEFAULT_INPUT_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_QUALITY_MAP,
    DEFAULT_RESIZE_HEIGHT,
    DEFAULT_RESIZE_WIDTH,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_SETTLE_TIME,
    DEFAULT_STATE_FILE,
    DEFAULT_THUMBNAIL_WIDTH,
    MAX_QUALITY,
    MAX_THUMBNAIL_WIDTH,
    MIN_QUALITY,
    MIN_THUMBNAIL_WIDTH,
)

OutputFormat = Literal["webp", "avif", "original", "jpeg", "png"]

# Singleton state (module-level to avoid Pydantic serialization issues)
_config_lock: threading.Lock = threading.Lock()
_config_instance: Config | None = None
_explicit_config_file: Path | None = None
_project_root: Path | None = None

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class ConfigurationError(Exception):
    """Raised when the configuration file or overrides are invalid.

    Configuration errors are fatal for a job regardless of
    continue-on-error.

    Attributes:
        path: Configuration file involved, if any.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


def camel_to_snake(key: str) -> str:
    """Convert a camelCase key to snake_case.

    Example:
        >>> camel_to_snake("qualityRules")
        'quality_rules'
    """
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize_keys(value: Any) -> Any:
    """Recursively convert dictionary keys to snake_case."""
    if isinstance(value, dict):
        return {camel_to_snake(str(k)): _normalize_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_keys(item) for item in value]
    return value


class _JsonFileSettingsSource(JsonConfigSettingsSource):
    """JSON settings source that loads ``.imagerc`` and accepts camelCase keys."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        json_file: Path | None = None,
    ) -> None:
        self._json_file = json_file
        super().__init__(settings_cls, json_file=json_file)

    def _read_file(self, file_path: Path) -> dict[str, Any]:
        data = super()._read_file(file_path)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {file_path} must be a JSON object", file_path)
        normalized: dict[str, Any] = _normalize_keys(data)
        return normalized


class QualityRule(BaseModel):
    """Per-file quality override.

    A rule targets files by basename glob, by directory, by pixel size, or
    any combination. At least one criterion is required.

    Attributes:
        pattern: Case-insensitive glob matched against the basename.
        directory: Directory that must appear as a whole path segment run.
        min_width: Minimum width in pixels.
        min_height: Minimum height in pixels.
        max_width: Maximum width in pixels.
        max_height: Maximum height in pixels.
        quality: Format name to quality (1-100) overrides.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    pattern: str | None = None
    directory: str | None = None
    min_width: PositiveInt | None = None
    min_height: PositiveInt | None = None
    max_width: PositiveInt | None = None
    max_height: PositiveInt | None = None
    quality: dict[str, int]

    @field_validator("pattern", "directory", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as an absent criterion."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: dict[str, int]) -> dict[str, int]:
        """Require a non-empty quality map with values in range."""
        if not v:
            raise ValueError("quality must specify at least one format")
        for fmt, value in v.items():
            if not MIN_QUALITY <= value <= MAX_QUALITY:
                raise ValueError(
                    f"quality for {fmt!r} must be between {MIN_QUALITY} and {MAX_QUALITY}, got {value}"
                )
        return v

    @model_validator(mode="after")
    def require_criterion(self) -> QualityRule:
        """Reject rules that would match every file."""
        if self.pattern is None and self.directory is None and not self.has_size_bounds:
            raise ValueError("quality rule needs a pattern, directory or size constraint")
        return self

    @property
    def has_size_bounds(self) -> bool:
        """Whether any width/height bound is set."""
        return any(
            bound is not None
            for bound in (self.min_width, self.min_height, self.max_width, self.max_height)
        )


class ResizeConfig(BaseModel):
    """Bounding box applied to every full-size output.

    Attributes:
        width: Maximum output width.
        height: Maximum output height.
        fit: How the image is fitted into the box.
        without_enlargement: Never upscale smaller images.
    """

    width: PositiveInt = DEFAULT_RESIZE_WIDTH
    height: PositiveInt = DEFAULT_RESIZE_HEIGHT
    fit: Literal["inside", "cover"] = "inside"
    without_enlargement: bool = True


class MetadataPreservation(BaseModel):
    """Selective metadata preservation.

    Attributes:
        copyright: Keep copyright and artist tags.
        creator: Keep software and creator tags.
        datetime: Keep capture timestamps.
        camera: Keep camera make/model and exposure tags.
        gps: Keep GPS location.
        all: Keep everything.
    """

    copyright: bool = False
    creator: bool = False
    datetime: bool = False
    camera: bool = False
    gps: bool = False
    all: bool = False


class ErrorRecoveryConfig(BaseModel):
    """Retry, error log and checkpoint settings.

    Attributes:
        continue_on_error: Keep going after a file fails terminally.
        max_retries: Total attempts per unit of work (at least 1).
        retry_delay: Base delay between attempts in milliseconds.
        exponential_backoff: Double the delay after each failed attempt.
        error_log: Path of the JSON-lines error log.
        state_file: Path of the checkpoint file.
        checkpoint_interval: Save the checkpoint every N files.
    """

    continue_on_error: bool = False
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    retry_delay: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)
    exponential_backoff: bool = True
    error_log: Path = Path(DEFAULT_ERROR_LOG)
    state_file: Path = Path(DEFAULT_STATE_FILE)
    checkpoint_interval: int = Field(default=DEFAULT_CHECKPOINT_INTERVAL, ge=1)


class LfsConfig(BaseModel):
    """Git LFS handling.

    Attributes:
        auto_pull: Fetch pointer files with ``git lfs pull`` before processing.
    """

    auto_pull: bool = False


class WatchConfig(BaseModel):
    """Watch mode polling settings (seconds)."""

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    settle_time: float = Field(default=DEFAULT_SETTLE_TIME, ge=0)


class LogConfig(BaseModel):
    """Application log settings.

    Attributes:
        level: Default log level name.
        dir: Directory for the rotating log file.
        file_output: Whether to write the rotating log file.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    dir: Path = DEFAULT_LOG_DIR
    file_output: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        """Accept lower-case level names."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("dir", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        """Expand user home directory in paths.

        Args:
            v: Path value (string or Path).

        Returns:
            Path with ~ expanded to user home directory.
        """
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser()


class Config(BaseSettings):
    """Main configuration class for image optimization.

    Attributes:
        version: Application version that produced the configuration.
        input_dir: Directory scanned for images, relative to the project root.
        output_dir: Directory receiving outputs, relative to the project root.
        formats: Output formats to generate per image.
        quality: Default quality per format, merged over built-in defaults.
        generate_thumbnails: Whether to emit a thumbnail per image.
        thumbnail_width: Thumbnail edge length in pixels.
        resize: Bounding box for full-size outputs.
        preserve_metadata: False, True or a selective MetadataPreservation.
        quality_rules: Per-file quality overrides.
        error_recovery: Retry, error log and checkpoint settings.
        lfs: Git LFS handling.
        watch: Watch mode polling settings.
        log: Application log settings.

    Example:
        >>> config = Config.load()
        >>> print(config.formats)
        ['webp', 'avif', 'original']

        >>> # Environment override (IMAGE_LITE_OUTPUT_DIR=dist/img)
        >>> config = Config.load(force_reload=True)
        >>> print(config.output_dir)
        'dist/img'
    """

    model_config = SettingsConfigDict(
        env_prefix="IMAGE_LITE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    version: str = Field(default_factory=lambda: __version__)
    input_dir: Path = Path(DEFAULT_INPUT_DIR)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    formats: list[OutputFormat] = Field(default_factory=lambda: list(DEFAULT_FORMATS))
    quality: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_QUALITY_MAP))
    generate_thumbnails: bool = True
    thumbnail_width: int = Field(
        default=DEFAULT_THUMBNAIL_WIDTH, ge=MIN_THUMBNAIL_WIDTH, le=MAX_THUMBNAIL_WIDTH
    )
    resize: ResizeConfig = Field(default_factory=ResizeConfig)
    preserve_metadata: bool | MetadataPreservation = False
    quality_rules: list[QualityRule] = Field(default_factory=list)
    error_recovery: ErrorRecoveryConfig = Field(default_factory=ErrorRecoveryConfig)
    lfs: LfsConfig = Field(default_factory=LfsConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    log: LogConfig = Field(default_factory=LogConfig)

    @field_validator("formats")
    @classmethod
    def validate_formats(cls, v: list[str]) -> list[str]:
        """Require at least one format and drop duplicates, keeping order."""
        if not v:
            raise ValueError("formats must contain at least one output format")
        return list(dict.fromkeys(v))

    @field_validator("quality", mode="before")
    @classmethod
    def merge_quality_defaults(cls, v: Any) -> Any:
        """Merge user-supplied quality values over the built-in defaults."""
        if isinstance(v, dict):
            return {**DEFAULT_QUALITY_MAP, **v}
        return v

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: dict[str, int]) -> dict[str, int]:
        """Require every quality value to be within range."""
        for fmt, value in v.items():
            if not MIN_QUALITY <= value <= MAX_QUALITY:
                raise ValueError(
                    f"quality for {fmt!r} must be between {MIN_QUALITY} and {MAX_QUALITY}, got {value}"
                )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources priority.

        Priority (highest to lowest):
        1. init_settings (CLI overrides)
        2. env_settings (environment variables)
        3. JSON file settings (.imagerc)
        4. Default values
        """
        # Explicitly mark unused parameters (required by pydantic-settings interface)
        _ = dotenv_settings
        _ = file_secret_settings

        json_source = _JsonFileSettingsSource(settings_cls, json_file=cls._find_config_file())

        return (
            init_settings,
            env_settings,
            json_source,
        )

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        *,
        project_root: Path | None = None,
        overrides: dict[str, Any] | None = None,
        force_reload: bool = False,
    ) -> Config:
        """Load configuration.

        Args:
            config_path: Explicit configuration file. When omitted the project
                root is searched for ``.imagerc`` then ``.imagerc.json``.
            project_root: Directory searched for the configuration file.
                Defaults to the current working directory.
            overrides: Values that take precedence over every other source.
            force_reload: Force reload even if already loaded.

        Returns:
            Config: Loaded configuration instance.

        Raises:
            ConfigurationError: If the file is not valid JSON or any value
                fails validation.
        """
        global _config_instance, _explicit_config_file, _project_root

        with _config_lock:
            if _config_instance is not None and not force_reload and not overrides:
                return _config_instance

            _explicit_config_file = config_path
            _project_root = project_root
            config_file = cls._find_config_file()

            try:
                instance = cls(**(overrides or {}))
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    f"Invalid configuration in {config_file}: malformed JSON ({e})", config_file
                ) from e
            except SettingsError as e:
                raise ConfigurationError(f"Invalid configuration: {e}", config_file) from e
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid configuration{f' in {config_file}' if config_file else ''}:\n{e}",
                    config_file,
                ) from e

            _config_instance = instance
            return instance

    @classmethod
    def _find_config_file(cls) -> Path | None:
        """Find the configuration file to load.

        Returns:
            Path to config file, or None if no file exists.
        """
        if _explicit_config_file is not None:
            return _explicit_config_file

        root = _project_root or Path.cwd()
        for name in CONFIG_FILE_NAMES:
            candidate = root / name
            if candidate.is_file():
                return candidate

        return None

    def save(self, config_path: Path) -> None:
        """Save configuration to a JSON file.

        Args:
            config_path: Destination path.

        Raises:
            OSError: If file cannot be written.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with config_path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            f.write("\n")

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance.

        This is primarily useful for testing to ensure a clean state.
        """
        global _config_instance, _explicit_config_file, _project_root

        with _config_lock:
            _config_instance = None
            _explicit_config_file = None
            _project_root = None

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-serializable dictionary.

        Returns:
            Dictionary representation of configuration.
        """
        result: dict[str, Any] = self.model_dump(mode="json", exclude_none=True)
        return result


__all__ = [
    "Config",
    "ConfigurationError",
    "ErrorRecoveryConfig",
    "LfsConfig",
    "LogConfig",
    "MetadataPreservation",
    "OutputFormat",
    "QualityRule",
    "ResizeConfig",
    "WatchConfig",
    "camel_to_snake",
]
