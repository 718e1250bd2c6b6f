"""Configuration management for errors-and-echoes using Pydantic models."""

import json
import re
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from echoes.errors import ConfigError

CONFIG_FILENAME = ".echoes.json"

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


class LogLevel(str, Enum):
    """Logging levels."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class EndpointConfig(BaseModel):
    """A network endpoint that receives reports for some extensions."""
    name: str
    url: str
    author: str | None = None
    extensions: list[str] = Field(default_factory=list)
    enabled: bool = True

    @field_validator("url")
    @classmethod
    def validate_encrypted_url(cls, v):
        """Reports travel over TLS; plain http is accepted for loopback only."""
        parsed = urlparse(v)
        if parsed.scheme == "https" and parsed.hostname:
            return v
        if parsed.scheme == "http" and parsed.hostname in _LOOPBACK_HOSTS:
            return v
        raise ValueError(f"endpoint url must use https, got: {v}")

    def serves(self, extension_id: str) -> bool:
        """Check if the extension is explicitly listed for this endpoint."""
        return extension_id in self.extensions

    model_config = ConfigDict(populate_by_name=True)


class PatternConfig(BaseModel):
    """A signature pattern used by the low-confidence attribution strategy."""
    pattern: str
    extension_id: str = Field(alias="extensionId")

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid pattern {v!r}: {e}")
        return v

    model_config = ConfigDict(populate_by_name=True)


class ReportingConfig(BaseModel):
    """Reporting pipeline configuration section."""
    dedup_window_seconds: float = Field(alias="dedupWindowSeconds", default=60.0)
    max_reports_per_hour: int = Field(alias="maxReportsPerHour", default=50)
    rate_window_seconds: float = Field(alias="rateWindowSeconds", default=3600.0)
    request_timeout: float = Field(alias="requestTimeout", default=8.0)
    stack_signature_length: int = Field(alias="stackSignatureLength", default=100)

    @field_validator("max_reports_per_hour")
    @classmethod
    def validate_max_reports(cls, v):
        if v < 1:
            raise ValueError("max_reports_per_hour must be >= 1")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v):
        """Transmission must always have a bounded timeout."""
        if not (0 < v <= 10):
            raise ValueError(f"request_timeout must be in (0, 10] seconds, got: {v}")
        return v

    @field_validator("dedup_window_seconds", "rate_window_seconds")
    @classmethod
    def validate_windows(cls, v):
        if v < 0:
            raise ValueError("windows must be >= 0")
        return v

    model_config = ConfigDict(populate_by_name=True)


class ConsentConfig(BaseModel):
    """Consent configuration section."""
    expiry_days: int = Field(alias="expiryDays", default=365)

    @field_validator("expiry_days")
    @classmethod
    def validate_expiry(cls, v):
        if v < 1:
            raise ValueError("expiry_days must be >= 1")
        return v

    model_config = ConfigDict(populate_by_name=True)


def _default_patterns() -> list[PatternConfig]:
    return [
        PatternConfig(
            pattern=r"ErrorCapture|ErrorReporter|ConsentManager",
            extension_id="errors-and-echoes",
        ),
    ]


class AttributionConfig(BaseModel):
    """Attribution engine configuration section."""
    extension_root: str = Field(alias="extensionRoot", default="extensions")
    patterns: list[PatternConfig] = Field(default_factory=_default_patterns)

    @field_validator("extension_root")
    @classmethod
    def validate_extension_root(cls, v):
        if not v or any(sep in v for sep in ("/", "\\")):
            raise ValueError("extension_root must be a single path segment")
        return v

    model_config = ConfigDict(populate_by_name=True)


class LoggingConfig(BaseModel):
    """Logging configuration section."""
    level: LogLevel = LogLevel.INFO

    model_config = ConfigDict(use_enum_values=True)


class EchoesConfig(BaseModel):
    """Complete errors-and-echoes configuration model."""
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    consent: ConsentConfig = Field(default_factory=ConsentConfig)
    attribution: AttributionConfig = Field(default_factory=AttributionConfig)
    endpoints: list[EndpointConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")


def load_config(config_path: str | Path | None = None) -> EchoesConfig:
    """Load configuration from file with fallback to defaults.

    Args:
        config_path: Optional path to configuration file. If None, searches
                    current directory and parents for .echoes.json

    Returns:
        EchoesConfig: Loaded and validated configuration

    Raises:
        ConfigError: If the configuration file is invalid
    """
    if config_path is None:
        config_path = find_config_file()
    else:
        config_path = Path(config_path)

    if config_path and config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = json.load(f)
            return EchoesConfig(**config_data)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {config_path}: {e}")
        except (ValidationError, TypeError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
    return EchoesConfig()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find .echoes.json configuration file by searching up directory tree.

    Args:
        start_dir: Directory to start search from (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = Path(start_dir).resolve()

    while True:
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            return config_file

        parent = current.parent
        if parent == current:  # Reached root directory
            break
        current = parent

    return None
