"""Versioned SuperSearch settings with validation and JSON persistence."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .identity import build_pipeline
from .models import PipelineConfig

logger = structlog.get_logger(__name__)

SETTINGS_VERSION = 1
SETTINGS_DIR = ".supersearch"
SETTINGS_FILE = "settings.json"
DATABASE_URL_ENV = "SUPERSEARCH_DATABASE_URL"

# Keys written by the pre-versioned plugin settings blob.
_LEGACY_KEYS = {
    "databaseURL": "database_url",
    "excludedDirectories": "excluded_directories",
    "lastEmbeddedingTime": "last_run_timestamp",
    "textEmbedBatchSize": "text_batch_size",
    "pdfConcurrentProcessSize": "pdf_concurrency",
    "pdfEmbedBatchSize": "pdf_batch_size",
}


class SuperSearchSettings(BaseModel):
    """User-editable settings. ``last_run_timestamp`` is epoch milliseconds."""
    model_config = ConfigDict(protected_namespaces=())

    version: int = SETTINGS_VERSION
    database_url: str = ""
    collection_name: str = ""
    excluded_directories: List[str] = Field(default_factory=list)
    last_run_timestamp: int = 0

    text_batch_size: int = 10
    pdf_concurrency: int = 1
    pdf_batch_size: int = 10

    model_name: str = "intfloat/e5-small"
    model_parameters: str = "{}"
    splitter_name: str = "recursive_character"
    splitter_parameters: str = "{}"

    search_limit: int = 10
    search_delay_ms: int = 350
    snippet_length: int = 200

    @field_validator("excluded_directories", mode="before")
    @classmethod
    def _split_excluded(cls, value: Any) -> Any:
        # Accept the comma separated form typed into a settings field
        if isinstance(value, str):
            return [path.strip() for path in value.split(",") if path.strip()]
        return value

    @field_validator(
        "text_batch_size", "pdf_concurrency", "pdf_batch_size",
        "search_limit", "snippet_length",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("last_run_timestamp", "search_delay_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        if value < 1 or value > SETTINGS_VERSION:
            raise ValueError(f"unsupported settings version {value} (expected <= {SETTINGS_VERSION})")
        return value

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            model_name=self.model_name,
            model_parameters=self.model_parameters,
            splitter_name=self.splitter_name,
            splitter_parameters=self.splitter_parameters,
        )


def migrate_settings(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a stored settings blob up to the current version."""
    if "version" in raw:
        return raw

    migrated = {}
    for key, value in raw.items():
        migrated[_LEGACY_KEYS.get(key, key)] = value
    migrated["version"] = SETTINGS_VERSION
    logger.info("settings_migrated", from_version=0, to_version=SETTINGS_VERSION)
    return migrated


def parse_settings(raw: Dict[str, Any]) -> SuperSearchSettings:
    """Validate a settings blob, raising ConfigurationError on bad content."""
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Settings must be a JSON object, got {type(raw).__name__}")
    try:
        return SuperSearchSettings.model_validate(migrate_settings(raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


class SettingsManager:
    """Load and persist the settings of one vault."""

    def __init__(self, vault_root: Path):
        self.vault_root = Path(vault_root)
        self.config_dir = self.vault_root / SETTINGS_DIR
        self.config_file = self.config_dir / SETTINGS_FILE
        self._stored_database_url = ""
        self.settings = self._load_settings()

    def _load_settings(self) -> SuperSearchSettings:
        """Load settings from file, falling back to defaults when there is none."""
        load_dotenv()

        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    raw = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Settings file {self.config_file} is not valid JSON: {e}") from e
            settings = parse_settings(raw)
            logger.info("settings_loaded", path=str(self.config_file))
        else:
            settings = SuperSearchSettings()
            logger.info("settings_defaults", path=str(self.config_file))

        if not settings.collection_name:
            settings.collection_name = self.vault_root.resolve().name

        # The environment URL is only applied in memory, save() writes the stored one
        self._stored_database_url = settings.database_url
        env_url = os.getenv(DATABASE_URL_ENV)
        if env_url:
            settings.database_url = env_url

        return settings

    def save(self) -> None:
        """Persist the current settings."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        data = self.settings.model_dump()
        data["database_url"] = self._stored_database_url
        with open(self.config_file, "w") as f:
            json.dump(data, f, indent=2)
        logger.info("settings_saved", path=str(self.config_file))

    def get(self, key: str) -> Any:
        if key not in SuperSearchSettings.model_fields:
            raise ConfigurationError(f"Unknown setting: {key}")
        return getattr(self.settings, key)

    def set(self, key: str, value: Any, persist: bool = True) -> SuperSearchSettings:
        """Set one setting, re-validating the whole record."""
        if key not in SuperSearchSettings.model_fields or key == "version":
            raise ConfigurationError(f"Unknown setting: {key}")

        data = self.settings.model_dump()
        data[key] = value
        self.settings = parse_settings(data)
        if key == "database_url":
            self._stored_database_url = self.settings.database_url

        if persist:
            self.save()
        logger.info("setting_changed", key=key)
        return self.settings

    def reset(self, key: str, persist: bool = True) -> SuperSearchSettings:
        """Reset one setting to its default."""
        if key not in SuperSearchSettings.model_fields:
            raise ConfigurationError(f"Unknown setting: {key}")
        default = SuperSearchSettings().model_dump()[key]
        return self.set(key, default, persist)

    def advance_watermark(self, timestamp: int) -> None:
        """Record a successful run that started at ``timestamp``."""
        self.settings.last_run_timestamp = timestamp
        self.save()

    def validate(self) -> Dict[str, Any]:
        """Report problems that would block an Embed or Search."""
        validation = {"valid": True, "issues": [], "warnings": []}

        if not self.settings.database_url:
            validation["issues"].append("database_url not set")
            validation["valid"] = False

        try:
            build_pipeline(self.settings.pipeline_config())
        except ConfigurationError as e:
            validation["issues"].append(str(e))
            validation["valid"] = False

        if self.settings.pdf_concurrency > 8:
            validation["warnings"].append(
                f"pdf_concurrency={self.settings.pdf_concurrency} may exhaust memory on large PDFs"
            )

        return validation
