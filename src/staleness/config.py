"""Staleness monitor configuration using pydantic-settings.

This module defines the StalenessSettings class that reads configuration
from environment variables with the STALENESS_ prefix and, optionally, from
a YAML or JSON config file named by STALENESS_CONFIG_PATH. Environment
variables win over the file. The GitHub token and target repository must be
set for the monitor to start; everything else has defaults matching a weekly
activity check:

- 3 days: recently updated
- 7 days: grace period, no escalation
- 14 days: first notice
- 35 days: oldest bot comment considered for minimization
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from src.staleness.classifier.models import CutoffWindow, LabelClass
from src.staleness.classifier.timeline import DEFAULT_MINIMIZATION_MARKER
from src.staleness.labels import LabelDirectory


logger = logging.getLogger(__name__)


# Nested config file keys (camelCase, as written by workflow authors) and the
# settings field each one feeds. Top-level keys that already match a field
# name are taken as-is.
CONFIG_FILE_KEYS: Dict[Tuple[str, ...], str] = {
    ("timeframes", "updatedByDays"): "updated_by_days",
    ("timeframes", "commentByDays"): "comment_by_days",
    ("timeframes", "inactiveByDays"): "inactive_by_days",
    ("timeframes", "inactiveUpdatedByDays"): "inactive_by_days",
    ("timeframes", "upperLimitDays"): "upper_limit_days",
    ("projectBoard", "targetStatus"): "target_status",
    ("projectBoard", "statusField"): "project_status_field",
    ("labels", "statusUpdated"): "label_status_updated",
    ("labels", "statusInactive1"): "label_status_inactive1",
    ("labels", "statusInactive2"): "label_status_inactive2",
    ("labels", "exclude"): "exclude_labels",
    ("bots",): "bot_usernames",
    ("commentTemplate",): "notice_template",
    ("labelDirectoryPath",): "label_directory_path",
    ("timezone",): "notice_timezone",
    ("dryRun",): "dry_run",
}

CONFIG_FILE_SUFFIXES = (".yml", ".yaml", ".json")


class ConfigFileError(Exception):
    """Raised when a config file exists but cannot be used."""


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML or JSON config file into settings field values.

    A missing file is not an error: the monitor runs on defaults and
    environment variables. Empty values (None or "") are dropped so they do
    not clobber defaults.

    Args:
        path: Path to a .yml, .yaml or .json file.

    Returns:
        Field name to value for every recognised key in the file.

    Raises:
        ConfigFileError: On an unsupported extension, unparseable content or
            a top level that is not a mapping.
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix not in CONFIG_FILE_SUFFIXES:
        raise ConfigFileError(
            f"Unsupported config file format: {path}. Use .yml, .yaml, or .json"
        )

    if not file_path.exists():
        logger.warning(
            "Config file not found, using defaults",
            extra={"config_path": path},
        )
        return {}

    try:
        text = file_path.read_text(encoding="utf-8")
        if suffix == ".json":
            raw = json.loads(text) if text.strip() else None
        else:
            raw = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigFileError(f"Invalid config file {path}: {e}") from e
    except OSError as e:
        raise ConfigFileError(f"Cannot read config file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigFileError(f"Config file {path} must contain a mapping")

    values: Dict[str, Any] = {}
    for keys, field_name in CONFIG_FILE_KEYS.items():
        value = _lookup(raw, keys)
        if value is not None and value != "":
            values[field_name] = value

    for key, value in raw.items():
        if key in StalenessSettings.model_fields and value is not None and value != "":
            values[key] = value

    known_roots = {keys[0] for keys in CONFIG_FILE_KEYS} | set(
        StalenessSettings.model_fields
    )
    unknown = sorted(str(k) for k in raw if k not in known_roots)
    if unknown:
        logger.warning(
            "Ignoring unknown config file keys",
            extra={"config_path": path, "keys": unknown},
        )

    logger.info(
        "Loaded config file",
        extra={"config_path": path, "fields": sorted(values)},
    )
    return values


def _lookup(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    current: Any = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the optional config file."""

    def __init__(self, settings_cls: Type[BaseSettings], config_path: Optional[str]):
        super().__init__(settings_cls)
        self.config_path = config_path

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> Tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        if not self.config_path:
            return {}
        return load_config_file(self.config_path)


class StalenessSettings(BaseSettings):
    """Staleness monitor configuration from environment variables and a config file.

    All environment variables are prefixed with STALENESS_ (e.g., STALENESS_GITHUB_TOKEN).
    List values (bot_usernames, exclude_labels) are given as JSON arrays.
    Precedence: init arguments, environment, config file, defaults.

    Required fields (environment or config file):
    - github_token: GitHub API token for reading timelines and editing labels
    - repository: Target repository in "owner/repo" form
    """

    model_config = SettingsConfigDict(
        env_prefix="STALENESS_",
        case_sensitive=False,
    )

    # YAML or JSON file with the nested config layout (see CONFIG_FILE_KEYS)
    config_path: Optional[str] = None

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # GitHub API token for timelines, labels, comments and minimization
    github_token: str

    # Base URL for GitHub REST API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Target repository in "owner/repo" form
    repository: str

    # -------------------------------------------------------------------------
    # Activity Windows (days back from now)
    # -------------------------------------------------------------------------
    updated_by_days: float = 3
    comment_by_days: float = 7
    inactive_by_days: float = 14
    upper_limit_days: float = 35

    # -------------------------------------------------------------------------
    # Bot Comment Minimization
    # -------------------------------------------------------------------------
    bot_usernames: list[str] = ["github-actions[bot]"]

    # Comments containing this marker are never minimized
    minimization_marker: str = DEFAULT_MINIMIZATION_MARKER

    # Pause before each minimize call
    minimize_delay_seconds: float = 1.0

    # -------------------------------------------------------------------------
    # Labels
    # -------------------------------------------------------------------------
    # Optional YAML file mapping label keys to label names
    label_directory_path: Optional[str] = None

    # Per-label overrides, applied on top of the directory or defaults
    label_status_updated: Optional[str] = None
    label_status_inactive1: Optional[str] = None
    label_status_inactive2: Optional[str] = None

    # Issues carrying any of these labels are never classified
    exclude_labels: list[str] = ["Draft", "ER", "Epic", "Dependency"]

    # -------------------------------------------------------------------------
    # Project Board
    # -------------------------------------------------------------------------
    # Only issues whose project status equals this are processed; unset
    # processes every assigned issue
    target_status: Optional[str] = None

    # Single-select project field holding the status
    project_status_field: str = "Status"

    # -------------------------------------------------------------------------
    # Notice Comments
    # -------------------------------------------------------------------------
    # Inline template; takes precedence over notice_template_path
    notice_template: Optional[str] = None
    notice_template_path: Optional[str] = None
    notice_timezone: str = "America/Los_Angeles"

    # Log planned actions without calling the GitHub API
    dry_run: bool = False

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        config_path = init_settings().get("config_path") or env_settings().get(
            "config_path"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            ConfigFileSettingsSource(settings_cls, config_path),
            file_secret_settings,
        )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        """Validate that the GitHub base URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        """Validate that repository has the form owner/repo."""
        parts = v.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError("repository must be in the form owner/repo")
        return v.strip()

    @field_validator("minimize_delay_seconds")
    @classmethod
    def validate_minimize_delay(cls, v: float) -> float:
        """Validate that minimize delay is not negative."""
        if v < 0:
            raise ValueError("minimize_delay_seconds cannot be negative")
        return v

    @field_validator("notice_timezone")
    @classmethod
    def validate_notice_timezone(cls, v: str) -> str:
        """Validate that the notice timezone is a known IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown notice_timezone: {v}") from e
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @model_validator(mode="after")
    def validate_cutoff_ordering(self) -> "StalenessSettings":
        """Reject inverted activity windows before any classification runs."""
        windows = (
            self.updated_by_days,
            self.comment_by_days,
            self.inactive_by_days,
            self.upper_limit_days,
        )
        if min(windows) <= 0:
            raise ValueError("activity windows must be positive")
        if not windows[0] < windows[1] < windows[2] < windows[3]:
            raise ValueError(
                "activity windows must satisfy updated_by_days < comment_by_days "
                "< inactive_by_days < upper_limit_days"
            )
        return self

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------
    @property
    def owner(self) -> str:
        return self.repository.split("/")[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/")[1]

    def cutoff_window(self) -> CutoffWindow:
        """Build the activity windows from the configured day offsets.

        Raises:
            pydantic.ValidationError: If the windows are not strictly increasing.
        """
        return CutoffWindow(
            current=self.updated_by_days,
            grace_end=self.comment_by_days,
            stale_end=self.inactive_by_days,
            horizon=self.upper_limit_days,
        )

    def label_directory(self) -> LabelDirectory:
        """Build the label directory from the YAML file, defaults and overrides.

        Raises:
            LabelResolutionError: If the label directory file cannot be used.
        """
        if self.label_directory_path:
            base = LabelDirectory.from_yaml(self.label_directory_path)
        else:
            base = LabelDirectory.default()

        overrides = {
            LabelClass.UPDATED: self.label_status_updated,
            LabelClass.FIRST_NOTICE: self.label_status_inactive1,
            LabelClass.SECOND_NOTICE: self.label_status_inactive2,
        }
        names = dict(base.names)
        names.update({c: name for c, name in overrides.items() if name})
        return LabelDirectory(names)


def get_settings() -> StalenessSettings:
    """Create and return StalenessSettings instance.

    Reads environment variables and, when STALENESS_CONFIG_PATH is set, the
    config file it names.

    Returns:
        StalenessSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
        ConfigFileError: If the config file cannot be used.
    """
    return StalenessSettings()
