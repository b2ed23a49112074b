"""Project configuration loading, validation and runtime settings."""

from __future__ import annotations

import json
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigurationError
from .providers import KEYLESS_PROVIDERS, default_model, normalise_provider_name
from .structures import LocaleFormat, TrackChanges
from .tree import locale_file_name

APP_NAME = "polyglot-keeper"
CONFIG_FILE_NAMES = (
    "polyglot.config.json",
    "polyglot.config.yaml",
    "polyglot.config.yml",
)
DEBUG_ENV_VAR = "POLYGLOT_PROVIDER_DEBUG"
TRUTHY = {"1", "true", "yes", "on"}

MILLISECONDS = 1000.0


class SectionConfig(BaseModel):
    """Settings shared by the JSON and markdown sections."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Optional[str] = None
    model: Optional[str] = None
    env_var_name: str = Field(default="POLYGLOT_API_KEY", alias="envVarName")
    locales: List[str] = Field(default_factory=lambda: ["EN", "RU"])
    default_locale: str = Field(default="EN", alias="defaultLocale")
    track_changes: TrackChanges = Field(default=TrackChanges.OFF, alias="trackChanges")
    batch_delay: int = Field(default=2000, ge=0, alias="batchDelay")
    retry_delay: int = Field(default=35000, ge=0, alias="retryDelay")
    max_retries: int = Field(default=3, ge=0, alias="maxRetries")

    @model_validator(mode="before")
    @classmethod
    def _normalise_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            raw_provider = data.get("provider")
            if isinstance(raw_provider, str) and raw_provider.strip():
                data["provider"] = normalise_provider_name(raw_provider)
            raw_mode = data.get("trackChanges", data.get("track_changes"))
            if isinstance(raw_mode, str):
                key = "trackChanges" if "trackChanges" in data else "track_changes"
                data[key] = raw_mode.strip().lower()
        return data

    @property
    def resolved_model(self) -> str:
        return self.model or default_model(self.provider or "")


class JsonSectionConfig(SectionConfig):
    """The ``json`` section: nested key-value locale files."""

    locale_format: LocaleFormat = Field(default=LocaleFormat.SHORT, alias="localeFormat")
    locales_dir: str = Field(default="src/locale", alias="localesDir")
    batch_size: int = Field(default=200, gt=0, alias="batchSize")


class MarkdownSectionConfig(SectionConfig):
    """The ``markdown`` section: one directory of ``.md`` files per locale."""

    env_var_name: str = Field(default="POLYGLOT_MD_API_KEY", alias="envVarName")
    locales: List[str] = Field(default_factory=lambda: ["en", "ru"])
    default_locale: str = Field(default="en", alias="defaultLocale")
    content_dir: str = Field(default="content", alias="contentDir")
    exclude: List[str] = Field(default_factory=list)


class PolyglotConfig(BaseModel):
    """Root of ``polyglot.config.json``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    env_file: str = Field(default=".env", alias="envFile")
    tree: Optional[JsonSectionConfig] = Field(default=None, alias="json")
    markdown: Optional[MarkdownSectionConfig] = None


SECTION_NAMES = {"json": "tree", "markdown": "markdown"}


@dataclass
class TreeSyncSettings:
    """Resolved settings for a run over JSON locale files."""

    root_dir: pathlib.Path
    locales_dir: pathlib.Path
    locales: Sequence[str]
    default_locale: str
    locale_format: LocaleFormat = LocaleFormat.SHORT
    track_changes: TrackChanges = TrackChanges.OFF
    force_retranslate: bool = False
    batch_size: int = 200
    batch_delay: float = 2.0
    retry_delay: float = 35.0
    max_retries: int = 3

    @property
    def primary_locale_file(self) -> pathlib.Path:
        return self.locale_file(self.default_locale)

    @property
    def target_locales(self) -> List[str]:
        return [locale for locale in self.locales if locale != self.default_locale]

    def locale_file(self, locale: str) -> pathlib.Path:
        return self.locales_dir / locale_file_name(locale, self.locale_format)


@dataclass
class MarkdownSyncSettings:
    """Resolved settings for a run over markdown content directories."""

    root_dir: pathlib.Path
    content_dir: pathlib.Path
    locales: Sequence[str]
    default_locale: str
    exclude: Sequence[str] = field(default_factory=list)
    track_changes: TrackChanges = TrackChanges.OFF
    force_retranslate: bool = False
    batch_delay: float = 2.0
    retry_delay: float = 35.0
    max_retries: int = 3

    @property
    def source_dir(self) -> pathlib.Path:
        return self.content_dir / self.default_locale

    @property
    def target_locales(self) -> List[str]:
        return [locale for locale in self.locales if locale != self.default_locale]

    def target_dir(self, locale: str) -> pathlib.Path:
        return self.content_dir / locale


def find_config_file(root_dir: pathlib.Path) -> Optional[pathlib.Path]:
    for name in CONFIG_FILE_NAMES:
        candidate = root_dir / name
        if candidate.is_file():
            return candidate
    return None


def _parse_file(path: pathlib.Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text)


def load_config(root_dir: pathlib.Path) -> Optional[PolyglotConfig]:
    """Load and validate the project config; None when no file exists."""

    config_path = find_config_file(root_dir)
    if config_path is None:
        return None

    try:
        raw = _parse_file(config_path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to load config from {config_path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Invalid configuration file {config_path}: expected a mapping at the root."
        )

    try:
        return PolyglotConfig.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.errors())) from exc


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("loc") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def require_section(
    config: PolyglotConfig,
    section_name: str,
    config_path: pathlib.Path | None = None,
) -> SectionConfig:
    """Return the ``json`` or ``markdown`` section or explain how to fix it."""

    file_label = config_path.name if config_path else CONFIG_FILE_NAMES[0]
    section = getattr(config, SECTION_NAMES[section_name])
    if section is None:
        raise ConfigurationError(
            f'Invalid or deprecated config: missing "{section_name}" section in '
            f"{file_label}. Please run `{APP_NAME} init` again."
        )
    if not section.provider:
        raise ConfigurationError(
            f'Invalid or deprecated config: "{section_name}" section must include a '
            f"provider. Please run `{APP_NAME} init` again."
        )
    return section


def read_environment(root_dir: pathlib.Path, env_file: str) -> Dict[str, str]:
    """Merge the project .env file with the process environment (process wins)."""

    merged: Dict[str, str] = {}
    dotenv_path = root_dir / env_file
    if dotenv_path.is_file():
        merged.update(
            {key: value for key, value in dotenv_values(dotenv_path).items() if value is not None}
        )
    merged.update({key: value for key, value in os.environ.items() if isinstance(value, str)})
    return merged


def resolve_api_key(
    section: SectionConfig,
    environment: Mapping[str, str],
    *,
    env_file: str = ".env",
) -> Optional[str]:
    """Return the API key for the section's provider, or fail before any work."""

    if section.provider in KEYLESS_PROVIDERS:
        return None
    api_key = environment.get(section.env_var_name)
    if not api_key:
        raise ConfigurationError(
            f"Error: {section.env_var_name} environment variable is not set in {env_file}."
        )
    return api_key


def provider_debug_enabled(environment: Mapping[str, str]) -> bool:
    return environment.get(DEBUG_ENV_VAR, "").strip().lower() in TRUTHY


def build_tree_settings(
    section: JsonSectionConfig,
    root_dir: pathlib.Path,
    *,
    force_retranslate: bool = False,
) -> TreeSyncSettings:
    return TreeSyncSettings(
        root_dir=root_dir,
        locales_dir=(root_dir / section.locales_dir).resolve(),
        locales=list(section.locales),
        default_locale=section.default_locale,
        locale_format=section.locale_format,
        track_changes=section.track_changes,
        force_retranslate=force_retranslate,
        batch_size=section.batch_size,
        batch_delay=section.batch_delay / MILLISECONDS,
        retry_delay=section.retry_delay / MILLISECONDS,
        max_retries=section.max_retries,
    )


def build_markdown_settings(
    section: MarkdownSectionConfig,
    root_dir: pathlib.Path,
    *,
    force_retranslate: bool = False,
) -> MarkdownSyncSettings:
    return MarkdownSyncSettings(
        root_dir=root_dir,
        content_dir=(root_dir / section.content_dir).resolve(),
        locales=list(section.locales),
        default_locale=section.default_locale,
        exclude=list(section.exclude),
        track_changes=section.track_changes,
        force_retranslate=force_retranslate,
        batch_delay=section.batch_delay / MILLISECONDS,
        retry_delay=section.retry_delay / MILLISECONDS,
        max_retries=section.max_retries,
    )
