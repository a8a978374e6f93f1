from __future__ import annotations

from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from serve_markdown.models.site_settings import parse_flag

DEFAULT_DATA_DIR = ".serve-markdown"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("site_settings_path", Path("site-settings.yaml")),
    ("content_dir", Path("content")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "admin_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{SERVE_MARKDOWN_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


class AppSettings(BaseSettings):
    """
    Runtime configuration for the Markdown gateway process.

    Everything a site owner edits at runtime (which fields appear in the
    frontmatter, exclusions, log caps) lives in the site settings document
    instead; this class only says where that document and the other state
    live, and how the process logs.
    """

    model_config = SettingsConfigDict(
        env_prefix="SERVE_MARKDOWN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the access log database, settings and content.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )
    site_settings_path: Path = Field(
        default=_default_in_data_dir(Path("site-settings.yaml")),
        description=(
            "YAML document with the site settings snapshot. "
            f"{_data_dir_default_note(Path('site-settings.yaml'))}"
        ),
    )
    content_dir: Path = Field(
        default=_default_in_data_dir(Path("content")),
        description=(
            "Directory of YAML content items (one item per file). "
            f"{_data_dir_default_note(Path('content'))}"
        ),
    )

    # Site identity.
    site_url: str = Field(
        default="http://localhost:8000",
        description="Public origin used to build permalinks and Markdown URLs.",
    )
    default_timezone: str = Field(
        default="UTC",
        description="Host-local timezone; sets the day boundary for today's access count.",
    )
    admin_enabled: bool = Field(
        default=True,
        description="Expose the /admin JSON routes (access log, settings, per-item opt-out).",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` emits structured telemetry locally; `none` disables sink output.",
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("SERVE_MARKDOWN_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("SERVE_MARKDOWN_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("site_url", mode="before")
    @classmethod
    def _normalize_site_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("SERVE_MARKDOWN_SITE_URL must be a string.")
        return value.strip().rstrip("/")

    @field_validator("default_timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "UTC"
        normalized = value.strip()
        try:
            ZoneInfo(normalized)
        except ZoneInfoNotFoundError as exc:
            raise ValueError("SERVE_MARKDOWN_DEFAULT_TIMEZONE must be a valid IANA timezone.") from exc
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return parse_flag(value, default=default_value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(**overrides: Any) -> AppSettings:
    settings = AppSettings(**overrides)
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
