from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from serve_markdown.repositories.access_log_repository import AccessLogPolicy

FRONTMATTER_FLAGS: tuple[str, ...] = (
    "fm_url",
    "fm_title",
    "fm_author",
    "fm_date",
    "fm_modified",
    "fm_type",
    "fm_summary",
    "fm_categories",
    "fm_tags",
    "fm_image",
    "fm_published",
)
_FEATURE_FLAGS: tuple[str, ...] = (
    "enable_content_negotiation",
    "enable_md_url",
    "enable_discovery_link",
    "enable_log",
)
_CAP_FIELDS: tuple[str, ...] = ("log_retention_days", "log_max_entries", "log_max_size_mb")


def parse_flag(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    return default


def absolute_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, float):
        return abs(int(value))
    if isinstance(value, str):
        try:
            return abs(int(float(value.strip())))
        except ValueError:
            return None
    return None


def _split_lines(raw: str) -> tuple[str, ...]:
    return tuple(line.strip() for line in raw.splitlines() if line.strip())


class SiteSettings(BaseModel):
    """
    Per-site Markdown serving options.

    Every field has a default, so an empty document is a valid configuration.
    Values are coerced once when the snapshot is built: flags accept the usual
    checkbox spellings, caps are clamped to non-negative integers and term IDs
    that are not numbers are dropped.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Resolution paths and discovery.
    enable_content_negotiation: bool = True
    enable_md_url: bool = True
    enable_discovery_link: bool = True
    post_types: tuple[str, ...] = ("post", "page")

    # Frontmatter fields.
    fm_url: bool = True
    fm_title: bool = True
    fm_author: bool = True
    fm_date: bool = True
    fm_modified: bool = True
    fm_type: bool = True
    fm_summary: bool = True
    fm_categories: bool = True
    fm_tags: bool = True
    fm_image: bool = True
    fm_published: bool = True
    custom_fields: str = Field(
        default="",
        description="Newline-separated `key: value` lines appended to every frontmatter block.",
    )
    meta_keys: str = Field(
        default="",
        description="Newline-separated item meta keys copied into frontmatter when set.",
    )

    # Exclusions (term IDs).
    exclude_categories: frozenset[int] = frozenset()
    exclude_tags: frozenset[int] = frozenset()

    # Access log retention and caps.
    enable_log: bool = True
    log_retention_days: int = 30
    log_max_entries: int = 10_000
    log_max_size_mb: int = 50

    @field_validator(*_FEATURE_FLAGS, *FRONTMATTER_FLAGS, mode="before")
    @classmethod
    def _coerce_flags(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return parse_flag(value, default=default_value)

    @field_validator(*_CAP_FIELDS, mode="before")
    @classmethod
    def _clamp_caps(cls, value: Any, info: ValidationInfo) -> int:
        field_name = info.field_name
        assert field_name is not None
        clamped = absolute_int(value)
        if clamped is None:
            default_value = cls.model_fields[field_name].default
            assert isinstance(default_value, int)
            return default_value
        return clamped

    @field_validator("exclude_categories", "exclude_tags", mode="before")
    @classmethod
    def _normalize_term_ids(cls, value: Any) -> frozenset[int]:
        if value is None or isinstance(value, str | bytes):
            return frozenset()
        if not isinstance(value, list | tuple | set | frozenset):
            return frozenset()
        term_ids = (absolute_int(item) for item in value)
        return frozenset(term_id for term_id in term_ids if term_id)

    @field_validator("post_types", mode="before")
    @classmethod
    def _normalize_post_types(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list | tuple | set | frozenset):
            return ()
        keys: list[str] = []
        for item in value:
            if not isinstance(item, str):
                continue
            key = "".join(ch for ch in item.strip().lower() if ch.isalnum() or ch in "_-")
            if key and key not in keys:
                keys.append(key)
        return tuple(keys)

    @field_validator("custom_fields", "meta_keys", mode="before")
    @classmethod
    def _normalize_text_areas(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list | tuple):
            return "\n".join(str(item) for item in value)
        return str(value)

    @property
    def custom_field_lines(self) -> tuple[str, ...]:
        return _split_lines(self.custom_fields)

    @property
    def meta_key_list(self) -> tuple[str, ...]:
        return _split_lines(self.meta_keys)

    def log_policy(self) -> AccessLogPolicy:
        return AccessLogPolicy(
            enabled=self.enable_log,
            retention_days=self.log_retention_days,
            max_entries=self.log_max_entries,
            max_size_mb=self.log_max_size_mb,
        )

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(mode="json")
        document["exclude_categories"] = sorted(self.exclude_categories)
        document["exclude_tags"] = sorted(self.exclude_tags)
        document["post_types"] = list(self.post_types)
        return document
