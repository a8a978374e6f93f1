from __future__ import annotations

from functools import lru_cache

from serve_markdown.config import AppSettings, load_settings
from serve_markdown.repositories.access_log_repository import AccessLogRepository
from serve_markdown.repositories.content_repository import ContentRepository
from serve_markdown.repositories.database import Database
from serve_markdown.repositories.site_settings_repository import SiteSettingsRepository
from serve_markdown.services.maintenance_guard import build_retention_guard, build_size_guard
from serve_markdown.services.markdown_pipeline import MarkdownPipeline
from serve_markdown.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_site_settings_repository() -> SiteSettingsRepository:
    return SiteSettingsRepository(get_settings().site_settings_path)


@lru_cache(maxsize=1)
def get_content_repository() -> ContentRepository:
    settings = get_settings()
    return ContentRepository.from_directory(settings.content_dir, site_url=settings.site_url)


@lru_cache(maxsize=1)
def get_access_log_repository() -> AccessLogRepository:
    # One guard pair per process; every request shares it.
    return AccessLogRepository(
        get_database(),
        telemetry=get_telemetry(),
        retention_guard=build_retention_guard(),
        size_guard=build_size_guard(),
    )


@lru_cache(maxsize=1)
def get_markdown_pipeline() -> MarkdownPipeline:
    return MarkdownPipeline(
        content_repository=get_content_repository(),
        access_log_repository=get_access_log_repository(),
        settings_provider=get_site_settings_repository().current,
        telemetry=get_telemetry(),
    )


def reset_cached_dependencies() -> None:
    get_markdown_pipeline.cache_clear()
    get_access_log_repository.cache_clear()
    get_content_repository.cache_clear()
    get_site_settings_repository.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
