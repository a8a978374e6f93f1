from __future__ import annotations

import html
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from serve_markdown.models.content import ContentItem
from serve_markdown.models.site_settings import SiteSettings
from serve_markdown.repositories.access_log_repository import (
    AccessLogEntry,
    AccessLogRepository,
    TriggerMethod,
)
from serve_markdown.repositories.content_repository import ContentRepository
from serve_markdown.services.frontmatter_builder import (
    build_frontmatter,
    render_frontmatter_block,
)
from serve_markdown.services.markup_transformer import html_to_markdown
from serve_markdown.services.request_resolver import RequestResolver
from serve_markdown.telemetry import TelemetryClient

LOGGER = logging.getLogger("serve_markdown.pipeline")

MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"
NO_CACHE_HEADER_VALUE = "no-cache, no-store, must-revalidate"

RejectionReason = Literal[
    "item_not_found",
    "type_disabled",
    "opted_out",
    "excluded_term",
    "access_gated",
]

HtmlRenderer = Callable[[ContentItem], str]
SettingsProvider = Callable[[], SiteSettings]


def _render_stored_html(item: ContentItem) -> str:
    return item.html


@dataclass(frozen=True)
class MarkdownRequest:
    path: str
    accept: str | None = None
    user_agent: str = ""
    client_ip: str | None = None


@dataclass(frozen=True)
class MarkdownDocument:
    item_id: int
    method: TriggerMethod
    body: str
    status_code: int = 200

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": MARKDOWN_CONTENT_TYPE,
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": NO_CACHE_HEADER_VALUE,
        }


class MarkdownPipeline:
    def __init__(
        self,
        *,
        content_repository: ContentRepository,
        access_log_repository: AccessLogRepository,
        settings_provider: SettingsProvider,
        render_html: HtmlRenderer | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._content_repository = content_repository
        self._access_log_repository = access_log_repository
        self._settings_provider = settings_provider
        self._render_html = render_html if render_html is not None else _render_stored_html
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._resolver = RequestResolver(content_repository)

    def handle(self, request: MarkdownRequest) -> MarkdownDocument | None:
        """Serve `request` as Markdown, or return None to let the host handle it."""
        settings = self._settings_provider()
        match = self._resolver.resolve(
            path=request.path,
            accept=request.accept,
            settings=settings,
        )
        if match is None:
            return None

        item = self._content_repository.get(match.item_id) if match.item_id is not None else None
        rejection = self.check_eligibility(item, settings)
        if rejection is not None or item is None:
            self._telemetry.emit(
                "markdown.rejected",
                method=match.method,
                item_id=match.item_id,
                reason=rejection,
            )
            return None

        with self._telemetry.timed(
            "markdown.served", method=match.method, item_id=item.item_id
        ) as outcome:
            body = self.render_document(item, settings)
            outcome["document_bytes"] = len(body.encode("utf-8"))

        self._record_access(request, item=item, method=match.method, settings=settings)
        return MarkdownDocument(item_id=item.item_id, method=match.method, body=body)

    def check_eligibility(
        self,
        item: ContentItem | None,
        settings: SiteSettings,
    ) -> RejectionReason | None:
        if item is None:
            return "item_not_found"
        if item.item_type not in settings.post_types:
            return "type_disabled"
        if item.markdown_disabled:
            return "opted_out"
        if self.is_excluded(item, settings):
            return "excluded_term"
        if item.access_gated:
            return "access_gated"
        return None

    def is_excluded(self, item: ContentItem, settings: SiteSettings) -> bool:
        if settings.exclude_categories and (
            self._content_repository.category_ids(item.item_id) & settings.exclude_categories
        ):
            return True
        if settings.exclude_tags and (
            self._content_repository.tag_ids(item.item_id) & settings.exclude_tags
        ):
            return True
        return False

    def render_document(self, item: ContentItem, settings: SiteSettings) -> str:
        metadata = build_frontmatter(
            item,
            settings,
            permalink=self._content_repository.permalink(item),
        )
        body = html_to_markdown(self._render_html(item), item.title).rstrip("\n")
        return f"{render_frontmatter_block(metadata)}{body}\n"

    def discovery_link(self, item: ContentItem, settings: SiteSettings | None = None) -> str | None:
        """`<link rel="alternate">` tag advertising the Markdown URL, when servable."""
        settings = settings if settings is not None else self._settings_provider()
        if not settings.enable_discovery_link:
            return None
        if self.check_eligibility(item, settings) is not None:
            return None
        return (
            '<link rel="alternate" type="text/markdown" '
            f'href="{html.escape(self._content_repository.markdown_url(item), quote=True)}" '
            f'title="{html.escape(item.title, quote=True)} (Markdown)" />'
        )

    def _record_access(
        self,
        request: MarkdownRequest,
        *,
        item: ContentItem,
        method: TriggerMethod,
        settings: SiteSettings,
    ) -> None:
        try:
            self._access_log_repository.append(
                AccessLogEntry(
                    item_id=item.item_id,
                    url=request.path,
                    user_agent=request.user_agent,
                    method=method,
                    ip_address=request.client_ip or "",
                ),
                policy=settings.log_policy(),
            )
        except sqlite3.Error as exc:
            LOGGER.exception("access log append failed item_id=%s", item.item_id)
            self._telemetry.emit(
                "access_log.append_failed",
                item_id=item.item_id,
                error_type=type(exc).__name__,
            )
