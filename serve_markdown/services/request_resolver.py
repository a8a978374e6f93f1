from __future__ import annotations

import re
from dataclasses import dataclass

from serve_markdown.models.site_settings import SiteSettings
from serve_markdown.repositories.access_log_repository import TriggerMethod
from serve_markdown.repositories.content_repository import ContentRepository

MARKDOWN_SUFFIX = ".md"
MARKDOWN_MEDIA_TYPE = "text/markdown"
_ZERO_QUALITY_PATTERN = re.compile(r"^q\s*=\s*0(\.0{0,3})?$")


@dataclass(frozen=True)
class MarkdownMatch:
    """A request that asked for Markdown, and the item it addresses (if any)."""

    method: TriggerMethod
    item_id: int | None


def strip_query_string(path: str) -> str:
    return path.split("?", 1)[0]


def markdown_source_path(path: str) -> str | None:
    """Path of the item behind a `.md` URL, or None when there is no suffix."""
    clean_path = strip_query_string(path)
    if not clean_path.endswith(MARKDOWN_SUFFIX):
        return None
    return clean_path[: -len(MARKDOWN_SUFFIX)]


def accepts_markdown(accept_header: str | None) -> bool:
    if not accept_header:
        return False

    for media_range in accept_header.split(","):
        media_type, *parameters = media_range.split(";")
        if media_type.strip().lower() != MARKDOWN_MEDIA_TYPE:
            continue

        # Only the first text/markdown entry counts.
        for parameter in parameters:
            if _ZERO_QUALITY_PATTERN.match(parameter.strip().lower()):
                return False
        return True

    return False


class RequestResolver:
    def __init__(self, content_repository: ContentRepository) -> None:
        self._content_repository = content_repository

    def resolve_markdown_url(self, path: str, settings: SiteSettings) -> int | None:
        if not settings.enable_md_url:
            return None
        source_path = markdown_source_path(path)
        if source_path is None:
            return None
        return self._content_repository.resolve_path(source_path)

    def resolve(
        self,
        *,
        path: str,
        accept: str | None,
        settings: SiteSettings,
    ) -> MarkdownMatch | None:
        url_item_id = self.resolve_markdown_url(path, settings)
        if url_item_id is not None:
            return MarkdownMatch(method="url", item_id=url_item_id)

        if settings.enable_content_negotiation and accepts_markdown(accept):
            item_id = self._content_repository.resolve_path(strip_query_string(path))
            return MarkdownMatch(method="header", item_id=item_id)

        return None
