from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from serve_markdown.models.content import ContentItem
from serve_markdown.models.site_settings import SiteSettings
from serve_markdown.services.markup_transformer import strip_tags
from serve_markdown.services.metadata_serializer import serialize_metadata

FRONTMATTER_DELIMITER = "---\n"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="seconds")


def _is_empty_meta_value(value: Any) -> bool:
    return value is None or value is False or value == "" or value == [] or value == {}


def parse_custom_fields(lines: tuple[str, ...]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in lines:
        key, separator, value = line.partition(":")
        if not separator or not key.strip():
            continue
        fields[key.strip()] = value.strip()
    return fields


def build_frontmatter(
    item: ContentItem,
    settings: SiteSettings,
    *,
    permalink: str,
) -> dict[str, Any]:
    """Collect frontmatter keys in their fixed output order.

    A key is present only when its flag is on and the item has a value for
    it. Custom static fields and meta keys come last and may overwrite a
    built-in key in place.
    """
    metadata: dict[str, Any] = {}

    if settings.fm_url and permalink:
        metadata["url"] = permalink
    if settings.fm_title and item.title:
        metadata["title"] = item.title
    if settings.fm_author and item.author is not None:
        metadata["author"] = {"name": item.author.name, "url": item.author.url}
    if settings.fm_date and item.published_at is not None:
        metadata["date"] = _iso(item.published_at)
    if settings.fm_modified and item.modified_at is not None:
        metadata["modified"] = _iso(item.modified_at)
    if settings.fm_type and item.item_type:
        metadata["type"] = item.item_type
    summary = strip_tags(item.excerpt).strip()
    if settings.fm_summary and summary:
        metadata["summary"] = summary
    if settings.fm_categories and item.categories:
        metadata["categories"] = [term.name for term in item.categories]
    if settings.fm_tags and item.tags:
        metadata["tags"] = [term.name for term in item.tags]
    if settings.fm_image and item.image_url:
        metadata["image"] = item.image_url
    if settings.fm_published:
        metadata["published"] = item.is_published

    metadata.update(parse_custom_fields(settings.custom_field_lines))

    for meta_key in settings.meta_key_list:
        value = item.meta.get(meta_key)
        if not _is_empty_meta_value(value):
            metadata[meta_key] = value

    return metadata


def render_frontmatter_block(metadata: Mapping[str, Any]) -> str:
    if not metadata:
        return ""
    return f"{FRONTMATTER_DELIMITER}{serialize_metadata(metadata)}{FRONTMATTER_DELIMITER}\n"
