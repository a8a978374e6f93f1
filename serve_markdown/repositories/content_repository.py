from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import UTC, date, datetime
from pathlib import Path
from threading import Lock
from typing import Any, cast

import yaml

from serve_markdown.models.content import ContentAuthor, ContentItem, TaxonomyTerm

LOGGER = logging.getLogger("serve_markdown.content")

CONTENT_FILE_SUFFIXES: frozenset[str] = frozenset({".yaml", ".yml"})


def normalize_path(path: str) -> str:
    """Canonical lookup key: leading slash, no trailing slash, no query."""
    cleaned = path.split("?", 1)[0].split("#", 1)[0].strip()
    if not cleaned.startswith("/"):
        cleaned = f"/{cleaned}"
    if len(cleaned) > 1:
        cleaned = cleaned.rstrip("/") or "/"
    return cleaned


class ContentRepository:
    def __init__(self, items: Iterable[ContentItem] = (), *, site_url: str = "") -> None:
        self._site_url = site_url.rstrip("/")
        self._lock = Lock()
        self._items: dict[int, ContentItem] = {}
        self._paths: dict[str, int] = {}
        self._sources: dict[int, Path] = {}
        for item in items:
            self.add(item)

    @classmethod
    def from_directory(cls, directory: Path, *, site_url: str = "") -> ContentRepository:
        repository = cls(site_url=site_url)
        if not directory.is_dir():
            LOGGER.warning("content directory not found path=%s", directory)
            return repository

        for file_path in sorted(directory.iterdir()):
            if file_path.suffix.lower() not in CONTENT_FILE_SUFFIXES or not file_path.is_file():
                continue
            try:
                with file_path.open(encoding="utf-8") as handle:
                    raw = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                LOGGER.warning("skipping unparsable content file path=%s error=%s", file_path, exc)
                continue
            if not isinstance(raw, dict):
                LOGGER.warning("skipping content file without a mapping path=%s", file_path)
                continue
            try:
                item = content_item_from_document(cast(dict[str, Any], raw))
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("skipping invalid content file path=%s error=%r", file_path, exc)
                continue
            repository.add(item, source=file_path)

        LOGGER.info("content loaded items=%s path=%s", len(repository), directory)
        return repository

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, item: ContentItem, *, source: Path | None = None) -> None:
        with self._lock:
            if source is not None:
                self._sources[item.item_id] = source
            previous = self._items.get(item.item_id)
            if previous is not None:
                self._paths.pop(normalize_path(previous.path), None)
            self._items[item.item_id] = item
            self._paths[normalize_path(item.path)] = item.item_id

    def get(self, item_id: int) -> ContentItem | None:
        with self._lock:
            return self._items.get(item_id)

    def list_items(self) -> list[ContentItem]:
        with self._lock:
            return sorted(self._items.values(), key=lambda item: item.item_id)

    def resolve_path(self, path: str) -> int | None:
        with self._lock:
            return self._paths.get(normalize_path(path))

    def category_ids(self, item_id: int) -> frozenset[int]:
        item = self.get(item_id)
        return item.category_ids if item is not None else frozenset()

    def tag_ids(self, item_id: int) -> frozenset[int]:
        item = self.get(item_id)
        return item.tag_ids if item is not None else frozenset()

    def set_markdown_disabled(self, item_id: int, disabled: bool) -> ContentItem | None:
        """Flip the per-item opt-out and write it back to the item's document.

        Items added without a source file only change in memory.
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            source = self._sources.get(item_id)
            if source is not None:
                _write_document_field(source, "markdown_disabled", disabled)
            updated = replace(item, markdown_disabled=disabled)
            self._items[item_id] = updated
        LOGGER.info("markdown opt-out updated item_id=%s disabled=%s", item_id, disabled)
        return updated

    def permalink(self, item: ContentItem) -> str:
        return f"{self._site_url}{item.path}"

    def markdown_url(self, item: ContentItem) -> str:
        permalink = self.permalink(item)
        if permalink.endswith("/"):
            return f"{permalink.rstrip('/')}.md"
        return f"{permalink}.md"


def content_item_from_document(document: Mapping[str, Any]) -> ContentItem:
    item_id = int(document["id"])
    raw_meta = document.get("meta")
    return ContentItem(
        item_id=item_id,
        path=str(document.get("path") or f"/p/{item_id}/"),
        title=str(document.get("title") or ""),
        html=str(document.get("html") or ""),
        item_type=str(document.get("type") or "post"),
        status=str(document.get("status") or "publish"),
        excerpt=str(document.get("excerpt") or ""),
        author=_author_from(document.get("author")),
        published_at=_datetime_from(document.get("date")),
        modified_at=_datetime_from(document.get("modified")),
        categories=_terms_from(document.get("categories")),
        tags=_terms_from(document.get("tags")),
        image_url=_text_or_none(document.get("image")),
        access_gated=bool(document.get("access_gated") or document.get("password")),
        markdown_disabled=bool(document.get("markdown_disabled", False)),
        meta=dict(cast(dict[str, Any], raw_meta)) if isinstance(raw_meta, dict) else {},
    )


def _write_document_field(path: Path, key: str, value: object) -> None:
    with path.open(encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    document = cast(dict[str, Any], raw) if isinstance(raw, dict) else {}
    document[key] = value
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(document, handle, sort_keys=False, allow_unicode=True)


def _text_or_none(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _author_from(value: object) -> ContentAuthor | None:
    if isinstance(value, str) and value.strip():
        return ContentAuthor(name=value.strip())
    if not isinstance(value, dict):
        return None
    raw = cast(dict[str, Any], value)
    name = _text_or_none(raw.get("name"))
    if name is None:
        return None
    return ContentAuthor(name=name, url=_text_or_none(raw.get("url")) or "")


def _datetime_from(value: object) -> datetime | None:
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip())
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _terms_from(value: object) -> tuple[TaxonomyTerm, ...]:
    if not isinstance(value, list):
        return ()
    terms: list[TaxonomyTerm] = []
    for raw in cast(list[object], value):
        if not isinstance(raw, dict):
            continue
        entry = cast(dict[str, Any], raw)
        name = _text_or_none(entry.get("name"))
        if name is None or entry.get("id") is None:
            continue
        terms.append(TaxonomyTerm(term_id=int(entry["id"]), name=name))
    return tuple(terms)
