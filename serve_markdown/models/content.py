from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PUBLISHED_STATUS = "publish"


@dataclass(frozen=True)
class TaxonomyTerm:
    term_id: int
    name: str


@dataclass(frozen=True)
class ContentAuthor:
    name: str
    url: str = ""


@dataclass(frozen=True)
class ContentItem:
    item_id: int
    path: str
    title: str
    html: str
    item_type: str = "post"
    status: str = PUBLISHED_STATUS
    excerpt: str = ""
    author: ContentAuthor | None = None
    published_at: datetime | None = None
    modified_at: datetime | None = None
    categories: tuple[TaxonomyTerm, ...] = ()
    tags: tuple[TaxonomyTerm, ...] = ()
    image_url: str | None = None
    access_gated: bool = False
    markdown_disabled: bool = False
    meta: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED_STATUS

    @property
    def category_ids(self) -> frozenset[int]:
        return frozenset(term.term_id for term in self.categories)

    @property
    def tag_ids(self) -> frozenset[int]:
        return frozenset(term.term_id for term in self.tags)
