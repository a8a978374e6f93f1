from __future__ import annotations

from datetime import UTC, datetime

from serve_markdown.models.content import ContentAuthor, ContentItem, TaxonomyTerm
from serve_markdown.models.site_settings import FRONTMATTER_FLAGS, SiteSettings
from serve_markdown.services.frontmatter_builder import (
    build_frontmatter,
    parse_custom_fields,
    render_frontmatter_block,
)

PERMALINK = "https://example.test/hello-world/"


def _item(**overrides: object) -> ContentItem:
    fields: dict[str, object] = {
        "item_id": 7,
        "path": "/hello-world/",
        "title": "Hi",
        "html": "<p>Hello</p>",
        "excerpt": "<p>Short <em>intro</em></p>",
        "author": ContentAuthor(name="Ada", url="https://example.test/author/ada/"),
        "published_at": datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=UTC),
        "modified_at": datetime(2024, 3, 2, 10, 0, tzinfo=UTC),
        "categories": (TaxonomyTerm(3, "News"),),
        "tags": (TaxonomyTerm(11, "greeting"), TaxonomyTerm(12, "intro")),
        "image_url": "https://example.test/hello.png",
        "meta": {"reading_time": 2, "empty_field": "", "flag_off": False},
    }
    fields.update(overrides)
    return ContentItem(**fields)  # type: ignore[arg-type]


def _only(*enabled: str) -> SiteSettings:
    return SiteSettings.model_validate({flag: flag in enabled for flag in FRONTMATTER_FLAGS})


def test_all_fields_in_fixed_order() -> None:
    metadata = build_frontmatter(_item(), SiteSettings(), permalink=PERMALINK)

    assert list(metadata) == [
        "url",
        "title",
        "author",
        "date",
        "modified",
        "type",
        "summary",
        "categories",
        "tags",
        "image",
        "published",
    ]
    assert metadata["author"] == {"name": "Ada", "url": "https://example.test/author/ada/"}
    assert metadata["date"] == "2024-03-01T09:30:15+00:00"
    assert metadata["summary"] == "Short intro"
    assert metadata["tags"] == ["greeting", "intro"]
    assert metadata["published"] is True


def test_disabled_flags_and_missing_values_are_omitted() -> None:
    item = _item(author=None, image_url=None, excerpt="  ", status="draft")

    metadata = build_frontmatter(item, _only("fm_author", "fm_image"), permalink=PERMALINK)

    assert metadata == {}

    metadata = build_frontmatter(
        item,
        _only("fm_title", "fm_author", "fm_image", "fm_summary", "fm_published"),
        permalink=PERMALINK,
    )
    assert metadata == {"title": "Hi", "published": False}


def test_custom_fields_and_meta_keys_come_last() -> None:
    settings = SiteSettings(
        custom_fields="license: CC-BY\nnot a field\n: no key\nsource: blog: mirror",
        meta_keys="reading_time\nempty_field\nflag_off\nmissing",
    )

    metadata = build_frontmatter(_item(), settings, permalink=PERMALINK)

    assert list(metadata)[-3:] == ["license", "source", "reading_time"]
    assert metadata["license"] == "CC-BY"
    assert metadata["source"] == "blog: mirror"
    assert metadata["reading_time"] == 2
    assert "empty_field" not in metadata
    assert "flag_off" not in metadata


def test_custom_field_overrides_builtin_in_place() -> None:
    settings = _only("fm_title", "fm_type").model_copy(update={"custom_fields": "title: Other"})

    metadata = build_frontmatter(_item(), settings, permalink=PERMALINK)

    assert list(metadata) == ["title", "type"]
    assert metadata["title"] == "Other"


def test_parse_custom_fields() -> None:
    assert parse_custom_fields(("a: 1", "b:2", "junk", " : x")) == {"a": "1", "b": "2"}


def test_render_frontmatter_block() -> None:
    assert render_frontmatter_block({}) == ""
    assert render_frontmatter_block({"title": "Hi"}) == "---\ntitle: Hi\n---\n\n"


def test_markup_only_excerpt_has_no_summary() -> None:
    item = _item(excerpt="<p> </p>")

    metadata = build_frontmatter(item, _only("fm_summary"), permalink=PERMALINK)

    assert metadata == {}
    assert render_frontmatter_block(metadata) == ""
