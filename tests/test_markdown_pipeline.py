from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from serve_markdown.models.content import ContentItem, TaxonomyTerm
from serve_markdown.models.site_settings import FRONTMATTER_FLAGS, SiteSettings
from serve_markdown.repositories.access_log_repository import AccessLogRepository
from serve_markdown.repositories.content_repository import ContentRepository
from serve_markdown.repositories.database import Database
from serve_markdown.services.markdown_pipeline import (
    MARKDOWN_CONTENT_TYPE,
    MarkdownPipeline,
    MarkdownRequest,
)
from serve_markdown.telemetry import TelemetryClient


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def _title_only() -> SiteSettings:
    return SiteSettings.model_validate({flag: flag == "fm_title" for flag in FRONTMATTER_FLAGS})


def _no_frontmatter() -> SiteSettings:
    return SiteSettings.model_validate({flag: False for flag in FRONTMATTER_FLAGS})


def _content() -> ContentRepository:
    return ContentRepository(
        [
            ContentItem(
                item_id=7,
                path="/hello-world/",
                title="Hi",
                html="<p>Hello <strong>World</strong></p>",
                categories=(TaxonomyTerm(3, "News"),),
                tags=(TaxonomyTerm(11, "greeting"),),
            ),
            ContentItem(item_id=8, path="/about/", title="About", html="<p>About</p>", item_type="page"),
            ContentItem(item_id=9, path="/private/", title="Private", html="<p>x</p>", access_gated=True),
            ContentItem(item_id=10, path="/opted-out/", title="Out", html="<p>x</p>", markdown_disabled=True),
            ContentItem(item_id=11, path="/widget/", title="Widget", html="<p>x</p>", item_type="product"),
        ],
        site_url="https://example.test",
    )


def _pipeline(
    database: Database,
    settings: SiteSettings,
    *,
    telemetry: TelemetryClient | None = None,
    content: ContentRepository | None = None,
) -> MarkdownPipeline:
    return MarkdownPipeline(
        content_repository=content if content is not None else _content(),
        access_log_repository=AccessLogRepository(database),
        settings_provider=lambda: settings,
        telemetry=telemetry,
    )


def test_end_to_end_title_only_document(database: Database) -> None:
    pipeline = _pipeline(database, _title_only())

    document = pipeline.handle(MarkdownRequest(path="/hello-world.md", user_agent="GPTBot/1.1"))

    assert document is not None
    assert document.body == "---\ntitle: Hi\n---\n\n# Hi\n\nHello **World**\n"
    assert document.method == "url"
    assert document.status_code == 200
    assert document.headers["Content-Type"] == MARKDOWN_CONTENT_TYPE
    assert document.headers["X-Content-Type-Options"] == "nosniff"
    assert "no-cache" in document.headers["Cache-Control"]


def test_document_without_frontmatter_has_no_delimiters(database: Database) -> None:
    pipeline = _pipeline(database, _no_frontmatter())

    document = pipeline.handle(MarkdownRequest(path="/hello-world/", accept="text/markdown"))

    assert document is not None
    assert document.method == "header"
    assert "---" not in document.body
    assert document.body == "# Hi\n\nHello **World**\n"


def test_document_with_frontmatter_opens_and_closes_block(database: Database) -> None:
    document = _pipeline(database, SiteSettings()).handle(MarkdownRequest(path="/about.md"))

    assert document is not None
    assert document.body.startswith("---\nurl: 'https://example.test/about/'\n")
    head, separator, _ = document.body.partition("\n---\n\n")
    assert separator
    assert "type: page" in head
    assert "published: true" in head


def test_serving_writes_one_log_entry(database: Database) -> None:
    pipeline = _pipeline(database, _title_only())

    pipeline.handle(
        MarkdownRequest(path="/hello-world.md", user_agent="ClaudeBot/1.0", client_ip="198.51.100.7")
    )

    rows = AccessLogRepository(database).query().rows
    assert len(rows) == 1
    assert rows[0].item_id == 7
    assert rows[0].url == "/hello-world.md"
    assert rows[0].bot_name == "ClaudeBot"
    assert rows[0].ip_address == "198.51.100.7"


def test_rejections_fall_through_without_logging(database: Database) -> None:
    sink = _CaptureSink()
    pipeline = _pipeline(
        database,
        SiteSettings(post_types=("post",)),
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )

    assert pipeline.handle(MarkdownRequest(path="/about.md")) is None
    assert pipeline.handle(MarkdownRequest(path="/private.md")) is None
    assert pipeline.handle(MarkdownRequest(path="/opted-out.md")) is None
    assert pipeline.handle(MarkdownRequest(path="/widget.md")) is None
    assert pipeline.handle(MarkdownRequest(path="/nowhere/", accept="text/markdown")) is None
    assert pipeline.handle(MarkdownRequest(path="/hello-world/")) is None

    assert AccessLogRepository(database).count() == 0
    reasons = [attrs["reason"] for name, attrs in sink.events if name == "markdown.rejected"]
    assert reasons == ["type_disabled", "access_gated", "opted_out", "type_disabled", "item_not_found"]


def test_eligibility_gates_in_order(database: Database) -> None:
    content = _content()
    pipeline = _pipeline(database, SiteSettings(), content=content)
    gated_and_opted_out = ContentItem(
        item_id=99,
        path="/both/",
        title="Both",
        html="",
        access_gated=True,
        markdown_disabled=True,
    )

    assert pipeline.check_eligibility(None, SiteSettings()) == "item_not_found"
    assert pipeline.check_eligibility(gated_and_opted_out, SiteSettings()) == "opted_out"
    assert pipeline.check_eligibility(content.get(7), SiteSettings()) is None


def test_tag_exclusion_alone_excludes(database: Database) -> None:
    settings = SiteSettings(exclude_categories=frozenset({99}), exclude_tags=frozenset({11}))
    pipeline = _pipeline(database, settings)

    assert pipeline.handle(MarkdownRequest(path="/hello-world.md")) is None
    assert pipeline.check_eligibility(_content().get(7), settings) == "excluded_term"


def test_category_exclusion_alone_excludes(database: Database) -> None:
    settings = SiteSettings(exclude_categories=frozenset({3}))
    assert _pipeline(database, settings).handle(MarkdownRequest(path="/hello-world.md")) is None


def test_q_zero_accept_header_does_not_serve(database: Database) -> None:
    pipeline = _pipeline(database, SiteSettings())
    assert pipeline.handle(MarkdownRequest(path="/hello-world/", accept="text/markdown;q=0")) is None


def test_store_failure_does_not_abort_serving(database: Database) -> None:
    sink = _CaptureSink()
    database.drop_access_log()
    pipeline = _pipeline(
        database,
        _title_only(),
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )

    document = pipeline.handle(MarkdownRequest(path="/hello-world.md"))

    assert document is not None
    assert document.body.endswith("Hello **World**\n")
    failures = [attrs for name, attrs in sink.events if name == "access_log.append_failed"]
    assert failures == [{"item_id": 7, "error_type": "OperationalError"}]


def test_logging_disabled_serves_without_entries(database: Database) -> None:
    pipeline = _pipeline(database, SiteSettings(enable_log=False))

    assert pipeline.handle(MarkdownRequest(path="/hello-world.md")) is not None
    assert AccessLogRepository(database).count() == 0


def test_served_event_reports_size_not_content(database: Database) -> None:
    sink = _CaptureSink()
    pipeline = _pipeline(
        database,
        _title_only(),
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )

    document = pipeline.handle(MarkdownRequest(path="/hello-world.md"))

    assert document is not None
    served = [attrs for name, attrs in sink.events if name == "markdown.served"]
    assert served[0]["document_bytes"] == len(document.body.encode("utf-8"))
    assert served[0]["method"] == "url"


def test_render_hook_supplies_html(database: Database) -> None:
    pipeline = MarkdownPipeline(
        content_repository=_content(),
        access_log_repository=AccessLogRepository(database),
        settings_provider=_no_frontmatter,
        render_html=lambda item: f"<h2>{item.title} rendered</h2>",
    )

    document = pipeline.handle(MarkdownRequest(path="/hello-world.md"))

    assert document is not None
    assert document.body == "# Hi\n\n## Hi rendered\n"


def test_discovery_link(database: Database) -> None:
    content = _content()
    pipeline = _pipeline(database, SiteSettings(), content=content)
    item = content.get(7)
    private = content.get(9)
    assert item is not None
    assert private is not None

    link = pipeline.discovery_link(item)

    assert link == (
        '<link rel="alternate" type="text/markdown" '
        'href="https://example.test/hello-world.md" title="Hi (Markdown)" />'
    )
    assert pipeline.discovery_link(private) is None
    assert pipeline.discovery_link(item, SiteSettings(enable_discovery_link=False)) is None
