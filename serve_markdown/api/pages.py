from __future__ import annotations

import html
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from serve_markdown.dependencies import get_content_repository, get_markdown_pipeline
from serve_markdown.models.content import ContentItem
from serve_markdown.repositories.content_repository import ContentRepository
from serve_markdown.services.markdown_pipeline import MarkdownPipeline

router = APIRouter()

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8" />
<title>{title}</title>
{head_links}</head>
<body>
<article>
<h1>{title}</h1>
{body}
</article>
</body>
</html>
"""


def render_page(item: ContentItem, *, discovery_link: str | None) -> str:
    return _PAGE_TEMPLATE.format(
        title=html.escape(item.title),
        head_links=f"{discovery_link}\n" if discovery_link else "",
        body=item.html,
    )


@router.get(
    "/{path:path}",
    response_class=HTMLResponse,
    include_in_schema=False,
)
def content_page(
    path: str,
    content: Annotated[ContentRepository, Depends(get_content_repository)],
    pipeline: Annotated[MarkdownPipeline, Depends(get_markdown_pipeline)],
) -> HTMLResponse:
    item_id = content.resolve_path(path)
    item = content.get(item_id) if item_id is not None else None
    if item is None:
        raise HTTPException(status_code=404, detail="Not Found")
    return HTMLResponse(render_page(item, discovery_link=pipeline.discovery_link(item)))
