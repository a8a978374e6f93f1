from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError

from serve_markdown.config import AppSettings
from serve_markdown.dependencies import (
    get_access_log_repository,
    get_content_repository,
    get_markdown_pipeline,
    get_settings,
    get_site_settings_repository,
)
from serve_markdown.models.admin_contracts import (
    AccessLogClearResponse,
    AccessLogPageResponse,
    AccessLogStatsResponse,
    MarkdownOptOutRequest,
    MarkdownOptOutResponse,
    MarkdownUrlResponse,
)
from serve_markdown.repositories.access_log_repository import AccessLogRepository
from serve_markdown.repositories.content_repository import ContentRepository
from serve_markdown.repositories.site_settings_repository import SiteSettingsRepository
from serve_markdown.services.markdown_pipeline import MarkdownPipeline

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/access-log",
    response_model=AccessLogPageResponse,
    operation_id="access_log_list",
)
def access_log_list(
    access_log: Annotated[AccessLogRepository, Depends(get_access_log_repository)],
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=200)] = 30,
    bot: Annotated[str, Query(max_length=100)] = "",
) -> AccessLogPageResponse:
    return AccessLogPageResponse.from_page(
        access_log.query(per_page=per_page, page=page, bot=bot.strip())
    )


@router.get(
    "/access-log/stats",
    response_model=AccessLogStatsResponse,
    operation_id="access_log_stats",
)
def access_log_stats(
    access_log: Annotated[AccessLogRepository, Depends(get_access_log_repository)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> AccessLogStatsResponse:
    timezone = settings.default_timezone
    return AccessLogStatsResponse.from_stats(access_log.stats(timezone=timezone), timezone=timezone)


@router.delete(
    "/access-log",
    response_model=AccessLogClearResponse,
    operation_id="access_log_clear",
)
def access_log_clear(
    access_log: Annotated[AccessLogRepository, Depends(get_access_log_repository)],
) -> AccessLogClearResponse:
    return AccessLogClearResponse(deleted=access_log.clear_all())


@router.get("/settings", operation_id="site_settings_get")
def site_settings_get(
    repository: Annotated[SiteSettingsRepository, Depends(get_site_settings_repository)],
) -> dict[str, Any]:
    return repository.current().to_document()


@router.put("/settings", operation_id="site_settings_replace")
def site_settings_replace(
    repository: Annotated[SiteSettingsRepository, Depends(get_site_settings_repository)],
    document: Annotated[dict[str, Any], Body()],
) -> dict[str, Any]:
    try:
        updated = repository.replace(document)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc
    return updated.to_document()


@router.get(
    "/items/{item_id}/markdown-url",
    response_model=MarkdownUrlResponse,
    operation_id="item_markdown_url",
)
def item_markdown_url(
    item_id: int,
    content: Annotated[ContentRepository, Depends(get_content_repository)],
    pipeline: Annotated[MarkdownPipeline, Depends(get_markdown_pipeline)],
    site_settings: Annotated[SiteSettingsRepository, Depends(get_site_settings_repository)],
) -> MarkdownUrlResponse:
    item = content.get(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Unknown item: {item_id}")
    reason = pipeline.check_eligibility(item, site_settings.current())
    return MarkdownUrlResponse(
        item_id=item.item_id,
        permalink=content.permalink(item),
        markdown_url=content.markdown_url(item),
        servable=reason is None,
        reason=reason,
    )


@router.put(
    "/items/{item_id}/markdown-disabled",
    response_model=MarkdownOptOutResponse,
    operation_id="item_markdown_disabled",
)
def item_markdown_disabled(
    item_id: int,
    request: MarkdownOptOutRequest,
    content: Annotated[ContentRepository, Depends(get_content_repository)],
) -> MarkdownOptOutResponse:
    updated = content.set_markdown_disabled(item_id, request.disabled)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Unknown item: {item_id}")
    return MarkdownOptOutResponse(item_id=updated.item_id, markdown_disabled=updated.markdown_disabled)
