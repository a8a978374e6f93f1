from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from serve_markdown.repositories.access_log_repository import (
    AccessLogPage,
    AccessLogRecord,
    AccessLogStats,
)


class AccessLogRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    item_id: int
    url: str
    user_agent: str
    bot_name: str
    method: str
    ip_address: str
    created_at: str

    @classmethod
    def from_record(cls, record: AccessLogRecord) -> AccessLogRow:
        return cls(
            id=record.entry_id,
            item_id=record.item_id,
            url=record.url,
            user_agent=record.user_agent,
            bot_name=record.bot_name,
            method=record.method,
            ip_address=record.ip_address,
            created_at=record.created_at,
        )


class AccessLogPageResponse(BaseModel):
    rows: list[AccessLogRow]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def from_page(cls, page: AccessLogPage) -> AccessLogPageResponse:
        return cls(
            rows=[AccessLogRow.from_record(record) for record in page.rows],
            total=page.total,
            page=page.page,
            per_page=page.per_page,
            pages=page.pages,
        )


class BotCountResponse(BaseModel):
    bot_name: str
    count: int


class AccessLogStatsResponse(BaseModel):
    total: int
    today: int
    timezone: str
    bots: list[BotCountResponse]

    @classmethod
    def from_stats(cls, stats: AccessLogStats, *, timezone: str) -> AccessLogStatsResponse:
        return cls(
            total=stats.total,
            today=stats.today,
            timezone=timezone,
            bots=[BotCountResponse(bot_name=bot.bot_name, count=bot.count) for bot in stats.bots],
        )


class AccessLogClearResponse(BaseModel):
    deleted: int


class MarkdownUrlResponse(BaseModel):
    item_id: int
    permalink: str
    markdown_url: str
    servable: bool
    reason: str | None = None


class MarkdownOptOutRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    disabled: bool = Field(description="True opts the item out of Markdown serving.")


class MarkdownOptOutResponse(BaseModel):
    item_id: int
    markdown_disabled: bool
