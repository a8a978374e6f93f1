from __future__ import annotations

import ipaddress
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from serve_markdown.repositories.common import to_utc_iso, utc_now
from serve_markdown.repositories.database import ACCESS_LOG_TABLE, Database
from serve_markdown.services.bot_classifier import classify_user_agent
from serve_markdown.services.maintenance_guard import (
    MaintenanceGuard,
    build_retention_guard,
    build_size_guard,
)
from serve_markdown.telemetry import TelemetryClient

LOGGER = logging.getLogger("serve_markdown.access_log")

TriggerMethod = Literal["url", "header"]

MAX_USER_AGENT_LENGTH = 512
MAX_BOT_NAME_LENGTH = 100
SIZE_CAP_EVICTION_FRACTION = 0.10
# Fixed per-row overhead for the two integer columns when estimating table size.
_ROW_INTEGER_BYTES = 16


@dataclass(frozen=True)
class AccessLogEntry:
    item_id: int
    url: str
    user_agent: str
    method: TriggerMethod
    ip_address: str


@dataclass(frozen=True)
class AccessLogPolicy:
    enabled: bool = True
    retention_days: int = 30
    max_entries: int = 10_000
    max_size_mb: int = 50


@dataclass(frozen=True)
class AccessLogRecord:
    entry_id: int
    item_id: int
    url: str
    user_agent: str
    bot_name: str
    method: str
    ip_address: str
    created_at: str


@dataclass(frozen=True)
class AccessLogPage:
    rows: list[AccessLogRecord]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return math.ceil(self.total / self.per_page)


@dataclass(frozen=True)
class BotCount:
    bot_name: str
    count: int


@dataclass(frozen=True)
class AccessLogStats:
    total: int
    today: int
    bots: list[BotCount]


def normalize_ip(raw: str | None) -> str:
    if not raw:
        return ""
    candidate = raw.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return ""
    return candidate


def _sanitize_text(value: str, *, max_length: int) -> str:
    return " ".join(value.split())[:max_length]


class AccessLogRepository:
    def __init__(
        self,
        db: Database,
        *,
        telemetry: TelemetryClient | None = None,
        retention_guard: MaintenanceGuard | None = None,
        size_guard: MaintenanceGuard | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._retention_guard = (
            retention_guard if retention_guard is not None else build_retention_guard()
        )
        self._size_guard = size_guard if size_guard is not None else build_size_guard()
        self._clock = clock

    def append(self, entry: AccessLogEntry, *, policy: AccessLogPolicy) -> int | None:
        if not policy.enabled:
            return None

        user_agent = _sanitize_text(entry.user_agent, max_length=MAX_USER_AGENT_LENGTH)
        bot_name = classify_user_agent(user_agent)[:MAX_BOT_NAME_LENGTH]
        with self._db.connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO {ACCESS_LOG_TABLE}
                (item_id, url, user_agent, bot_name, method, ip_address, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    max(0, entry.item_id),
                    entry.url.strip(),
                    user_agent,
                    bot_name,
                    entry.method,
                    normalize_ip(entry.ip_address),
                    to_utc_iso(self._clock()),
                ),
            )
            entry_id = int(cursor.lastrowid or 0)

        self.retention_sweep(policy.retention_days)
        self.size_sweep(max_entries=policy.max_entries, max_size_mb=policy.max_size_mb)
        return entry_id

    def query(self, *, per_page: int = 30, page: int = 1, bot: str = "") -> AccessLogPage:
        per_page = max(1, per_page)
        page = max(1, page)
        where = ""
        params: tuple[object, ...] = ()
        if bot:
            where = "WHERE bot_name = ?"
            params = (bot,)

        offset = (page - 1) * per_page
        with self._db.connection() as conn:
            total_row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {ACCESS_LOG_TABLE} {where}",
                params,
            ).fetchone()
            rows = conn.execute(
                f"""
                SELECT id, item_id, url, user_agent, bot_name, method, ip_address, created_at
                FROM {ACCESS_LOG_TABLE}
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (*params, per_page, offset),
            ).fetchall()

        return AccessLogPage(
            rows=[
                AccessLogRecord(
                    entry_id=int(row["id"]),
                    item_id=int(row["item_id"]),
                    url=str(row["url"]),
                    user_agent=str(row["user_agent"]),
                    bot_name=str(row["bot_name"]),
                    method=str(row["method"]),
                    ip_address=str(row["ip_address"]),
                    created_at=str(row["created_at"]),
                )
                for row in rows
            ],
            total=int(total_row["total"]) if total_row is not None else 0,
            page=page,
            per_page=per_page,
        )

    def stats(self, *, timezone: str = "UTC") -> AccessLogStats:
        local_now = self._clock().astimezone(ZoneInfo(timezone))
        local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

        with self._db.connection() as conn:
            total_row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {ACCESS_LOG_TABLE}"
            ).fetchone()
            today_row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {ACCESS_LOG_TABLE} WHERE created_at >= ?",
                (to_utc_iso(local_midnight),),
            ).fetchone()
            bot_rows = conn.execute(
                f"""
                SELECT bot_name, COUNT(*) AS cnt
                FROM {ACCESS_LOG_TABLE}
                GROUP BY bot_name
                ORDER BY cnt DESC, bot_name ASC
                """
            ).fetchall()

        return AccessLogStats(
            total=int(total_row["total"]) if total_row is not None else 0,
            today=int(today_row["total"]) if today_row is not None else 0,
            bots=[BotCount(bot_name=str(row["bot_name"]), count=int(row["cnt"])) for row in bot_rows],
        )

    def count(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {ACCESS_LOG_TABLE}").fetchone()
        return int(row["total"]) if row is not None else 0

    def storage_bytes(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute(
                f"""
                SELECT COALESCE(SUM(
                    LENGTH(CAST(url AS BLOB))
                    + LENGTH(CAST(user_agent AS BLOB))
                    + LENGTH(CAST(bot_name AS BLOB))
                    + LENGTH(CAST(method AS BLOB))
                    + LENGTH(CAST(ip_address AS BLOB))
                    + LENGTH(CAST(created_at AS BLOB))
                    + ?
                ), 0) AS data_bytes
                FROM {ACCESS_LOG_TABLE}
                """,
                (_ROW_INTEGER_BYTES,),
            ).fetchone()
        return int(row["data_bytes"]) if row is not None else 0

    def clear_all(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {ACCESS_LOG_TABLE}").fetchone()
            conn.execute(f"DELETE FROM {ACCESS_LOG_TABLE}")
        deleted = int(row["total"]) if row is not None else 0
        LOGGER.info("access log cleared deleted=%s", deleted)
        return deleted

    def retention_sweep(self, retention_days: int) -> int:
        if not self._retention_guard.try_acquire():
            return 0
        if retention_days <= 0:
            return 0

        cutoff = self._clock() - timedelta(days=retention_days)
        with self._telemetry.timed(
            "access_log.retention_sweep", retention_days=retention_days
        ) as outcome:
            with self._db.connection() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {ACCESS_LOG_TABLE} WHERE created_at < ?",
                    (to_utc_iso(cutoff),),
                )
                deleted = cursor.rowcount
            outcome["deleted"] = deleted

        if deleted:
            LOGGER.info(
                "access log retention sweep deleted=%s retention_days=%s",
                deleted,
                retention_days,
            )
        return deleted

    def size_sweep(self, *, max_entries: int, max_size_mb: int) -> int:
        if not self._size_guard.try_acquire():
            return 0

        deleted = 0
        with self._telemetry.timed(
            "access_log.size_sweep", max_entries=max_entries, max_size_mb=max_size_mb
        ) as outcome:
            if max_entries > 0:
                count = self.count()
                if count > max_entries:
                    deleted += self._delete_oldest(count - max_entries)

            if max_size_mb > 0:
                max_bytes = max_size_mb * 1024 * 1024
                if self.storage_bytes() > max_bytes:
                    # One-shot eviction: the store may still be over the cap afterwards.
                    count = self.count()
                    deleted += self._delete_oldest(
                        max(1, math.ceil(count * SIZE_CAP_EVICTION_FRACTION))
                    )
            outcome["deleted"] = deleted

        if deleted:
            LOGGER.info(
                "access log size sweep deleted=%s max_entries=%s max_size_mb=%s",
                deleted,
                max_entries,
                max_size_mb,
            )
        return deleted

    def _delete_oldest(self, limit: int) -> int:
        if limit <= 0:
            return 0
        with self._db.connection() as conn:
            cursor = conn.execute(
                f"""
                DELETE FROM {ACCESS_LOG_TABLE}
                WHERE id IN (
                    SELECT id
                    FROM {ACCESS_LOG_TABLE}
                    ORDER BY created_at ASC, id ASC
                    LIMIT ?
                )
                """,
                (limit,),
            )
            return cursor.rowcount
