# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Audit log endpoints: filtered listing, statistics, action list and cleanup."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from nexus_audit.api.auth import require_api_key
from nexus_audit.audit.events import ActorContext, AuditEvent
from nexus_audit.audit.query import AuditQuery, Pagination, QueryService
from nexus_audit.audit.store import AuditStore
from nexus_audit.core.config import get_settings

router = APIRouter()


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    seq: int | None = None
    action: str
    description: str
    severity: str
    user: str | None = None
    user_role: str = Field(alias="userRole")
    target_id: str | None = Field(default=None, alias="targetId")
    ip_address: str | None = Field(default=None, alias="ipAddress")
    user_agent: str | None = Field(default=None, alias="userAgent")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(alias="createdAt")


class LogListData(BaseModel):
    logs: list[LogEntry]
    pagination: Pagination


class LogListResponse(BaseModel):
    status: str = "success"
    results: int
    data: LogListData


class LogEntryResponse(BaseModel):
    status: str = "success"
    data: LogEntry


class ActionsData(BaseModel):
    actions: list[str]


class ActionsResponse(BaseModel):
    status: str = "success"
    data: ActionsData


class CountEntry(BaseModel):
    key: str
    count: int


class StatsData(BaseModel):
    action_stats: list[CountEntry] = Field(alias="actionStats")
    severity_stats: list[CountEntry] = Field(alias="severityStats")
    daily_stats: list[CountEntry] = Field(alias="dailyStats")
    total_logs: int = Field(alias="totalLogs")


class StatsResponse(BaseModel):
    status: str = "success"
    data: StatsData


class CleanupData(BaseModel):
    deleted_count: int = Field(alias="deletedCount")
    message: str


class CleanupResponse(BaseModel):
    status: str = "success"
    data: CleanupData


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event_to_entry(event: AuditEvent) -> LogEntry:
    return LogEntry(
        id=event.event_id,
        seq=event.seq,
        action=event.action,
        description=event.description,
        severity=str(event.severity),
        user=event.actor_id,
        userRole=str(event.actor_role),
        targetId=event.target_id,
        ipAddress=event.ip_address,
        userAgent=event.user_agent,
        metadata=event.metadata,
        createdAt=event.created_at.isoformat(),
    )


async def _get_store() -> AuditStore:
    """Get an AuditStore bound to the active DB connection."""
    from nexus_audit.storage.database import get_db

    db = await get_db()
    return AuditStore(db)


async def _get_query_service() -> QueryService:
    return QueryService(await _get_store(), max_page_size=get_settings().max_page_size)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/logs", response_model=LogListResponse)
async def list_logs(
    page: int = 1,
    limit: int | None = None,
    action: str | None = None,
    severity: str | None = None,
    user: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    search: str | None = None,
    _api_key: str = Depends(require_api_key),
) -> LogListResponse:
    """List audit logs, newest first, filtered by every supplied parameter."""
    service = await _get_query_service()
    result = await service.search(
        AuditQuery(
            action=action,
            severity=severity,
            actor_id=user,
            start_date=start_date,
            end_date=end_date,
            search=search,
            page=page,
            page_size=limit if limit is not None else get_settings().default_page_size,
        )
    )
    logs = [_event_to_entry(e) for e in result.records]
    return LogListResponse(
        results=len(logs),
        data=LogListData(logs=logs, pagination=result.pagination),
    )


@router.get("/logs/actions", response_model=ActionsResponse)
async def list_actions(
    _api_key: str = Depends(require_api_key),
) -> ActionsResponse:
    """Action tags present in the log, for building filter dropdowns."""
    service = await _get_query_service()
    return ActionsResponse(data=ActionsData(actions=await service.actions()))


@router.get("/logs/stats", response_model=StatsResponse)
async def log_stats(
    days: int = 30,
    _api_key: str = Depends(require_api_key),
) -> StatsResponse:
    """Per-action, per-severity and per-day counts over the last *days* days."""
    service = await _get_query_service()
    stats = await service.stats(days)
    return StatsResponse(
        data=StatsData(
            actionStats=[CountEntry(key=k, count=n) for k, n in stats.action_counts],
            severityStats=[CountEntry(key=k, count=n) for k, n in stats.severity_counts],
            dailyStats=[CountEntry(key=k, count=n) for k, n in stats.daily_counts],
            totalLogs=stats.total,
        )
    )


@router.delete("/logs/cleanup", response_model=CleanupResponse)
async def cleanup_logs(
    request: Request,
    days: int | None = None,
    _api_key: str = Depends(require_api_key),
) -> CleanupResponse:
    """Delete non-critical logs older than *days* days (default from settings)."""
    from nexus_audit.audit.logger import get_audit_logger
    from nexus_audit.audit.retention import RetentionSweeper

    window = days if days is not None else get_settings().retention_days
    sweeper = RetentionSweeper(await _get_store(), audit_logger=get_audit_logger())
    deleted = await sweeper.sweep(window, actor=ActorContext.from_request(request))
    return CleanupResponse(
        data=CleanupData(
            deletedCount=deleted,
            message=f"Deleted logs older than {window} days",
        )
    )


@router.get("/logs/{event_id}", response_model=LogEntryResponse)
async def get_log(
    event_id: str,
    _api_key: str = Depends(require_api_key),
) -> LogEntryResponse:
    """Get a single audit log entry by ID."""
    store = await _get_store()
    event = await store.get_by_id(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Audit log {event_id} not found")
    return LogEntryResponse(data=_event_to_entry(event))
