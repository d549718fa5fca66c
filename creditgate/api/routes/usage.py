"""Per-user usage dashboards."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from creditgate.api.dependencies import UserIdDep, get_reporter
from creditgate.domain.models import ToolUsageSummary, UsageRecord, UsageSnapshot
from creditgate.services.reporting import UsageReporter

router = APIRouter(prefix="/usage", tags=["usage"])

ReporterDep = Annotated[UsageReporter, Depends(get_reporter)]


@router.get("", response_model=UsageSnapshot)
async def get_usage(user_id: UserIdDep, reporter: ReporterDep) -> UsageSnapshot:
    return await reporter.get_snapshot(user_id)


@router.get("/history", response_model=list[UsageRecord])
async def get_history(
    user_id: UserIdDep,
    reporter: ReporterDep,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[UsageRecord]:
    entries = await reporter.get_usage_history(user_id, since=since, until=until, limit=limit)
    return [UsageRecord.model_validate(entry) for entry in entries]


@router.get("/summary", response_model=list[ToolUsageSummary])
async def get_summary(
    user_id: UserIdDep,
    reporter: ReporterDep,
    since: datetime | None = None,
) -> list[ToolUsageSummary]:
    return await reporter.summarize_by_tool(user_id, since=since)
