"""Admin views over accounts and platform usage."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from creditgate.api.dependencies import get_account_service, get_reporter, require_admin
from creditgate.domain.models import AccountSummary, PlatformAnalytics
from creditgate.services.accounts import AccountService
from creditgate.services.reporting import UsageReporter

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class TierUpdate(BaseModel):
    tier: str


@router.get("/analytics", response_model=PlatformAnalytics)
async def get_analytics(
    reporter: Annotated[UsageReporter, Depends(get_reporter)],
) -> PlatformAnalytics:
    return await reporter.get_platform_analytics()


@router.patch("/users/{user_id}/tier", response_model=AccountSummary)
async def update_tier(
    user_id: str,
    payload: TierUpdate,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountSummary:
    account = await accounts.set_tier(user_id, payload.tier)
    return AccountSummary.model_validate(account)
