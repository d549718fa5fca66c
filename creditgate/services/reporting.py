"""Read-side aggregation of credit usage for dashboards and admins."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.db.models.core import UsageLogEntry, UserAccount
from creditgate.domain.models import (
    AccountSummary,
    PlatformAnalytics,
    TierPolicy,
    ToolUsageSummary,
    UsageSnapshot,
)
from creditgate.services.exceptions import UserNotFound
from creditgate.services.ledger import UsageLedger
from creditgate.services.policy import TierPolicyTable
from creditgate.services.quota import Clock, normalize_windows
from creditgate.utils.datetime import day_window_start, utc_now


def _remaining(limit: int, used: int, unlimited: bool) -> int | None:
    if unlimited:
        return None
    return max(0, limit - used)


class UsageReporter:
    """Never writes: rollover is applied to what is reported, not to the row."""

    def __init__(
        self,
        session: AsyncSession,
        policies: TierPolicyTable,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.session = session
        self.policies = policies
        self.clock = clock

    async def get_snapshot(self, user_id: str) -> UsageSnapshot:
        account = await self.session.get(UserAccount, user_id)
        if account is None:
            raise UserNotFound(user_id)
        policy: TierPolicy = self.policies.policy_for(account.subscription_tier)
        state = normalize_windows(account, self.clock())
        return UsageSnapshot(
            tier=policy.tier,
            daily_used=state.daily_used,
            daily_limit=policy.daily_limit,
            monthly_used=state.monthly_used,
            monthly_limit=policy.monthly_limit,
            remaining_today=_remaining(policy.daily_limit, state.daily_used, policy.daily_unlimited),
            remaining_month=_remaining(
                policy.monthly_limit, state.monthly_used, policy.monthly_unlimited
            ),
        )

    async def get_usage_history(
        self,
        user_id: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> Sequence[UsageLogEntry]:
        if await self.session.get(UserAccount, user_id) is None:
            raise UserNotFound(user_id)
        return await UsageLedger(self.session).get_usage_history(
            user_id, since=since, until=until, limit=limit
        )

    async def summarize_by_tool(
        self, user_id: str, *, since: datetime | None = None
    ) -> list[ToolUsageSummary]:
        stmt = (
            select(
                UsageLogEntry.tool_type,
                func.count(UsageLogEntry.id),
                func.coalesce(func.sum(UsageLogEntry.credits_used), 0),
                func.coalesce(func.sum(case((UsageLogEntry.success.is_(False), 1), else_=0)), 0),
            )
            .where(UsageLogEntry.user_id == user_id)
            .group_by(UsageLogEntry.tool_type)
            .order_by(UsageLogEntry.tool_type)
        )
        if since is not None:
            stmt = stmt.where(UsageLogEntry.created_at >= since)
        rows = (await self.session.execute(stmt)).all()
        return [
            ToolUsageSummary(
                tool_type=tool_type,
                invocations=int(invocations),
                credits_used=int(credits),
                failures=int(failures),
            )
            for tool_type, invocations, credits, failures in rows
        ]

    async def get_platform_analytics(self, *, recent_limit: int = 10) -> PlatformAnalytics:
        today = day_window_start(self.clock())
        total_users = (await self.session.execute(select(func.count(UserAccount.id)))).scalar_one()
        total_operations = (
            await self.session.execute(select(func.count(UsageLogEntry.id)))
        ).scalar_one()
        credits_today = (
            await self.session.execute(
                select(func.coalesce(func.sum(UsageLogEntry.credits_used), 0)).where(
                    UsageLogEntry.created_at >= today
                )
            )
        ).scalar_one()
        recent = (
            await self.session.execute(
                select(UserAccount).order_by(UserAccount.created_at.desc()).limit(recent_limit)
            )
        ).scalars()
        return PlatformAnalytics(
            total_users=int(total_users),
            total_operations=int(total_operations),
            credits_used_today=int(credits_today or 0),
            recent_accounts=[AccountSummary.model_validate(account) for account in recent],
        )


__all__ = ["UsageReporter"]
