"""Account lookup and subscription tier changes."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.db.models.core import UserAccount
from creditgate.logging import logger
from creditgate.services.exceptions import ServiceError, UserNotFound
from creditgate.services.policy import TierPolicyTable
from creditgate.utils.datetime import utc_now

ROLES = {"user", "admin"}


class AccountService:
    def __init__(self, session: AsyncSession, policies: TierPolicyTable) -> None:
        self.session = session
        self.policies = policies

    async def get_account(self, user_id: str) -> UserAccount:
        account = await self.session.get(UserAccount, user_id)
        if account is None:
            raise UserNotFound(user_id)
        return account

    async def find_by_email(self, email: str) -> UserAccount | None:
        stmt = select(UserAccount).where(UserAccount.email == email)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_account(
        self,
        *,
        email: str | None = None,
        tier: str | None = None,
        role: str = "user",
        user_id: str | None = None,
    ) -> UserAccount:
        tier = tier or self.policies.fallback_tier
        self._ensure_tier(tier)
        if role not in ROLES:
            raise ServiceError(f"Unknown role: {role}")
        account = UserAccount(
            email=email,
            role=role,
            subscription_tier=tier,
            credits_used_today=0,
            credits_used_month=0,
        )
        if user_id is not None:
            account.id = user_id
        self.session.add(account)
        await self.session.flush()
        logger.info("account_created", user_id=account.id, tier=tier, role=role)
        return account

    async def set_tier(self, user_id: str, tier: str) -> UserAccount:
        """Move an account to another tier; counters carry over unchanged."""

        self._ensure_tier(tier)
        stmt = (
            select(UserAccount)
            .where(UserAccount.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        account = (await self.session.execute(stmt)).scalar_one_or_none()
        if account is None:
            raise UserNotFound(user_id)
        previous = account.subscription_tier
        account.subscription_tier = tier
        account.updated_at = utc_now()
        await self.session.flush()
        await self.session.commit()
        logger.info("tier_changed", user_id=user_id, previous=previous, tier=tier)
        return account

    def _ensure_tier(self, tier: str) -> None:
        if tier not in self.policies:
            raise ServiceError(f"Unknown subscription tier: {tier}")


__all__ = ["AccountService", "ROLES"]
