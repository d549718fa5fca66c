"""Daily/monthly credit quota enforcement."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.db.models.core import UserAccount
from creditgate.domain.models import ReservationResult, TierPolicy
from creditgate.logging import logger
from creditgate.services.exceptions import InvalidCost, QuotaExceeded, UserNotFound
from creditgate.services.policy import TierPolicyTable
from creditgate.utils.datetime import as_utc, day_window_start, month_window_start, utc_now

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class WindowState:
    """Counters as they stand once expired windows have been rolled over."""

    daily_used: int
    monthly_used: int
    day_start: datetime
    month_start: datetime
    day_rolled: bool
    month_rolled: bool

    @property
    def rolled(self) -> bool:
        return self.day_rolled or self.month_rolled


def normalize_windows(account: UserAccount, now: datetime) -> WindowState:
    """Compute the account's counters for the windows containing ``now``.

    Pure function shared by the enforcer (which writes the result back) and the
    reporter (which only reads it). The two windows roll over independently.
    """

    day_start = day_window_start(now)
    month_start = month_window_start(now)

    stored_day = as_utc(account.day_window_start) if account.day_window_start else None
    stored_month = as_utc(account.month_window_start) if account.month_window_start else None

    day_rolled = stored_day is None or stored_day < day_start
    month_rolled = stored_month is None or stored_month < month_start

    return WindowState(
        daily_used=0 if day_rolled else account.credits_used_today or 0,
        monthly_used=0 if month_rolled else account.credits_used_month or 0,
        day_start=day_start if day_rolled else stored_day,
        month_start=month_start if month_rolled else stored_month,
        day_rolled=day_rolled,
        month_rolled=month_rolled,
    )


def admission_denial(policy: TierPolicy, state: WindowState, cost: int) -> ReservationResult | None:
    """Return a denial if ``cost`` does not fit; the daily window is checked first."""

    if policy.unlimited or cost == 0:
        return None
    if not policy.daily_unlimited and state.daily_used + cost > policy.daily_limit:
        return ReservationResult(
            allowed=False,
            window="daily",
            message=(
                f"Daily credit limit ({policy.daily_limit}) reached: "
                f"{state.daily_used} used, {cost} requested."
            ),
        )
    if not policy.monthly_unlimited and state.monthly_used + cost > policy.monthly_limit:
        return ReservationResult(
            allowed=False,
            window="monthly",
            message=(
                f"Monthly credit limit ({policy.monthly_limit}) reached: "
                f"{state.monthly_used} used, {cost} requested."
            ),
        )
    return None


def validate_cost(cost: object) -> int:
    # bool is an int subclass but never a meaningful cost.
    if isinstance(cost, bool) or not isinstance(cost, int):
        raise InvalidCost(f"Credit cost must be an integer, got {type(cost).__name__}.")
    if cost < 0:
        raise InvalidCost(f"Credit cost must not be negative, got {cost}.")
    return cost


class UserLockRegistry:
    """Per-user asyncio locks, dropped once no coroutine holds or awaits them."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


default_lock_registry = UserLockRegistry()


class QuotaEnforcer:
    """Atomic check-and-reserve of credits against the user's tier limits.

    The read-check-write sequence runs under a per-user in-process lock and a
    ``SELECT ... FOR UPDATE`` row lock, and the reservation is committed before
    either lock is released. Reserved credits are never refunded, even when the
    costed operation later fails.
    """

    def __init__(
        self,
        session: AsyncSession,
        policies: TierPolicyTable,
        *,
        clock: Clock = utc_now,
        locks: UserLockRegistry | None = None,
    ) -> None:
        self.session = session
        self.policies = policies
        self.clock = clock
        self.locks = locks or default_lock_registry

    async def check_and_reserve(self, user_id: str, cost: int) -> ReservationResult:
        cost = validate_cost(cost)

        async with self.locks.hold(user_id):
            account = await self._load_for_update(user_id)
            now = self.clock()
            state = normalize_windows(account, now)
            if state.rolled:
                logger.info(
                    "window_rolled_over",
                    user_id=user_id,
                    day=state.day_rolled,
                    month=state.month_rolled,
                )
            self._apply_windows(account, state)

            policy = self.policies.policy_for(account.subscription_tier)
            denial = admission_denial(policy, state, cost)
            if denial is not None:
                # Persists any rollover and releases the row lock.
                await self.session.commit()
                logger.info(
                    "quota_denied",
                    user_id=user_id,
                    tier=policy.tier,
                    cost=cost,
                    window=denial.window,
                    daily_used=state.daily_used,
                    monthly_used=state.monthly_used,
                )
                return denial

            account.credits_used_today = state.daily_used + cost
            account.credits_used_month = state.monthly_used + cost
            account.updated_at = now
            await self.session.flush()
            await self.session.commit()

            logger.info(
                "quota_reserved",
                user_id=user_id,
                tier=policy.tier,
                cost=cost,
                daily_used=account.credits_used_today,
                monthly_used=account.credits_used_month,
            )
            return ReservationResult(allowed=True)

    async def reserve_or_raise(self, user_id: str, cost: int) -> ReservationResult:
        result = await self.check_and_reserve(user_id, cost)
        if not result.allowed:
            raise QuotaExceeded(result.message or "Credit limit reached.", window=result.window)
        return result

    async def _load_for_update(self, user_id: str) -> UserAccount:
        # Reread an account this session already holds; its counters may be stale.
        stmt = (
            select(UserAccount)
            .where(UserAccount.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        account = result.scalar_one_or_none()
        if account is None:
            raise UserNotFound(user_id)
        return account

    @staticmethod
    def _apply_windows(account: UserAccount, state: WindowState) -> None:
        if state.day_rolled:
            account.credits_used_today = 0
            account.day_window_start = state.day_start
        if state.month_rolled:
            account.credits_used_month = 0
            account.month_window_start = state.month_start


__all__ = [
    "QuotaEnforcer",
    "UserLockRegistry",
    "WindowState",
    "admission_denial",
    "default_lock_registry",
    "normalize_windows",
    "validate_cost",
]
