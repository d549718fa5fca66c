"""FastAPI dependencies resolving per-request services from application state."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.config import Settings
from creditgate.db.models.core import UserAccount
from creditgate.db.session import Database
from creditgate.services.accounts import AccountService
from creditgate.services.ledger import UsageRecorder
from creditgate.services.policy import TierPolicyTable, ToolCostTable
from creditgate.services.processing import ProcessorRegistry
from creditgate.services.quota import Clock, QuotaEnforcer
from creditgate.services.reporting import UsageReporter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
        await session.commit()


def get_policies(request: Request) -> TierPolicyTable:
    return request.app.state.policies


def get_costs(request: Request) -> ToolCostTable:
    return request.app.state.costs


def get_processors(request: Request) -> ProcessorRegistry:
    return request.app.state.processors


def get_recorder(request: Request) -> UsageRecorder:
    return request.app.state.recorder


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    # Authentication happens upstream; the gateway forwards the verified id.
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id


SessionDep = Annotated[AsyncSession, Depends(get_session)]
UserIdDep = Annotated[str, Depends(get_current_user_id)]
PoliciesDep = Annotated[TierPolicyTable, Depends(get_policies)]
ClockDep = Annotated[Clock, Depends(get_clock)]


def get_enforcer(session: SessionDep, policies: PoliciesDep, clock: ClockDep) -> QuotaEnforcer:
    return QuotaEnforcer(session, policies, clock=clock)


def get_reporter(session: SessionDep, policies: PoliciesDep, clock: ClockDep) -> UsageReporter:
    return UsageReporter(session, policies, clock=clock)


def get_account_service(session: SessionDep, policies: PoliciesDep) -> AccountService:
    return AccountService(session, policies)


async def require_admin(
    user_id: UserIdDep,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> UserAccount:
    account = await accounts.get_account(user_id)
    if account.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return account


__all__ = [
    "ClockDep",
    "PoliciesDep",
    "SessionDep",
    "UserIdDep",
    "get_account_service",
    "get_app_settings",
    "get_clock",
    "get_costs",
    "get_current_user_id",
    "get_enforcer",
    "get_policies",
    "get_processors",
    "get_recorder",
    "get_reporter",
    "get_session",
    "require_admin",
]
