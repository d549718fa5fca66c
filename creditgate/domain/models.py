"""Pydantic models shared across service/application layers."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

UNLIMITED = -1


class TierPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: str
    daily_limit: int
    monthly_limit: int

    @property
    def daily_unlimited(self) -> bool:
        return self.daily_limit == UNLIMITED

    @property
    def monthly_unlimited(self) -> bool:
        return self.monthly_limit == UNLIMITED

    @property
    def unlimited(self) -> bool:
        return self.daily_unlimited and self.monthly_unlimited


class ReservationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    message: str | None = None
    window: Literal["daily", "monthly"] | None = None


class UsageEvent(BaseModel):
    """What a route reports once the costed operation has finished."""

    user_id: str
    tool_type: str
    credits_used: int = Field(ge=0)
    input_tokens: int | None = Field(default=None, ge=0)
    output_tokens: int | None = Field(default=None, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
    success: bool = True
    error_message: str | None = None
    details: dict | None = None
    created_at: datetime | None = None


class UsageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    tool_type: str
    credits_used: int
    input_tokens: int | None = None
    output_tokens: int | None = None
    processing_time_ms: int
    success: bool
    error_message: str | None = None
    created_at: datetime


class UsageSnapshot(BaseModel):
    tier: str
    daily_used: int
    daily_limit: int
    monthly_used: int
    monthly_limit: int
    remaining_today: int | None
    remaining_month: int | None


class ToolUsageSummary(BaseModel):
    tool_type: str
    invocations: int
    credits_used: int
    failures: int


class AccountSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    role: str
    subscription_tier: str
    credits_used_today: int
    credits_used_month: int
    created_at: datetime


class PlatformAnalytics(BaseModel):
    total_users: int
    total_operations: int
    credits_used_today: int
    recent_accounts: list[AccountSummary]


__all__ = [
    "AccountSummary",
    "PlatformAnalytics",
    "ReservationResult",
    "TierPolicy",
    "ToolUsageSummary",
    "UNLIMITED",
    "UsageEvent",
    "UsageRecord",
    "UsageSnapshot",
]
