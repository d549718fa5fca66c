"""SQLAlchemy models for accounts and the usage ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from creditgate.db.base import Base
from creditgate.utils.datetime import utc_now


class UserAccount(Base):
    """The slice of the platform's user record the credit system owns.

    ``credits_used_today`` and ``credits_used_month`` are running totals for the
    windows that began at ``day_window_start`` and ``month_window_start``. They
    only grow inside a window and are reset by rollover, never decremented.
    """

    __tablename__ = "user_accounts"

    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    role: Mapped[str] = mapped_column(String(16), default="user", nullable=False)
    subscription_tier: Mapped[str] = mapped_column(String(32), default="free", nullable=False)
    credits_used_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credits_used_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    day_window_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    month_window_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    usage_entries: Mapped[list["UsageLogEntry"]] = relationship(
        back_populates="user", passive_deletes=True
    )


class UsageLogEntry(Base):
    """Append-only record of one tool invocation."""

    __tablename__ = "usage_log_entries"
    __table_args__ = (
        Index("ix_usage_log_entries_user_created", "user_id", "created_at"),
        Index("ix_usage_log_entries_created", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False
    )
    tool_type: Mapped[str] = mapped_column(String(64), nullable=False)
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False)
    input_tokens: Mapped[int | None] = mapped_column(Integer)
    output_tokens: Mapped[int | None] = mapped_column(Integer)
    processing_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    user: Mapped[UserAccount] = relationship(back_populates="usage_entries")


__all__ = ["UsageLogEntry", "UserAccount"]
