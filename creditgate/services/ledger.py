"""Append-only usage log and its best-effort recorder."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.db.models.core import UsageLogEntry
from creditgate.domain.models import UsageEvent
from creditgate.logging import logger
from creditgate.services.exceptions import LedgerWriteFailure, TransientLedgerFailure
from creditgate.utils.datetime import utc_now
from creditgate.utils.retry import retry_async

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _is_transient(exc: SQLAlchemyError) -> bool:
    """Connection drops and lock timeouts are retried; constraint violations are not."""

    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class UsageLedger:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_usage(self, event: UsageEvent) -> UsageLogEntry:
        entry = UsageLogEntry(
            user_id=event.user_id,
            tool_type=event.tool_type,
            credits_used=event.credits_used,
            input_tokens=event.input_tokens,
            output_tokens=event.output_tokens,
            processing_time_ms=event.processing_time_ms,
            success=event.success,
            error_message=event.error_message,
            details=event.details,
            created_at=event.created_at or utc_now(),
        )
        try:
            self.session.add(entry)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as exc:
            message = f"Could not record usage for {event.user_id}: {exc}"
            if _is_transient(exc):
                raise TransientLedgerFailure(message) from exc
            raise LedgerWriteFailure(message) from exc
        return entry

    async def get_usage_history(
        self,
        user_id: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> Sequence[UsageLogEntry]:
        """Entries for ``user_id`` in ``[since, until)``, newest first."""

        stmt = select(UsageLogEntry).where(UsageLogEntry.user_id == user_id)
        if since is not None:
            stmt = stmt.where(UsageLogEntry.created_at >= since)
        if until is not None:
            stmt = stmt.where(UsageLogEntry.created_at < until)
        stmt = stmt.order_by(UsageLogEntry.created_at.desc(), UsageLogEntry.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def purge_before(self, cutoff: datetime) -> int:
        """Delete entries created before ``cutoff``; account counters are untouched."""

        stmt = delete(UsageLogEntry).where(UsageLogEntry.created_at < cutoff)
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount or 0


class UsageRecorder:
    """Fire-and-forget wrapper routes use after the costed work is done.

    Each call opens its own session, retries transient failures and logs the
    final one instead of raising: usage recording must never fail a response.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        *,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self.session_scope = session_scope
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def record(self, event: UsageEvent) -> bool:
        async def _write() -> None:
            async with self.session_scope() as session:
                await UsageLedger(session).record_usage(event)

        try:
            await retry_async(
                _write,
                retry_on=(TransientLedgerFailure,),
                max_attempts=self.max_attempts,
                base_delay=self.retry_delay,
                logger=logger,
                operation_name="record_usage",
            )
        except LedgerWriteFailure as exc:
            logger.error(
                "usage_record_failed",
                user_id=event.user_id,
                tool_type=event.tool_type,
                credits_used=event.credits_used,
                transient=isinstance(exc, TransientLedgerFailure),
                error=str(exc),
            )
            return False

        logger.info(
            "usage_recorded",
            user_id=event.user_id,
            tool_type=event.tool_type,
            credits_used=event.credits_used,
            success=event.success,
            processing_time_ms=event.processing_time_ms,
        )
        return True


__all__ = ["SessionScope", "UsageLedger", "UsageRecorder"]
