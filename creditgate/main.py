"""Application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from creditgate.api.errors import register_exception_handlers
from creditgate.api.routes import admin, tools, usage
from creditgate.config import Settings, get_settings
from creditgate.db.session import Database
from creditgate.logging import configure_logging, logger
from creditgate.services.ledger import UsageRecorder
from creditgate.services.policy import TierPolicyTable, ToolCostTable
from creditgate.services.processing import ProcessorRegistry, default_registry
from creditgate.services.quota import Clock
from creditgate.services.retention import RetentionSweeper
from creditgate.utils.datetime import utc_now


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    database: Database = app.state.database
    if settings.database.create_tables:
        await database.create_all()
    sweeper = RetentionSweeper(
        database.session,
        retention_days=settings.ledger.retention_days,
        interval_seconds=settings.ledger.sweep_interval_seconds,
        clock=app.state.clock,
    )
    sweeper.start()
    logger.info("service_starting", environment=settings.environment)
    try:
        yield
    finally:
        await sweeper.stop()
        await database.dispose()
        logger.info("service_stopped")


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    processors: ProcessorRegistry | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    settings = settings or get_settings()
    database = database or Database(settings=settings)

    app = FastAPI(title="creditgate", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    # Policy and cost tables are frozen for the lifetime of the process.
    app.state.policies = TierPolicyTable.from_settings(settings.credits)
    app.state.costs = ToolCostTable.from_settings(settings.credits)
    app.state.processors = processors or default_registry()
    app.state.recorder = UsageRecorder(
        database.session,
        max_attempts=settings.ledger.record_attempts,
        retry_delay=settings.ledger.record_retry_delay,
    )
    app.state.clock = clock

    register_exception_handlers(app)
    prefix = settings.api_prefix
    app.include_router(tools.router, prefix=prefix)
    app.include_router(usage.router, prefix=prefix)
    app.include_router(admin.router, prefix=prefix)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {"status": "ok", "environment": settings.environment}

    return app


def main() -> None:
    configure_logging()
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
