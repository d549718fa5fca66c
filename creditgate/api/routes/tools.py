"""Tool invocation: reserve credits, run the processor, record usage."""

from __future__ import annotations

import time
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, status
from fastapi.responses import JSONResponse

from creditgate.api.dependencies import (
    UserIdDep,
    get_costs,
    get_enforcer,
    get_processors,
    get_recorder,
)
from creditgate.domain.models import UsageEvent
from creditgate.logging import logger
from creditgate.services.ledger import UsageRecorder
from creditgate.services.policy import ToolCostTable
from creditgate.services.processing import ProcessingFailed, ProcessorRegistry
from creditgate.services.quota import QuotaEnforcer

router = APIRouter(prefix="/tools", tags=["tools"])


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@router.post("/{tool_type}/run")
async def run_tool(
    tool_type: str,
    user_id: UserIdDep,
    background_tasks: BackgroundTasks,
    enforcer: Annotated[QuotaEnforcer, Depends(get_enforcer)],
    costs: Annotated[ToolCostTable, Depends(get_costs)],
    processors: Annotated[ProcessorRegistry, Depends(get_processors)],
    recorder: Annotated[UsageRecorder, Depends(get_recorder)],
    payload: Annotated[dict[str, Any] | None, Body()] = None,
):
    """Run ``tool_type`` for the caller.

    Credits are reserved before the processor starts and are kept even if it
    fails. Usage is recorded in the background once the response is ready.
    """

    processor = processors.get(tool_type)
    cost = costs.cost_for(tool_type)
    await enforcer.reserve_or_raise(user_id, cost)

    started = time.perf_counter()
    try:
        outcome = await processor(payload or {})
    except ProcessingFailed as exc:
        return _failed(background_tasks, recorder, user_id, tool_type, cost, started, exc,
                       status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))
    except Exception as exc:
        logger.exception("tool_processing_failed", user_id=user_id, tool_type=tool_type)
        return _failed(background_tasks, recorder, user_id, tool_type, cost, started, exc,
                       status.HTTP_502_BAD_GATEWAY, "Failed to process request")

    background_tasks.add_task(
        recorder.record,
        UsageEvent(
            user_id=user_id,
            tool_type=tool_type,
            credits_used=cost,
            input_tokens=outcome.input_tokens,
            output_tokens=outcome.output_tokens,
            processing_time_ms=_elapsed_ms(started),
            success=True,
        ),
    )
    return {"tool": tool_type, "credits_used": cost, "result": outcome.result}


def _failed(
    background_tasks: BackgroundTasks,
    recorder: UsageRecorder,
    user_id: str,
    tool_type: str,
    cost: int,
    started: float,
    exc: Exception,
    status_code: int,
    detail: str,
) -> JSONResponse:
    background_tasks.add_task(
        recorder.record,
        UsageEvent(
            user_id=user_id,
            tool_type=tool_type,
            credits_used=cost,
            processing_time_ms=_elapsed_ms(started),
            success=False,
            error_message=str(exc) or type(exc).__name__,
        ),
    )
    # A returned Response does not pick up the injected tasks on its own.
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "credits_used": cost},
        background=background_tasks,
    )
