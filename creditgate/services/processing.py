"""Narrow interface to the external processing collaborators.

The credit core only needs to know whether a tool run succeeded and, for AI
tools, how many tokens it used. Concrete converters and LLM clients register
themselves here under their tool identifier.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from pydantic import BaseModel

from creditgate.services.exceptions import ServiceError, UnknownTool


class ProcessingOutcome(BaseModel):
    result: dict[str, Any]
    input_tokens: int | None = None
    output_tokens: int | None = None


class ProcessingFailed(ServiceError):
    pass


class ToolProcessor(Protocol):
    async def __call__(self, payload: dict[str, Any]) -> ProcessingOutcome: ...


class ProcessorRegistry:
    def __init__(self) -> None:
        self._processors: dict[str, ToolProcessor] = {}

    def register(self, tool_type: str, processor: ToolProcessor) -> None:
        self._processors[tool_type] = processor

    def get(self, tool_type: str) -> ToolProcessor:
        try:
            return self._processors[tool_type]
        except KeyError:
            raise UnknownTool(tool_type) from None

    def __contains__(self, tool_type: object) -> bool:
        return tool_type in self._processors


async def format_json(payload: dict[str, Any]) -> ProcessingOutcome:
    content = payload.get("content")
    if not isinstance(content, str):
        raise ProcessingFailed("Field 'content' must be a JSON string.")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ProcessingFailed(f"Invalid JSON: {exc.msg}") from exc
    return ProcessingOutcome(
        result={
            "formatted": json.dumps(parsed, indent=2, ensure_ascii=False),
            "valid": True,
            "object_keys": len(parsed) if isinstance(parsed, dict) else 0,
        }
    )


def default_registry() -> ProcessorRegistry:
    registry = ProcessorRegistry()
    registry.register("json_format", format_json)
    return registry


__all__ = [
    "ProcessingFailed",
    "ProcessingOutcome",
    "ProcessorRegistry",
    "ToolProcessor",
    "default_registry",
    "format_json",
]
