"""Processor registry and the built-in JSON formatter."""

from __future__ import annotations

import json

import pytest

from creditgate.services.exceptions import UnknownTool
from creditgate.services.processing import (
    ProcessingFailed,
    ProcessingOutcome,
    ProcessorRegistry,
    default_registry,
    format_json,
)


@pytest.mark.asyncio
async def test_format_json_pretty_prints():
    outcome = await format_json({"content": '{"b": 1, "a": [1, 2]}'})

    assert outcome.result["valid"] is True
    assert outcome.result["object_keys"] == 2
    assert json.loads(outcome.result["formatted"]) == {"b": 1, "a": [1, 2]}
    assert "\n  " in outcome.result["formatted"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"content": 5}, {"content": "{not json"}])
async def test_format_json_rejects_bad_input(payload):
    with pytest.raises(ProcessingFailed):
        await format_json(payload)


@pytest.mark.asyncio
async def test_registry_lookup():
    registry = ProcessorRegistry()

    async def echo(payload):
        return ProcessingOutcome(result=payload, input_tokens=1, output_tokens=2)

    registry.register("echo", echo)

    assert "echo" in registry
    outcome = await registry.get("echo")({"x": 1})
    assert outcome.result == {"x": 1}
    with pytest.raises(UnknownTool):
        registry.get("missing")


def test_default_registry_ships_json_formatter():
    assert "json_format" in default_registry()
