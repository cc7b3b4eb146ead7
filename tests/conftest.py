"""
Pytest configuration and fixtures for the agent core tests.
"""

import sys
from pathlib import Path

import pytest

# Project root for the zaruka package, tests/ for helpers.py
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from zaruka.providers.base import ProviderConfig
from zaruka.tools import Tool, ToolRegistry


@pytest.fixture
def primary_config():
    return ProviderConfig(provider_id="anthropic", model_id="claude-sonnet-4-5", api_key="sk-ant-test")


@pytest.fixture
def fallback_configs():
    return [
        ProviderConfig(provider_id="openai", model_id="gpt-4o", api_key="sk-test"),
        ProviderConfig(provider_id="groq", model_id="llama-3.3-70b-versatile", api_key="gsk-test"),
    ]


@pytest.fixture
def tool_registry():
    """Registry with an echo tool and a tool that always raises."""
    async def echo(args: dict) -> str:
        return f"echo: {args.get('text', '')}"

    async def broken(args: dict) -> str:
        raise RuntimeError("disk on fire")

    return ToolRegistry([
        Tool(
            name="echo",
            description="Echo the given text",
            parameters={"type": "object", "properties": {"text": {"type": "string"}}},
            execute=echo,
        ),
        Tool(
            name="broken",
            description="Always fails",
            parameters={"type": "object", "properties": {}},
            execute=broken,
        ),
    ])
