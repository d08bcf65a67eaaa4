"""Shared test fixtures."""

from typing import Any

import pytest
import structlog

from agent_kanban.agent import AgentReply, AgentService, AgentServiceError


class ScriptedAgent(AgentService):
    """Agent that answers from a script and records every request.

    Script entries are reply texts or exceptions to raise.
    """

    def __init__(self, replies: list[str | Exception] | None = None) -> None:
        self.replies = list(replies or [])
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []

    async def chat(self, role: str, message: str, context: dict[str, Any] | None = None) -> AgentReply:
        self.calls.append((role, message, context))
        if not self.replies:
            raise AgentServiceError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AgentReply(role=role, response=reply, timestamp="2024-05-01T12:00:00Z")


@pytest.fixture(autouse=True)
def quiet_logging():
    """Apply the CLI's default log level, which commands called directly bypass."""
    from agent_kanban.cli import configure_logging

    configure_logging("critical")
    yield
    structlog.reset_defaults()


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def scripted_agent() -> type[ScriptedAgent]:
    """Factory for scripted agents."""
    return ScriptedAgent
