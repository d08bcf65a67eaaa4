"""Tests for board setup and documentation generation."""

import pytest

from agent_kanban.agent import AgentServiceError
from agent_kanban.board import Board
from agent_kanban.documentation import DOCUMENTATION_COMPLETE, setup_context, setup_welcome
from agent_kanban.models import BoardProfile
from agent_kanban.session import CHAT_ERROR, BoardSession

DOCS_REPLY = "# Recipe Box\n\n## Overview\nA place to keep family recipes."


def test_setup_welcome_names_the_board() -> None:
    """Test that the analyst greets the user with the board name."""
    welcome = setup_welcome(BoardProfile(name="Recipe Box"))
    assert '"Recipe Box"' in welcome
    assert welcome.startswith("Hello! I'm your Business Analyst AI.")


@pytest.mark.anyio
async def test_setup_chat_sends_board_and_history(scripted_agent) -> None:
    """Test the context sent with a setup message."""
    agent = scripted_agent(["Who will use it?"])
    session = BoardSession(agent, board=Board(profile=BoardProfile(name="Recipe Box", description="Family cookbook")))

    reply = await session.send_setup_message("An app to store recipes")

    role, message, context = agent.calls[0]
    assert (role, message) == ("analyst", "An app to store recipes")
    assert context["board_name"] == "Recipe Box"
    assert context["board_description"] == "Family cookbook"
    assert [m["sender"] for m in context["conversation_history"]] == ["agent"]
    assert reply.content == "Who will use it?"


@pytest.mark.anyio
async def test_setup_history_is_limited_to_eight_messages(scripted_agent) -> None:
    """Test that only the last eight messages travel as history."""
    agent = scripted_agent([f"reply {i}" for i in range(6)])
    session = BoardSession(agent)

    for index in range(6):
        await session.send_setup_message(f"detail {index}")

    history = agent.calls[-1][2]["conversation_history"]
    assert len(history) == 8
    assert history[-1]["content"] == "reply 4"


def test_setup_context_with_empty_window(scripted_agent) -> None:
    """Test that a zero limit sends no history at all."""
    session = BoardSession(scripted_agent())
    assert setup_context(session.board.profile, session.setup_conversation, 0)["conversation_history"] == []


@pytest.mark.anyio
async def test_setup_chat_failure_is_reported(scripted_agent) -> None:
    """Test that a failed setup turn keeps the history and records the error."""
    session = BoardSession(scripted_agent([AgentServiceError("API Error: 503 Service Unavailable")]))

    reply = await session.send_setup_message("An app to store recipes")

    assert reply.content == CHAT_ERROR
    assert session.last_error == "API Error: 503 Service Unavailable"
    assert len(session.setup_conversation) == 3


@pytest.mark.anyio
async def test_generate_documentation_marks_board_ready(scripted_agent) -> None:
    """Test that generated documentation lands on the board profile."""
    agent = scripted_agent(["Who will use it?", DOCS_REPLY])
    board = Board(profile=BoardProfile(name="Recipe Box"))
    changes = []
    board.subscribe("profile", changes.append)
    session = BoardSession(agent, board=board)

    await session.send_setup_message("An app to store recipes")
    await session.send_setup_message("Only my family uses it")
    profile = await session.generate_documentation()

    assert profile.status == "ready"
    assert profile.documentation == DOCS_REPLY
    assert board.profile == profile
    assert changes == [profile]

    role, message, context = agent.calls[-1]
    assert role == "analyst"
    assert context == {"board_name": "Recipe Box", "purpose": "documentation_generation"}
    assert message.startswith("Based on our conversation, please generate comprehensive project documentation")
    assert message.endswith("Conversation summary: An app to store recipes\n\nOnly my family uses it")
    assert "Who will use it?" not in message
    assert session.setup_conversation.messages[-1].content == DOCUMENTATION_COMPLETE


@pytest.mark.anyio
async def test_generate_documentation_failure_leaves_board_unchanged(scripted_agent) -> None:
    """Test that a failed generation keeps the board in setup."""
    agent = scripted_agent(["Noted.", AgentServiceError("API Error: 500 Internal Server Error")])
    board = Board()
    session = BoardSession(agent, board=board)
    before = board.profile

    await session.send_setup_message("An app to store recipes")
    result = await session.generate_documentation()

    assert result is None
    assert board.profile is before
    assert board.profile.status == "setup"
    assert session.last_error == "API Error: 500 Internal Server Error"
    assert len(session.setup_conversation) == 3


@pytest.mark.anyio
async def test_generate_documentation_rejects_blank_reply(scripted_agent) -> None:
    """Test that an empty answer does not mark the board ready."""
    session = BoardSession(scripted_agent(["Noted.", "   "]))

    await session.send_setup_message("An app to store recipes")

    assert await session.generate_documentation() is None
    assert session.board.profile.status == "setup"
    assert session.last_error == "The analyst returned empty documentation"


@pytest.mark.anyio
async def test_generate_documentation_needs_user_messages(scripted_agent) -> None:
    """Test that there must be something to document."""
    agent = scripted_agent()
    session = BoardSession(agent)

    with pytest.raises(ValueError, match="no user messages"):
        await session.generate_documentation()
    assert agent.calls == []


def test_describe_board(scripted_agent) -> None:
    """Test renaming the board and changing its description."""
    session = BoardSession(scripted_agent())

    profile = session.describe_board(name="  Recipe Box ", description="Family cookbook")

    assert profile == BoardProfile(name="Recipe Box", description="Family cookbook")
    with pytest.raises(ValueError):
        session.describe_board(name="   ")
    assert session.board.profile.name == "Recipe Box"
