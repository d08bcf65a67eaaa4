"""Board setup: the analyst conversation that produces board documentation."""

from typing import Any

from agent_kanban.conversation import Conversation
from agent_kanban.models import BoardProfile

DOCUMENTATION_PROMPT = """Based on our conversation, please generate comprehensive project documentation including:
1. Project overview and objectives
2. Key features and requirements
3. User stories and acceptance criteria
4. Technical considerations
5. Success metrics

Conversation summary: {conversation}"""

DOCUMENTATION_COMPLETE = (
    "Perfect! I've generated comprehensive documentation for your board. You can now proceed to "
    "create user stories and manage your development workflow."
)

SETUP_HISTORY_LIMIT = 8


def setup_welcome(profile: BoardProfile) -> str:
    return (
        "Hello! I'm your Business Analyst AI. I'll help you create comprehensive documentation "
        f'for your new board "{profile.name}".\n\n'
        "Please tell me about your project - what kind of application are you building? "
        "What are the main features and requirements?"
    )


def setup_context(
    profile: BoardProfile, conversation: Conversation, limit: int = SETUP_HISTORY_LIMIT
) -> dict[str, Any]:
    """Context sent with each setup chat turn.

    Args:
        profile: The board being set up
        conversation: Setup history, not yet including the turn being sent
        limit: How many of the latest messages to include

    Returns:
        ``board_name``, ``board_description`` and ``conversation_history``.
    """
    return {
        "board_name": profile.name,
        "board_description": profile.description,
        "conversation_history": conversation.context_window(limit),
    }


def documentation_request(profile: BoardProfile, conversation_summary: str) -> tuple[str, dict[str, Any]]:
    """Message and context asking the analyst to write the board documentation."""
    message = DOCUMENTATION_PROMPT.format(conversation=conversation_summary)
    return message, {"board_name": profile.name, "purpose": "documentation_generation"}
