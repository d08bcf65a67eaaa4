"""Append-only conversation history used as agent context."""

from datetime import datetime, timezone
from typing import Any

from agent_kanban.models import Message

TICKET_CREATION_WELCOME = (
    "Hello! I'm your Product Manager AI. I'll help you create detailed user stories and tickets "
    "based on the project requirements.\n\n"
    "Please describe what feature or functionality you'd like to implement, and I'll help you "
    "create a proper user story with acceptance criteria."
)

ROLE_WELCOMES: dict[str, str] = {
    "analyst": "Hello! I'm your Analyst AI. Business Analysis & Documentation. How can I help you today?",
    "pm": "Hello! I'm your PM AI. Product Management & Planning. How can I help you today?",
    "dev": "Hello! I'm your Developer AI. Code Implementation & Review. How can I help you today?",
    "qa": "Hello! I'm your QA AI. Quality Assurance & Testing. How can I help you today?",
}


class Conversation:
    """Ordered, timestamped messages from the user and the agent.

    Nothing is ever dropped from the history; only the slice handed to the
    agent service is bounded.
    """

    def __init__(self, welcome: str | None = None) -> None:
        self._welcome = welcome
        self._messages: list[Message] = []
        self._counter = 0
        if welcome:
            self.append("agent", welcome)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(
        self,
        sender: str,
        content: str,
        *,
        timestamp: datetime | None = None,
        context_used: str | None = None,
        workflow_suggestions: tuple[str, ...] = (),
    ) -> Message:
        """Add a message to the end of the history.

        Args:
            sender: ``user`` or ``agent``
            content: Message text
            timestamp: When the message was sent; defaults to now (UTC)
            context_used: Context label reported by the agent service, if any
            workflow_suggestions: Follow-up workflows suggested by the agent

        Returns:
            The stored message, with the next ``msg-N`` id.
        """
        self._counter += 1
        message = Message(
            id=f"msg-{self._counter}",
            content=content,
            sender=sender,
            timestamp=timestamp or datetime.now(timezone.utc),
            context_used=context_used,
            workflow_suggestions=tuple(workflow_suggestions),
        )
        self._messages.append(message)
        return message

    def user_messages(self) -> tuple[Message, ...]:
        return tuple(message for message in self._messages if message.sender == "user")

    def user_summary(self) -> str:
        """All user turns, oldest first, separated by blank lines."""
        return "\n\n".join(message.content for message in self.user_messages())

    def context_window(self, limit: int) -> list[dict[str, Any]]:
        """The last ``limit`` messages rendered for the agent service."""
        if limit <= 0:
            return []
        return [message.to_context() for message in self._messages[-limit:]]

    def reset(self) -> None:
        """Start over from the welcome message."""
        self._messages = []
        if self._welcome:
            self.append("agent", self._welcome)
