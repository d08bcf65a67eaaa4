"""Data models for the agent kanban board."""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Literal

TicketStatus = Literal["backlog", "in-progress", "ready-for-testing", "done"]
Role = Literal["analyst", "pm", "dev", "qa"]
Priority = Literal["low", "medium", "high", "critical"]
Sender = Literal["user", "agent"]
BoardStatus = Literal["setup", "ready"]

# Pipeline order, left to right on the board.
STATUSES: tuple[str, ...] = ("backlog", "in-progress", "ready-for-testing", "done")
ROLES: tuple[str, ...] = ("analyst", "pm", "dev", "qa")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
SENDERS: tuple[str, ...] = ("user", "agent")
STORY_POINT_CHOICES: tuple[int, ...] = (1, 2, 3, 5, 8, 13)
BOARD_STATUSES: tuple[str, ...] = ("setup", "ready")

DEFAULT_BOARD_NAME = "New Development Board"
DEFAULT_BOARD_DESCRIPTION = "AI-powered development workflow"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BoardProfile:
    """Name, description and generated documentation of the board itself.

    A board starts in ``setup`` and becomes ``ready`` once documentation has
    been generated for it.
    """

    name: str = DEFAULT_BOARD_NAME
    description: str = DEFAULT_BOARD_DESCRIPTION
    documentation: str | None = None
    status: BoardStatus = "setup"

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Board name must not be empty")
        if self.status not in BOARD_STATUSES:
            raise ValueError(f"Invalid board status: {self.status}")
        if self.status == "ready" and not self.documentation:
            raise ValueError("A ready board must have documentation")

    def documented(self, documentation: str) -> "BoardProfile":
        """Return the profile with documentation attached and the board marked ready.

        Args:
            documentation: Generated documentation text

        Returns:
            A new profile with status ``ready``.

        Raises:
            ValueError: If the documentation is blank.
        """
        if not documentation.strip():
            raise ValueError("Documentation must not be empty")
        return replace(self, documentation=documentation, status="ready")


@dataclass(frozen=True)
class Epic:
    """A named grouping of tickets representing a larger feature."""

    id: str
    title: str
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("Epic title must not be empty")


@dataclass(frozen=True)
class Ticket:
    """A single unit of work living in exactly one pipeline column."""

    id: str
    title: str
    description: str = ""
    status: TicketStatus = "backlog"
    assignee: Role = "dev"
    priority: Priority = "medium"
    story_points: int | None = None
    epic_id: str | None = None

    def __post_init__(self) -> None:
        if self.status not in STATUSES:
            raise ValueError(f"Invalid status: {self.status}")
        if self.assignee not in ROLES:
            raise ValueError(f"Invalid assignee: {self.assignee}")
        if self.priority not in PRIORITIES:
            raise ValueError(f"Invalid priority: {self.priority}")
        if self.story_points is not None and (
            isinstance(self.story_points, bool) or not isinstance(self.story_points, int) or self.story_points < 1
        ):
            raise ValueError(f"Story points must be a positive integer, got {self.story_points!r}")


@dataclass(frozen=True)
class Message:
    """A timestamped conversation turn."""

    id: str
    content: str
    sender: Sender
    timestamp: datetime = field(default_factory=_utcnow)
    context_used: str | None = None
    workflow_suggestions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.sender not in SENDERS:
            raise ValueError(f"Invalid sender: {self.sender}")

    def to_context(self) -> dict[str, Any]:
        """Render the message the way the agent service expects it in ``previous_messages``."""
        return {
            "sender": self.sender,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class IdBatch:
    """Identifiers for one creation operation.

    Every entity in a batch shares the stamp and is told apart by its
    sequence index, so tickets created together never collide.
    """

    stamp: int

    @property
    def epic_id(self) -> str:
        return f"EPIC-{self.stamp}"

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.stamp / 1000, tz=timezone.utc)

    def ticket_id(self, index: int) -> str:
        """Identifier of the ticket at ``index`` within this batch.

        Args:
            index: Zero-based sequence index of the ticket

        Returns:
            ``TICKET-<stamp>-<index>``

        Raises:
            ValueError: If the index is negative.
        """
        if index < 0:
            raise ValueError(f"Sequence index must not be negative, got {index}")
        return f"TICKET-{self.stamp}-{index}"

    def ticket_ids(self, count: int) -> list[str]:
        return [self.ticket_id(index) for index in range(count)]


class IdGenerator:
    """Hands out identifier batches that are unique for the lifetime of the generator.

    Stamps are millisecond wall-clock values, bumped past the previous stamp
    whenever the clock has not advanced (or went backwards).
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_stamp = 0

    def next_batch(self) -> IdBatch:
        stamp = max(int(self._clock() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return IdBatch(stamp=stamp)
