"""Manual ticket form and the single-ticket creation path."""

from dataclasses import dataclass

import structlog

from agent_kanban.models import PRIORITIES, ROLES, STORY_POINT_CHOICES, Epic, IdBatch, Ticket

logger = structlog.get_logger()


@dataclass(frozen=True)
class TicketForm:
    """Values staged in the manual ticket form.

    Besides driving manual creation, priority, assignee and story points act
    as defaults for tickets extracted from a conversation.
    """

    title: str = ""
    priority: str = "medium"
    assignee: str = "dev"
    story_points: int = 5

    def __post_init__(self) -> None:
        if self.priority not in PRIORITIES:
            raise ValueError(f"Invalid priority: {self.priority}")
        if self.assignee not in ROLES:
            raise ValueError(f"Invalid assignee: {self.assignee}")
        if self.story_points not in STORY_POINT_CHOICES:
            allowed = ", ".join(str(p) for p in STORY_POINT_CHOICES)
            raise ValueError(f"Story points must be one of {allowed}, got {self.story_points}")

    @property
    def is_submittable(self) -> bool:
        return bool(self.title.strip())


def create_manual_epic(form: TicketForm, batch: IdBatch) -> tuple[Epic, tuple[Ticket, ...]]:
    """Build one epic and its single ticket straight from the form.

    Both take the form title; the ticket description defaults to the title.

    Raises:
        ValueError: If the form has no title.
    """
    if not form.is_submittable:
        raise ValueError("A title is required to create an epic")

    title = form.title.strip()
    epic = Epic(id=batch.epic_id, title=title, description=title, created_at=batch.created_at)
    ticket = Ticket(
        id=batch.ticket_id(0),
        title=title,
        description=title,
        status="backlog",
        assignee=form.assignee,
        priority=form.priority,
        story_points=form.story_points,
        epic_id=epic.id,
    )
    logger.info("Manual epic created", epic_id=epic.id, ticket_id=ticket.id)
    return epic, (ticket,)
