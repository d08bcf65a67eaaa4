"""Ticket status transitions and role-gated workflow actions."""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any, Callable

import structlog

from agent_kanban.models import ROLES, STATUSES, Ticket

logger = structlog.get_logger()


def apply_status(tickets: Iterable[Ticket], ticket_id: str, status: str) -> tuple[Ticket, ...]:
    """Return a new collection with one ticket moved to ``status``.

    Unknown status labels are ignored and the collection comes back unchanged.
    Asking for the status a ticket already has is also a no-op.
    """
    tickets = tuple(tickets)
    if status not in STATUSES:
        logger.warning("Ignoring invalid status", ticket_id=ticket_id, status=status)
        return tickets
    return tuple(
        replace(ticket, status=status) if ticket.id == ticket_id and ticket.status != status else ticket
        for ticket in tickets
    )


def reassign(tickets: Iterable[Ticket], ticket_id: str, assignee: str) -> tuple[Ticket, ...]:
    """Return a new collection with one ticket handed to another role."""
    tickets = tuple(tickets)
    if assignee not in ROLES:
        logger.warning("Ignoring invalid assignee", ticket_id=ticket_id, assignee=assignee)
        return tickets
    return tuple(
        replace(ticket, assignee=assignee) if ticket.id == ticket_id and ticket.assignee != assignee else ticket
        for ticket in tickets
    )


def story_identifier(ticket: Ticket) -> str:
    """Identifier used when asking the dev agent to implement a story."""
    if "." in ticket.id:
        return ticket.id
    if ticket.epic_id:
        return f"{ticket.epic_id}.{ticket.id}"
    return ticket.id


def ticket_context(ticket: Ticket) -> dict[str, Any]:
    return {
        "ticket_id": ticket.id,
        "ticket_title": ticket.title,
        "ticket_description": ticket.description,
        "current_status": ticket.status,
    }


def _implement_prompt(ticket: Ticket) -> str:
    return f"dev implement story {story_identifier(ticket)}"


def _test_prompt(ticket: Ticket) -> str:
    return f"Please test story {ticket.id}: {ticket.title}. Description: {ticket.description}"


@dataclass(frozen=True)
class RoleAction:
    """A workflow step a role may run on a ticket sitting in ``from_status``."""

    name: str
    label: str
    role: str
    from_status: str
    to_status: str
    prompt: Callable[[Ticket], str]
    failure_message: str

    def context(self, ticket: Ticket) -> dict[str, Any]:
        return ticket_context(ticket)


ROLE_ACTIONS: dict[tuple[str, str], RoleAction] = {
    ("dev", "in-progress"): RoleAction(
        name="implement",
        label="Implement Story",
        role="dev",
        from_status="in-progress",
        to_status="ready-for-testing",
        prompt=_implement_prompt,
        failure_message="Failed to implement story",
    ),
    ("qa", "ready-for-testing"): RoleAction(
        name="test",
        label="Test Story",
        role="qa",
        from_status="ready-for-testing",
        to_status="done",
        prompt=_test_prompt,
        failure_message="Failed to test story",
    ),
}


def available_action(role: str, ticket: Ticket) -> RoleAction | None:
    """Look up the action ``role`` is offered for ``ticket``, if any."""
    return ROLE_ACTIONS.get((role, ticket.status))
