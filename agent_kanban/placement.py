"""Turn drag-and-drop gestures into status transitions."""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from agent_kanban.models import STATUSES, Ticket
from agent_kanban.transitions import apply_status

logger = structlog.get_logger()

# Each column is addressed by the status it holds.
COLUMN_IDS: dict[str, str] = {status: status for status in STATUSES}


@dataclass(frozen=True)
class DragGesture:
    """A finished drag: the ticket being dragged and what it was dropped on.

    ``over_id`` is None when the gesture was cancelled mid-air.
    """

    active_id: str
    over_id: str | None = None


def resolve_placement(tickets: Iterable[Ticket], gesture: DragGesture) -> str | None:
    """Work out the status a drop should produce.

    Returns None when the drop should be ignored: unknown dragged ticket,
    no drop target, unknown drop target, or a target in the ticket's own column.
    Dropping onto another ticket adopts that ticket's current column; the
    position within the column is not kept.
    """
    tickets = tuple(tickets)
    by_id = {ticket.id: ticket for ticket in tickets}

    active = by_id.get(gesture.active_id)
    if active is None:
        logger.debug("Ignoring drop of unknown ticket", active_id=gesture.active_id)
        return None
    if gesture.over_id is None:
        return None

    if gesture.over_id in COLUMN_IDS:
        target_status = COLUMN_IDS[gesture.over_id]
    elif gesture.over_id in by_id:
        target_status = by_id[gesture.over_id].status
    else:
        logger.debug("Ignoring drop on unknown target", over_id=gesture.over_id)
        return None

    if target_status == active.status:
        return None
    return target_status


def apply_drag(tickets: Iterable[Ticket], gesture: DragGesture) -> tuple[Ticket, ...]:
    """Apply a drag gesture, returning the (possibly unchanged) collection."""
    tickets = tuple(tickets)
    target_status = resolve_placement(tickets, gesture)
    if target_status is None:
        return tickets
    logger.info("Ticket moved", ticket_id=gesture.active_id, status=target_status)
    return apply_status(tickets, gesture.active_id, target_status)
