"""Board snapshots and the in-memory board store."""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Callable

import structlog

from agent_kanban.models import ROLES, STATUSES, BoardProfile, Epic, IdGenerator, Ticket

logger = structlog.get_logger()

BOARD_EVENTS = ("tickets", "epics", "role", "profile")


@dataclass(frozen=True)
class BoardState:
    """Immutable snapshot of every ticket and epic on the board."""

    tickets: tuple[Ticket, ...] = ()
    epics: tuple[Epic, ...] = ()

    def find_ticket(self, ticket_id: str) -> Ticket | None:
        """Look up a ticket by id.

        Args:
            ticket_id: Ticket identifier

        Returns:
            The ticket, or None if the snapshot holds no ticket with that id.
        """
        return next((ticket for ticket in self.tickets if ticket.id == ticket_id), None)

    def find_epic(self, epic_id: str) -> Epic | None:
        """Look up an epic by id.

        Args:
            epic_id: Epic identifier

        Returns:
            The epic, or None if it is not on the board.
        """
        return next((epic for epic in self.epics if epic.id == epic_id), None)

    def tickets_by_status(self, status: str) -> tuple[Ticket, ...]:
        return tuple(ticket for ticket in self.tickets if ticket.status == status)

    def columns(self) -> dict[str, tuple[Ticket, ...]]:
        """Group tickets into pipeline columns, in pipeline order."""
        return {status: self.tickets_by_status(status) for status in STATUSES}

    def tickets_for_epic(self, epic_id: str) -> tuple[Ticket, ...]:
        return tuple(ticket for ticket in self.tickets if ticket.epic_id == epic_id)

    def with_tickets(self, tickets: Iterable[Ticket]) -> "BoardState":
        """Return a snapshot with the ticket collection replaced and the epics kept.

        Args:
            tickets: The complete new ticket collection, in display order

        Returns:
            A new BoardState; this one is left untouched.
        """
        return replace(self, tickets=tuple(tickets))

    def with_batch(self, epic: Epic, tickets: Iterable[Ticket]) -> "BoardState":
        """Return a snapshot with the epic and its tickets appended.

        Raises:
            ValueError: If the batch is empty, reuses an existing id, or holds a
                ticket whose epic reference does not resolve afterwards.
        """
        new_tickets = tuple(tickets)
        if not new_tickets:
            raise ValueError("An epic must be created with at least one ticket")

        known_ids = {t.id for t in self.tickets} | {e.id for e in self.epics}
        batch_ids = [epic.id] + [t.id for t in new_tickets]
        if len(set(batch_ids)) != len(batch_ids):
            raise ValueError("Duplicate identifiers inside one batch")
        reused = known_ids.intersection(batch_ids)
        if reused:
            raise ValueError(f"Identifiers already in use: {', '.join(sorted(reused))}")

        epic_ids = {e.id for e in self.epics} | {epic.id}
        for ticket in new_tickets:
            if ticket.epic_id is not None and ticket.epic_id not in epic_ids:
                raise ValueError(f"Ticket {ticket.id} references unknown epic {ticket.epic_id}")

        return BoardState(tickets=self.tickets + new_tickets, epics=self.epics + (epic,))


class Board:
    """The board store.

    Holds the current snapshot, the board profile and the selected role. Every change replaces
    the snapshot as a whole, so anyone holding an older ``BoardState`` keeps
    seeing exactly what they saw before.
    """

    def __init__(
        self,
        state: BoardState | None = None,
        role: str = "analyst",
        id_generator: IdGenerator | None = None,
        profile: BoardProfile | None = None,
    ) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        self._state = state or BoardState()
        self._role = role
        self._profile = profile or BoardProfile()
        self.ids = id_generator or IdGenerator()
        self._listeners: dict[str, list[Callable]] = {event: [] for event in BOARD_EVENTS}

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def tickets(self) -> tuple[Ticket, ...]:
        return self._state.tickets

    @property
    def epics(self) -> tuple[Epic, ...]:
        return self._state.epics

    @property
    def role(self) -> str:
        return self._role

    @property
    def profile(self) -> BoardProfile:
        return self._profile

    def subscribe(self, event: str, callback: Callable) -> None:
        """Register a callback for ``tickets``, ``epics``, ``role`` or ``profile`` changes."""
        if event not in self._listeners:
            raise ValueError(f"Unknown board event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, payload: object) -> None:
        for callback in self._listeners[event]:
            callback(payload)

    def set_role(self, role: str) -> None:
        """Switch the role the board is being viewed as.

        Listeners on ``role`` are only notified when the role actually changes.

        Args:
            role: One of analyst, pm, dev or qa

        Raises:
            ValueError: If the role is unknown.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if role == self._role:
            return
        logger.debug("Role changed", previous=self._role, role=role)
        self._role = role
        self._emit("role", role)

    def set_profile(self, profile: BoardProfile) -> bool:
        """Swap in a new board profile.

        Args:
            profile: The complete new profile

        Returns:
            True if the profile changed and listeners were notified.
        """
        if profile == self._profile:
            return False
        logger.info("Board profile updated", name=profile.name, status=profile.status)
        self._profile = profile
        self._emit("profile", profile)
        return True

    def replace_tickets(self, tickets: Iterable[Ticket]) -> bool:
        """Swap in a new ticket collection. Returns True if anything changed."""
        new_tickets = tuple(tickets)
        if new_tickets == self._state.tickets:
            return False
        self._state = self._state.with_tickets(new_tickets)
        logger.debug("Tickets replaced", count=len(new_tickets))
        self._emit("tickets", new_tickets)
        return True

    def add_batch(self, epic: Epic, tickets: Iterable[Ticket]) -> None:
        """Append an epic and its tickets as one state update."""
        self._state = self._state.with_batch(epic, tickets)
        logger.info("Epic added to board", epic_id=epic.id, tickets=len(self._state.tickets_for_epic(epic.id)))
        self._emit("epics", self._state.epics)
        self._emit("tickets", self._state.tickets)
