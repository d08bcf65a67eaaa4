"""Tests for board snapshots and the board store."""

import pytest

from agent_kanban.board import Board, BoardState
from agent_kanban.models import BoardProfile, Epic, Ticket


def make_state() -> BoardState:
    epic = Epic(id="EPIC-1", title="Accounts")
    tickets = (
        Ticket(id="TICKET-1-0", title="Sign up", epic_id="EPIC-1"),
        Ticket(id="TICKET-1-1", title="Log in", status="in-progress", epic_id="EPIC-1"),
        Ticket(id="TICKET-2-0", title="Reset password", status="done"),
    )
    return BoardState(tickets=tickets, epics=(epic,))


def test_lookups() -> None:
    """Test ticket and epic lookups."""
    state = make_state()
    assert state.find_ticket("TICKET-1-1").title == "Log in"
    assert state.find_ticket("TICKET-9-9") is None
    assert state.find_epic("EPIC-1").title == "Accounts"
    assert [t.id for t in state.tickets_for_epic("EPIC-1")] == ["TICKET-1-0", "TICKET-1-1"]


def test_columns_follow_pipeline_order() -> None:
    """Test that every column is present, in pipeline order."""
    columns = make_state().columns()
    assert list(columns) == ["backlog", "in-progress", "ready-for-testing", "done"]
    assert [t.id for t in columns["backlog"]] == ["TICKET-1-0"]
    assert columns["ready-for-testing"] == ()


def test_with_batch_appends_epic_and_tickets() -> None:
    """Test appending a new epic together with its tickets."""
    state = make_state()
    epic = Epic(id="EPIC-3", title="Billing")
    ticket = Ticket(id="TICKET-3-0", title="Invoices", epic_id="EPIC-3")

    new_state = state.with_batch(epic, [ticket])

    assert new_state.epics[-1] == epic
    assert new_state.tickets[-1] == ticket
    assert len(state.tickets) == 3


def test_with_batch_rejects_empty_batch() -> None:
    """Test that an epic cannot be added without tickets."""
    with pytest.raises(ValueError):
        make_state().with_batch(Epic(id="EPIC-3", title="Billing"), [])


def test_with_batch_rejects_unknown_epic_reference() -> None:
    """Test that tickets must point at an epic that exists after the append."""
    ticket = Ticket(id="TICKET-3-0", title="Invoices", epic_id="EPIC-404")
    with pytest.raises(ValueError, match="unknown epic"):
        make_state().with_batch(Epic(id="EPIC-3", title="Billing"), [ticket])


def test_with_batch_rejects_reused_ids() -> None:
    """Test that identifiers already on the board cannot be reused."""
    ticket = Ticket(id="TICKET-1-0", title="Duplicate", epic_id="EPIC-3")
    with pytest.raises(ValueError, match="already in use"):
        make_state().with_batch(Epic(id="EPIC-3", title="Billing"), [ticket])


def test_replace_tickets_notifies_and_keeps_old_snapshot() -> None:
    """Test that replacing tickets notifies listeners and leaves old snapshots alone."""
    board = Board(state=make_state())
    seen = []
    board.subscribe("tickets", seen.append)
    before = board.state

    new_tickets = tuple(t for t in board.tickets if t.status != "done")
    assert board.replace_tickets(new_tickets) is True

    assert seen == [new_tickets]
    assert len(before.tickets) == 3
    assert len(board.tickets) == 2


def test_replace_tickets_with_same_values_is_silent() -> None:
    """Test that an unchanged collection does not notify anyone."""
    board = Board(state=make_state())
    seen = []
    board.subscribe("tickets", seen.append)

    assert board.replace_tickets(list(board.tickets)) is False
    assert seen == []


def test_add_batch_notifies_epics_and_tickets() -> None:
    """Test that adding a batch is one update visible to both listeners."""
    board = Board()
    events = []
    board.subscribe("epics", lambda epics: events.append(("epics", len(epics))))
    board.subscribe("tickets", lambda tickets: events.append(("tickets", len(tickets))))

    epic = Epic(id="EPIC-3", title="Billing")
    board.add_batch(epic, [Ticket(id="TICKET-3-0", title="Invoices", epic_id="EPIC-3")])

    assert events == [("epics", 1), ("tickets", 1)]


def test_failed_add_batch_leaves_board_unchanged() -> None:
    """Test that a rejected batch changes nothing."""
    board = Board(state=make_state())
    before = board.state
    with pytest.raises(ValueError):
        board.add_batch(Epic(id="EPIC-3", title="Billing"), [])
    assert board.state is before


def test_set_role() -> None:
    """Test switching roles."""
    board = Board()
    roles = []
    board.subscribe("role", roles.append)

    board.set_role("qa")
    board.set_role("qa")

    assert board.role == "qa"
    assert roles == ["qa"]
    with pytest.raises(ValueError):
        board.set_role("designer")


def test_subscribe_rejects_unknown_event() -> None:
    """Test that only known events can be subscribed to."""
    with pytest.raises(ValueError):
        Board().subscribe("columns", print)


def test_set_profile_notifies_only_on_change() -> None:
    """Test replacing the board profile."""
    board = Board()
    profiles = []
    board.subscribe("profile", profiles.append)
    renamed = BoardProfile(name="Recipe Box")

    assert board.set_profile(renamed) is True
    assert board.set_profile(BoardProfile(name="Recipe Box")) is False

    assert board.profile == renamed
    assert profiles == [renamed]
