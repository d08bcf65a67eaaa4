"""Tests for extracting epics and stories from agent replies."""

import pytest

from agent_kanban.agent import AgentServiceError
from agent_kanban.creation import TicketForm
from agent_kanban.extraction import (
    DEFAULT_EPIC_DESCRIPTION,
    DEFAULT_EPIC_TITLE,
    EpicDraft,
    ExtractionPipeline,
    StoryDraft,
    fallback_story,
    materialize,
    parse_epic_summary,
    parse_stories,
)
from agent_kanban.models import IdBatch, IdGenerator

EPIC_REPLY = "Title: User Login\nDescription: Allow users to authenticate."
ONE_STORY_REPLY = "Story 1:\nTitle: Email/password login\nDescription: Users can log in.\nStory Points: 5"
THREE_STORY_REPLY = """Here is the breakdown you asked for.

Story 1:
Title: Sign up form
Description: Visitors can create an account
with their email address.
Story Points: 3

Story 2:
Title: Email/password login
Description: Users can log in.
Story Points: 5

Story 3:
Title: Password reset
Description: Users can reset a forgotten password.
Story Points: 8
"""


def test_parse_epic_summary() -> None:
    """Test reading a well-formed epic reply."""
    draft = parse_epic_summary(EPIC_REPLY)
    assert draft == EpicDraft(title="User Login", description="Allow users to authenticate.")


def test_parse_epic_description_stops_at_blank_line() -> None:
    """Test that the description ends at the first blank line."""
    reply = "Title: Reports\nDescription: Monthly sales reports\nfor managers.\n\nLet me know if this works!"
    draft = parse_epic_summary(reply)
    assert draft.description == "Monthly sales reports\nfor managers."


def test_parse_epic_summary_tolerates_bold_labels() -> None:
    """Test that markdown bold around labels does not break parsing."""
    draft = parse_epic_summary("**Title:** User Login\n**Description:** Allow users to authenticate.")
    assert draft.title == "User Login"
    assert draft.description == "Allow users to authenticate."


def test_parse_epic_summary_falls_back() -> None:
    """Test the substitutes used when the reply has no labelled fields."""
    assert parse_epic_summary("Sure, happy to help!", fallback_title="Login form") == EpicDraft(
        title="Login form", description=DEFAULT_EPIC_DESCRIPTION
    )
    assert parse_epic_summary("", fallback_title="  ").title == DEFAULT_EPIC_TITLE


def test_parse_stories_in_order() -> None:
    """Test that every story block is found, in order."""
    stories = parse_stories(THREE_STORY_REPLY)
    assert [s.title for s in stories] == ["Sign up form", "Email/password login", "Password reset"]
    assert [s.story_points for s in stories] == [3, 5, 8]
    assert stories[0].description == "Visitors can create an account\nwith their email address."


@pytest.mark.parametrize("reply", ["", "I could not come up with stories.", "Title: Lonely\nDescription: no block"])
def test_parse_stories_without_blocks_returns_empty_list(reply: str) -> None:
    """Test that text without story blocks yields no stories instead of failing."""
    assert parse_stories(reply) == []


def test_parse_stories_treats_zero_points_as_unestimated() -> None:
    """Test that zero story points become unestimated."""
    stories = parse_stories("Story 1:\nTitle: Spike\nDescription: Investigate.\nStory Points: 0")
    assert stories == [StoryDraft(title="Spike", description="Investigate.", story_points=None)]


def test_parse_stories_treats_oversized_points_as_unestimated() -> None:
    """Test that an absurdly long estimate is dropped instead of failing the scan."""
    reply = "Story 1:\nTitle: Big\nDescription: Huge estimate.\nStory Points: " + "9" * 5000
    assert parse_stories(reply) == [StoryDraft(title="Big", description="Huge estimate.", story_points=None)]


def test_parse_stories_keeps_leading_zero_estimates() -> None:
    """Test that zero padding does not change the estimate."""
    stories = parse_stories("Story 1:\nTitle: Padded\nDescription: Small.\nStory Points: 0003")
    assert stories[0].story_points == 3


def test_parse_stories_keeps_emphasis_inside_descriptions() -> None:
    """Test that only the bold around labels is removed."""
    reply = "**Story 1:**\n**Title:** Checkout\n**Description:** Payment **must** be confirmed.\n**Story Points:** 5"
    stories = parse_stories(reply)
    assert stories == [StoryDraft(title="Checkout", description="Payment **must** be confirmed.", story_points=5)]


def test_fallback_story_uses_epic() -> None:
    """Test the story synthesised from the epic."""
    epic = EpicDraft(title="User Login", description="Allow users to authenticate.")
    assert fallback_story(epic, 5) == StoryDraft("User Login", "Allow users to authenticate.", 5)


def test_materialize_links_tickets_to_epic() -> None:
    """Test that materialized tickets share the epic and start in the backlog."""
    form = TicketForm(priority="high", assignee="qa", story_points=3)
    stories = parse_stories(THREE_STORY_REPLY)

    epic, tickets = materialize(EpicDraft("Accounts", "All about accounts"), stories, form, IdBatch(stamp=42))

    assert epic.id == "EPIC-42"
    assert [t.id for t in tickets] == ["TICKET-42-0", "TICKET-42-1", "TICKET-42-2"]
    assert all(t.epic_id == epic.id for t in tickets)
    assert all(t.status == "backlog" for t in tickets)
    assert all(t.priority == "high" and t.assignee == "qa" for t in tickets)
    assert [t.story_points for t in tickets] == [3, 5, 8]


def test_materialize_requires_a_story() -> None:
    """Test that an epic is never materialized without tickets."""
    with pytest.raises(ValueError):
        materialize(EpicDraft("Accounts", ""), [], TicketForm(), IdBatch(stamp=1))


@pytest.mark.anyio
async def test_pipeline_user_login_scenario(scripted_agent) -> None:
    """Test the two passes producing one epic and one story."""
    agent = scripted_agent([EPIC_REPLY, ONE_STORY_REPLY])
    pipeline = ExtractionPipeline(agent, IdGenerator(clock=lambda: 1.0))

    result = await pipeline.run("We need user login with email and password", TicketForm())

    assert result.epic.title == "User Login"
    assert result.used_fallback is False
    assert len(result.tickets) == 1
    ticket = result.tickets[0]
    assert ticket.title == "Email/password login"
    assert ticket.story_points == 5
    assert ticket.status == "backlog"
    assert ticket.epic_id == result.epic.id

    roles = [call[0] for call in agent.calls]
    assert roles == ["pm", "pm"]
    assert agent.calls[0][2] == {"purpose": "epic_generation"}
    assert agent.calls[1][2] == {"purpose": "user_story_breakdown"}
    assert "Conversation: We need user login with email and password" in agent.calls[0][1]
    assert "Story Points: [points]" in agent.calls[1][1]


@pytest.mark.anyio
async def test_pipeline_falls_back_to_one_story(scripted_agent) -> None:
    """Test that a story reply without blocks yields exactly one fallback ticket."""
    agent = scripted_agent([EPIC_REPLY, "Sorry, I am not sure how to split this."])
    pipeline = ExtractionPipeline(agent, IdGenerator())

    result = await pipeline.run("We need user login", TicketForm(story_points=8))

    assert result.used_fallback is True
    assert len(result.tickets) == 1
    ticket = result.tickets[0]
    assert ticket.title == result.epic.title == "User Login"
    assert ticket.description == result.epic.description
    assert ticket.story_points == 8


@pytest.mark.anyio
async def test_pipeline_ids_are_distinct_across_runs(scripted_agent) -> None:
    """Test that identifiers never repeat within or across runs."""
    agent = scripted_agent([EPIC_REPLY, THREE_STORY_REPLY, EPIC_REPLY, THREE_STORY_REPLY])
    pipeline = ExtractionPipeline(agent, IdGenerator(clock=lambda: 1.0))

    first = await pipeline.run("login", TicketForm())
    second = await pipeline.run("login again", TicketForm())

    ids = [first.epic.id, *(t.id for t in first.tickets), second.epic.id, *(t.id for t in second.tickets)]
    assert len(ids) == len(set(ids)) == 8


@pytest.mark.anyio
async def test_pipeline_survives_oversized_points(scripted_agent) -> None:
    """Test that an unusable estimate still yields an unestimated ticket."""
    story_reply = "Story 1:\nTitle: Big\nDescription: Huge estimate.\nStory Points: " + "9" * 5000
    pipeline = ExtractionPipeline(scripted_agent([EPIC_REPLY, story_reply]), IdGenerator())

    result = await pipeline.run("We need everything", TicketForm(story_points=3))

    assert [t.title for t in result.tickets] == ["Big"]
    assert result.tickets[0].story_points is None
    assert result.used_fallback is False


@pytest.mark.anyio
@pytest.mark.parametrize("failing_call", [0, 1])
async def test_pipeline_propagates_transport_failure(scripted_agent, failing_call: int) -> None:
    """Test that a failure in either pass aborts the run."""
    replies = [EPIC_REPLY, ONE_STORY_REPLY]
    replies[failing_call] = AgentServiceError("API Error: 502 Bad Gateway", status_code=502)
    pipeline = ExtractionPipeline(scripted_agent(replies), IdGenerator())

    with pytest.raises(AgentServiceError):
        await pipeline.run("login", TicketForm())
