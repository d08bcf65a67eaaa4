"""Extract an epic and its user stories from agent free text.

Parsing is deliberately forgiving: the scanners never raise on text that does
not look like what was asked for, they just find fewer (or no) records. The
fallback that guarantees at least one story is a separate step so both halves
can be exercised on their own.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from agent_kanban.agent import AgentService
from agent_kanban.creation import TicketForm
from agent_kanban.models import Epic, IdBatch, IdGenerator, Ticket

logger = structlog.get_logger()

DEFAULT_EPIC_TITLE = "Generated Epic"
DEFAULT_EPIC_DESCRIPTION = "Epic generated from conversation"

EPIC_PROMPT = """Based on our conversation, create a concise epic title (max 10 words) and a brief description \
(2-3 sentences) that captures the overall feature or capability being requested.

Format your response as:
Title: [Epic Title]
Description: [Epic Description]

Conversation: {conversation}"""

STORIES_PROMPT = """Based on our conversation, break down this epic into 2-5 individual user stories. \
Each user story should be a complete, independent piece of functionality.

For each user story, provide:
- A clear, concise title (max 15 words)
- A brief description (2-3 sentences)
- Suggested story points (1, 2, 3, 5, 8, or 13)

Format each user story as:
Story [number]:
Title: [Story Title]
Description: [Story Description]
Story Points: [points]

Conversation: {conversation}"""

TITLE_RE = re.compile(r"Title:\s*(.+?)(?:\n|$)")
DESCRIPTION_RE = re.compile(r"Description:\s*(.+?)(?:\n\n|$)", re.DOTALL)
STORY_RE = re.compile(
    r"Story \d+:\s*Title:\s*(.+?)\s*Description:\s*(.+?)\s*Story Points:\s*(\d+)",
    re.DOTALL,
)
BOLD_LABEL_RE = re.compile(r"\*\*(Title|Description|Story Points|Story \d+)(:?)\*\*")

MAX_POINTS_DIGITS = 6


@dataclass(frozen=True)
class EpicDraft:
    title: str
    description: str


@dataclass(frozen=True)
class StoryDraft:
    title: str
    description: str
    story_points: int | None


@dataclass(frozen=True)
class ExtractionResult:
    epic: Epic
    tickets: tuple[Ticket, ...]
    used_fallback: bool = False


def _normalize(text: str) -> str:
    # Agents like to bold their labels ("**Title:** ..."); other emphasis is kept.
    return BOLD_LABEL_RE.sub(r"\1\2", text)


def _first_group(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def _coerce_points(raw: str) -> int | None:
    digits = raw.lstrip("0")
    if not digits or len(digits) > MAX_POINTS_DIGITS:
        return None
    points = int(digits)
    return points if points > 0 else None


def parse_epic_summary(text: str, fallback_title: str = "") -> EpicDraft:
    """Pull the epic title and description out of the epic-summary reply.

    Missing fields are replaced: the title by ``fallback_title`` (or a generic
    title when that is blank), the description by a generic sentence.
    """
    text = _normalize(text or "")
    title = _first_group(TITLE_RE, text)
    description = _first_group(DESCRIPTION_RE, text)

    if title is None:
        title = fallback_title.strip() or DEFAULT_EPIC_TITLE
        logger.debug("Epic title not found, using fallback", title=title)
    if description is None:
        description = DEFAULT_EPIC_DESCRIPTION
        logger.debug("Epic description not found, using fallback")
    return EpicDraft(title=title, description=description)


def parse_stories(text: str) -> list[StoryDraft]:
    """Scan the story-breakdown reply for story blocks, in order of appearance."""
    stories = []
    for match in STORY_RE.finditer(_normalize(text or "")):
        title, description, points = match.groups()
        title = title.strip()
        if not title:
            continue
        stories.append(
            StoryDraft(
                title=title,
                description=description.strip(),
                story_points=_coerce_points(points),
            )
        )
    logger.debug("Parsed stories", count=len(stories))
    return stories


def fallback_story(epic: EpicDraft, default_points: int | None) -> StoryDraft:
    """The single story used when the breakdown produced nothing usable."""
    return StoryDraft(title=epic.title, description=epic.description, story_points=default_points)


def materialize(
    epic_draft: EpicDraft,
    stories: Sequence[StoryDraft],
    form: TicketForm,
    batch: IdBatch,
) -> tuple[Epic, tuple[Ticket, ...]]:
    """Turn drafts into an epic and backlog tickets that all point at it."""
    if not stories:
        raise ValueError("At least one story is required to materialize an epic")

    epic = Epic(
        id=batch.epic_id,
        title=epic_draft.title,
        description=epic_draft.description,
        created_at=batch.created_at,
    )
    tickets = tuple(
        Ticket(
            id=batch.ticket_id(index),
            title=story.title,
            description=story.description,
            status="backlog",
            assignee=form.assignee,
            priority=form.priority,
            story_points=story.story_points,
            epic_id=epic.id,
        )
        for index, story in enumerate(stories)
    )
    return epic, tickets


class ExtractionPipeline:
    """Two round trips to the agent service, then one epic plus its tickets.

    Transport failures propagate as ``AgentServiceError`` before anything is
    materialized; the pipeline itself never touches the board.
    """

    def __init__(self, agent: AgentService, id_generator: IdGenerator, role: str = "pm") -> None:
        self.agent = agent
        self.ids = id_generator
        self.role = role

    async def run(self, conversation_summary: str, form: TicketForm) -> ExtractionResult:
        logger.info("Generating epic from conversation", role=self.role, length=len(conversation_summary))

        epic_reply = await self.agent.chat(
            self.role,
            EPIC_PROMPT.format(conversation=conversation_summary),
            {"purpose": "epic_generation"},
        )
        epic_draft = parse_epic_summary(epic_reply.response, fallback_title=form.title)

        stories_reply = await self.agent.chat(
            self.role,
            STORIES_PROMPT.format(conversation=conversation_summary),
            {"purpose": "user_story_breakdown"},
        )
        stories = parse_stories(stories_reply.response)

        used_fallback = not stories
        if used_fallback:
            logger.info("No stories found in agent reply, using fallback story")
            stories = [fallback_story(epic_draft, form.story_points)]

        epic, tickets = materialize(epic_draft, stories, form, self.ids.next_batch())
        logger.info("Epic generated", epic_id=epic.id, tickets=len(tickets), fallback=used_fallback)
        return ExtractionResult(epic=epic, tickets=tickets, used_fallback=used_fallback)
