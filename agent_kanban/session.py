"""Board session: conversations, extraction and role actions wired to one board."""

from dataclasses import replace
from datetime import datetime

import structlog

from agent_kanban.agent import AgentService, AgentServiceError
from agent_kanban.board import Board
from agent_kanban.conversation import ROLE_WELCOMES, TICKET_CREATION_WELCOME, Conversation
from agent_kanban.creation import TicketForm, create_manual_epic
from agent_kanban.documentation import DOCUMENTATION_COMPLETE, documentation_request, setup_context, setup_welcome
from agent_kanban.extraction import ExtractionPipeline, ExtractionResult
from agent_kanban.models import ROLES, BoardProfile, Epic, Message, Ticket
from agent_kanban.placement import DragGesture, apply_drag
from agent_kanban.transitions import RoleAction, apply_status, available_action, reassign

logger = structlog.get_logger()

CHAT_ERROR = "Sorry, I encountered an error. Please try again."


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class BoardSession:
    """Everything one local user does against the board during a session.

    Operations that talk to the agent service either complete fully or leave
    the board untouched and put a readable message in ``last_error``.
    """

    def __init__(
        self,
        agent: AgentService,
        board: Board | None = None,
        form: TicketForm | None = None,
        ticket_window: int = 8,
        chat_window: int = 10,
        setup_window: int = 8,
    ) -> None:
        self.agent = agent
        self.board = board or Board()
        self._initial_form = form or TicketForm()
        self.form = self._initial_form
        self.ticket_window = ticket_window
        self.chat_window = chat_window
        self.setup_window = setup_window
        self.pipeline = ExtractionPipeline(agent, self.board.ids)
        self.ticket_conversation = Conversation(TICKET_CREATION_WELCOME)
        self.role_conversations: dict[str, Conversation] = {}
        self.setup_conversation = Conversation(setup_welcome(self.board.profile))
        self.last_error: str | None = None
        self._sending: set[str] = set()
        self._acting: set[str] = set()
        self._extracting = False
        self._documenting = False

    def conversation_for(self, role: str) -> Conversation:
        """The chat history with one role agent, created on first use.

        Raises:
            ValueError: If the role is unknown.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if role not in self.role_conversations:
            self.role_conversations[role] = Conversation(ROLE_WELCOMES[role])
        return self.role_conversations[role]

    # Ticket creation ---------------------------------------------------------

    def update_form(self, **changes: object) -> TicketForm:
        """Stage new values on the ticket form; invalid values raise ValueError."""
        self.form = replace(self.form, **changes)
        return self.form

    async def send_ticket_message(self, text: str) -> Message | None:
        """Send a user turn to the product manager agent.

        Returns the agent message appended to the conversation, or None when
        the text is blank or a previous send is still outstanding.
        """
        text = text.strip()
        if not text or "tickets" in self._sending or self._extracting:
            return None

        context = {
            "purpose": "ticket_creation",
            "previous_messages": self.ticket_conversation.context_window(self.ticket_window),
        }
        self.ticket_conversation.append("user", text)
        self._sending.add("tickets")
        try:
            reply = await self.agent.chat("pm", text, context)
        except AgentServiceError as e:
            logger.error("Ticket chat failed", error=str(e))
            self.last_error = str(e)
            return self.ticket_conversation.append("agent", CHAT_ERROR)
        finally:
            self._sending.discard("tickets")

        self.last_error = None
        return self.ticket_conversation.append("agent", reply.response)

    async def generate_epic(self) -> ExtractionResult | None:
        """Run the extraction pipeline on the ticket conversation.

        On success the epic and tickets land on the board together and the
        conversation and form start over. On failure nothing changes and
        None is returned.

        Raises:
            ValueError: If the user has not said anything yet.
        """
        if self._extracting or "tickets" in self._sending:
            return None
        summary = self.ticket_conversation.user_summary()
        if not summary.strip():
            raise ValueError("The conversation has no user messages to extract from")

        self._extracting = True
        self.last_error = None
        try:
            result = await self.pipeline.run(summary, self.form)
        except AgentServiceError as e:
            logger.error("Epic generation failed", error=str(e))
            self.last_error = str(e) or "Epic generation failed"
            return None
        finally:
            self._extracting = False

        self.board.add_batch(result.epic, result.tickets)
        self.ticket_conversation.reset()
        self.form = self._initial_form
        return result

    def create_manual_epic(self) -> tuple[Epic, tuple[Ticket, ...]]:
        """Create one epic/ticket pair from the staged form.

        Raises:
            ValueError: If the form has no title.
        """
        epic, tickets = create_manual_epic(self.form, self.board.ids.next_batch())
        self.board.add_batch(epic, tickets)
        self.ticket_conversation.reset()
        self.form = self._initial_form
        return epic, tickets

    # Board setup -----------------------------------------------------------

    def describe_board(self, name: str | None = None, description: str | None = None) -> BoardProfile:
        """Rename the board or change its description.

        Args:
            name: New board name, or None to keep the current one
            description: New description, or None to keep the current one

        Returns:
            The updated profile.

        Raises:
            ValueError: If the name is blank.
        """
        profile = self.board.profile
        changes = {}
        if name is not None:
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description.strip()
        self.board.set_profile(replace(profile, **changes))
        return self.board.profile

    async def send_setup_message(self, text: str) -> Message | None:
        """Send a user turn to the analyst helping document the board.

        Returns the agent message appended to the setup conversation, or None
        when the text is blank or the analyst is still busy.
        """
        text = text.strip()
        if not text or "setup" in self._sending or self._documenting:
            return None

        context = setup_context(self.board.profile, self.setup_conversation, self.setup_window)
        self.setup_conversation.append("user", text)
        self._sending.add("setup")
        try:
            reply = await self.agent.chat("analyst", text, context)
        except AgentServiceError as e:
            logger.error("Setup chat failed", error=str(e))
            self.last_error = str(e)
            return self.setup_conversation.append("agent", CHAT_ERROR)
        finally:
            self._sending.discard("setup")

        self.last_error = None
        return self.setup_conversation.append("agent", reply.response)

    async def generate_documentation(self) -> BoardProfile | None:
        """Ask the analyst to write the board documentation from the setup conversation.

        On success the board profile carries the documentation and is marked
        ready. On failure the profile is left exactly as it was, ``last_error``
        says why and None is returned.

        Raises:
            ValueError: If the user has not said anything in the setup conversation.
        """
        if self._documenting or "setup" in self._sending:
            return None
        summary = self.setup_conversation.user_summary()
        if not summary.strip():
            raise ValueError("The setup conversation has no user messages to document")

        profile = self.board.profile
        message, context = documentation_request(profile, summary)
        self._documenting = True
        self.last_error = None
        logger.info("Generating board documentation", board=profile.name)
        try:
            reply = await self.agent.chat("analyst", message, context)
        except AgentServiceError as e:
            logger.error("Documentation generation failed", error=str(e))
            self.last_error = str(e) or "Documentation generation failed"
            return None
        finally:
            self._documenting = False

        if not reply.response.strip():
            logger.error("Documentation generation returned nothing")
            self.last_error = "The analyst returned empty documentation"
            return None

        self.board.set_profile(self.board.profile.documented(reply.response))
        self.setup_conversation.append("agent", DOCUMENTATION_COMPLETE)
        return self.board.profile

    # Role chat ---------------------------------------------------------------

    async def send_role_message(self, role: str, text: str) -> Message | None:
        """Send a user turn to one role agent.

        Args:
            role: Role agent to talk to
            text: Message text; blank text is not sent

        Returns:
            The agent message appended to that role's conversation, or None when
            nothing was sent.
        """
        conversation = self.conversation_for(role)
        text = text.strip()
        if not text or role in self._sending:
            return None

        context = {
            "role": role,
            "previous_messages": conversation.context_window(self.chat_window),
        }
        conversation.append("user", text)
        self._sending.add(role)
        try:
            reply = await self.agent.chat(role, text, context)
        except AgentServiceError as e:
            logger.error("Role chat failed", role=role, error=str(e))
            self.last_error = str(e) or "Failed to get response from AI agent"
            return conversation.append(
                "agent",
                f"Sorry, I encountered an error: {self.last_error}. "
                "Please try again or check if the backend server is running.",
            )
        finally:
            self._sending.discard(role)

        self.last_error = None
        return conversation.append(
            "agent",
            reply.response,
            timestamp=_parse_timestamp(reply.timestamp),
            context_used=reply.context_used or None,
            workflow_suggestions=reply.workflow_suggestions,
        )

    # Board manipulation ------------------------------------------------------

    def set_role(self, role: str) -> None:
        self.board.set_role(role)

    def move_ticket(self, active_id: str, over_id: str | None) -> bool:
        """Apply a drag gesture. Returns True if a ticket changed column."""
        return self.board.replace_tickets(apply_drag(self.board.tickets, DragGesture(active_id, over_id)))

    def assign_ticket(self, ticket_id: str, assignee: str) -> bool:
        """Reassign a ticket. Returns True if the assignee changed.

        Raises:
            ValueError: If the assignee is not a known role.
        """
        if assignee not in ROLES:
            raise ValueError(f"Unknown role: {assignee}")
        return self.board.replace_tickets(reassign(self.board.tickets, ticket_id, assignee))

    def available_action(self, ticket_id: str, role: str | None = None) -> RoleAction | None:
        """The action ``role`` (default: the board's role) may run on the ticket, if any."""
        ticket = self.board.state.find_ticket(ticket_id)
        if ticket is None:
            return None
        return available_action(role or self.board.role, ticket)

    async def run_role_action(self, ticket_id: str, role: str | None = None) -> bool:
        """Run the action the role is offered for a ticket.

        The status only advances after the agent service answered. On failure
        the ticket stays where it was and ``last_error`` explains why.
        Returns True when the ticket advanced.
        """
        ticket = self.board.state.find_ticket(ticket_id)
        if ticket is None:
            return False
        action = available_action(role or self.board.role, ticket)
        if action is None or ticket_id in self._acting:
            return False

        self._acting.add(ticket_id)
        self.last_error = None
        logger.info("Running role action", action=action.name, ticket_id=ticket_id)
        try:
            await self.agent.chat(action.role, action.prompt(ticket), action.context(ticket))
        except AgentServiceError as e:
            logger.error("Role action failed", action=action.name, ticket_id=ticket_id, error=str(e))
            self.last_error = str(e) or action.failure_message
            return False
        finally:
            self._acting.discard(ticket_id)

        self.board.replace_tickets(apply_status(self.board.tickets, ticket_id, action.to_status))
        logger.info("Role action completed", action=action.name, ticket_id=ticket_id, status=action.to_status)
        return True
