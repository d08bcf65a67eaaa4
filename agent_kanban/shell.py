"""Interactive text shell over a board session."""

import asyncio
import shlex

import structlog

from agent_kanban.board import BoardState
from agent_kanban.models import BoardProfile, Epic, Message, Ticket
from agent_kanban.session import BoardSession

logger = structlog.get_logger()

HELP = """Type a message to talk to the product manager agent, or use a command:
  /generate                  Generate an epic and stories from the conversation
  /manual [TITLE]            Create a single-ticket epic from the form
  /form KEY=VALUE ...        Stage form values (title, priority, assignee, points)
  /board                     Show tickets by column
  /epics                     Show epics
  /move TICKET TARGET        Drop a ticket on a column or on another ticket
  /assign TICKET ROLE        Reassign a ticket
  /role ROLE                 Switch the current role
  /act TICKET                Run the current role's action on a ticket
  /chat ROLE TEXT            Talk to a role agent
  /setup TEXT                Describe the project to the analyst
  /document                  Generate board documentation from the setup chat
  /info                      Show the board name, status and documentation
  /rename NAME               Rename the board
  /help                      Show this help
  /quit                      Leave the session"""

FORM_KEYS = {"title": "title", "priority": "priority", "assignee": "assignee", "points": "story_points"}


def format_ticket(ticket: Ticket) -> str:
    points = f" {ticket.story_points} pts" if ticket.story_points else ""
    return f"{ticket.id}: {ticket.title} [{ticket.priority}, {ticket.assignee}{points}]"


def format_epic(epic: Epic, state: BoardState) -> str:
    count = len(state.tickets_for_epic(epic.id))
    return f"{epic.id}: {epic.title} ({count} ticket(s))"


def format_board(state: BoardState) -> str:
    lines = []
    for status, tickets in state.columns().items():
        lines.append(f"{status} ({len(tickets)})")
        lines.extend(f"  {format_ticket(ticket)}" for ticket in tickets)
    return "\n".join(lines)


def format_profile(profile: BoardProfile) -> str:
    lines = [f"{profile.name} ({profile.status})", profile.description]
    if profile.documentation:
        lines.extend(["", profile.documentation])
    return "\n".join(lines)


def format_message(message: Message) -> str:
    speaker = "you" if message.sender == "user" else "agent"
    return f"[{message.timestamp:%H:%M:%S}] {speaker}: {message.content}"


class BoardShell:
    """Reads commands, drives the session and prints what happened."""

    def __init__(self, session: BoardSession) -> None:
        self.session = session

    def _report_error(self) -> None:
        if self.session.last_error:
            print(f"Error: {self.session.last_error}")

    async def handle(self, line: str) -> bool:
        """Process one input line. Returns False when the user wants to leave."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith("/"):
            reply = await self.session.send_ticket_message(line)
            if reply is not None:
                print(format_message(reply))
            return True

        try:
            parts = shlex.split(line)
        except ValueError as e:
            print(f"Error: {e}")
            return True
        command, args = parts[0][1:], parts[1:]

        try:
            return await self._dispatch(command, args)
        except ValueError as e:
            print(f"Error: {e}")
            return True

    async def _dispatch(self, command: str, args: list[str]) -> bool:
        session = self.session
        if command in ("quit", "exit"):
            return False
        if command == "help":
            print(HELP)
        elif command == "generate":
            result = await session.generate_epic()
            if result is None:
                self._report_error()
            else:
                print(f"Created {format_epic(result.epic, session.board.state)}")
                for ticket in result.tickets:
                    print(f"  {format_ticket(ticket)}")
        elif command == "manual":
            if args:
                session.update_form(title=" ".join(args))
            epic, tickets = session.create_manual_epic()
            print(f"Created {format_epic(epic, session.board.state)}")
        elif command == "form":
            changes = {}
            for arg in args:
                key, sep, value = arg.partition("=")
                if not sep or key not in FORM_KEYS:
                    raise ValueError(f"Unknown form field: {arg}")
                changes[FORM_KEYS[key]] = int(value) if key == "points" else value
            form = session.update_form(**changes)
            print(f"Form: title={form.title!r} priority={form.priority} assignee={form.assignee} points={form.story_points}")
        elif command == "board":
            print(format_board(session.board.state))
        elif command == "epics":
            if not session.board.epics:
                print("No epics yet")
            for epic in session.board.epics:
                print(format_epic(epic, session.board.state))
        elif command == "move":
            if len(args) != 2:
                raise ValueError("Usage: /move TICKET TARGET")
            if session.move_ticket(args[0], args[1]):
                print(f"Moved {args[0]} to {session.board.state.find_ticket(args[0]).status}")
            else:
                print("Nothing to move")
        elif command == "assign":
            if len(args) != 2:
                raise ValueError("Usage: /assign TICKET ROLE")
            session.assign_ticket(args[0], args[1])
            print(f"Assigned {args[0]} to {args[1]}")
        elif command == "role":
            if len(args) != 1:
                raise ValueError("Usage: /role ROLE")
            session.set_role(args[0])
            print(f"Current role: {session.board.role}")
        elif command == "act":
            if len(args) != 1:
                raise ValueError("Usage: /act TICKET")
            action = session.available_action(args[0])
            if action is None:
                print(f"No action available for {args[0]} as {session.board.role}")
            elif await session.run_role_action(args[0]):
                print(f"{action.label}: {args[0]} is now {action.to_status}")
            else:
                self._report_error()
        elif command == "chat":
            if len(args) < 2:
                raise ValueError("Usage: /chat ROLE TEXT")
            reply = await session.send_role_message(args[0], " ".join(args[1:]))
            if reply is not None:
                print(format_message(reply))
        elif command == "setup":
            if not args:
                raise ValueError("Usage: /setup TEXT")
            reply = await session.send_setup_message(" ".join(args))
            if reply is not None:
                print(format_message(reply))
        elif command == "document":
            profile = await session.generate_documentation()
            if profile is None:
                self._report_error()
            else:
                print(session.setup_conversation.messages[-1].content)
                print(format_profile(profile))
        elif command == "info":
            print(format_profile(session.board.profile))
        elif command == "rename":
            if not args:
                raise ValueError("Usage: /rename NAME")
            profile = session.describe_board(name=" ".join(args))
            print(f"Board renamed to {profile.name}")
        else:
            print(f"Unknown command: /{command} (try /help)")
        return True

    async def run(self) -> None:
        print(self.session.ticket_conversation.messages[0].content)
        print("Type /help for commands.")
        while True:
            try:
                line = await asyncio.to_thread(input, f"{self.session.board.role}> ")
            except EOFError:
                break
            if not await self.handle(line):
                break
        logger.debug("Shell closed")
