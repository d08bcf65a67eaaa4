"""CLI for agent-kanban."""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Literal

import structlog
import yaml
from cyclopts import App, Parameter

from agent_kanban.agent import AgentServiceError, HttpAgentService
from agent_kanban.board import Board
from agent_kanban.config import Settings, get_config, load_settings
from agent_kanban.config_commands import config_app
from agent_kanban.extraction import ExtractionPipeline
from agent_kanban.models import BoardProfile, IdGenerator
from agent_kanban.session import BoardSession
from agent_kanban.shell import BoardShell, format_profile, format_ticket

logger = structlog.get_logger()

app = App(
    help="Agent Kanban - a ticket board fed by conversational agents",
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_settings() -> Settings:
    return load_settings(get_config())


def get_agent(settings: Settings) -> HttpAgentService:
    return HttpAgentService(base_url=settings.agent_base_url, timeout=settings.agent_timeout)


def run_with_agent(settings: Settings, operation: Callable[[HttpAgentService], Awaitable[Any]]) -> Any:
    """Run one async operation against a fresh agent client.

    Agent service failures are printed and end the command with exit status 1.
    """

    async def _run():
        async with get_agent(settings) as agent:
            return await operation(agent)

    try:
        return asyncio.run(_run())
    except AgentServiceError as e:
        print(f"Error: {e}")
        raise SystemExit(1) from e


def read_turns(files: tuple[Path, ...], message: list[str] | None) -> list[str]:
    """Collect user messages from files (one message per file) and inline text.

    Unreadable files are reported and end the command with exit status 1.
    """
    turns = []
    for path in files:
        try:
            turns.append(path.read_text().strip())
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read conversation file", path=str(path), error=str(e))
            print(f"Error: cannot read {path}: {e}")
            raise SystemExit(1) from e
    turns.extend(text.strip() for text in message or [])
    return [turn for turn in turns if turn]


def make_profile(name: str | None, description: str | None) -> BoardProfile:
    profile = BoardProfile()
    return replace(profile, name=name or profile.name, description=description or profile.description)


def print_data(data: Any) -> None:
    print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip())


@app.command
def extract(*files: Path, message: list[str] | None = None) -> None:
    """Generate an epic and its tickets from conversation text.

    Args:
        files: Files holding user messages; each file is one message.
        message: Additional user messages given inline.
    """
    summary = "\n\n".join(read_turns(files, message))
    if not summary:
        raise ValueError("Nothing to extract: pass conversation files or --message")

    settings = get_settings()
    result = run_with_agent(
        settings,
        lambda agent: ExtractionPipeline(agent, IdGenerator()).run(summary, settings.default_form),
    )

    print(f"Epic {result.epic.id}: {result.epic.title}")
    print(f"  {result.epic.description}\n")
    if result.used_fallback:
        print("No stories found in the agent reply; created one story from the epic.\n")
    for ticket in result.tickets:
        print(f"  {format_ticket(ticket)}")
        print(f"    {ticket.description}")


@app.command
def document(
    *files: Path,
    message: list[str] | None = None,
    name: str | None = None,
    description: str | None = None,
) -> None:
    """Generate board documentation from project notes.

    Args:
        files: Files holding user messages; each file is one message.
        message: Additional user messages given inline.
        name: Board name sent to the analyst.
        description: Board description sent to the analyst.
    """
    turns = read_turns(files, message)
    if not turns:
        raise ValueError("Nothing to document: pass project notes or --message")
    board = Board(profile=make_profile(name, description))

    async def _document(agent: HttpAgentService) -> BoardSession:
        board_session = BoardSession(agent, board=board)
        for turn in turns:
            board_session.setup_conversation.append("user", turn)
        await board_session.generate_documentation()
        return board_session

    board_session = run_with_agent(get_settings(), _document)
    if board_session.last_error:
        print(f"Error: {board_session.last_error}")
        raise SystemExit(1)
    print(format_profile(board.profile))


@app.command
def session(name: str | None = None, description: str | None = None) -> None:
    """Start an interactive board session.

    Args:
        name: Board name used during setup.
        description: Board description used during setup.
    """
    settings = get_settings()
    board = Board(profile=make_profile(name, description))

    async def _run(agent: HttpAgentService) -> None:
        board_session = BoardSession(
            agent,
            board=board,
            form=settings.default_form,
            ticket_window=settings.ticket_window,
            chat_window=settings.chat_window,
        )
        await BoardShell(board_session).run()

    run_with_agent(settings, _run)


@app.command
def roles() -> None:
    """List the roles the agent service offers."""
    role_list = run_with_agent(get_settings(), lambda agent: agent.list_roles())

    print(f"Found {len(role_list)} role(s):\n")
    for role in role_list:
        print(f"{role.get('id')}: {role.get('name')} - {role.get('description', '')}")


@app.command
def workflows() -> None:
    """List the workflows the agent service can run."""
    workflow_list = run_with_agent(get_settings(), lambda agent: agent.list_workflows())

    if not workflow_list:
        print("No workflows found")
        return
    print(f"Found {len(workflow_list)} workflow(s):\n")
    for workflow in workflow_list:
        print(f"{workflow.get('id')}: {workflow.get('name', '')} - {workflow.get('description', '')}")


@app.command
def workflow(workflow_id: str) -> None:
    """Show the definition of one workflow.

    Args:
        workflow_id: Workflow identifier as listed by ``workflows``.
    """
    print_data(run_with_agent(get_settings(), lambda agent: agent.workflow_context(workflow_id)))


@app.command
def context(role: str) -> None:
    """Show the context the agent service keeps for a role.

    Args:
        role: One of analyst, pm, dev or qa.
    """
    print_data(run_with_agent(get_settings(), lambda agent: agent.role_context(role)))


@app.command
def ask(*words: str) -> None:
    """Send a message and let the agent service pick the role that answers.

    Args:
        words: The message text.
    """
    text = " ".join(words).strip()
    if not text:
        raise ValueError("Nothing to ask")
    reply = run_with_agent(get_settings(), lambda agent: agent.orchestrate(text))
    print(f"[{reply.role or 'agent'}] {reply.response}")


@app.command
def health() -> None:
    """Check that the agent service is reachable."""
    settings = get_settings()

    async def _run():
        async with get_agent(settings) as agent:
            return await agent.health_check()

    try:
        status = asyncio.run(_run())
    except AgentServiceError as e:
        print(f"Agent service at {settings.agent_base_url} is unavailable: {e}")
        raise SystemExit(1) from e
    print(f"Agent service at {settings.agent_base_url} is up: {status}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
