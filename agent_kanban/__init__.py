"""Agent Kanban - a ticket board fed by conversational agents."""

__version__ = "0.1.0"
