"""Agent service interface and its HTTP implementation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from agent_kanban.models import ROLES

logger = structlog.get_logger()

DEFAULT_BASE_URL = "http://localhost:8000"


class AgentServiceError(Exception):
    """The agent service could not be reached or did not answer successfully."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AgentReply:
    """Response to a chat request. Only ``response`` matters to the board."""

    role: str
    response: str
    context_used: str = ""
    timestamp: str = ""
    workflow_suggestions: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, role: str, payload: dict[str, Any]) -> "AgentReply":
        if not isinstance(payload, dict) or not isinstance(payload.get("response"), str):
            raise AgentServiceError("Agent service returned a reply without a response text")
        return cls(
            role=payload.get("role") or role,
            response=payload["response"],
            context_used=payload.get("context_used") or "",
            timestamp=payload.get("timestamp") or "",
            workflow_suggestions=tuple(payload.get("workflow_suggestions") or ()),
        )


class AgentService(ABC):
    """Abstract base class for the text-generation collaborator."""

    @abstractmethod
    async def chat(self, role: str, message: str, context: dict[str, Any] | None = None) -> AgentReply:
        """Send a message to the agent playing ``role`` and return its reply.

        Raises:
            AgentServiceError: On any transport failure or non-success response.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the service."""

    async def __aenter__(self) -> "AgentService":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()


class HttpAgentService(AgentService):
    """Agent service reached over its JSON HTTP API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        logger.debug("Agent service client created", base_url=self.base_url, timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        logger.debug("Agent service request", method=method, path=path)
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Agent service returned an error", method=method, path=path, status=status)
            raise AgentServiceError(f"API Error: {status} {e.response.reason_phrase}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.error("Agent service request failed", method=method, path=path, error=str(e))
            raise AgentServiceError(f"Agent service unreachable: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error("Failed to decode agent service response", path=path, error=str(e))
            raise AgentServiceError(f"Agent service returned invalid JSON for {path}") from e

    async def chat(self, role: str, message: str, context: dict[str, Any] | None = None) -> AgentReply:
        """POST a message to ``/chat/{role}``.

        Args:
            role: One of analyst, pm, dev or qa
            message: Text for the agent
            context: Optional JSON-serializable context sent alongside the message

        Returns:
            The parsed reply.

        Raises:
            ValueError: If the role is unknown.
            AgentServiceError: On transport failure, a non-2xx status or a malformed body.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        body: dict[str, Any] = {"message": message}
        if context is not None:
            body["context"] = context
        payload = await self._request("POST", f"/chat/{role}", body)
        return AgentReply.from_payload(role, payload)

    async def orchestrate(self, message: str, context: dict[str, Any] | None = None) -> AgentReply:
        """Let the service route the message to whichever role fits.

        Args:
            message: Text for the agents
            context: Optional context sent alongside the message

        Returns:
            The reply; its ``role`` names the agent that answered.
        """
        body: dict[str, Any] = {"message": message}
        if context is not None:
            body["context"] = context
        payload = await self._request("POST", "/orchestrate", body)
        return AgentReply.from_payload("", payload)

    async def list_roles(self) -> list[dict[str, Any]]:
        """Roles offered by the service, as ``id``/``name``/``description`` records."""
        return await self._request("GET", "/roles")

    async def list_workflows(self) -> list[dict[str, Any]]:
        """Workflows the service can run, or an empty list if it reports none."""
        payload = await self._request("GET", "/workflows")
        return payload.get("workflows", []) if isinstance(payload, dict) else []

    async def role_context(self, role: str) -> Any:
        """Context the service keeps for one role.

        Raises:
            ValueError: If the role is unknown.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        return await self._request("GET", f"/context/{role}")

    async def workflow_context(self, workflow_id: str) -> Any:
        """Definition and state of one workflow."""
        return await self._request("GET", f"/workflow/{workflow_id}")

    async def health_check(self) -> Any:
        """Fetch the service root, which answers when the service is up."""
        return await self._request("GET", "/")
