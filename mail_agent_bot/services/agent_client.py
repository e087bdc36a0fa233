"""
Client for the hosted Azure AI Foundry agent.

Wraps the Foundry project client and the OpenAI-compatible client it vends
(Conversations + Responses APIs). Every call addresses the agent by reference,
so all conversational memory lives in the remote service.
"""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from azure.ai.projects.aio import AIProjectClient

logger = logging.getLogger(__name__)


@dataclass
class AgentReply:
    """Normalized view of a Responses API result."""
    output_text: Optional[str] = None
    output: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def output_types(self) -> List[str]:
        return [item.get("type") for item in self.output]

    def find_item(self, item_type: str) -> Optional[Dict[str, Any]]:
        """First output item of the given type, in reply order."""
        for item in self.output:
            if item.get("type") == item_type:
                return item
        return None


def _item_to_dict(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item
    if hasattr(item, "model_dump"):
        return item.model_dump()
    return dict(vars(item))


def to_agent_reply(response: Any) -> AgentReply:
    """Convert an OpenAI Response object (or plain dict) into an AgentReply."""
    if isinstance(response, dict):
        output_text = response.get("output_text")
        output = response.get("output") or []
    else:
        output_text = getattr(response, "output_text", None)
        output = getattr(response, "output", None) or []
    return AgentReply(
        output_text=output_text or None,
        output=[_item_to_dict(item) for item in output],
    )


class AgentServiceClient:
    """
    Remote agent operations used by the message relay.

    Features:
    - Create conversations seeded with the user's message
    - Invoke the agent against a conversation (fresh or resumed)
    - Submit MCP approval decisions
    """

    def __init__(self, endpoint: str, credential, agent_name: str, project_client=None):
        """
        Args:
            endpoint: Azure AI Foundry project endpoint
            credential: Async azure-identity credential
            agent_name: Name of the hosted agent to reference
            project_client: Optional pre-built project client
        """
        self.endpoint = endpoint
        self.agent_name = agent_name
        self._project_client = project_client or AIProjectClient(endpoint=endpoint, credential=credential)
        self._openai_client = None

        logger.info(f"AgentServiceClient initialized for agent '{agent_name}' at {endpoint or '<unset>'}")

    @property
    def agent_reference(self) -> Dict[str, Any]:
        return {"agent": {"name": self.agent_name, "type": "agent_reference"}}

    async def get_openai_client(self):
        """OpenAI client from the project (created once, then reused)."""
        if self._openai_client is None:
            client = self._project_client.get_openai_client()
            if inspect.isawaitable(client):
                client = await client
            self._openai_client = client
            logger.info("OpenAI client obtained from Foundry project")
        return self._openai_client

    async def create_conversation(self, text: str) -> str:
        """Create a remote conversation whose first turn is the user's text."""
        client = await self.get_openai_client()
        conversation = await client.conversations.create(
            items=[{"type": "message", "role": "user", "content": text}]
        )
        logger.info(f"Created conversation: {conversation.id}")
        return conversation.id

    async def create_response(
        self,
        conversation_id: str,
        input_items: Optional[List[Dict[str, Any]]] = None
    ) -> AgentReply:
        """
        Invoke the agent against a conversation.

        With no input items the agent continues the existing exchange, which is
        how a paused OAuth conversation is resumed.
        """
        client = await self.get_openai_client()
        kwargs: Dict[str, Any] = {"conversation": conversation_id, "extra_body": self.agent_reference}
        if input_items:
            kwargs["input"] = input_items
        response = await client.responses.create(**kwargs)
        reply = to_agent_reply(response)
        logger.info(f"Response for conversation {conversation_id} has {len(reply.output)} output items")
        return reply

    async def submit_approval(self, conversation_id: str, request_id: str, approve: bool) -> AgentReply:
        """Send the user's decision on an MCP approval request."""
        return await self.create_response(
            conversation_id,
            input_items=[{
                "type": "mcp_approval_response",
                "approve": approve,
                "approval_request_id": request_id,
            }]
        )

    async def close(self):
        if self._openai_client is not None and hasattr(self._openai_client, "close"):
            result = self._openai_client.close()
            if inspect.isawaitable(result):
                await result
        await self._project_client.close()
