"""
Message relay between Microsoft Teams and the hosted mail-assistant agent.

Each inbound message activity is classified once and routed to one branch:
- Approval submission: forward the user's approve/deny decision to the agent
- OAuth retry: resume the exchange paused on connector consent
- Text message: start a new remote conversation and relay the agent's reply
- Empty: ignored

Agent replies that ask for OAuth consent or tool approval are turned into
Adaptive Cards and the handler stops until the user acts on them.
"""
import asyncio
import dataclasses
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from botbuilder.core import MessageFactory, TurnContext
from botbuilder.schema import Activity

from mail_agent_bot.api.teams.adaptive_cards import (
    create_approval_card,
    create_oauth_consent_card,
    wrap_card,
)
from mail_agent_bot.api.teams.conversation_state import (
    ApprovalSubmission,
    EmptyMessage,
    PendingAuthorization,
    PendingAuthorizationStore,
    RetryKeyword,
    TextMessage,
    classify_inbound,
    conversation_key_for,
)
from mail_agent_bot.config import TOKEN_SCOPE
from mail_agent_bot.services.agent_client import AgentReply, AgentServiceClient
from mail_agent_bot.services.error_classifier import (
    RemoteErrorKind,
    classify_remote_error,
    is_retryable,
)
from mail_agent_bot.services.retry import RetryPolicy, retry_with_backoff
from mail_agent_bot.telemetry import track_event

logger = logging.getLogger(__name__)

OAUTH_CONSENT_REQUEST = "oauth_consent_request"
MCP_APPROVAL_REQUEST = "mcp_approval_request"

WELCOME_MESSAGE = "Hi there! I'm an AI agent that can help you with your mail."
NO_RESPONSE_MESSAGE = "I'm sorry, I couldn't generate a response."
GENERIC_ERROR_MESSAGE = "I'm sorry, I encountered an error while processing your request."
RETRY_FAILED_MESSAGE = "Failed to retry the request. Please try again."
APPROVAL_PROCESSING_MESSAGE = "Processing your request..."
APPROVED_ACK = "✓ Approved - Processing your request..."
DENIED_ACK = "✗ Denied - Processing your request..."
APPROVED_FALLBACK = "✓ Action approved!"
DENIED_MESSAGE = "✗ Action denied."
MISSING_CONSENT_LINK_MESSAGE = (
    "⚠️ Authorization is required, but the authorization link is missing. "
    "Please authorize the connections manually in Azure AI Foundry Studio."
)
AUTH_REQUIRED_MESSAGE = (
    "⚠️ **Authorization Required**\n\n"
    "The agent needs authorization to access Microsoft SharePoint and OneDrive "
    "to help you with mail-related tasks.\n\n"
    "**How to fix this:**\n"
    "1. Go to [Azure AI Foundry Studio](https://ai.azure.com)\n"
    "2. Navigate to the agent's project\n"
    "3. Go to the **Connections** section\n"
    "4. Find the SharePoint connection used by the agent\n"
    "5. Click **Authorize** and sign in with your Microsoft 365 account\n\n"
    "After authorizing, try your request again!"
)


def _tenant_id(activity: Activity) -> Optional[str]:
    if activity.conversation and activity.conversation.tenant_id:
        return activity.conversation.tenant_id
    channel_data = activity.channel_data
    if isinstance(channel_data, dict):
        tenant = channel_data.get("tenant") or {}
        return tenant.get("id") if isinstance(tenant, dict) else None
    tenant = getattr(channel_data, "tenant", None)
    return getattr(tenant, "id", None)


class MessageRelay:
    """
    Conversation relay state machine for one bot process.

    All remote conversational memory lives in the agent service; the only local
    state is the pending-authorization store, which is injected.
    """

    def __init__(
        self,
        agent_client: AgentServiceClient,
        credential,
        pending_store: PendingAuthorizationStore,
        retry_policy: Optional[RetryPolicy] = None,
        token_scope: str = TOKEN_SCOPE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Args:
            agent_client: Remote agent operations
            credential: Async credential used for the token smoke check
            pending_store: Store of exchanges paused on OAuth consent
            retry_policy: Policy for remote calls (3 attempts from 1s by default)
            token_scope: Scope requested for the credential check
            sleep: Awaitable sleep used between retry attempts
        """
        self.agent_client = agent_client
        self.credential = credential
        self.pending_store = pending_store
        self.retry_policy = retry_policy or RetryPolicy()
        # AUTH_REQUIRED errors go straight to the user, never through backoff
        self.invoke_policy = dataclasses.replace(self.retry_policy, retry_if=is_retryable)
        self.token_scope = token_scope
        self._sleep = sleep

    async def _send_text(self, turn_context: TurnContext, text: str):
        return await turn_context.send_activity(MessageFactory.text(text))

    async def _send_card(self, turn_context: TurnContext, card: Dict[str, Any]):
        return await turn_context.send_activity(MessageFactory.attachment(wrap_card(card)))

    async def _with_retry(self, operation, policy: Optional[RetryPolicy] = None):
        return await retry_with_backoff(operation, policy or self.retry_policy, sleep=self._sleep)

    async def handle_message(self, turn_context: TurnContext) -> None:
        """
        Handle one inbound message activity.

        Never raises: any failure is logged and answered with a generic apology.
        """
        logger.info("[MESSAGE HANDLER] Received message")
        try:
            message = classify_inbound(turn_context.activity, self.pending_store.__contains__)

            if isinstance(message, ApprovalSubmission):
                await self.handle_approval(turn_context, message)
            elif isinstance(message, RetryKeyword):
                await self.handle_oauth_retry(turn_context, message)
            elif isinstance(message, TextMessage):
                await self.handle_text(turn_context, message)
            elif isinstance(message, EmptyMessage):
                logger.debug("[MESSAGE HANDLER] No text content, skipping")

        except Exception as e:
            logger.error(f"[MESSAGE HANDLER] Error calling agent: {e}", exc_info=True)
            track_event("message_handler_error", {"error_type": type(e).__name__})
            try:
                await self._send_text(turn_context, GENERIC_ERROR_MESSAGE)
            except Exception as send_error:
                logger.error(f"[MESSAGE HANDLER] Failed to send error reply: {send_error}", exc_info=True)

    async def handle_approval(self, turn_context: TurnContext, submission: ApprovalSubmission) -> None:
        """Forward an approve/deny click to the agent, degrading to a canned reply on failure."""
        approved = submission.approved
        logger.info(
            f"[APPROVAL HANDLER] User {'approved' if approved else 'denied'} "
            f"request {submission.request_id} in conversation {submission.conversation_id}"
        )
        track_event("approval_decision", {"approved": approved, "request_id": submission.request_id})

        await self._send_text(turn_context, APPROVED_ACK if approved else DENIED_ACK)

        try:
            reply = await self._with_retry(
                lambda: self.agent_client.submit_approval(
                    submission.conversation_id, submission.request_id, approved
                )
            )
        except Exception as e:
            logger.error(
                f"[APPROVAL HANDLER] Approval submission failed: {e} "
                f"(code={getattr(e, 'code', None)}, status={getattr(e, 'status_code', None)})"
            )
            logger.info("[APPROVAL HANDLER] Falling back to simple acknowledgment")
            await self._send_text(turn_context, APPROVED_FALLBACK if approved else DENIED_MESSAGE)
            return

        logger.info("[APPROVAL HANDLER] Approval processed successfully")
        if approved:
            await self._send_text(turn_context, reply.output_text or APPROVAL_PROCESSING_MESSAGE)
        else:
            await self._send_text(turn_context, DENIED_MESSAGE)

    async def handle_oauth_retry(self, turn_context: TurnContext, message: RetryKeyword) -> None:
        """Resume an exchange paused on OAuth consent. Single shot: the entry is not restored."""
        pending = self.pending_store.pop(message.conversation_key)
        if pending is None:
            # Expired between classification and pop
            await self._send_text(turn_context, RETRY_FAILED_MESSAGE)
            return

        logger.info(f"[MESSAGE HANDLER] User retrying after OAuth for conversation: {pending.remote_conversation_id}")
        track_event("oauth_retry", {"conversation_key": message.conversation_key})

        try:
            reply = await self._with_retry(
                lambda: self.agent_client.create_response(pending.remote_conversation_id),
                self.invoke_policy
            )
        except Exception as e:
            logger.error(f"[MESSAGE HANDLER] Retry failed: {e}", exc_info=True)
            await self._send_text(turn_context, RETRY_FAILED_MESSAGE)
            return

        await self._send_text(turn_context, reply.output_text or NO_RESPONSE_MESSAGE)

    def _log_user_context(self, activity: Activity) -> None:
        sender = activity.from_property
        logger.info(
            "User context - id=%s name=%s aad_object_id=%s channel=%s tenant=%s",
            sender.id if sender else None,
            sender.name if sender else None,
            sender.aad_object_id if sender else None,
            activity.channel_id,
            _tenant_id(activity),
        )

    async def handle_text(self, turn_context: TurnContext, message: TextMessage) -> None:
        """Send a fresh message to the agent and relay what comes back."""
        activity = turn_context.activity
        logger.info(f"[MESSAGE HANDLER] Processing message with agent '{self.agent_client.agent_name}'")
        self._log_user_context(activity)

        # Credential smoke check; failures abort with the generic apology
        token = await self.credential.get_token(self.token_scope)
        logger.info(f"[MESSAGE HANDLER] Token obtained, expires: {getattr(token, 'expires_on', None)}")

        conversation_id = await self._with_retry(
            lambda: self.agent_client.create_conversation(message.text), self.invoke_policy
        )

        try:
            reply = await self._with_retry(
                lambda: self.agent_client.create_response(conversation_id), self.invoke_policy
            )
        except Exception as e:
            logger.error(
                f"[MESSAGE HANDLER] Error creating response: {e} "
                f"(code={getattr(e, 'code', None)}, status={getattr(e, 'status_code', None)})"
            )
            if classify_remote_error(e) is RemoteErrorKind.AUTH_REQUIRED:
                logger.info("[MESSAGE HANDLER] Detected connector authorization error")
                track_event("agent_auth_required", {"conversation_id": conversation_id})
                await self._send_text(turn_context, AUTH_REQUIRED_MESSAGE)
                return
            raise

        await self.relay_reply(turn_context, conversation_id, message.text, reply)

    async def relay_reply(
        self,
        turn_context: TurnContext,
        conversation_id: str,
        original_text: str,
        reply: AgentReply
    ) -> None:
        """Send the agent reply, or the card it asks for, back to the user."""
        logger.info(f"[MESSAGE HANDLER] Response output types: {reply.output_types}")

        oauth_request = reply.find_item(OAUTH_CONSENT_REQUEST)
        if oauth_request is not None:
            consent_link = oauth_request.get("consent_link") or ""
            service_name = oauth_request.get("service_name") or "Service"

            if not consent_link:
                logger.error("[MESSAGE HANDLER] OAuth consent request missing consent_link")
                await self._send_text(turn_context, MISSING_CONSENT_LINK_MESSAGE)
                return

            conversation_key = conversation_key_for(turn_context.activity)
            self.pending_store.set(PendingAuthorization(
                conversation_key=conversation_key,
                remote_conversation_id=conversation_id,
                original_message_text=original_text,
                created_at_timestamp=self.pending_store.now_ms(),
            ))
            logger.info(f"[MESSAGE HANDLER] Stored pending OAuth conversation for key: {conversation_key}")
            track_event("oauth_consent_requested", {"service_name": service_name})

            await self._send_card(turn_context, create_oauth_consent_card(consent_link, service_name))
            return

        approval_request = reply.find_item(MCP_APPROVAL_REQUEST)
        if approval_request is not None:
            request_id = approval_request.get("id") or ""
            request_name = approval_request.get("name") or "Unknown Action"
            logger.info(f"[MESSAGE HANDLER] Found approval request: {request_id} ({request_name})")
            track_event("approval_requested", {"request_id": request_id, "name": request_name})

            await self._send_card(turn_context, create_approval_card(
                request_name,
                approval_request.get("arguments") or {},
                request_id,
                conversation_id
            ))
            return

        answer = reply.output_text or NO_RESPONSE_MESSAGE
        logger.info(f"[MESSAGE HANDLER] Sending response: {answer[:100]}")
        await self._send_text(turn_context, answer)

    async def handle_members_added(self, turn_context: TurnContext) -> None:
        """Greet once per update when anyone other than the bot was added."""
        activity = turn_context.activity
        recipient_id = activity.recipient.id if activity.recipient else None
        if any(member.id != recipient_id for member in activity.members_added or []):
            await self._send_text(turn_context, WELCOME_MESSAGE)
