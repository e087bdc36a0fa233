"""
Microsoft Teams Bot Framework webhook endpoints for the mail agent relay.
Authenticates incoming activities with the Bot Framework adapter and hands
them to the MessageRelay stored on the application state.
"""
import logging

from botbuilder.core import BotFrameworkAdapter, BotFrameworkAdapterSettings, TurnContext
from botbuilder.schema import Activity, ActivityTypes
from botframework.connector.auth import MicrosoftAppCredentials
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mail_agent_bot.config import BotSettings, get_settings
from mail_agent_bot.services.relay import MessageRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["teams"])


def create_adapter(settings: BotSettings) -> BotFrameworkAdapter:
    """Bot Framework adapter for the configured app registration."""
    # Configure credentials with tenant ID
    MicrosoftAppCredentials.microsoft_app_id = settings.app_id
    MicrosoftAppCredentials.microsoft_app_password = settings.app_password

    adapter_settings = BotFrameworkAdapterSettings(
        app_id=settings.app_id,
        app_password=settings.app_password,
        channel_auth_tenant=settings.tenant_id  # Tenant ID for SingleTenant apps
    )
    adapter = BotFrameworkAdapter(adapter_settings)

    async def on_turn_error(turn_context: TurnContext, error: Exception):
        logger.error(f"Unhandled error in turn: {error}", exc_info=error)

    adapter.on_turn_error = on_turn_error
    return adapter


adapter = create_adapter(get_settings())


async def route_activity(turn_context: TurnContext, relay: MessageRelay) -> None:
    """Send the activity to the relay branch for its type."""
    activity = turn_context.activity

    # Trust the service URL before sending (required for Bot Framework)
    if activity.service_url:
        MicrosoftAppCredentials.trust_service_url(activity.service_url)

    if activity.type == ActivityTypes.message:
        await relay.handle_message(turn_context)
    elif activity.type == ActivityTypes.conversation_update:
        if activity.members_added:
            await relay.handle_members_added(turn_context)
    else:
        logger.warning(f"Unhandled activity type: {activity.type}")


async def process_webhook(request: Request) -> JSONResponse:
    """Deserialize, authenticate and process one Bot Framework activity."""
    try:
        body = await request.json()
        activity = Activity().deserialize(body)
        logger.info(f"Received Teams activity: {activity.type}")

        auth_header = request.headers.get("Authorization", "")
        relay: MessageRelay = request.app.state.relay

        async def bot_logic(turn_context: TurnContext):
            await route_activity(turn_context, relay)

        await adapter.process_activity(activity, auth_header, bot_logic)

        return JSONResponse(content={"status": "ok"}, status_code=200)

    except Exception as e:
        logger.error(f"Error in Teams webhook: {e}", exc_info=True)
        return JSONResponse(
            content={"error": str(e)},
            status_code=500
        )


@router.post("/api/teams/webhook")
async def teams_webhook(request: Request):
    """
    Microsoft Teams Bot Framework webhook endpoint.
    Handles message and conversationUpdate activities.

    No API key required - uses Azure AD authentication from Bot Framework.
    """
    return await process_webhook(request)


@router.post("/api/messages")
async def bot_messages(request: Request):
    """Bot Framework default messaging endpoint (same handling as the webhook)."""
    return await process_webhook(request)
