"""
Mail Agent Teams Bot Service - FastAPI application.

Handles Microsoft Teams Bot Framework webhooks and relays conversations to
the Azure AI Foundry mail-assistant agent.
"""
import asyncio
import inspect
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mail_agent_bot.api.health_check import router as health_router
from mail_agent_bot.api.teams.conversation_state import PendingAuthorizationStore
from mail_agent_bot.api.teams.routes import router as teams_router
from mail_agent_bot.config import BotSettings, get_settings
from mail_agent_bot.error_handlers import register_error_handlers
from mail_agent_bot.services.agent_client import AgentServiceClient
from mail_agent_bot.services.credentials import build_credential
from mail_agent_bot.services.relay import MessageRelay
from mail_agent_bot.services.retry import RetryPolicy

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_relay(settings: BotSettings, pending_store: PendingAuthorizationStore):
    """
    Wire credential, agent client and relay for one process.

    Returns:
        (relay, agent_client, credential) so the lifespan can close them at shutdown
    """
    credential = build_credential(settings.environment, settings.managed_identity_client_id)
    agent_client = AgentServiceClient(
        endpoint=settings.foundry_project_endpoint,
        credential=credential,
        agent_name=settings.foundry_agent_name
    )
    relay = MessageRelay(
        agent_client=agent_client,
        credential=credential,
        pending_store=pending_store,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay
        )
    )
    return relay, agent_client, credential


async def sweep_pending_authorizations(store: PendingAuthorizationStore, interval_seconds: int, sleep=asyncio.sleep):
    """Periodically drop paused OAuth exchanges older than the store TTL."""
    while True:
        await sleep(interval_seconds)
        try:
            store.evict_expired()
        except Exception as e:
            logger.error(f"Pending authorization sweep failed: {e}", exc_info=True)


async def _close_quietly(resource, name: str):
    if resource is None or not hasattr(resource, "close"):
        return
    try:
        result = resource.close()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Error closing {name}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown."""
    settings = get_settings()
    logger.info("Mail Agent Teams Bot starting up...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"FOUNDRY_PROJECT_ENDPOINT: {settings.foundry_project_endpoint or '<unset>'}")
    if not settings.foundry_project_endpoint:
        logger.warning("FOUNDRY_PROJECT_ENDPOINT is not set; agent calls will fail")

    pending_store = PendingAuthorizationStore(ttl_seconds=settings.pending_auth_ttl_seconds)
    relay, agent_client, credential = build_relay(settings, pending_store)

    app.state.settings = settings
    app.state.pending_store = pending_store
    app.state.relay = relay

    sweep_task = None
    if pending_store.ttl_seconds:
        sweep_task = asyncio.create_task(
            sweep_pending_authorizations(pending_store, settings.pending_auth_sweep_seconds)
        )

    yield

    # Cleanup
    logger.info("Mail Agent Teams Bot shutting down...")
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    pending_store.clear()
    await _close_quietly(agent_client, "agent client")
    await _close_quietly(credential, "credential")


# Create FastAPI app
app = FastAPI(
    title="Mail Agent Teams Bot",
    description="Microsoft Teams relay for the Azure AI Foundry mail-assistant agent",
    version="1.0.0",
    lifespan=lifespan
)

register_error_handlers(app)
app.include_router(teams_router)
app.include_router(health_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "mail-agent-bot",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "teams_webhook": "/api/teams/webhook",
            "bot_messages": "/api/messages"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
