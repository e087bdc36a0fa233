"""
Shared pytest configuration and fixtures for the Mail Agent Teams Bot tests.
Provides a fake Teams turn context, a mocked remote agent and an isolated
pending-authorization store for every test.
"""
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Module-level settings and the Bot Framework adapter are built at import time
os.environ.setdefault("FOUNDRY_PROJECT_ENDPOINT", "https://test-foundry.services.ai.azure.com/api/projects/test")
os.environ.setdefault("FOUNDRY_AGENT_NAME", "mail-assistant")
os.environ.setdefault("NODE_ENV", "production")
os.environ.setdefault("TEAMS_BOT_APP_ID", "")
os.environ.setdefault("TEAMS_BOT_APP_PASSWORD", "")

from botbuilder.schema import (  # noqa: E402
    Activity,
    ActivityTypes,
    ChannelAccount,
    ConversationAccount,
)

from mail_agent_bot.api.teams.conversation_state import PendingAuthorizationStore  # noqa: E402
from mail_agent_bot.services.agent_client import AgentReply  # noqa: E402
from mail_agent_bot.services.relay import MessageRelay  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


@pytest.fixture
def make_activity():
    """Factory for Teams message activities."""
    def _make(text=None, value=None, user_id="user-test", channel_id="msteams",
              activity_type=ActivityTypes.message):
        activity = Activity(
            type=activity_type,
            id="activity-test-001",
            channel_id=channel_id,
            service_url="https://smba.trafficmanager.net/amer/",
            text=text,
            value=value
        )
        activity.conversation = ConversationAccount(
            id="teams-conversation-123",
            tenant_id="tenant-test",
            conversation_type="personal"
        )
        activity.from_property = ChannelAccount(
            id=user_id,
            name="Test User",
            aad_object_id="aad-test-123"
        )
        activity.recipient = ChannelAccount(id="bot-id", name="Mail Assistant")
        return activity
    return _make


@pytest.fixture
def make_turn_context():
    """Factory for turn contexts that record outbound activities."""
    def _make(activity):
        turn_context = MagicMock()
        turn_context.activity = activity
        turn_context.send_activity = AsyncMock(return_value=MagicMock(id="sent-1"))
        return turn_context
    return _make


@pytest.fixture
def agent_client():
    """Mocked remote agent returning a plain text reply."""
    client = MagicMock()
    client.agent_name = "mail-assistant"
    client.create_conversation = AsyncMock(return_value="conv-123")
    client.create_response = AsyncMock(
        return_value=AgentReply(output_text="Hello from the agent", output=[{"type": "message"}])
    )
    client.submit_approval = AsyncMock(
        return_value=AgentReply(output_text="Email sent.", output=[])
    )
    return client


@pytest.fixture
def credential():
    """Mocked async credential."""
    cred = MagicMock()
    cred.get_token = AsyncMock(return_value=MagicMock(token="token-abc", expires_on=1_900_000_000))
    return cred


@pytest.fixture
def pending_store():
    """Isolated pending-authorization store."""
    return PendingAuthorizationStore()


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    """Awaitable sleep that records delays instead of waiting."""
    async def _sleep(seconds):
        recorded_sleeps.append(seconds)
    return _sleep


@pytest.fixture
def relay(agent_client, credential, pending_store, fake_sleep):
    """MessageRelay wired to mocks, with instant backoff."""
    return MessageRelay(
        agent_client=agent_client,
        credential=credential,
        pending_store=pending_store,
        sleep=fake_sleep
    )
