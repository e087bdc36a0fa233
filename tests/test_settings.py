"""
Unit tests for deployment settings.

Tests environment variable parsing, aliases and default values.
"""
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from mail_agent_bot.config import DEFAULT_AGENT_NAME, BotSettings


class TestBotSettings:
    """Test suite for BotSettings.from_env."""

    @patch.dict(os.environ, {}, clear=True)
    def test_default_values(self):
        settings = BotSettings.from_env()

        assert settings.environment == "production"
        assert not settings.is_development
        assert settings.managed_identity_client_id is None
        assert settings.foundry_project_endpoint == ""
        assert settings.foundry_agent_name == DEFAULT_AGENT_NAME == "mail-assistant"
        assert settings.retry_max_attempts == 3
        assert settings.retry_initial_delay == 1.0
        assert settings.pending_auth_ttl_seconds == 3600
        assert settings.pending_auth_sweep_seconds == 300
        assert settings.log_level == "INFO"
        assert settings.port == 3978

    @patch.dict(os.environ, {
        "NODE_ENV": "Development",
        "MI_CLIENT_ID": "mi-client-123",
        "FOUNDRY_PROJECT_ENDPOINT": "https://foundry.example/api/projects/p1",
        "FOUNDRY_AGENT_NAME": "inbox-helper",
        "RETRY_MAX_ATTEMPTS": "5",
        "RETRY_INITIAL_DELAY_SECONDS": "0.5",
        "PENDING_AUTH_TTL_SECONDS": "0",
        "LOG_LEVEL": "debug",
        "PORT": "8080",
    }, clear=True)
    def test_environment_overrides(self):
        settings = BotSettings.from_env()

        assert settings.environment == "development"
        assert settings.is_development
        assert settings.managed_identity_client_id == "mi-client-123"
        assert settings.foundry_project_endpoint == "https://foundry.example/api/projects/p1"
        assert settings.foundry_agent_name == "inbox-helper"
        assert settings.retry_max_attempts == 5
        assert settings.retry_initial_delay == 0.5
        assert settings.pending_auth_ttl_seconds == 0
        assert settings.log_level == "DEBUG"
        assert settings.port == 8080

    @patch.dict(os.environ, {"APP_ENV": "development"}, clear=True)
    def test_app_env_alias(self):
        assert BotSettings.from_env().is_development

    @patch.dict(os.environ, {
        "MicrosoftAppId": "app-id",
        "MicrosoftAppPassword": "secret",
        "MicrosoftAppTenantId": "tenant-1",
    }, clear=True)
    def test_bot_framework_aliases(self):
        settings = BotSettings.from_env()

        assert settings.app_id == "app-id"
        assert settings.app_password == "secret"
        assert settings.tenant_id == "tenant-1"

    @patch.dict(os.environ, {"TEAMS_BOT_APP_ID": "teams-id", "MicrosoftAppId": "other-id"}, clear=True)
    def test_teams_names_take_precedence(self):
        assert BotSettings.from_env().app_id == "teams-id"

    @patch.dict(os.environ, {"FOUNDRY_AGENT_NAME": ""}, clear=True)
    def test_empty_agent_name_uses_default(self):
        assert BotSettings.from_env().foundry_agent_name == DEFAULT_AGENT_NAME

    def test_blank_agent_name_uses_default(self):
        assert BotSettings(foundry_agent_name="   ").foundry_agent_name == DEFAULT_AGENT_NAME

    def test_retry_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            BotSettings(retry_max_attempts=0)
