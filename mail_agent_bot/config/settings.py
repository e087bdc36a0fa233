"""
Deployment settings for the Mail Agent Teams Bot.
Set in .env.local or environment variables.

Settings:
=========
Azure AI Foundry:
- FOUNDRY_PROJECT_ENDPOINT: Azure AI Foundry project endpoint
- FOUNDRY_AGENT_NAME: Name of the hosted agent
  Default: mail-assistant

Identity:
- NODE_ENV (or APP_ENV): "development" uses the Azure CLI credential chain,
  anything else is treated as production
  Default: production
- MI_CLIENT_ID: Client ID of a user-assigned managed identity (production only)

Bot Framework:
- TEAMS_BOT_APP_ID / TEAMS_BOT_APP_PASSWORD / TEAMS_BOT_TENANT_ID
  (MicrosoftAppId / MicrosoftAppPassword / MicrosoftAppTenantId also accepted)

Resilience:
- RETRY_MAX_ATTEMPTS: Attempts per remote agent call
  Default: 3
- RETRY_INITIAL_DELAY_SECONDS: First backoff delay, doubled on every retry
  Default: 1.0
- PENDING_AUTH_TTL_SECONDS: Age after which a paused OAuth exchange is dropped
  Default: 3600 (0 disables expiry)
- PENDING_AUTH_SWEEP_SECONDS: Interval of the expiry sweep
  Default: 300
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv('.env.local')

DEFAULT_AGENT_NAME = "mail-assistant"

# Scope used to smoke-test the credential before each fresh message
TOKEN_SCOPE = "https://cognitiveservices.azure.com/.default"


def _first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


class BotSettings(BaseModel):
    """Static deployment settings, read once at startup."""

    environment: str = Field(default="production", description="Deployment mode")
    managed_identity_client_id: Optional[str] = Field(default=None, description="User-assigned managed identity")

    foundry_project_endpoint: str = Field(default="", description="Azure AI Foundry project endpoint")
    foundry_agent_name: str = Field(default=DEFAULT_AGENT_NAME, description="Hosted agent name")

    app_id: str = Field(default="", description="Microsoft App ID of the bot")
    app_password: str = Field(default="", description="Microsoft App password of the bot")
    tenant_id: Optional[str] = Field(default=None, description="Tenant for single-tenant bots")

    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_initial_delay: float = Field(default=1.0, ge=0.0)

    pending_auth_ttl_seconds: int = Field(default=3600, ge=0)
    pending_auth_sweep_seconds: int = Field(default=300, ge=1)

    log_level: str = "INFO"
    port: int = 3978

    @field_validator('environment')
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return (v or "production").strip().lower()

    @field_validator('foundry_agent_name')
    @classmethod
    def default_agent_name(cls, v: str) -> str:
        """An empty agent name falls back to the default agent."""
        return v.strip() if v and v.strip() else DEFAULT_AGENT_NAME

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "BotSettings":
        """Build settings from the current process environment."""
        return cls(
            environment=_first_env('NODE_ENV', 'APP_ENV', default='production'),
            managed_identity_client_id=_first_env('MI_CLIENT_ID'),
            foundry_project_endpoint=_first_env('FOUNDRY_PROJECT_ENDPOINT', default=''),
            foundry_agent_name=_first_env('FOUNDRY_AGENT_NAME', default=DEFAULT_AGENT_NAME),
            app_id=_first_env('TEAMS_BOT_APP_ID', 'MicrosoftAppId', default=''),
            app_password=_first_env('TEAMS_BOT_APP_PASSWORD', 'MicrosoftAppPassword', default=''),
            tenant_id=_first_env('TEAMS_BOT_TENANT_ID', 'MicrosoftAppTenantId'),
            retry_max_attempts=int(os.getenv('RETRY_MAX_ATTEMPTS', '3')),
            retry_initial_delay=float(os.getenv('RETRY_INITIAL_DELAY_SECONDS', '1.0')),
            pending_auth_ttl_seconds=int(os.getenv('PENDING_AUTH_TTL_SECONDS', '3600')),
            pending_auth_sweep_seconds=int(os.getenv('PENDING_AUTH_SWEEP_SECONDS', '300')),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            port=int(os.getenv('PORT', '3978')),
        )


@lru_cache(maxsize=1)
def get_settings() -> BotSettings:
    """Process-wide settings instance (cached after first read)."""
    return BotSettings.from_env()
