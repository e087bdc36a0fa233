"""
Azure credential selection for the Foundry project client.

Development uses an explicit Azure CLI -> Azure Developer CLI chain instead of
DefaultAzureCredential to avoid its environment probing. Production prefers
managed identity, pinned to a client ID when a user-assigned identity is configured.
"""
import logging
from typing import Optional

from azure.identity.aio import (
    AzureCliCredential,
    AzureDeveloperCliCredential,
    ChainedTokenCredential,
    DefaultAzureCredential,
    ManagedIdentityCredential,
)

logger = logging.getLogger(__name__)


def build_credential(environment: str, managed_identity_client_id: Optional[str] = None):
    """
    Select a token credential for the deployment mode.

    Args:
        environment: Deployment mode ("development" or anything else for production)
        managed_identity_client_id: Optional user-assigned managed identity client ID

    Returns:
        An async azure-identity credential exposing get_token(scope)
    """
    if (environment or "").strip().lower() == "development":
        logger.info("Development environment: using ChainedTokenCredential (AzureCli -> AzureDeveloperCli)")
        return ChainedTokenCredential(
            AzureCliCredential(),
            AzureDeveloperCliCredential()
        )

    if managed_identity_client_id:
        logger.info(f"Using ManagedIdentityCredential with client_id={managed_identity_client_id}")
        return ManagedIdentityCredential(client_id=managed_identity_client_id)

    logger.info("Using DefaultAzureCredential (ManagedIdentity -> AzureCli -> ...)")
    return DefaultAzureCredential()
