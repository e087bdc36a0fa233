"""
Mail Agent Teams Bot - relays Microsoft Teams chats to an Azure AI Foundry agent.

Provides:
- Bot Framework webhook for Teams message and conversationUpdate activities
- Relay to the hosted mail-assistant agent (Responses / Conversations API)
- OAuth consent cards with a "retry" resume flow
- Approval cards for MCP tool actions
"""
