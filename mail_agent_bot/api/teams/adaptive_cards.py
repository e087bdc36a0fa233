"""
Adaptive Cards for Microsoft Teams Bot
Creates the OAuth consent and action approval cards shown mid-conversation.
"""
import json
from typing import Any, Dict

from botbuilder.core import CardFactory
from botbuilder.schema import Attachment

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
ADAPTIVE_CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"
ADAPTIVE_CARD_VERSION = "1.4"


def create_oauth_consent_card(consent_link: str, service_name: str) -> Dict[str, Any]:
    """
    Create card asking the user to authorize a downstream connector.

    The user finishes the consent flow in the browser and then sends 'retry'
    so the paused agent exchange can resume.
    """
    return {
        "$schema": ADAPTIVE_CARD_SCHEMA,
        "type": "AdaptiveCard",
        "version": ADAPTIVE_CARD_VERSION,
        "body": [
            {
                "type": "TextBlock",
                "text": "Authorization Required",
                "weight": "bolder",
                "size": "large"
            },
            {
                "type": "TextBlock",
                "text": f"The agent needs authorization to access {service_name}. "
                        "Click the button below to grant permission.",
                "wrap": True,
                "spacing": "medium"
            },
            {
                "type": "TextBlock",
                "text": "1. Click 'Authorize' to open the authorization page",
                "wrap": True,
                "spacing": "small",
                "size": "small"
            },
            {
                "type": "TextBlock",
                "text": "2. Complete the authorization process",
                "wrap": True,
                "spacing": "small",
                "size": "small"
            },
            {
                "type": "TextBlock",
                "text": "3. Return to Teams and send 'retry' to continue",
                "wrap": True,
                "spacing": "small",
                "size": "small"
            },
            {
                "type": "TextBlock",
                "text": "You will be redirected to authorize the application.",
                "wrap": True,
                "spacing": "medium",
                "size": "small",
                "color": "warning"
            }
        ],
        "actions": [
            {
                "type": "Action.OpenUrl",
                "title": f"Authorize {service_name}",
                "url": consent_link,
                "style": "positive"
            }
        ]
    }


def format_arguments(arguments: Any) -> str:
    """Pretty-print tool arguments; JSON strings are decoded first."""
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except ValueError:
            return arguments
    return json.dumps(arguments, indent=2, ensure_ascii=False, default=str)


def create_approval_card(
    request_name: str,
    request_arguments: Any,
    request_id: str,
    conversation_id: str
) -> Dict[str, Any]:
    """
    Create card asking the user to approve or deny an MCP tool action.

    Both buttons submit {action, requestId, conversationId}; the submission comes
    back to the bot as a message activity whose value carries that payload.
    """
    return {
        "$schema": ADAPTIVE_CARD_SCHEMA,
        "type": "AdaptiveCard",
        "version": ADAPTIVE_CARD_VERSION,
        "body": [
            {
                "type": "TextBlock",
                "text": "Action Approval Required",
                "weight": "bolder",
                "size": "large"
            },
            {
                "type": "TextBlock",
                "text": f"The agent needs your approval to perform: {request_name}",
                "wrap": True,
                "spacing": "medium"
            },
            {
                "type": "TextBlock",
                "text": "Details:",
                "weight": "bolder",
                "spacing": "small"
            },
            {
                "type": "TextBlock",
                "text": format_arguments(request_arguments),
                "wrap": True,
                "fontType": "monospace",
                "size": "small"
            }
        ],
        "actions": [
            {
                "type": "Action.Submit",
                "title": "✓ Approve",
                "style": "positive",
                "data": {
                    "action": "approve",
                    "requestId": request_id,
                    "conversationId": conversation_id
                }
            },
            {
                "type": "Action.Submit",
                "title": "✗ Deny",
                "style": "destructive",
                "data": {
                    "action": "deny",
                    "requestId": request_id,
                    "conversationId": conversation_id
                }
            }
        ]
    }


def wrap_card(card: Dict[str, Any]) -> Attachment:
    """Wrap a card document as an outbound adaptive card attachment."""
    return CardFactory.adaptive_card(card)
