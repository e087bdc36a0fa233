"""
Classification of errors raised by the remote agent service.

The Foundry agent service does not publish a formal error taxonomy. The
AUTH_REQUIRED rules below match what the service has been observed to return
when a connector (e.g. SharePoint/OneDrive) lacks user authorization; they are a
heuristic and may need new markers as the service evolves.
"""
import logging
from enum import Enum
from typing import Any, Optional

import openai
from azure.core.exceptions import ServiceRequestError, ServiceResponseError

logger = logging.getLogger(__name__)

AUTH_ERROR_MARKERS = ("Failed to fetch access token",)
AUTH_ERROR_CODES = ("tool_user_error",)

TRANSIENT_STATUS_CODES = (408, 429)


class RemoteErrorKind(str, Enum):
    """How the relay should treat a remote failure."""
    AUTH_REQUIRED = "auth_required"  # Connector needs user authorization
    TRANSIENT = "transient"          # Worth retrying
    FATAL = "fatal"                  # Surface as a generic error


def _error_messages(error: BaseException) -> list:
    messages = [str(error)]
    message = getattr(error, "message", None)
    if isinstance(message, str):
        messages.append(message)

    # openai.APIStatusError keeps the decoded JSON body
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        nested = body.get("error") if isinstance(body.get("error"), dict) else body
        if isinstance(nested.get("message"), str):
            messages.append(nested["message"])

    # azure-core HttpResponseError keeps an ODataV4Format error
    odata = getattr(error, "error", None)
    if odata is not None and isinstance(getattr(odata, "message", None), str):
        messages.append(odata.message)
    return messages


def _error_code(error: BaseException) -> Optional[str]:
    code = getattr(error, "code", None)
    if code is None:
        body = getattr(error, "body", None)
        if isinstance(body, dict):
            nested = body.get("error") if isinstance(body.get("error"), dict) else body
            code = nested.get("code")
    return code if isinstance(code, str) else None


def _status_code(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value: Any = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_auth_required(error: BaseException) -> bool:
    """True when the error means a connector needs user authorization."""
    if _error_code(error) in AUTH_ERROR_CODES:
        return True
    return any(marker in message for message in _error_messages(error) for marker in AUTH_ERROR_MARKERS)


def classify_remote_error(error: BaseException) -> RemoteErrorKind:
    """
    Classify a remote agent failure.

    Args:
        error: Exception raised by a remote call

    Returns:
        RemoteErrorKind.AUTH_REQUIRED, TRANSIENT or FATAL
    """
    if is_auth_required(error):
        return RemoteErrorKind.AUTH_REQUIRED

    if isinstance(error, (
        openai.APIConnectionError,
        openai.RateLimitError,
        openai.InternalServerError,
        ServiceRequestError,
        ServiceResponseError,
        TimeoutError,
    )):
        return RemoteErrorKind.TRANSIENT

    status = _status_code(error)
    if status is not None and (status in TRANSIENT_STATUS_CODES or status >= 500):
        return RemoteErrorKind.TRANSIENT

    return RemoteErrorKind.FATAL


def is_retryable(error: BaseException) -> bool:
    """Retry predicate for agent invocations: everything except AUTH_REQUIRED."""
    return classify_remote_error(error) is not RemoteErrorKind.AUTH_REQUIRED
