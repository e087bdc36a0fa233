"""
Tests for remote agent error classification
"""
import httpx
import openai
import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from mail_agent_bot.services.error_classifier import (
    RemoteErrorKind,
    classify_remote_error,
    is_auth_required,
    is_retryable,
)

REQUEST = httpx.Request("POST", "https://test-foundry.services.ai.azure.com/openai/responses")


def status_error(cls, status, body=None, message="error"):
    return cls(message, response=httpx.Response(status, request=REQUEST), body=body)


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class TestAuthRequired:

    def test_access_token_marker_in_message(self):
        error = RuntimeError("Failed to fetch access token for connection 'SharePoint'")
        assert classify_remote_error(error) is RemoteErrorKind.AUTH_REQUIRED

    def test_tool_user_error_code_attribute(self):
        class ToolError(Exception):
            code = "tool_user_error"

        assert classify_remote_error(ToolError("nope")) is RemoteErrorKind.AUTH_REQUIRED

    def test_openai_error_body_code(self):
        error = status_error(
            openai.BadRequestError, 400,
            body={"code": "tool_user_error", "message": "Connector call failed"}
        )
        assert is_auth_required(error)

    def test_marker_in_nested_body_message(self):
        error = status_error(
            openai.InternalServerError, 500,
            body={"error": {"message": "Failed to fetch access token", "code": "server_error"}}
        )
        # Auth marker wins over the 5xx status
        assert classify_remote_error(error) is RemoteErrorKind.AUTH_REQUIRED

    def test_auth_required_is_not_retryable(self):
        assert not is_retryable(RuntimeError("Failed to fetch access token"))


class TestTransient:

    def test_connection_error(self):
        error = openai.APIConnectionError(request=REQUEST)
        assert classify_remote_error(error) is RemoteErrorKind.TRANSIENT

    def test_rate_limit(self):
        assert classify_remote_error(status_error(openai.RateLimitError, 429)) is RemoteErrorKind.TRANSIENT

    def test_server_error(self):
        assert classify_remote_error(status_error(openai.InternalServerError, 503)) is RemoteErrorKind.TRANSIENT

    def test_azure_service_request_error(self):
        assert classify_remote_error(ServiceRequestError("dns failure")) is RemoteErrorKind.TRANSIENT

    def test_timeout(self):
        assert classify_remote_error(TimeoutError()) is RemoteErrorKind.TRANSIENT

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 504])
    def test_status_code_attribute(self, status):
        assert classify_remote_error(StatusError("x", status)) is RemoteErrorKind.TRANSIENT


class TestFatal:

    def test_bad_request(self):
        error = status_error(openai.BadRequestError, 400, body={"code": "invalid_request", "message": "bad"})
        assert classify_remote_error(error) is RemoteErrorKind.FATAL

    def test_plain_exception(self):
        assert classify_remote_error(ValueError("unexpected")) is RemoteErrorKind.FATAL

    def test_azure_http_404(self):
        error = HttpResponseError(message="Agent not found")
        error.status_code = 404
        assert classify_remote_error(error) is RemoteErrorKind.FATAL

    def test_fatal_is_still_retryable(self):
        assert is_retryable(ValueError("unexpected"))
