"""
Tests for provider error translation.
"""

import pytest

from crm_whatsapp.providers.base import ProviderError
from crm_whatsapp.providers.meta_cloud.errors import (
    GENERIC_FAILURE,
    INVALID_RECIPIENT,
    MEDIA_DOWNLOAD_FAILED,
    OAUTH_FAILED,
    OUTSIDE_WINDOW,
    RATE_LIMITED,
    TEMPLATE_NOT_FOUND,
    TEMPLATE_PARAM_MISMATCH,
    TEMPLATE_PAUSED,
    TOKEN_EXPIRED,
    translate_exception,
    translate_provider_error,
)


class TestTranslateProviderError:
    """Code, subcode and type lookups."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (131026, INVALID_RECIPIENT),
            (131030, INVALID_RECIPIENT),
            (131047, OUTSIDE_WINDOW),
            (132001, TEMPLATE_NOT_FOUND),
            (132000, TEMPLATE_PARAM_MISMATCH),
            (132012, TEMPLATE_PARAM_MISMATCH),
            (132015, TEMPLATE_PAUSED),
            (131053, MEDIA_DOWNLOAD_FAILED),
            (130429, RATE_LIMITED),
            (4, RATE_LIMITED),
        ],
    )
    def test_known_codes(self, code, expected):
        assert translate_provider_error(code, message="raw provider text") == expected

    def test_string_code(self):
        """Codes arriving as strings are matched too."""
        assert translate_provider_error("131047") == OUTSIDE_WINDOW

    def test_unknown_code_returns_provider_message(self):
        assert translate_provider_error(999999, message="Something odd happened") == "Something odd happened"

    def test_unknown_code_without_message(self):
        assert translate_provider_error(999999) == GENERIC_FAILURE

    def test_subcode_wins_over_code(self):
        """(190, 463) is an expired token, plain 190 is a generic auth failure."""
        assert translate_provider_error(190, subcode=463) == TOKEN_EXPIRED
        assert translate_provider_error(190) == OAUTH_FAILED

    def test_unmatched_subcode_falls_back_to_code(self):
        assert translate_provider_error(190, subcode=1) == OAUTH_FAILED

    def test_subcode_only_entry(self):
        """Code 100 is only translated with the invalid-recipient subcode."""
        assert translate_provider_error(100, subcode=2018001) == INVALID_RECIPIENT
        assert translate_provider_error(100, message="Invalid parameter") == "Invalid parameter"

    def test_oauth_exception_type(self):
        assert translate_provider_error(999, error_type="OAuthException") == OAUTH_FAILED

    def test_translate_exception(self):
        error = ProviderError("(#131047) Re-engagement message", code=131047)
        assert translate_exception(error) == OUTSIDE_WINDOW

    def test_translate_transport_error(self):
        """Transport failures keep their own message."""
        error = ProviderError("Request to WhatsApp timed out after 15.0s", code="TIMEOUT")
        assert translate_exception(error) == "Request to WhatsApp timed out after 15.0s"


class TestProviderErrorFromGraph:
    """Building ProviderError from Graph API error bodies."""

    def test_from_graph_error(self):
        error = ProviderError.from_graph_error(
            {
                "message": "(#131026) Message undeliverable",
                "type": "OAuthException",
                "code": 131026,
                "error_subcode": 2494010,
            },
            status_code=400,
        )
        assert error.code == 131026
        assert error.subcode == 2494010
        assert error.error_type == "OAuthException"
        assert error.retryable is False

    def test_server_error_is_retryable(self):
        error = ProviderError.from_graph_error({}, status_code=503)
        assert error.code == 503
        assert error.message == "Unknown error"
        assert error.retryable is True
