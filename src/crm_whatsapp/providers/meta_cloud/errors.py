"""
Meta Error Translation

Maps Graph API error codes to stable, user-facing failure reasons.

Lookup keys are (code, subcode) and (code, None); a subcode match wins over
the generic entry for the same code. Unmatched codes fall back to the
provider's own message.
"""

from crm_whatsapp.providers.base import ProviderError

INVALID_RECIPIENT = (
    "This phone number is not on WhatsApp or is invalid. "
    "Check the number and include the country code."
)
OUTSIDE_WINDOW = (
    "More than 24 hours have passed since the customer last replied. "
    "Use an approved message template to restart the conversation."
)
TEMPLATE_NOT_FOUND = (
    "Template not found or not approved. "
    "Check the template name and language in WhatsApp Manager."
)
TEMPLATE_PARAM_MISMATCH = (
    "The template parameters do not match the approved template. "
    "Check the number and format of the variables."
)
TEMPLATE_PAUSED = "This template has been paused or disabled due to low quality. Use another template."
MEDIA_DOWNLOAD_FAILED = (
    "WhatsApp could not download the media file. "
    "Make sure the URL is public and the format and size are supported."
)
BUSINESS_VERIFICATION_REQUIRED = (
    "Business verification is required to send this message. "
    "Complete verification in Meta Business Manager."
)
PAYMENT_REQUIRED = (
    "The WhatsApp Business account has a billing issue or reached its spending limit. "
    "Check the payment method in Meta Business Manager."
)
RATE_LIMITED = "Too many messages sent in a short period. Wait a moment and try again."
TOKEN_EXPIRED = "The WhatsApp access token has expired. Reconnect the WhatsApp number."
OAUTH_FAILED = "WhatsApp authentication failed. Reconnect the WhatsApp number."
GENERIC_FAILURE = "Failed to send the WhatsApp message."

OAUTH_ERROR_CODE = 190

ERROR_MESSAGES: dict[tuple[int, int | None], str] = {
    # Recipient
    (131026, None): INVALID_RECIPIENT,
    (131030, None): INVALID_RECIPIENT,
    (100, 2018001): INVALID_RECIPIENT,
    # Customer service window
    (131047, None): OUTSIDE_WINDOW,
    # Templates
    (132001, None): TEMPLATE_NOT_FOUND,
    (132000, None): TEMPLATE_PARAM_MISMATCH,
    (132012, None): TEMPLATE_PARAM_MISMATCH,
    (132015, None): TEMPLATE_PAUSED,
    (132016, None): TEMPLATE_PAUSED,
    # Media
    (131052, None): MEDIA_DOWNLOAD_FAILED,
    (131053, None): MEDIA_DOWNLOAD_FAILED,
    # Account
    (131031, None): BUSINESS_VERIFICATION_REQUIRED,
    (131037, None): BUSINESS_VERIFICATION_REQUIRED,
    (131042, None): PAYMENT_REQUIRED,
    # Throughput
    (4, None): RATE_LIMITED,
    (80007, None): RATE_LIMITED,
    (130429, None): RATE_LIMITED,
    (131048, None): RATE_LIMITED,
    (131056, None): RATE_LIMITED,
    # Authentication
    (OAUTH_ERROR_CODE, 463): TOKEN_EXPIRED,
    (OAUTH_ERROR_CODE, 467): TOKEN_EXPIRED,
    (OAUTH_ERROR_CODE, None): OAUTH_FAILED,
}


def _as_int(value: int | str | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def translate_provider_error(
    code: int | str | None,
    subcode: int | str | None = None,
    message: str | None = None,
    error_type: str | None = None,
) -> str:
    """
    Translate a provider error into a user-facing message.

    Args:
        code: Graph API error code
        subcode: Graph API error_subcode (optional)
        message: Provider's raw message, returned when nothing matches
        error_type: Graph API error type (e.g. "OAuthException")

    Returns:
        Translated message
    """
    code_int = _as_int(code)
    subcode_int = _as_int(subcode)

    if code_int is not None:
        if subcode_int is not None and (code_int, subcode_int) in ERROR_MESSAGES:
            return ERROR_MESSAGES[(code_int, subcode_int)]
        if (code_int, None) in ERROR_MESSAGES:
            return ERROR_MESSAGES[(code_int, None)]

    if error_type == "OAuthException":
        return OAUTH_FAILED

    return message or GENERIC_FAILURE


def translate_exception(error: ProviderError) -> str:
    """Translate a ProviderError raised by a provider client."""
    return translate_provider_error(
        code=error.code,
        subcode=error.subcode,
        message=error.message,
        error_type=error.error_type,
    )
