"""
Pipeline errors surfaced to send-path callers.

Each error carries the HTTP status the API responds with.
"""


class PipelineError(Exception):
    """Base error for the send path."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PipelineError):
    """A field required by the message kind is missing. Raised before any I/O."""

    status_code = 400


class NumberNotFoundError(PipelineError):
    """The WhatsApp number does not exist or belongs to another workspace."""

    status_code = 404


class SendFailedError(PipelineError):
    """
    The message could not be sent or stored.

    502 when the provider rejected the message (message is already translated),
    500 for storage or configuration failures.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message, status_code)
        self.error_code = error_code
