"""Error taxonomy for the public contact endpoint and outbound relays."""


class SubmissionError(Exception):
    """A terminal rejection of a contact submission.

    Rendered to the caller as ``{"error": message}`` with ``status_code``.
    """

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SubmissionError):
    """Malformed, missing or out-of-range field."""

    status_code = 400


class OriginError(SubmissionError):
    """Request origin is not in the allow-list."""

    status_code = 403


class NotFoundError(SubmissionError):
    """Wrong method or path."""

    status_code = 404


class RateLimitedError(SubmissionError):
    """Client exhausted its request window."""

    status_code = 429


class VerificationFailedError(SubmissionError):
    """Bot verification rejected the client token."""

    status_code = 400


class RelayError(Exception):
    """An outbound relay (transactional API or SMTP) failed."""
