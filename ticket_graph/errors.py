"""Error taxonomy for remote stores and analysis."""


class RemoteError(Exception):
    """A remote store request failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TransientRemoteError(RemoteError):
    """Rate limiting, 5xx or a transport failure that outlasted the retry budget."""


class NotFoundError(RemoteError):
    """The requested record or document does not exist (HTTP 404)."""


class AuthError(RemoteError):
    """Credentials rejected (HTTP 401/403). Never retried, aborts the analysis."""


class MalformedDocumentError(ValueError):
    """A rich-text document could not be interpreted at all."""
