"""
Exceptions raised by the MTS client.
"""


class MTSError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(MTSError):
    """A required credential or identifier is missing or invalid."""


class OperationError(MTSError):
    """The HTTP call failed or the server answered with an unexpected status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(MTSError):
    """The requested tileset, source or job does not exist."""


class ParseError(MTSError):
    """The response body is not valid JSON of the expected shape."""


class UnexpectedError(MTSError):
    """The request could not be built, e.g. the body is not JSON serializable."""


class TilesetAPIError(MTSError):
    """Error reported by the API as a message plus a list of sub-errors."""

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.errors = list(errors or [])
        self.status_code = status_code
        super().__init__(f"{message}, errors: {','.join(self.errors)}")


class MissingJobIdWarning(UserWarning):
    """A publish response carried neither ``jobId`` nor ``job_id``."""
