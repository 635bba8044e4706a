"""Exception hierarchy.

Every failure the command line surfaces to the user is one of these, so
the entry point can catch the whole hierarchy with a single handler.
"""

from typing import Optional


class ApcaCliError(Exception):
    """Base exception for all apcacli errors.

    ``cause`` is an optional lower level description that is appended to
    the message when the error is reported.
    """

    def __init__(self, message: str, cause: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def chain(self) -> list[str]:
        """Messages from the outermost error down to the root cause."""
        parts = [self.message]
        if self.cause:
            parts.append(self.cause)
        return parts

    def __str__(self) -> str:
        return ": ".join(self.chain())


class ConfigurationError(ApcaCliError):
    """Raised when the environment does not describe a usable API setup."""


class InvalidArgumentError(ApcaCliError):
    """Raised when parsed arguments cannot be turned into a valid request."""


class ApiError(ApcaCliError):
    """Raised when the trading API rejects a request."""

    def __init__(
        self,
        message: str,
        cause: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code
        self.code = code


class ConnectionFailure(ApcaCliError):
    """Raised when the trading API could not be reached or a stream failed."""
