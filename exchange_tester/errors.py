"""Failure types raised by the tester and its collaborators."""

from typing import Any, Optional


class TesterError(Exception):
    """Base class for every failure that aborts a test run."""


class CheckFailed(TesterError):
    """Observed state diverges from the exchange's business rules."""


class ConvergenceTimeout(TesterError):
    """A convergence wait elapsed before its condition held."""


class CollaboratorError(TesterError):
    """Unexpected transport or protocol error from a remote service."""


class ErrorWithStatus(CollaboratorError):
    """Non-2xx HTTP response, keeping the status code for callers to match on."""

    def __init__(self, method: str, path: str, status_code: int, detail: Optional[str] = None):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.detail = detail
        message = f"{method} {path} status code {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RetiredError(CollaboratorError):
    """The response took longer than a user is willing to wait."""


def expect_equal(label: str, got: Any, want: Any) -> None:
    """Raise CheckFailed formatted as ``label [got:X, want:Y]`` when values differ."""
    if got != want:
        raise CheckFailed(f"{label} [got:{got}, want:{want}]")
