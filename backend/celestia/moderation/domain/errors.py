"""Error taxonomy shared by the moderation lifecycle services."""

from __future__ import annotations


class ModerationWorkflowError(Exception):
    """Base class for moderation workflow failures.

    ``code`` is the short machine-readable identifier surfaced to API clients.
    """

    default_code = "moderation_error"

    def __init__(self, code: str | None = None, message: str | None = None) -> None:
        self.code = code or self.default_code
        super().__init__(message or self.code)


class NotFound(ModerationWorkflowError):
    default_code = "not_found"


class InvalidTransition(ModerationWorkflowError):
    default_code = "invalid_transition"


class ValidationError(ModerationWorkflowError):
    default_code = "validation_error"


class DependencyFailure(ModerationWorkflowError):
    default_code = "dependency_failure"


class StaleAccountError(InvalidTransition):
    """Raised by repositories when a conditional account update loses a race."""

    default_code = "account_changed"
