"""Typed failures raised by state-changing moderation and identity operations."""

from __future__ import annotations


class ModerationError(Exception):
    """Base class for moderation workflow failures."""

    code = "moderation_error"
    status_code = 400
    retryable = False

    def __init__(self, code: str | None = None) -> None:
        if code:
            self.code = code
        super().__init__(self.code)


class ValidationError(ModerationError):
    code = "validation_error"
    status_code = 400


class NotFoundError(ModerationError):
    code = "not_found"
    status_code = 404


class SelfActionError(ModerationError):
    code = "self_action_forbidden"
    status_code = 400


class SelfReportError(SelfActionError):
    code = "cannot_report_self"


class AuthorizationError(ModerationError):
    code = "admin_required"
    status_code = 403


class ConflictError(ModerationError):
    """Another writer won the race for the same entity; safe to retry."""

    code = "conflict"
    status_code = 409
    retryable = True
