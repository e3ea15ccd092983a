"""
Error Taxonomy

Every failure the billing service reports to a client derives from
BillingError. Each subclass carries the HTTP status the API answers with,
so route handlers raise domain errors and a single exception handler in
main.py turns them into JSON responses.

    ValidationError            400  empty cart, unavailable item, bad field
    AuthError                  401  no session, expired session, bad credentials
    PermissionDeniedError      403  non-admin menu write
    NotFoundError              404  unknown menu item or bill
    SubmissionInProgressError  409  second submit while one is in flight
    PersistenceError           502  a store or auth collaborator call failed
"""

from typing import Optional


class BillingError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    error: str = "Billing Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Convert to the JSON body returned by the API."""
        return {
            "success": False,
            "error": self.error,
            "detail": self.message,
        }


class ValidationError(BillingError):
    """The request cannot be carried out with the current input or state."""

    status_code = 400
    error = "Validation Error"


class AuthError(BillingError):
    """
    No usable session.

    Not an error from the user's point of view: clients react by sending
    the user to the authentication entry point named in ``redirect_to``.
    """

    status_code = 401
    error = "Authentication Required"

    def __init__(self, message: str = "Authentication required", redirect_to: Optional[str] = None):
        super().__init__(message)
        self.redirect_to = redirect_to

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["redirect_to"] = self.redirect_to
        return body


class PermissionDeniedError(BillingError):
    status_code = 403
    error = "Permission Denied"


class NotFoundError(BillingError):
    status_code = 404
    error = "Not Found"


class SubmissionInProgressError(BillingError):
    """A bill submission for this session has not completed yet."""

    status_code = 409
    error = "Submission In Progress"


class PersistenceError(BillingError):
    """A collaborator call (database, hosted auth) failed; carries its message."""

    status_code = 502
    error = "Persistence Error"
