"""
Core module initialization.
Exports configuration, logging, error and session utilities.
"""

from hotel_billing.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from hotel_billing.core.exceptions import (
    BillingError,
    ValidationError,
    AuthError,
    PermissionDeniedError,
    NotFoundError,
    SubmissionInProgressError,
    PersistenceError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "BillingError",
    "ValidationError",
    "AuthError",
    "PermissionDeniedError",
    "NotFoundError",
    "SubmissionInProgressError",
    "PersistenceError",
]
