"""Error taxonomy shared by the domain, infrastructure, and service layers.

Domain and infrastructure code raise these exceptions. The service layer
converts them into :class:`~interpreter_onboarding.services.result.ServiceError`
payloads using the stable ``code`` attribute, so adapters never need to
import the exception classes themselves.
"""

from __future__ import annotations

from typing import Any


class OnboardingError(Exception):
    """Base class for all onboarding errors."""

    code = "ONBOARDING_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail or {}


class ValidationError(OnboardingError):
    """One or more fields failed validation.

    ``field_errors`` maps a field identifier to a human-readable message.
    Recoverable: the session continues and the user corrects the fields.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, field_errors: dict[str, str], message: str | None = None) -> None:
        self.field_errors = dict(field_errors)
        if message is None:
            message = next(iter(self.field_errors.values()), "Validation failed")
        super().__init__(message, detail={"fields": self.field_errors})


class IneligibleServiceError(OnboardingError):
    """A gated service type was selected without a qualifying certificate."""

    code = "INELIGIBLE_SERVICE"

    def __init__(self, service_code: str) -> None:
        self.service_code = service_code
        super().__init__(
            "This service type requires specific certifications. "
            "Please complete the Certificates step first.",
            detail={"service_code": service_code},
        )


class NavigationError(OnboardingError):
    """A wizard transition was refused."""

    code = "INVALID_TRANSITION"


class ReferenceDataUnavailable(OnboardingError):
    """Reference data could not be loaded; the wizard cannot start."""

    code = "REFERENCE_DATA_UNAVAILABLE"


class ExternalResolutionTimeout(OnboardingError):
    """Address validation did not answer within the configured timeout."""

    code = "ADDRESS_TIMEOUT"


class ExternalResolutionNotFound(OnboardingError):
    """Address validation produced no match."""

    code = "ADDRESS_NOT_FOUND"


class BackendError(OnboardingError):
    """Transport-level failure talking to the profile backend."""

    code = "BACKEND_ERROR"


class SubmissionRejected(OnboardingError):
    """The backend refused the submitted payload."""

    code = "SUBMISSION_REJECTED"


class ConfigError(OnboardingError):
    """Configuration file could not be parsed."""

    code = "CONFIG_ERROR"


class SessionClosed(OnboardingError):
    """The session already submitted successfully and is read-only."""

    code = "SESSION_CLOSED"
