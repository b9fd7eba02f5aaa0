"""Custom exception hierarchy for uhost-builder.

All builder-specific exceptions inherit from BuilderError, enabling
callers to catch all of them with a single except clause.
"""

from __future__ import annotations


class BuilderError(Exception):
    """Base exception for all uhost-builder errors."""


class ConfigurationError(BuilderError):
    """Raised for invalid configuration or missing required settings."""


class ProviderError(BuilderError):
    """Raised when a provider API call fails."""


class UCloudAPIError(ProviderError):
    """Raised when the UCloud API answers with a non-zero RetCode."""

    def __init__(self, action: str, code: int, message: str) -> None:
        self.action = action
        self.code = code
        self.message = message
        super().__init__(f"{action} failed: [{code}] {message}")


class NotFoundError(ProviderError):
    """Raised when the requested resource does not exist (anymore)."""

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"the {resource} {resource_id!r} is not found")


class ProvisioningError(BuilderError):
    """Raised when instance provisioning fails."""


class FatalInstanceStateError(ProvisioningError):
    """Raised when the instance reaches a state it cannot recover from - do not retry."""

    def __init__(self, instance_id: str, state: str, reason: str) -> None:
        self.instance_id = instance_id
        self.state = state
        self.reason = reason
        super().__init__(reason)


class ExpectedStateError(BuilderError):
    """Resource has not reached the expected state yet - retry."""

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"the {resource} {resource_id!r} not be expected state")


class RetryExhaustedError(BuilderError):
    """Raised when a wait phase consumed its whole attempt budget."""

    def __init__(self, description: str, attempts: int, last_error: BaseException | None) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"timed out waiting for {description} after {attempts} attempts: {last_error}"
        )


class WaitCancelledError(BuilderError):
    """Raised when a wait is aborted by an external cancellation signal."""

    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"waiting for {description} was cancelled")
