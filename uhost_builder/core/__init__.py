"""Core primitives shared across uhost-builder."""

from uhost_builder.core.exceptions import (
    BuilderError,
    ConfigurationError,
    ExpectedStateError,
    FatalInstanceStateError,
    NotFoundError,
    ProviderError,
    ProvisioningError,
    RetryExhaustedError,
    UCloudAPIError,
    WaitCancelledError,
)

__all__ = [
    "BuilderError",
    "ConfigurationError",
    "ExpectedStateError",
    "FatalInstanceStateError",
    "NotFoundError",
    "ProviderError",
    "ProvisioningError",
    "RetryExhaustedError",
    "UCloudAPIError",
    "WaitCancelledError",
]
