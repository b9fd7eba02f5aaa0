"""Cloud providers for uhost-builder."""

from uhost_builder.providers.ucloud import StepCreateInstance, UCloudClient

__all__ = [
    "StepCreateInstance",
    "UCloudClient",
]
