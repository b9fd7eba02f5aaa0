"""uhost-builder - Provision a temporary UCloud UHost instance for image builds.

Example:

    from uhost_builder import (
        ConsoleUi, StateBag, StepCreateInstance, UCloudClient, resolve_build, run_steps,
    )

    config = resolve_build("base")
    with UCloudClient.from_config(config) as client:
        state = StateBag({"client": client, "ui": ConsoleUi(), "config": config,
                          "source_image": image})
        run_steps([StepCreateInstance.from_config(config)], state)
"""

from uhost_builder.config import Comm, UCloudConfig, load_config, resolve_build
from uhost_builder.constants import BootDiskState, InstanceState
from uhost_builder.core.exceptions import (
    BuilderError,
    ConfigurationError,
    NotFoundError,
    ProvisioningError,
    RetryExhaustedError,
    UCloudAPIError,
    WaitCancelledError,
)
from uhost_builder.logging import LogConfig
from uhost_builder.pipeline import StateBag, StepAction, halt, run_steps
from uhost_builder.providers.ucloud import (
    InstanceDescriptor,
    SourceImage,
    StepCreateInstance,
    TeardownReport,
    UCloudClient,
)
from uhost_builder.retry import RetryPolicy, retry_until
from uhost_builder.ui import ConsoleUi, Ui

__all__ = [
    "BootDiskState",
    "BuilderError",
    "Comm",
    "ConfigurationError",
    "ConsoleUi",
    "InstanceDescriptor",
    "InstanceState",
    "LogConfig",
    "NotFoundError",
    "ProvisioningError",
    "RetryExhaustedError",
    "RetryPolicy",
    "SourceImage",
    "StateBag",
    "StepAction",
    "StepCreateInstance",
    "TeardownReport",
    "UCloudAPIError",
    "UCloudClient",
    "UCloudConfig",
    "Ui",
    "WaitCancelledError",
    "halt",
    "load_config",
    "resolve_build",
    "retry_until",
    "run_steps",
]
