"""UCloud UHost provider for uhost-builder.

Example:
    from uhost_builder.providers.ucloud import StepCreateInstance, UCloudClient

    step = StepCreateInstance.from_config(config)
    with UCloudClient.from_config(config) as client:
        state = StateBag({"client": client, "ui": ConsoleUi(), "config": config,
                          "source_image": image})
        run_steps([step], state)
"""

from uhost_builder.providers.ucloud.client import ProviderClient, UCloudClient
from uhost_builder.providers.ucloud.lifecycle import (
    ProvisionPhase,
    StepCreateInstance,
    TeardownPhase,
    TeardownReport,
    Verdict,
)
from uhost_builder.providers.ucloud.types import (
    CreateRequest,
    InstanceDescriptor,
    IPAddress,
    SourceImage,
)

__all__ = [
    "CreateRequest",
    "IPAddress",
    "InstanceDescriptor",
    "ProviderClient",
    "ProvisionPhase",
    "SourceImage",
    "StepCreateInstance",
    "TeardownPhase",
    "TeardownReport",
    "UCloudClient",
    "Verdict",
]
