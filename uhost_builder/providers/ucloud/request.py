"""CreateUHostInstance request construction and login password handling."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from uhost_builder.config import parse_instance_type
from uhost_builder.constants import (
    BOOT_DISK_TYPES,
    CHARGE_TYPE_DYNAMIC,
    EIP_BANDWIDTH_MBPS,
    EIP_PAY_MODE,
    LOGIN_MODE_PASSWORD,
    MAINLAND_REGION_PREFIX,
    OPERATOR_BGP,
    OPERATOR_INTERNATIONAL,
    PASSWORD_DIGITS,
    PASSWORD_LETTERS,
    PASSWORD_SPECIALS,
    OsType,
)
from uhost_builder.providers.ucloud.types import (
    BootDisk,
    CreateRequest,
    ElasticIP,
    SourceImage,
)

if TYPE_CHECKING:
    from uhost_builder.config import UCloudConfig
    from uhost_builder.pipeline import StateBag
    from uhost_builder.providers.ucloud.lifecycle import StepCreateInstance


def _rand_string(rng: random.Random, length: int, charset: str) -> str:
    return "".join(rng.choice(charset) for _ in range(length))


def generate_password(rng: random.Random) -> str:
    """Five letters, one special character, five digits, in that order."""
    return (
        _rand_string(rng, 5, PASSWORD_LETTERS)
        + _rand_string(rng, 1, PASSWORD_SPECIALS)
        + _rand_string(rng, 5, PASSWORD_DIGITS)
    )


def resolve_password(config: UCloudConfig, source_image: SourceImage, rng: random.Random) -> str:
    """Pick the login password for the new instance.

    Linux images without a configured SSH password get a generated one,
    written back into ``config.comm`` so the communicator can log in.
    A configured password, or any non-Linux image, passes the configured
    value through untouched.
    """
    password = config.comm.ssh_password
    if source_image.os_type == OsType.LINUX and not password:
        password = generate_password(rng)
        config.comm.ssh_password = password
    return password


def operator_for_region(region: str) -> str:
    return OPERATOR_BGP if region.startswith(MAINLAND_REGION_PREFIX) else OPERATOR_INTERNATIONAL


def build_create_request(step: StepCreateInstance, state: StateBag, password: str) -> CreateRequest:
    """Assemble the create request from the step settings and upstream state."""
    source_image: SourceImage = state.get("source_image")
    sizing = parse_instance_type(step.instance_type)

    eip = None
    if not step.use_private_ip:
        eip = ElasticIP(
            bandwidth=EIP_BANDWIDTH_MBPS,
            pay_mode=EIP_PAY_MODE,
            operator_name=operator_for_region(step.region),
        )

    return CreateRequest(
        region=step.region,
        zone=step.zone,
        name=step.instance_name,
        image_id=step.source_image_id,
        cpu=sizing.cpu,
        memory_mb=sizing.memory_mb,
        boot_disk=BootDisk(
            type=BOOT_DISK_TYPES[step.boot_disk_type],
            size_gb=source_image.size_gb,
        ),
        password=password,
        login_mode=LOGIN_MODE_PASSWORD,
        charge_type=CHARGE_TYPE_DYNAMIC,
        security_group_id=state.get("security_group_id", None),
        vpc_id=state.get("vpc_id", None),
        subnet_id=state.get("subnet_id", None),
        eip=eip,
    )
