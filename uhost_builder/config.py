"""TOML-based build configuration.

Loads ~/.uhost-builder/defaults.toml (global) and uhost-builder.toml
(project), merges them, and resolves named builds into UCloudConfig
instances.

Example uhost-builder.toml::

    [builds.base]
    region = "cn-bj2"
    zone = "cn-bj2-02"
    instance_type = "n-basic-2"
    source_image_id = "uimage-f1chxn"
    boot_disk_type = "cloud_ssd"

    [builds.base.comm]
    ssh_username = "root"
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from uhost_builder.constants import (
    BOOT_DISK_TYPES,
    DEFAULT_BASE_URL,
    DEFAULT_BOOT_DISK_TYPE,
    DEFAULT_INSTANCE_NAME,
    DEFAULT_REQUEST_TIMEOUT,
)
from uhost_builder.core.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".uhost-builder" / "defaults.toml"
PROJECT_CONFIG_NAME = "uhost-builder.toml"

# GB of memory per core for each standard instance family
_MEMORY_SCALE: dict[str, int] = {
    "highcpu": 1,
    "basic": 2,
    "standard": 4,
    "highmem": 8,
}

_INSTANCE_TYPE_RE = re.compile(r"^(?P<host>[a-z]+)-(?P<family>[a-z]+)-(?P<rest>[0-9]+(?:-[0-9]+)*)$")


# =============================================================================
# Instance Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class InstanceType:
    """CPU and memory sizing derived from an instance type name."""

    cpu: int
    memory_mb: int
    host_type: str = "n"
    family: str = "basic"


def parse_instance_type(name: str) -> InstanceType:
    """Parse ``n-basic-2`` style names (or ``n-customized-4-8``) into sizing.

    Raises:
        ConfigurationError: If the name is malformed or out of range.
    """
    match = _INSTANCE_TYPE_RE.match(name)
    if match is None:
        raise ConfigurationError(f"instance_type {name!r} is invalid, expected e.g. 'n-basic-2'")

    host, family, rest = match["host"], match["family"], match["rest"].split("-")

    if family == "customized":
        if len(rest) != 2:
            raise ConfigurationError(
                f"instance_type {name!r} is invalid, expected e.g. 'n-customized-1-2'"
            )
        cpu, memory_gb = int(rest[0]), int(rest[1])
        if not 1 <= cpu <= 32:
            raise ConfigurationError(f"cpu in instance_type {name!r} must be in 1-32")
        if not 1 <= memory_gb <= 128:
            raise ConfigurationError(f"memory in instance_type {name!r} must be in 1-128 GB")
        return InstanceType(cpu=cpu, memory_mb=memory_gb * 1024, host_type=host, family=family)

    scale = _MEMORY_SCALE.get(family)
    if scale is None:
        raise ConfigurationError(
            f"instance_type {name!r} has unknown family {family!r}. "
            f"Valid: {', '.join([*_MEMORY_SCALE, 'customized'])}"
        )
    if len(rest) != 1:
        raise ConfigurationError(f"instance_type {name!r} is invalid, expected e.g. 'n-basic-2'")
    cpu = int(rest[0])
    if not 1 <= cpu <= 64:
        raise ConfigurationError(f"cpu in instance_type {name!r} must be in 1-64")
    return InstanceType(cpu=cpu, memory_mb=cpu * scale * 1024, host_type=host, family=family)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(slots=True)
class Comm:
    """Communicator settings consumed by the steps that connect to the instance.

    Mutable: the create-instance step writes a generated password back here.
    """

    ssh_username: str = "root"
    ssh_password: str = field(default="", repr=False)
    ssh_port: int = 22


@dataclass(frozen=True, slots=True)
class UCloudConfig:
    """Immutable settings for one UHost build.

    Args:
        region: UCloud region (e.g., "cn-bj2").
        zone: Availability zone inside the region (e.g., "cn-bj2-02").
        instance_type: Sizing class such as "n-basic-2".
        source_image_id: Image the instance boots from.
        instance_name: Name of the temporary instance.
        boot_disk_type: One of cloud_ssd, local_normal, local_ssd, cloud_normal.
        use_ssh_private_ip: Skip the elastic IP and connect over the private network.
        public_key: API public key. Falls back to UCLOUD_PUBLIC_KEY env var.
        private_key: API private key. Falls back to UCLOUD_PRIVATE_KEY env var.
        project_id: Project to bill. Falls back to UCLOUD_PROJECT_ID env var.
    """

    region: str
    zone: str
    instance_type: str
    source_image_id: str
    instance_name: str = DEFAULT_INSTANCE_NAME
    boot_disk_type: str = DEFAULT_BOOT_DISK_TYPE
    use_ssh_private_ip: bool = False
    public_key: str | None = None
    private_key: str | None = None
    project_id: str | None = None
    base_url: str = DEFAULT_BASE_URL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    comm: Comm = field(default_factory=Comm)

    @property
    def public_key_resolved(self) -> str:
        return self.public_key or os.environ.get("UCLOUD_PUBLIC_KEY", "")

    @property
    def private_key_resolved(self) -> str:
        return self.private_key or os.environ.get("UCLOUD_PRIVATE_KEY", "")

    @property
    def project_id_resolved(self) -> str | None:
        return self.project_id or os.environ.get("UCLOUD_PROJECT_ID") or None

    def validate(self) -> None:
        """Raise ConfigurationError on settings the API would reject."""
        for name in ("region", "zone", "source_image_id"):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} is required")
        parse_instance_type(self.instance_type)
        if self.boot_disk_type not in BOOT_DISK_TYPES:
            raise ConfigurationError(
                f"boot_disk_type {self.boot_disk_type!r} is invalid. "
                f"Valid: {', '.join(BOOT_DISK_TYPES)}"
            )
        if not self.public_key_resolved or not self.private_key_resolved:
            raise ConfigurationError(
                "public_key and private_key are required "
                "(or set UCLOUD_PUBLIC_KEY and UCLOUD_PRIVATE_KEY)"
            )


# =============================================================================
# Loading
# =============================================================================


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("defaults", {})
    merged.setdefault("builds", {})
    return merged


def resolve_build(
    name: str,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> UCloudConfig:
    """Build the UCloudConfig for ``[builds.<name>]``, layered over ``[defaults]``."""
    config = load_config(project_dir=project_dir, global_path=global_path)

    builds = config["builds"]
    if name not in builds:
        raise KeyError(f"Build '{name}' not found. Available: {', '.join(builds) or 'none'}")

    raw = _deep_merge(config["defaults"], builds[name])
    raw_comm = raw.pop("comm", None)
    comm = Comm(**raw_comm) if raw_comm else Comm()

    try:
        return UCloudConfig(comm=comm, **raw)
    except TypeError as e:
        raise ConfigurationError(f"Build '{name}' is invalid: {e}") from e
