"""Centralized constants and enums for uhost-builder.

All magic strings reported or accepted by the UCloud API are defined here
to ensure consistency and enable type-safe usage throughout the codebase.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# UHost Instance States
# =============================================================================


class InstanceState(StrEnum):
    """UHost instance state names as reported by DescribeUHostInstance."""

    INITIALIZING = "Initializing"
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    REBOOTING = "Rebooting"
    INSTALL_FAIL = "Install Fail"
    RESIZE_FAIL = "ResizeFail"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value: object) -> InstanceState:
        return cls.UNKNOWN

    @property
    def is_fatal(self) -> bool:
        return self in (InstanceState.INSTALL_FAIL, InstanceState.RESIZE_FAIL)


class BootDiskState(StrEnum):
    """Boot disk state names; anything but Normal is still initializing."""

    NORMAL = "Normal"
    INITIALIZING = "Initialization"

    @classmethod
    def _missing_(cls, value: object) -> BootDiskState:
        return cls.INITIALIZING


class OsType(StrEnum):
    LINUX = "Linux"
    WINDOWS = "Windows"


# =============================================================================
# Disks
# =============================================================================

BOOT_DISK_TYPES: Final[dict[str, str]] = {
    "cloud_ssd": "CLOUD_SSD",
    "local_normal": "LOCAL_NORMAL",
    "local_ssd": "LOCAL_SSD",
    "cloud_normal": "CLOUD_NORMAL",
}

# Local disks take around ten minutes to initialize
SLOW_BOOT_DISK_TYPES: Final = frozenset({"local_normal", "local_ssd"})

DEFAULT_BOOT_DISK_TYPE: Final = "cloud_ssd"


# =============================================================================
# Network
# =============================================================================

EIP_BANDWIDTH_MBPS: Final = 30
EIP_PAY_MODE: Final = "Traffic"
MAINLAND_REGION_PREFIX: Final = "cn-"
OPERATOR_BGP: Final = "Bgp"
OPERATOR_INTERNATIONAL: Final = "International"


# =============================================================================
# Instance Creation
# =============================================================================

LOGIN_MODE_PASSWORD: Final = "Password"
CHARGE_TYPE_DYNAMIC: Final = "Dynamic"
DEFAULT_INSTANCE_NAME: Final = "uhost-builder"

PASSWORD_LETTERS: Final = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
PASSWORD_SPECIALS: Final = "-_"
PASSWORD_DIGITS: Final = "0123456789"


# =============================================================================
# API
# =============================================================================

DEFAULT_BASE_URL: Final = "https://api.ucloud.cn"
DEFAULT_REQUEST_TIMEOUT: Final = 30
