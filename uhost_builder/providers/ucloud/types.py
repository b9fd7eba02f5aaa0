"""UCloud-specific types."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

from uhost_builder.constants import BootDiskState, InstanceState


@dataclass(frozen=True, slots=True)
class IPAddress:
    """One entry of a UHost IPSet."""

    type: str
    ip: str

    @property
    def is_private(self) -> bool:
        return self.type == "Private"


@dataclass(frozen=True, slots=True)
class InstanceDescriptor:
    """Snapshot of a UHost instance as reported by DescribeUHostInstance."""

    id: str
    state: InstanceState
    boot_disk_state: BootDiskState
    name: str = ""
    zone: str = ""
    ip_set: tuple[IPAddress, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> InstanceDescriptor:
        return cls(
            id=data["UHostId"],
            state=InstanceState(data.get("State", "")),
            boot_disk_state=BootDiskState(data.get("BootDiskState", "")),
            name=data.get("Name", ""),
            zone=data.get("Zone", ""),
            ip_set=tuple(
                IPAddress(type=ip.get("Type", ""), ip=ip.get("IP", ""))
                for ip in data.get("IPSet") or ()
            ),
        )

    @property
    def private_ip(self) -> str | None:
        return next((a.ip for a in self.ip_set if a.is_private), None)

    @property
    def public_ip(self) -> str | None:
        return next((a.ip for a in self.ip_set if not a.is_private), None)

    def ssh_host(self, use_private_ip: bool) -> str | None:
        """Address the communicator should connect to."""
        return self.private_ip if use_private_ip else self.public_ip


@dataclass(frozen=True, slots=True)
class SourceImage:
    """The image the instance boots from, resolved by an upstream step."""

    id: str
    os_type: str
    size_gb: int
    name: str = ""


@dataclass(frozen=True, slots=True)
class BootDisk:
    type: str
    size_gb: int


@dataclass(frozen=True, slots=True)
class ElasticIP:
    bandwidth: int
    pay_mode: str
    operator_name: str


@dataclass(frozen=True, slots=True)
class CreateRequest:
    """Parameters of one CreateUHostInstance call.

    Built once per step run and never mutated after submission.
    """

    region: str
    zone: str
    name: str
    image_id: str
    cpu: int
    memory_mb: int
    boot_disk: BootDisk
    password: str = field(repr=False)
    login_mode: str = "Password"
    charge_type: str = "Dynamic"
    security_group_id: str | None = None
    vpc_id: str | None = None
    subnet_id: str | None = None
    eip: ElasticIP | None = None

    def to_params(self) -> dict[str, Any]:
        """Flatten into UCloud API wire parameters."""
        params: dict[str, Any] = {
            "Region": self.region,
            "Zone": self.zone,
            "Name": self.name,
            "ImageId": self.image_id,
            "CPU": self.cpu,
            "Memory": self.memory_mb,
            "LoginMode": self.login_mode,
            "ChargeType": self.charge_type,
            "Disks.0.IsBoot": "true",
            "Disks.0.Size": self.boot_disk.size_gb,
            "Disks.0.Type": self.boot_disk.type,
        }
        if self.password:
            # the API expects the password base64 encoded
            params["Password"] = base64.b64encode(self.password.encode()).decode()
        if self.security_group_id:
            params["SecurityGroupId"] = self.security_group_id
        if self.vpc_id:
            params["VPCId"] = self.vpc_id
        if self.subnet_id:
            params["SubnetId"] = self.subnet_id
        if self.eip is not None:
            params["NetworkInterface.0.EIP.Bandwidth"] = self.eip.bandwidth
            params["NetworkInterface.0.EIP.PayMode"] = self.eip.pay_mode
            params["NetworkInterface.0.EIP.OperatorName"] = self.eip.operator_name
        return params
