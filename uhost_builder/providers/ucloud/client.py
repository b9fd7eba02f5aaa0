"""Sync HTTP client for the UCloud UHost API.

Uses httpx. Every call is a form POST carrying ``Action``, the call
parameters, ``PublicKey`` and a ``Signature`` over all of them.
"""

from __future__ import annotations

import hashlib
from types import TracebackType
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from loguru import logger

from uhost_builder.constants import DEFAULT_BASE_URL, DEFAULT_REQUEST_TIMEOUT
from uhost_builder.core.exceptions import NotFoundError, UCloudAPIError
from uhost_builder.providers.ucloud.types import CreateRequest, InstanceDescriptor

if TYPE_CHECKING:
    from uhost_builder.config import UCloudConfig

log = logger.bind(component="ucloud-client")


class ProviderClient(Protocol):
    """Provider operations consumed by the lifecycle controller."""

    def create(self, request: CreateRequest) -> str: ...

    def describe(self, instance_id: str) -> InstanceDescriptor: ...

    def stop(self, instance_id: str) -> None: ...

    def terminate(
        self,
        instance_id: str,
        *,
        release_udisk: bool = True,
        release_eip: bool = True,
    ) -> None: ...


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def sign(params: dict[str, Any], private_key: str) -> str:
    """SHA-1 over the sorted ``key + value`` pairs followed by the private key."""
    payload = "".join(f"{key}{_encode(params[key])}" for key in sorted(params))
    return hashlib.sha1((payload + private_key).encode()).hexdigest()


class UCloudClient:
    """UHost API client.

    Example:
        with UCloudClient.from_config(config) as client:
            instance = client.describe("uhost-xxxx")
    """

    def __init__(
        self,
        public_key: str,
        private_key: str,
        region: str,
        *,
        project_id: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._public_key = public_key
        self._private_key = private_key
        self.region = region
        self.project_id = project_id
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config: UCloudConfig, **kwargs: Any) -> UCloudClient:
        return cls(
            config.public_key_resolved,
            config.private_key_resolved,
            config.region,
            project_id=config.project_id_resolved,
            base_url=config.base_url,
            timeout=config.request_timeout,
            **kwargs,
        )

    def __enter__(self) -> UCloudClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def invoke(self, action: str, params: dict[str, Any]) -> dict[str, Any]:
        """Call one API action and return the decoded response body.

        Raises:
            UCloudAPIError: On transport failure or a non-zero RetCode.
        """
        body: dict[str, Any] = {"Action": action, "Region": self.region, **params}
        if self.project_id:
            body["ProjectId"] = self.project_id
        body["PublicKey"] = self._public_key
        body["Signature"] = sign(body, self._private_key)

        log.debug("Calling {action}", action=action)
        try:
            resp = self._http.post("/", data={k: _encode(v) for k, v in body.items()})
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UCloudAPIError(action, -1, f"{type(e).__name__}: {e}") from e

        code = int(data.get("RetCode", -1))
        if code != 0:
            raise UCloudAPIError(action, code, data.get("Message", "unknown error"))
        return data

    def create(self, request: CreateRequest) -> str:
        data = self.invoke("CreateUHostInstance", request.to_params())
        ids = data.get("UHostIds") or []
        if not ids:
            raise UCloudAPIError("CreateUHostInstance", -1, "response carries no UHostIds")
        return ids[0]

    def describe(self, instance_id: str) -> InstanceDescriptor:
        """Read one instance.

        Raises:
            NotFoundError: The instance does not exist (anymore).
        """
        data = self.invoke("DescribeUHostInstance", {"UHostIds.0": instance_id})
        instances = data.get("UHostSet") or []
        if not instances:
            raise NotFoundError("instance", instance_id)
        return InstanceDescriptor.from_api(instances[0])

    def stop(self, instance_id: str) -> None:
        self.invoke("StopUHostInstance", {"UHostId": instance_id})

    def terminate(
        self,
        instance_id: str,
        *,
        release_udisk: bool = True,
        release_eip: bool = True,
    ) -> None:
        self.invoke(
            "TerminateUHostInstance",
            {
                "UHostId": instance_id,
                "ReleaseUDisk": release_udisk,
                "ReleaseEIP": release_eip,
            },
        )
