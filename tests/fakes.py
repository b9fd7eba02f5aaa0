"""In-memory stand-ins for the provider client, UI and sleep."""

from __future__ import annotations

from collections.abc import Sequence

from uhost_builder.constants import BootDiskState, InstanceState
from uhost_builder.core.exceptions import NotFoundError
from uhost_builder.providers.ucloud.types import CreateRequest, InstanceDescriptor

type DescribeResult = InstanceDescriptor | Exception


def inst(
    state: str = "Running",
    disk: str = "Normal",
    instance_id: str = "uhost-1",
) -> InstanceDescriptor:
    return InstanceDescriptor(
        id=instance_id,
        state=InstanceState(state),
        boot_disk_state=BootDiskState(disk),
    )


def gone(instance_id: str = "uhost-1") -> NotFoundError:
    return NotFoundError("instance", instance_id)


class FakeClient:
    """Scripted provider client.

    ``describes`` is consumed one entry per describe call; the last entry
    repeats forever. Exceptions in the script are raised.
    """

    def __init__(
        self,
        *,
        instance_id: str = "uhost-1",
        describes: Sequence[DescribeResult] = (),
        create_error: Exception | None = None,
        stop_error: Exception | None = None,
        terminate_error: Exception | None = None,
    ) -> None:
        self.instance_id = instance_id
        self.describes = list(describes)
        self.create_error = create_error
        self.stop_error = stop_error
        self.terminate_error = terminate_error
        self.calls: list[tuple[object, ...]] = []
        self.requests: list[CreateRequest] = []

    def script(self, *describes: DescribeResult) -> None:
        self.describes = list(describes)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    @property
    def names(self) -> list[object]:
        return [call[0] for call in self.calls]

    def create(self, request: CreateRequest) -> str:
        self.calls.append(("create",))
        self.requests.append(request)
        if self.create_error is not None:
            raise self.create_error
        return self.instance_id

    def describe(self, instance_id: str) -> InstanceDescriptor:
        self.calls.append(("describe", instance_id))
        if not self.describes:
            raise AssertionError("describe called without a scripted result")
        item = self.describes.pop(0) if len(self.describes) > 1 else self.describes[0]
        if isinstance(item, Exception):
            raise item
        return item

    def stop(self, instance_id: str) -> None:
        self.calls.append(("stop", instance_id))
        if self.stop_error is not None:
            raise self.stop_error

    def terminate(
        self,
        instance_id: str,
        *,
        release_udisk: bool = True,
        release_eip: bool = True,
    ) -> None:
        self.calls.append(("terminate", instance_id, release_udisk, release_eip))
        if self.terminate_error is not None:
            raise self.terminate_error


class RecordingUi:
    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def say(self, message: str) -> None:
        self.lines.append(("say", message))

    def message(self, message: str) -> None:
        self.lines.append(("message", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def of(self, kind: str) -> list[str]:
        return [text for k, text in self.lines if k == kind]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


